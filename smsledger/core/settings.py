"""Configuration and environment settings for the SMS ledger sync service."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings for the SMS ledger sync service."""

    database_url: str = "sqlite:///ledger.db"
    message_source: str = "fixture"
    inbox_export_file: str | None = None
    max_messages: int = 1000
    progress_every: int = 5
    dedup_window_ms: int = 60_000
    description_preview_len: int = 50
    require_bank_sender: bool = False
    skip_self_transfers: bool = False
    default_account: str = "Cash"
    default_blocked_keywords: list[str] = ["loan", "approved", "pre-approved", "offer", "voucher", "points"]
    log_level: str = "INFO"
    log_file: str = "logs/sms_sync.log"
    server_host: str = "127.0.0.1"
    server_port: int = 8000

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


def get_settings() -> "Settings":
    """Return an instance of the application settings."""
    return Settings()
