"""Main entrypoint and application factory for the SMS ledger sync API.

This module initializes the FastAPI application, configures logging, creates the ledger tables, and exposes the
Scalar API reference endpoint for interactive OpenAPI documentation. It also includes the main entrypoint for running
the app with Uvicorn.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.responses import HTMLResponse
from scalar_fastapi import get_scalar_api_reference
from sqlalchemy.exc import SQLAlchemyError

from smsledger import __version__
from smsledger.api.routes import router
from smsledger.core.db import engine, init_db
from smsledger.core.settings import get_settings
from smsledger.core.utils import ensure_dir, get_logger

LOGGER_NAMES = (
    "sms-ledger",
    "sms-ledger.api",
    "sms-ledger.worker",
    "sms-ledger.parser",
    "sms-ledger.source",
    "sms-ledger.ledger",
)


# --- Logging Setup ---
def setup_logging() -> None:
    """Configure console and file logging for every project logger."""
    settings = get_settings()
    log_path = Path(settings.log_file)
    ensure_dir(log_path.parent)
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    file_handler = logging.FileHandler(log_path)
    file_handler.setLevel(level)
    # Plain formatter, no colors in the log file
    file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
    for name in LOGGER_NAMES:
        logger = get_logger(name)
        logger.setLevel(level)
        if not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
            logger.addHandler(file_handler)


setup_logging()
logger = get_logger("sms-ledger")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan event handler to create the ledger, preference and job tables."""
    _ = app  # Silence unused argument warning
    try:
        init_db(engine)
    except SQLAlchemyError:
        logger.exception("Failed to create database tables")
        raise
    logger.info(f"Database ready at {engine.url}")
    yield


app = FastAPI(
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    title="SMS Ledger Sync API",
    description="""
    The SMS Ledger Sync API turns bank notification messages into expense and income ledger entries.

    **Endpoints:**
    - `POST /sync`: Start a sync job over the configured message source. Returns a `job_id`.
    - `POST /upload-messages`: Upload an inbox export CSV and start a sync job over it. Returns a `job_id`.
    - `GET /status/{{job_id}}`: Check the status and counters of a sync job.
    - `POST /parse`: Preview how a single message is parsed.
    - `GET /health`: Health check endpoint.
    - `GET /scalar`: Interactive Scalar OpenAPI documentation.
    """,
    version=__version__,
)
app.include_router(router)


@app.get("/scalar", include_in_schema=False)
async def scalar_docs() -> HTMLResponse:
    """Return Scalar API reference."""
    return get_scalar_api_reference(openapi_url=app.openapi_url, title=app.title)


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("main:app", host=settings.server_host, port=settings.server_port, reload=True)
