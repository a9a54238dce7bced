"""Parsing package: sender filtering, rule-driven field extraction, account resolution and categorization."""

from .accounts import resolve  # noqa: F401
from .categorizer import categorize  # noqa: F401
from .extractor import FieldExtractor, extract  # noqa: F401
from .sender_filter import is_bank_sender, is_blocked, is_ignorable  # noqa: F401
