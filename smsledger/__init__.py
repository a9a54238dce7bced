"""SMS ledger sync: bank notification messages to deduplicated expense and income entries."""

__version__ = "1.0.0"
