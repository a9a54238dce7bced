"""Account suffix resolution against the user's registered bank accounts."""

import re
from collections.abc import Sequence

from smsledger.core.models import BankAccountMapping, ParsedTransaction

MASK_CHARS = re.compile(r"[xX*]")
MIN_SUFFIX_LEN = 3


def clean_suffix(suffix: str) -> str:
    """Strip masking characters from an extracted account suffix."""
    return MASK_CHARS.sub("", suffix or "")


def resolve(account_suffix: str | None, mappings: Sequence[BankAccountMapping] | None) -> str | None:
    """Map an extracted account suffix to the name of a registered account.

    A mapping matches when either its digits or the cleaned suffix ends with the other, which covers banks that print
    the last three digits as well as those that print the last four.
    """
    if not mappings or not account_suffix:
        return None
    cleaned = clean_suffix(account_suffix)
    if len(cleaned) < MIN_SUFFIX_LEN:
        return None
    for mapping in mappings:
        last4 = mapping.last4.strip()
        if last4 and (cleaned.endswith(last4) or last4.endswith(cleaned)):
            return mapping.name
    return None


def is_own_account(account_suffix: str | None, mappings: Sequence[BankAccountMapping] | None) -> bool:
    """Check whether a suffix belongs to one of the registered accounts."""
    return resolve(account_suffix, mappings) is not None


def is_self_transfer(parsed: ParsedTransaction, mappings: Sequence[BankAccountMapping] | None) -> bool:
    """Check whether a transfer moves money between two of the user's own accounts."""
    if not parsed.is_transfer_like or not parsed.destination_account_suffix:
        return False
    return is_own_account(parsed.account_suffix, mappings) and is_own_account(
        parsed.destination_account_suffix,
        mappings,
    )
