"""Sender classification for inbound messages.

Two independent checks live here. `is_ignorable` is a cheap, unconditional deny-list applied before any parsing.
`is_bank_sender` is an opt-in positive identification for callers that want to accept only known bank senders.
`is_blocked` applies the user's own blocked sender and keyword lists.
"""

import re
from collections.abc import Iterable

IGNORED_SENDER_TOKENS = (
    "VODA",
    "JIO",
    "AIRTEL",
    "BSNL",
    "IDEA",
    "TRAI",
    "GOVT",
    "OFFER",
    "PROMO",
    "OTP",
    "ALERT",
    "INFO",
    "VERIFY",
)
IGNORED_SENDER_PREFIXES = ("AD-",)

BUILT_IN_BANK_IDENTIFIERS = (
    "BK",
    "BNK",
    "SBI",
    "HDFC",
    "ICICI",
    "AXIS",
    "KOTAK",
    "PAYTM",
    "GPAY",
    "AMZ",
    "BOB",
    "PNB",
    "UBI",
    "CITI",
    "YES",
    "IDBI",
    "INDUS",
    "RBL",
    "FEDERAL",
    "CANARA",
    "UNION",
    "BAJAJ",
)

MIN_BANK_SENDER_LEN = 5
MAX_BANK_SENDER_LEN = 12
SHORT_CODE_PATTERN = re.compile(r"^\d{5,6}$")
NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def clean_sender(sender: str) -> str:
    """Upper-case a sender id and drop everything that is not a letter or digit."""
    return NON_ALNUM.sub("", sender).upper()


def is_ignorable(sender: str) -> bool:
    """Check whether a sender is a definitely non-financial source (carriers, OTP, promotions)."""
    if not sender:
        return False
    if sender.upper().startswith(IGNORED_SENDER_PREFIXES):
        return True
    cleaned = clean_sender(sender)
    return any(token in cleaned for token in IGNORED_SENDER_TOKENS)


def is_bank_sender(sender: str, custom_identifiers: Iterable[str] | None = None) -> bool:
    """Check whether a sender looks like a bank or payment provider.

    Alphanumeric ids of 5 to 12 characters match when they contain a built-in or user-supplied identifier; purely
    numeric 5 or 6 digit short codes are accepted as transactional.
    """
    if not sender:
        return False
    identifiers = set(BUILT_IN_BANK_IDENTIFIERS)
    identifiers.update(ident.upper() for ident in custom_identifiers or () if ident)
    cleaned = clean_sender(sender)
    if MIN_BANK_SENDER_LEN <= len(cleaned) <= MAX_BANK_SENDER_LEN and any(ident in cleaned for ident in identifiers):
        return True
    return bool(SHORT_CODE_PATTERN.match(cleaned))


def is_blocked(
    sender: str,
    body: str,
    blocked_senders: Iterable[str] = (),
    blocked_keywords: Iterable[str] = (),
) -> bool:
    """Check a message against the user's blocked senders and keywords (case-insensitive substring match)."""
    sender_lower = (sender or "").lower()
    body_lower = (body or "").lower()
    if any(blocked.lower() in sender_lower for blocked in blocked_senders if blocked):
        return True
    return any(keyword.lower() in body_lower for keyword in blocked_keywords if keyword)
