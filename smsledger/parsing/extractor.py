"""FieldExtractor: turns a bank notification message into a ParsedTransaction.

The extractor walks the rule tables in `smsledger.parsing.rules` in a fixed order: debit amount, credit amount,
source account, counter-party, transfer markers and, for transfers, the destination account. Each table is
first-match-wins. Only direction and amount are mandatory; every other field falls back to a sentinel.
"""

import math
from collections.abc import Sequence

from smsledger.core.models import (
    UNKNOWN_ACCOUNT,
    UNKNOWN_MERCHANT,
    BankAccountMapping,
    Direction,
    ParsedTransaction,
)
from smsledger.core.utils import get_logger
from smsledger.parsing import accounts
from smsledger.parsing.rules import (
    ACCOUNT_RULES,
    COUNTERPARTY_RULES,
    CREDIT_AMOUNT_RULES,
    DEBIT_AMOUNT_RULES,
    DESTINATION_ACCOUNT_RULES,
    TRANSFER_RULES,
    MatchRule,
    any_match,
    first_match,
)
from smsledger.parsing.sender_filter import is_ignorable

MAX_COUNTERPARTY_LEN = 50
UPI_LABEL = "UPI Transaction"

logger = get_logger("sms-ledger.parser")


class FieldExtractor:
    """Rule-driven extractor for amount, direction, account, counter-party and transfer fields."""

    def __init__(
        self,
        debit_rules: tuple[MatchRule, ...] = DEBIT_AMOUNT_RULES,
        credit_rules: tuple[MatchRule, ...] = CREDIT_AMOUNT_RULES,
    ) -> None:
        """Initialize the extractor with its amount rule tables."""
        self.debit_rules = debit_rules
        self.credit_rules = credit_rules

    def extract(
        self,
        sender: str,
        body: str,
        timestamp: int,
        mappings: Sequence[BankAccountMapping] | None = None,
    ) -> ParsedTransaction | None:
        """Parse one message, or return None when it is not a recognizable financial event."""
        if not body or not body.strip() or not sender:
            return None
        if is_ignorable(sender):
            logger.debug(f"Ignored sender: {sender}")
            return None

        found = self._match_amount(body)
        if found is None:
            logger.debug(f"No amount pattern matched for sender {sender}")
            return None
        direction, rule, raw_amount = found
        try:
            amount = self._parse_amount(raw_amount)
        except ValueError as exc:
            logger.debug(f"Rejected amount from rule '{rule.name}': {exc}")
            return None

        account = self.extract_account(body)
        is_transfer = any_match(TRANSFER_RULES, body)
        destination = self.extract_destination(body) if is_transfer else None
        return ParsedTransaction(
            amount=amount,
            direction=direction,
            counterparty_name=self.extract_counterparty(body),
            account_suffix=account,
            resolved_account_name=accounts.resolve(account, mappings),
            timestamp=timestamp,
            original_text=body,
            is_transfer_like=is_transfer,
            destination_account_suffix=destination,
        )

    def _match_amount(self, body: str) -> tuple[Direction, MatchRule, str] | None:
        """Find the amount, trying every debit rule before any credit rule."""
        for direction, rules in ((Direction.DEBIT, self.debit_rules), (Direction.CREDIT, self.credit_rules)):
            found = first_match(rules, body)
            if found:
                rule, match = found
                return direction, rule, match.group(1)
        return None

    @staticmethod
    def _parse_amount(raw: str) -> float:
        """Parse an amount string with grouping commas.

        Raises:
            ValueError: If the amount is not a finite, strictly positive number.

        """
        try:
            amount = float(raw.replace(",", ""))
        except ValueError as exc:
            msg = f"Invalid amount format: {raw!r}"
            raise ValueError(msg) from exc
        if not math.isfinite(amount) or amount <= 0:
            msg = f"Amount must be positive: {raw!r}"
            raise ValueError(msg)
        return amount

    @staticmethod
    def extract_account(body: str) -> str:
        """Extract the source account suffix, without masking characters."""
        found = first_match(ACCOUNT_RULES, body)
        if not found:
            return UNKNOWN_ACCOUNT
        return accounts.clean_suffix(found[1].group(1)) or UNKNOWN_ACCOUNT

    @staticmethod
    def extract_destination(body: str) -> str | None:
        """Extract the receiving account suffix of a transfer."""
        found = first_match(DESTINATION_ACCOUNT_RULES, body)
        if not found:
            return None
        return accounts.clean_suffix(found[1].group(1)) or None

    @staticmethod
    def extract_counterparty(body: str) -> str:
        """Extract the merchant or payee name, normalized for UPI handles and length."""
        found = first_match(COUNTERPARTY_RULES, body)
        name = found[1].group(1).strip() if found else ""
        if not name:
            return UNKNOWN_MERCHANT
        if "upi" in name.lower():
            return UPI_LABEL
        if len(name) > MAX_COUNTERPARTY_LEN:
            return name[:MAX_COUNTERPARTY_LEN] + "..."
        return name


_default_extractor = FieldExtractor()


def extract(
    sender: str,
    body: str,
    timestamp: int,
    mappings: Sequence[BankAccountMapping] | None = None,
) -> ParsedTransaction | None:
    """Convenience function to parse a single message with the default rule tables."""
    return _default_extractor.extract(sender, body, timestamp, mappings)
