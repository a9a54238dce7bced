"""Prioritized match rules for bank notification messages.

Every extracted field has its own ordered table of rules. Tables are evaluated top to bottom and the first rule whose
pattern matches decides the field; later rules are broader and only fire when the stricter ones above them fail.
Rules carry a short rationale so the ordering can be reviewed and tested one rule at a time.
"""

import re
from typing import NamedTuple

FLAGS = re.IGNORECASE

CURRENCY = r"(?:\brs\.?|\binr|\busd|\$)"
AMOUNT = r"(\d[\d,]*(?:\.\d+)?)"
ACCOUNT_REF = r"(?:a/c|ac|account)"
SUFFIX = r"([xX*]*\d{3,4})"
NAME = r"([a-z0-9\s.@]+?)"


class MatchRule(NamedTuple):
    """A named pattern with its place in a priority table."""

    name: str
    pattern: re.Pattern[str]
    rationale: str


def _rule(name: str, pattern: str, rationale: str) -> MatchRule:
    return MatchRule(name, re.compile(pattern, FLAGS), rationale)


DEBIT_AMOUNT_RULES: tuple[MatchRule, ...] = (
    _rule(
        "currency_then_debit_verb",
        rf"{CURRENCY}\s*{AMOUNT}\s*(?:debited|spent|paid|withdrawn|deducted|sent|transferred)",
        "Amount directly followed by a debit verb is the most common alert layout.",
    ),
    _rule(
        "debit_verb_then_amount",
        rf"\b(?:debited|spent|paid|withdrawn|deducted|sent|transferred)\s*(?:by|to|of)?\s*(?:{CURRENCY})?\s*{AMOUNT}",
        "Verb-first phrasing, e.g. 'Paid Rs 299' or 'debited by USD 50'.",
    ),
    _rule(
        "payment_or_purchase",
        rf"\b(?:payment|purchase)\s*(?:of)?\s*{CURRENCY}\s*{AMOUNT}",
        "Card and wallet purchase notices name the payment before the amount.",
    ),
    _rule(
        "emi_deduction",
        rf"\bemi\s*(?:of)?\s*(?:{CURRENCY})?\s*{AMOUNT}\s*(?:debited|deducted|paid)",
        "Loan instalments, only when the deduction verb is present.",
    ),
    _rule(
        "atm_withdrawal",
        rf"\batm\s*(?:withdrawal|withdrawn)?\s*(?:of)?\s*(?:{CURRENCY})?\s*{AMOUNT}",
        "Cash withdrawals, where the currency marker is often missing.",
    ),
    _rule(
        "currency_was_debited",
        rf"{CURRENCY}\s*{AMOUNT}\s*(?:was|has been)\s*(?:debited|deducted)",
        "Passive voice alerts.",
    ),
)

CREDIT_AMOUNT_RULES: tuple[MatchRule, ...] = (
    _rule(
        "currency_then_credit_verb",
        rf"{CURRENCY}\s*{AMOUNT}\s*(?:credited|received|deposited|added|refunded|reversed)",
        "Amount directly followed by a credit verb.",
    ),
    _rule(
        "credit_verb_then_amount",
        rf"\b(?:credited|received|deposited|added|refunded|reversed)\s*(?:by|to|of)?\s*(?:{CURRENCY})?\s*{AMOUNT}",
        "Verb-first phrasing, e.g. 'received INR 500'.",
    ),
    _rule(
        "cashback_refund_reversal",
        rf"\b(?:cashback|refund|reversal)\s*(?:of)?\s*(?:{CURRENCY})?\s*{AMOUNT}",
        "Money returned to the account, named before the amount.",
    ),
    _rule(
        "currency_was_credited",
        rf"{CURRENCY}\s*{AMOUNT}\s*(?:was|has been)\s*(?:credited|deposited|reversed)",
        "Passive voice alerts.",
    ),
)

ACCOUNT_RULES: tuple[MatchRule, ...] = (
    _rule(
        "account_reference",
        rf"\b{ACCOUNT_REF}\s*(?:no\.?)?\s*{SUFFIX}",
        "Explicit 'a/c 1234' or 'account no. XX1234'.",
    ),
    _rule(
        "ending_with",
        rf"\b(?:ending with|ending|end)\s*{SUFFIX}",
        "'ending 6789' style references.",
    ),
    _rule(
        "card_number",
        r"\bcard\s*(?:no\.?)?\s*(?:ending\s*)?([xX*]*\d{4})",
        "Card alerts carry the last four digits of the card.",
    ),
    _rule(
        "from_suffix",
        rf"\bfrom\s*{SUFFIX}",
        "'debited from X1234' without an account keyword.",
    ),
    _rule(
        "masked_digits",
        r"xx(\d{3,4})",
        "Any masked number left in the text.",
    ),
)

COUNTERPARTY_RULES: tuple[MatchRule, ...] = (
    _rule(
        "info_field",
        rf"\binfo:\s*{NAME}(?=\s+(?:on|ref)\b|\.(?:\s|$)|\s*$)",
        "Some banks label the payee with an 'Info:' field.",
    ),
    _rule(
        "explicit_payee",
        rf"\b(?:trf\s+to|paid\s+to|sent\s+to)\s+{NAME}(?=\s+(?:on|ref|via)\b|\.(?:\s|$)|\s*$)",
        "'paid to' and 'sent to' name the receiving party.",
    ),
    _rule(
        "proximity_preposition",
        rf"(?:\b(?:at|to|via)|@)\s+{NAME}(?=\s+(?:on|for|using|ref|txn|via)\b|\.(?:\s|$)|\s*$)",
        "Merchant right after 'at', 'to' or 'via', up to the next clause.",
    ),
)

TRANSFER_RULES: tuple[MatchRule, ...] = (
    _rule(
        "transfer_channel",
        r"\b(?:neft|imps|rtgs|upi)\b\s*(?:transfer|trf)?",
        "Interbank transfer rails.",
    ),
    _rule(
        "transfer_to_account",
        rf"\b(?:transferred|transfer)\s*(?:to|from)\s*(?:{ACCOUNT_REF}|self)",
        "Transfer phrasing that names an account.",
    ),
    _rule(
        "fund_or_self_transfer",
        r"\b(?:fund\s*transfer|self\s*transfer)",
        "Explicit transfer products.",
    ),
    _rule(
        "own_accounts",
        r"\b(?:your own|own account|between accounts)",
        "Movement between the holder's own accounts.",
    ),
)

DESTINATION_ACCOUNT_RULES: tuple[MatchRule, ...] = (
    _rule(
        "to_account",
        rf"\b(?:to|towards)\s*{ACCOUNT_REF}\s*(?:no\.?)?\s*{SUFFIX}",
        "'to a/c XX5678' names the receiving account.",
    ),
    _rule(
        "beneficiary_account",
        rf"\b(?:beneficiary|credit)\s*(?:{ACCOUNT_REF})?\s*(?:no\.?)?\s*{SUFFIX}",
        "Beneficiary or credit account references.",
    ),
    _rule(
        "to_masked",
        r"\bto\s*xx(\d{3,4})",
        "'to XX5678' without an account keyword.",
    ),
)


def first_match(rules: tuple[MatchRule, ...], text: str) -> tuple[MatchRule, re.Match[str]] | None:
    """Return the first rule (in table order) that matches the text, with its match."""
    for rule in rules:
        match = rule.pattern.search(text)
        if match:
            return rule, match
    return None


def any_match(rules: tuple[MatchRule, ...], text: str) -> bool:
    """Check whether any rule of the table matches the text."""
    return first_match(rules, text) is not None
