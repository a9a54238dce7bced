"""Best-effort category (expenses) and source (income) labels for parsed transactions."""

from smsledger.core.models import UNKNOWN_MERCHANT, Direction, ParsedTransaction

EXPENSE_KEYWORD_GROUPS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Food", ("zomato", "swiggy", "food")),
    ("Transport", ("uber", "ola", "travel")),
    ("Bills", ("bill", "recharge", "electricity")),
)
UNCATEGORIZED = "Uncategorized"
OTHER_INCOME = "Other Income"
SALARY = "Salary"


def categorize(parsed: ParsedTransaction) -> str:
    """Return the expense category or income source for a parsed transaction."""
    text = parsed.original_text.lower()
    if parsed.direction is Direction.DEBIT:
        for category, keywords in EXPENSE_KEYWORD_GROUPS:
            if any(keyword in text for keyword in keywords):
                return category
        return UNCATEGORIZED
    # salary wording outranks whatever counter-party was extracted
    if "salary" in text:
        return SALARY
    if parsed.counterparty_name == UNKNOWN_MERCHANT:
        return OTHER_INCOME
    return parsed.counterparty_name
