"""
Confidence Scoring

Heuristic completeness score for a normalized transaction. The score is
informational: inclusion is decided earlier by field presence and parse checks.
"""

from datetime import date
from decimal import Decimal

from .normalizers import MAX_YEAR, MIN_YEAR, clean_description

BASE_SCORE = 0.5
DATE_BONUS = 0.2
DESCRIPTION_BONUS = 0.2
AMOUNT_BONUS = 0.1
MIN_DESCRIPTION_LENGTH = 5


def calculate_confidence(
    txn_date: date | None,
    description: str | None,
    amount: Decimal | float | None,
) -> float:
    """Score a transaction between 0 and 1.

    Args:
        txn_date: Parsed transaction date
        description: Description (cleaned before measuring)
        amount: Parsed amount

    Returns:
        Confidence score capped at 1.0
    """
    score = BASE_SCORE

    if isinstance(txn_date, date) and MIN_YEAR <= txn_date.year <= MAX_YEAR:
        score += DATE_BONUS

    if len(clean_description(description)) > MIN_DESCRIPTION_LENGTH:
        score += DESCRIPTION_BONUS

    if amount is not None and Decimal(amount).is_finite():
        score += AMOUNT_BONUS

    return round(min(1.0, score), 4)
