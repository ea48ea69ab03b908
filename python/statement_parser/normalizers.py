"""
Value Normalizers

Pure functions that turn locale-ambiguous statement cells (Brazilian and
international amount formats, day-first dates, free-text descriptions) into
typed values. None means the value could not be read; callers decide whether
that rejects the row.
"""

import re
import unicodedata
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from dateutil import parser as dateutil_parser

from .models import TransactionType

MIN_YEAR = 1900
MAX_YEAR = 2100
TWO_DIGIT_YEAR_PIVOT = 50
DESCRIPTION_MAX_LENGTH = 200
MISSING_DESCRIPTION = "Transação sem descrição"

MONTH_ABBREVIATIONS = {
    "jan": 1, "fev": 2, "mar": 3, "abr": 4, "mai": 5, "jun": 6,
    "jul": 7, "ago": 8, "set": 9, "out": 10, "nov": 11, "dez": 12,
}

_CURRENCY_RE = re.compile(r"R\$|US\$|BRL|USD|\$", re.IGNORECASE)
_SPACES_RE = re.compile(r"\s+")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")
_TIME_SUFFIX_RE = re.compile(
    r"(?:[T\s]+)\d{1,2}:\d{2}(?::\d{2}(?:\.\d+)?)?\s*(?:Z|[+-]\d{2}:?\d{2})?$"
)

# (pattern, group order) tried in sequence
_DATE_PATTERNS = [
    (re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$"), "dmy"),   # DD/MM/YYYY
    (re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2})$"), "dmy"),   # DD/MM/YY
    (re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4}|\d{2})$"), "dmy"),  # DD-MM-YYYY
    (re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4}|\d{2})$"), "dmy"),  # DD.MM.YYYY
    (re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$"), "ymd"),   # YYYY-MM-DD
]


@dataclass(frozen=True)
class AmountResult:
    """Parsed amount plus the sign observed in the source text."""

    amount: Decimal | None
    original_sign: str


def strip_accents(text: str) -> str:
    """Remove combining accents: 'Crédito' -> 'Credito'."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def fold_text(text: str) -> str:
    """Lower-case, accent-free, trimmed form used for header and keyword matching."""
    return strip_accents(text).lower().strip()


def parse_amount(value: str | None) -> AmountResult:
    """Parse an amount string in Brazilian or international notation.

    Examples:
        "1.234,56"  -> 1234.56
        "1,234.56"  -> 1234.56
        "R$ 45,90"  -> 45.90
        "-89.50"    -> -89.50

    Args:
        value: Raw cell or token

    Returns:
        AmountResult; amount is None when the text is not a number
    """
    if value is None:
        return AmountResult(None, "")

    text = str(value).strip()
    if not text:
        return AmountResult(None, "")

    parenthesized = text.startswith("(") and text.endswith(")")
    if parenthesized:
        text = text[1:-1]

    text = _CURRENCY_RE.sub("", text)
    text = _SPACES_RE.sub("", text)
    original_sign = "-" if text.startswith("-") or parenthesized else "+"

    numeric = re.sub(r"[^\d,.+-]", "", text)
    if not re.search(r"\d", numeric):
        return AmountResult(None, original_sign)

    commas = numeric.count(",")
    dots = numeric.count(".")

    if commas == 1 and dots == 0:
        # 1234,56
        numeric = numeric.replace(",", ".")
    elif commas and dots:
        if numeric.rfind(",") > numeric.rfind("."):
            # 1.234,56
            numeric = numeric.replace(".", "").replace(",", ".")
        else:
            # 1,234.56
            numeric = numeric.replace(",", "")
    elif commas > 1:
        numeric = numeric.replace(",", "")
    elif dots > 1:
        numeric = numeric.replace(".", "")

    has_minus = "-" in numeric
    numeric = numeric.replace("-", "").replace("+", "")

    try:
        amount = Decimal(numeric)
    except InvalidOperation:
        return AmountResult(None, original_sign)

    if not amount.is_finite():
        return AmountResult(None, original_sign)

    if original_sign == "-" or has_minus:
        amount = -abs(amount)

    return AmountResult(amount, original_sign)


def format_amount(amount: Decimal) -> str:
    """Render an amount in Brazilian notation: Decimal('-1234.5') -> '-1.234,50'."""
    quantized = Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    text = f"{abs(quantized):,.2f}"
    text = text.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"-{text}" if quantized < 0 else text


def _expand_year(year: int) -> int:
    if year < 100:
        return year + (1900 if year > TWO_DIGIT_YEAR_PIVOT else 2000)
    return year


def build_date(year: int, month: int, day: int) -> date | None:
    """Construct a calendar date, rejecting overflow such as 31/02."""
    year = _expand_year(year)
    if not MIN_YEAR <= year <= MAX_YEAR:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _looks_like_date(text: str) -> bool:
    digit_groups = re.findall(r"\d+", text)
    if len(digit_groups) >= 3:
        return True
    return bool(digit_groups) and bool(re.search(r"[A-Za-zÀ-ÿ]{3,}", text))


def parse_date(value: str | None) -> date | None:
    """Parse a day-first or ISO date string.

    Fixed patterns are tried first; a string that matches one of them but is
    not a real calendar date is rejected outright. Free-form parsing is only
    attempted when no fixed pattern applies.
    """
    if value is None:
        return None

    cleaned = str(value).strip()
    if not cleaned:
        return None

    cleaned = _TIME_SUFFIX_RE.sub("", cleaned).strip()

    for pattern, order in _DATE_PATTERNS:
        match = pattern.match(cleaned)
        if not match:
            continue
        first, second, third = (int(g) for g in match.groups())
        if order == "ymd":
            return build_date(first, second, third)
        return build_date(third, second, first)

    if not _looks_like_date(cleaned):
        return None

    try:
        parsed = dateutil_parser.parse(cleaned, dayfirst=True)
    except (ValueError, OverflowError):
        return None

    if MIN_YEAR <= parsed.year <= MAX_YEAR:
        return parsed.date()
    return None


def parse_day_month(
    day: int,
    month: int,
    year: int | None = None,
    today: date | None = None,
) -> date | None:
    """Build a date from day/month tokens, defaulting the year to today's."""
    if year is None:
        year = (today or date.today()).year
    return build_date(year, month, day)


def clean_description(text: str | None, max_length: int = DESCRIPTION_MAX_LENGTH) -> str:
    """NFC-normalize, drop control characters, collapse whitespace, cap length."""
    if not text:
        return ""
    cleaned = unicodedata.normalize("NFC", str(text))
    cleaned = _CONTROL_RE.sub(" ", cleaned)
    cleaned = _SPACES_RE.sub(" ", cleaned).strip()
    return cleaned[:max_length].rstrip()


def parse_type(type_value: str | None, amount: Decimal) -> TransactionType:
    """Resolve transaction direction from a type column, else from the sign."""
    if type_value:
        normalized = fold_text(str(type_value))
        if normalized == "c" or any(
            word in normalized for word in ("credit", "entrada", "deposito")
        ):
            return TransactionType.CREDIT
        if normalized == "d" or any(
            word in normalized for word in ("debit", "saida", "saque")
        ):
            return TransactionType.DEBIT

    return TransactionType.CREDIT if amount >= 0 else TransactionType.DEBIT
