"""
PDF Line Reconstructor

Rebuilds transactions from the flat text of a PDF statement. Two strategies:

- CardStatementExtractor: credit-card layout (Nubank style) with year-less
  dates, dates carried over from previous lines and multi-line foreign
  currency blocks.
- GenericLineExtractor: "date ... amount" lines, with a short look-ahead for
  amounts printed on a following line.

Each strategy walks the lines with a pure window function that returns the
transaction (if any), how many lines it consumed and the date to carry
forward.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date

from .models import NormalizedTransaction, TransactionMetadata, TransactionType
from .normalizers import (
    MISSING_DESCRIPTION,
    MONTH_ABBREVIATIONS,
    build_date,
    clean_description,
    fold_text,
    parse_amount,
    parse_date,
    parse_day_month,
)
from .scoring import calculate_confidence

logger = logging.getLogger(__name__)

CARD_LOOKAHEAD = 4
GENERIC_LOOKAHEAD = 2

_MONTHS = "|".join(MONTH_ABBREVIATIONS)
_BR_VALUE = r"[+-]?\d{1,3}(?:\.\d{3})*,\d{2}|[+-]?\d+,\d{2}"

# Card statement patterns
DATE_DM_RE = re.compile(r"^(\d{1,2})[/-](\d{1,2})(?:[/-](\d{4}|\d{2}))?\b")
DATE_DM_MONTH_RE = re.compile(
    rf"^(\d{{1,2}})\s+({_MONTHS})\b\.?(?:\s+(\d{{4}}|\d{{2}})(?=\s|$))?",
    re.IGNORECASE,
)
AMOUNT_TAIL_RE = re.compile(rf"(?<![\d.,])(?:R\$\s*)?(?P<value>{_BR_VALUE})\s*$")
AMOUNT_ANY_RE = re.compile(rf"R\$\s*(?P<value>{_BR_VALUE})")
NOISE_RE = re.compile(
    r"resumo|fatura|vencimento|limite|total|valores|detalhes|nuconta|cart[aã]o",
    re.IGNORECASE,
)
# Another record starting inside a description; installment markers are not records
NEXT_RECORD_RE = re.compile(
    rf"(?:^|\s)(?<!parcela\s)(?<!parc\s)"
    rf"(?:\d{{1,2}}[/-]\d{{1,2}}(?:[/-]\d{{2,4}})?|\d{{1,2}}\s+(?:{_MONTHS})\b)",
    re.IGNORECASE,
)
USD_AMOUNT_RE = re.compile(r"(?:US\$|USD)\s*([0-9][0-9.,]*)", re.IGNORECASE)
EXCHANGE_RATE_RE = re.compile(
    r"(?:cota[cç][aã]o|convers[aã]o)[^R]*R\$\s*([0-9][0-9.,]*)",
    re.IGNORECASE,
)
CARD_CREDIT_RE = re.compile(r"pagamento|ajuste|estorno|credito")
_USD_PREFIX_RE = re.compile(r"(?:US\$|USD)\s*$", re.IGNORECASE)
_TRAILING_CURRENCY_RE = re.compile(r"\s*R\$\s*$")

# Generic statement patterns
GENERIC_DATE_RE = re.compile(r"^(\d{1,2}[/.-]\d{1,2}[/.-]\d{2,4})\b")
GENERIC_AMOUNT_RE = re.compile(
    r"(?<![\d.,])(?P<value>[+-]?\d{1,3}(?:[.,]\d{3})*[.,]\d{2}-?|[+-]?\d+[.,]\d{2}-?)"
    r"(?:\s*(?P<marker>[CD]))?\s*$"
)


@dataclass(frozen=True)
class WindowResult:
    """Outcome of scanning the lines that start at one index."""

    transaction: NormalizedTransaction | None
    consumed: int
    carry_date: date | None = None
    warning: str | None = None


def split_lines(text: str) -> list[str]:
    """Split extracted text into trimmed, non-empty lines."""
    normalized = (text or "").replace("\r\n", "\n").replace("\r", "\n")
    return [line.strip() for line in normalized.split("\n") if line.strip()]


def _leading_date(line: str, today: date | None) -> tuple[date | None, str]:
    """Parse a date token at the start of a card statement line.

    Returns:
        (date or None, matched token text or "")
    """
    match = DATE_DM_RE.match(line)
    if match:
        day, month, year = match.groups()
        if year:
            return build_date(int(year), int(month), int(day)), match.group(0)
        return parse_day_month(int(day), int(month), today=today), match.group(0)

    match = DATE_DM_MONTH_RE.match(line)
    if match:
        day, month_name, year = match.groups()
        month = MONTH_ABBREVIATIONS[month_name.lower()]
        year = int(year) if year else None
        return parse_day_month(int(day), month, year, today=today), match.group(0)

    return None, ""


def _opens_record(line: str) -> bool:
    return bool(DATE_DM_RE.match(line) or DATE_DM_MONTH_RE.match(line))


def _find_card_amount(text: str) -> re.Match | None:
    """Amount at the end of the text, else the first R$ amount; USD values are skipped."""
    match = AMOUNT_TAIL_RE.search(text)
    if match and not _USD_PREFIX_RE.search(text[: match.start()]):
        return match
    return AMOUNT_ANY_RE.search(text)


def _card_description(block: list[str], match_line: int, match: re.Match) -> str:
    parts = list(block[: match_line + 1])
    matched = parts[match_line]
    parts[match_line] = f"{matched[: match.start()]} {matched[match.end():]}"

    description = " ".join(parts)
    description = USD_AMOUNT_RE.sub(" ", description)
    description = EXCHANGE_RATE_RE.sub(" ", description)
    description = re.sub(r"\s+", " ", description).strip()

    next_record = NEXT_RECORD_RE.search(description)
    if next_record and next_record.start() > 0:
        description = description[: next_record.start()]

    return _TRAILING_CURRENCY_RE.sub("", description).strip(" -")


def scan_card_window(
    lines: list[str],
    index: int,
    carry_date: date | None = None,
    today: date | None = None,
) -> WindowResult:
    """Read one card statement record starting at lines[index].

    Args:
        lines: All statement lines
        index: Line to start from
        carry_date: Date of the previous dated line, used when this one has none
        today: Reference date for year-less dates

    Returns:
        WindowResult
    """
    line = lines[index]
    if NOISE_RE.search(line):
        return WindowResult(None, 1, carry_date)

    notes: list[str] = []
    txn_date, date_text = _leading_date(line, today)
    if txn_date is not None:
        carry_date = txn_date
    elif carry_date is not None:
        txn_date = carry_date
        notes.append("Data herdada da linha anterior")
    else:
        return WindowResult(None, 1, carry_date)

    block = [line[len(date_text):].strip()]
    match = _find_card_amount(block[0])
    match_line = 0

    if match is None:
        for offset in range(1, CARD_LOOKAHEAD + 1):
            position = index + offset
            if position >= len(lines):
                break
            candidate = lines[position]
            if _opens_record(candidate) or NOISE_RE.search(candidate):
                break
            block.append(candidate)
            found = _find_card_amount(candidate)
            if found:
                match, match_line = found, offset

    if match is None:
        return WindowResult(None, 1, carry_date)

    consumed = match_line + 1
    block = block[:consumed]
    amount_text = match.group("value")
    amount = parse_amount(amount_text).amount
    description = clean_description(_card_description(block, match_line, match))
    if amount is None or not description:
        return WindowResult(None, consumed, carry_date)

    joined = " ".join(block)
    usd = USD_AMOUNT_RE.search(joined)
    rate = EXCHANGE_RATE_RE.search(joined)
    hints = []
    if usd:
        hints.append(f"USD {usd.group(1)}")
    if rate:
        hints.append(f"cambio R$ {rate.group(1)} por USD 1")
    if hints:
        description = clean_description(f"{description} ({' • '.join(hints)})")

    is_credit = amount < 0 or bool(CARD_CREDIT_RE.search(fold_text(description)))
    if consumed > 1:
        notes.append(f"Valor encontrado {match_line} linha(s) abaixo")

    transaction = NormalizedTransaction(
        date=txn_date,
        description=description,
        amount=abs(amount),
        type=TransactionType.CREDIT if is_credit else TransactionType.DEBIT,
        original_amount=amount_text,
        confidence=calculate_confidence(txn_date, description, amount),
        metadata=TransactionMetadata(
            original_date=date_text or None,
            processing_notes=notes,
            usd_amount=usd.group(1) if usd else None,
            exchange_rate=rate.group(1) if rate else None,
        ),
    )
    return WindowResult(transaction, consumed, carry_date)


def scan_generic_window(lines: list[str], index: int) -> WindowResult:
    """Read one "date description amount" record starting at lines[index].

    The amount may sit on the same line or on one of the next two lines, as
    long as no other dated line comes first.
    """
    line = lines[index]
    date_match = GENERIC_DATE_RE.match(line)
    if not date_match:
        return WindowResult(None, 1)

    parts = [line[date_match.end():]]
    amount_match = GENERIC_AMOUNT_RE.search(parts[0])
    consumed = 1

    if amount_match is None:
        for offset in range(1, GENERIC_LOOKAHEAD + 1):
            position = index + offset
            if position >= len(lines) or GENERIC_DATE_RE.match(lines[position]):
                break
            parts.append(lines[position])
            amount_match = GENERIC_AMOUNT_RE.search(lines[position])
            if amount_match:
                consumed = offset + 1
                break

    if amount_match is None:
        return WindowResult(None, 1)

    date_text = date_match.group(1)
    amount_text = amount_match.group("value")
    txn_date = parse_date(date_text)
    amount = parse_amount(amount_text).amount
    if txn_date is None or amount is None:
        return WindowResult(
            None,
            consumed,
            warning=f"Linha {index + 1}: não foi possível ler data/valor",
        )

    parts[-1] = parts[-1][: amount_match.start()]
    notes: list[str] = []
    description = clean_description(" ".join(parts))
    confidence = calculate_confidence(txn_date, description, amount)
    if not description:
        description = MISSING_DESCRIPTION
        notes.append("Descrição vazia após limpeza")
    if consumed > 1:
        notes.append(f"Valor encontrado {consumed - 1} linha(s) abaixo")

    marker = amount_match.group("marker")
    if marker:
        txn_type = TransactionType.CREDIT if marker == "C" else TransactionType.DEBIT
    else:
        txn_type = TransactionType.CREDIT if amount >= 0 else TransactionType.DEBIT

    transaction = NormalizedTransaction(
        date=txn_date,
        description=description,
        amount=abs(amount),
        type=txn_type,
        original_amount=amount_text,
        confidence=confidence,
        metadata=TransactionMetadata(original_date=date_text, processing_notes=notes),
    )
    return WindowResult(transaction, consumed)


class CardStatementExtractor:
    """Extractor for credit-card statement text."""

    name = "card_statement"

    def __init__(self, today: date | None = None):
        self.today = today

    def extract(self, lines: list[str]) -> tuple[list[NormalizedTransaction], list[str]]:
        transactions = []
        carry_date = None
        index = 0

        while index < len(lines):
            window = scan_card_window(lines, index, carry_date, self.today)
            carry_date = window.carry_date
            if window.transaction is not None:
                transactions.append(window.transaction)
            index += window.consumed

        logger.debug(f"Card extractor found {len(transactions)} transactions")
        return transactions, []


class GenericLineExtractor:
    """Extractor for account statements printed as dated lines."""

    name = "generic"

    def extract(self, lines: list[str]) -> tuple[list[NormalizedTransaction], list[str]]:
        transactions = []
        warnings = []
        ignored = 0
        index = 0

        while index < len(lines):
            window = scan_generic_window(lines, index)
            if window.transaction is not None:
                transactions.append(window.transaction)
            elif window.warning:
                warnings.append(window.warning)
            else:
                ignored += 1
            index += window.consumed

        if ignored:
            warnings.append(f"{ignored} linha(s) sem padrão de transação ignorada(s)")

        logger.debug(f"Generic extractor found {len(transactions)} transactions")
        return transactions, warnings
