"""
CSV Statement Parser

Parses CSV exports from Brazilian banks: detects the delimiter and the bank,
maps columns, and normalizes each row into a NormalizedTransaction. A bad row
is recorded in the result metadata and never aborts the batch.
"""

import csv
import logging
import re
from enum import Enum
from io import StringIO
from pathlib import Path

from .bank_detector import BankDetector
from .column_mapper import ColumnMapping, map_columns
from .exceptions import FieldMissingError, RowError, ValueParseError
from .models import (
    NormalizedTransaction,
    ParseMetadata,
    ParseResult,
    TransactionMetadata,
    TransactionType,
)
from .normalizers import (
    MISSING_DESCRIPTION,
    clean_description,
    parse_amount,
    parse_date,
    parse_type,
)
from .scoring import calculate_confidence

logger = logging.getLogger(__name__)

# DictReader key collecting cells beyond the header width
EXTRA_CELLS = "__extra__"

_SPLIT_DECIMAL_TAIL = re.compile(r"^\d{2}$")
_SPLIT_DECIMAL_HEAD = re.compile(r"^[-+]?\s*(?:R\$\s*)?[\d.]+$")


class RowState(Enum):
    """Classification of a CSV row before normalization."""
    EMPTY = "empty"
    MISSING_FIELD = "missing_field"
    VALID = "valid"


def classify_row(date_raw: str, description_raw: str, amount_raw: str) -> RowState:
    """EMPTY when all core fields are blank, MISSING_FIELD when only some are."""
    present = [bool(v) for v in (date_raw, description_raw, amount_raw)]
    if not any(present):
        return RowState.EMPTY
    if not all(present):
        return RowState.MISSING_FIELD
    return RowState.VALID


class CSVParser:
    """Parser for bank statement CSV exports."""

    DELIMITERS = (",", ";", "\t", "|")
    SAMPLE_LINES = 5

    def __init__(self, detector: BankDetector | None = None, config_dir: Path | str | None = None):
        """Initialize the parser.

        Args:
            detector: Bank detector (created from config_dir when omitted)
            config_dir: Directory holding the YAML signatures
        """
        self.detector = detector or BankDetector(config_dir)

    def parse_file(self, file_path: Path | str, encoding: str = "utf-8") -> ParseResult:
        """Parse a CSV file.

        Args:
            file_path: Path to the CSV file
            encoding: File encoding

        Returns:
            ParseResult object
        """
        file_path = Path(file_path)

        with open(file_path, encoding=encoding, newline="") as f:
            content = f.read()

        return self.parse_content(content)

    def parse_content(self, content: str) -> ParseResult:
        """Parse CSV content string.

        Args:
            content: Decoded CSV text

        Returns:
            ParseResult with one transaction per valid row, in source order
        """
        metadata = ParseMetadata(detected_format="csv")
        result = ParseResult(metadata=metadata)

        content = self._preprocess_content(content)
        if not content.strip():
            metadata.errors.append("Arquivo CSV vazio")
            return result

        delimiter = self.detect_delimiter(content)
        metadata.delimiter = delimiter

        reader = csv.DictReader(StringIO(content), delimiter=delimiter, restkey=EXTRA_CELLS)
        try:
            raw_headers = reader.fieldnames or []
        except csv.Error as e:
            metadata.errors.append(f"Erro de leitura CSV: {e}")
            return result

        headers = [h.strip() for h in raw_headers]
        reader.fieldnames = headers
        metadata.headers = headers

        detection = self.detector.detect_from_headers(headers)
        metadata.detected_bank = detection.bank
        metadata.bank_confidence = detection.confidence
        logger.info(f"Detected bank: {detection.bank} (confidence {detection.confidence:.2f})")

        mapping = map_columns(headers, detection.signature, self.detector.split_columns)
        metadata.column_mapping = mapping.to_dict()
        metadata.warnings.extend(mapping.warnings)

        # DictReader.line_num lags behind after a csv.Error; count on the inner reader
        line_counter = reader.reader
        while True:
            try:
                row = next(reader)
            except StopIteration:
                break
            except csv.Error as e:
                metadata.total_rows += 1
                metadata.error_rows += 1
                metadata.errors.append(f"Linha {line_counter.line_num}: Erro de leitura CSV: {e}")
                continue

            try:
                transaction = self._parse_row(row, line_counter.line_num, mapping, headers, delimiter)
            except RowError as e:
                metadata.total_rows += 1
                metadata.error_rows += 1
                metadata.errors.append(f"Linha {e.line}: {e}")
                continue

            if transaction is None:
                metadata.skipped_rows += 1
                continue

            metadata.total_rows += 1
            metadata.successful_rows += 1
            result.transactions.append(transaction)

        logger.info(
            f"CSV parsed: {metadata.successful_rows}/{metadata.total_rows} rows "
            f"({metadata.error_rows} errors, {metadata.skipped_rows} skipped)"
        )

        return result

    def _preprocess_content(self, content: str) -> str:
        """Remove BOM and normalize line endings."""
        if content.startswith("\ufeff"):
            content = content[1:]

        return content.replace("\r\n", "\n").replace("\r", "\n")

    def detect_delimiter(self, content: str) -> str:
        """Choose the delimiter that yields the most columns in the first lines.

        Ties keep the earlier candidate, so ',' wins when nothing splits better.
        """
        sample = "\n".join(content.split("\n")[: self.SAMPLE_LINES])
        best_delimiter = self.DELIMITERS[0]
        max_columns = 0

        for delimiter in self.DELIMITERS:
            try:
                rows = list(csv.reader(StringIO(sample), delimiter=delimiter))
            except csv.Error:
                continue
            columns = max((len(r) for r in rows), default=0)
            if columns > max_columns:
                max_columns = columns
                best_delimiter = delimiter

        logger.debug(f"Detected delimiter {best_delimiter!r} ({max_columns} columns)")
        return best_delimiter

    @staticmethod
    def _cell(row: dict, column: str | None) -> str:
        if not column:
            return ""
        value = row.get(column)
        return value.strip() if isinstance(value, str) else ""

    def _repair_split_decimal(
        self,
        row: dict,
        mapping: ColumnMapping,
        headers: list[str],
        delimiter: str,
        notes: list[str],
    ) -> None:
        """Rejoin '-1.234,56' that an unquoted comma split into '-1.234' and '56'."""
        extras = row.get(EXTRA_CELLS) or []
        if not extras:
            return

        amount_value = self._cell(row, mapping.amount)
        if (
            delimiter == ","
            and len(extras) == 1
            and headers
            and mapping.amount == headers[-1]
            and _SPLIT_DECIMAL_HEAD.match(amount_value)
            and _SPLIT_DECIMAL_TAIL.match(extras[0].strip())
        ):
            row[mapping.amount] = f"{amount_value},{extras[0].strip()}"
            notes.append("Valor reconstruído a partir de vírgula decimal sem aspas")
        else:
            notes.append(f"{len(extras)} coluna(s) extra(s) ignorada(s)")

    def _resolve_amount(
        self, row: dict, mapping: ColumnMapping
    ) -> tuple[str, TransactionType | None]:
        """Pick the raw amount and any direction implied by a debit/credit column."""
        amount_value = self._cell(row, mapping.amount)
        if amount_value:
            if mapping.amount == mapping.debit:
                return amount_value, TransactionType.DEBIT
            if mapping.amount == mapping.credit:
                return amount_value, TransactionType.CREDIT
            return amount_value, None

        debit_value = self._cell(row, mapping.debit)
        if debit_value:
            return debit_value, TransactionType.DEBIT

        credit_value = self._cell(row, mapping.credit)
        if credit_value:
            return credit_value, TransactionType.CREDIT

        return "", None

    def _parse_row(
        self,
        row: dict,
        line: int,
        mapping: ColumnMapping,
        headers: list[str],
        delimiter: str,
    ) -> NormalizedTransaction | None:
        """Parse a single CSV row.

        Returns:
            NormalizedTransaction, or None for an EMPTY row

        Raises:
            FieldMissingError: a core field is blank on a non-empty row
            ValueParseError: date or amount cannot be read
        """
        notes: list[str] = []
        self._repair_split_decimal(row, mapping, headers, delimiter, notes)

        date_raw = self._cell(row, mapping.date)
        description_raw = self._cell(row, mapping.description)
        amount_raw, column_type = self._resolve_amount(row, mapping)

        state = classify_row(date_raw, description_raw, amount_raw)
        if state == RowState.EMPTY:
            return None

        if state == RowState.MISSING_FIELD:
            if not date_raw:
                raise FieldMissingError("Data não encontrada", line)
            if not description_raw:
                raise FieldMissingError("Descrição não encontrada", line)
            raise FieldMissingError("Valor não encontrado", line)

        txn_date = parse_date(date_raw)
        if txn_date is None:
            raise ValueParseError(f"Data inválida: {date_raw}", line)

        amount_result = parse_amount(amount_raw)
        if amount_result.amount is None:
            raise ValueParseError(f"Valor inválido: {amount_raw}", line)
        amount = amount_result.amount

        txn_type = column_type or parse_type(self._cell(row, mapping.type), amount)

        balance = None
        balance_raw = self._cell(row, mapping.balance)
        if balance_raw:
            balance = parse_amount(balance_raw).amount
            if balance is None:
                notes.append(f"Saldo ilegível ignorado: {balance_raw}")

        description = clean_description(description_raw)
        confidence = calculate_confidence(txn_date, description, amount)
        if not description:
            description = MISSING_DESCRIPTION
            notes.append("Descrição vazia após limpeza")

        return NormalizedTransaction(
            date=txn_date,
            description=description,
            amount=abs(amount),
            type=txn_type,
            original_amount=amount_raw,
            confidence=confidence,
            metadata=TransactionMetadata(
                balance=balance,
                original_date=date_raw,
                processing_notes=notes,
            ),
        )


def parse_csv(content: str, config_dir: Path | str | None = None) -> ParseResult:
    """Parse decoded CSV statement text.

    Args:
        content: CSV text (already decoded)
        config_dir: Optional override for the signatures directory

    Returns:
        ParseResult; check ``success`` or call ``raise_for_empty()``
    """
    return CSVParser(config_dir=config_dir).parse_content(content)
