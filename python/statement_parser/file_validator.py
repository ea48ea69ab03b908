"""
File Validator

Quick structural checks on uploaded statement files before parsing, plus the
UTF-8 / Latin-1 decoding used for CSV bytes.
"""

import csv
import logging
import re
from dataclasses import dataclass, field
from io import StringIO

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"
MAX_FILE_SIZE = 20 * 1024 * 1024
SAMPLE_ROWS = 3

_MOJIBAKE_RE = re.compile(r"Ã|Â|�")
_PORTUGUESE_RE = re.compile(r"[áàãâéêíóôõúç]", re.IGNORECASE)
_NUMERIC_RE = re.compile(r"\d[\d.,]*")
_DATE_LIKE_RE = re.compile(r"\d{1,4}[/.-]\d{1,2}[/.-]\d{1,4}")
_EXPECTED_HEADERS = ("data", "date", "descri", "description", "historico", "valor", "amount")
_FILENAME_BANKS = (
    ("nubank", "nubank"),
    ("itau", "itau"),
    ("bradesco", "bradesco"),
    ("santander", "santander"),
    ("brasil", "bb"),
    ("bb", "bb"),
)


@dataclass
class FileValidationResult:
    """Outcome of validating an uploaded file."""

    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    detected_encoding: str | None = None
    estimated_bank: str | None = None
    row_count: int = 0
    has_headers: bool = False

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "errors": self.errors,
            "warnings": self.warnings,
            "detected_encoding": self.detected_encoding,
            "estimated_bank": self.estimated_bank,
            "row_count": self.row_count,
            "has_headers": self.has_headers,
        }


def detect_encoding(content: str) -> str:
    """Guess the source encoding of already-decoded text.

    Mojibake such as 'Ã§' next to real Portuguese characters means Latin-1
    bytes were read as UTF-8 somewhere upstream.
    """
    if _MOJIBAKE_RE.search(content) and _PORTUGUESE_RE.search(content):
        return "latin-1"
    return "utf-8"


def decode_content(data: bytes) -> tuple[str, str]:
    """Decode CSV bytes, trying UTF-8 first and Latin-1 second.

    Returns:
        (text, encoding used)
    """
    try:
        return data.decode("utf-8-sig"), "utf-8"
    except UnicodeDecodeError:
        logger.info("Content is not valid UTF-8, decoding as Latin-1")
        return data.decode("latin-1"), "latin-1"


class FileValidator:
    """Validates statement files before parsing."""

    DELIMITERS = (",", ";", "\t", "|")
    MIN_COLUMNS = 3

    def validate_csv(self, content: str, filename: str = "") -> FileValidationResult:
        """Validate decoded CSV content.

        Args:
            content: Decoded CSV text
            filename: Original file name, used as a bank hint

        Returns:
            FileValidationResult
        """
        result = FileValidationResult()

        if not content or not content.strip():
            result.errors.append("Arquivo CSV está vazio")
            result.is_valid = False
            return result

        result.detected_encoding = detect_encoding(content)
        if result.detected_encoding != "utf-8":
            result.warnings.append("Possível problema de codificação (caracteres corrompidos)")

        lines = [line for line in content.splitlines() if line.strip()]
        result.row_count = len(lines)
        if len(lines) < 2:
            result.errors.append("CSV deve ter pelo menos 2 linhas (cabeçalho + dados)")
            result.is_valid = False
            return result

        delimiter = self._detect_delimiter(lines[0])
        if delimiter is None:
            result.errors.append(
                "Não foi possível detectar o delimitador (vírgula, ponto-vírgula, etc.)"
            )
            result.is_valid = False
            return result

        headers = [h.strip().lower() for h in self._split(lines[0], delimiter)]
        result.has_headers = self._has_valid_headers(headers)
        if not result.has_headers:
            result.warnings.append("Cabeçalhos não detectados automaticamente")

        result.estimated_bank = self._estimate_bank(headers, filename)

        for offset, line in enumerate(lines[1:SAMPLE_ROWS + 1], start=2):
            columns = [c.strip() for c in self._split(line, delimiter)]
            if len(columns) < self.MIN_COLUMNS:
                result.errors.append(f"Linha {offset}: muito poucas colunas ({len(columns)})")
                continue
            if not any(_NUMERIC_RE.search(c) for c in columns):
                result.warnings.append(f"Linha {offset}: nenhum campo numérico detectado")
            if not any(_DATE_LIKE_RE.search(c) for c in columns):
                result.warnings.append(f"Linha {offset}: nenhum campo de data detectado")

        result.is_valid = not result.errors
        logger.debug(
            f"Validated {filename or 'CSV'}: valid={result.is_valid}, "
            f"bank={result.estimated_bank}, rows={result.row_count}"
        )
        return result

    def validate_pdf(self, data: bytes, filename: str = "") -> FileValidationResult:
        """Check that bytes look like a PDF of acceptable size."""
        result = FileValidationResult()

        if not data:
            result.errors.append("Arquivo PDF está vazio")
        elif data.lstrip()[:4] != PDF_MAGIC:
            result.errors.append("Arquivo não parece ser um PDF válido")
        elif len(data) > MAX_FILE_SIZE:
            result.errors.append(f"Arquivo PDF excede {MAX_FILE_SIZE // (1024 * 1024)} MB")

        result.estimated_bank = self._estimate_bank([], filename)
        result.is_valid = not result.errors
        return result

    @staticmethod
    def _split(line: str, delimiter: str) -> list[str]:
        return next(csv.reader(StringIO(line), delimiter=delimiter), [])

    def _detect_delimiter(self, first_line: str) -> str | None:
        best = None
        max_columns = 0
        for delimiter in self.DELIMITERS:
            columns = len(self._split(first_line, delimiter))
            if columns > max_columns and columns >= self.MIN_COLUMNS:
                max_columns = columns
                best = delimiter
        return best

    @staticmethod
    def _has_valid_headers(headers: list[str]) -> bool:
        found = [h for h in headers if any(expected in h for expected in _EXPECTED_HEADERS)]
        return len(found) >= 2

    @staticmethod
    def _estimate_bank(headers: list[str], filename: str) -> str:
        name = (filename or "").lower()
        for token, bank in _FILENAME_BANKS:
            if token in name:
                return bank

        joined = " ".join(headers)
        if "estabelecimento" in joined:
            return "nubank"
        if "agencia" in joined and "conta" in joined:
            return "bb"
        if "historico" in joined:
            return "itau"
        return "generic"
