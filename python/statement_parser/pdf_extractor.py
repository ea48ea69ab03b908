"""
PDF Statement Parser

Extracts the text layer of a PDF statement with pypdf and hands it to the line
reconstructor strategies. Encrypted PDFs are opened with the supplied password
(or the empty user password); a failure to decrypt is reported as
PasswordRequiredError so callers can ask the user for one.
"""

import logging
from datetime import date
from io import BytesIO
from pathlib import Path

from pypdf import PasswordType, PdfReader
from pypdf.errors import FileNotDecryptedError, PdfReadError, WrongPasswordError

from .bank_detector import BankDetector
from .exceptions import NoTransactionsFoundError, PasswordRequiredError, StatementParseError
from .line_reconstructor import CardStatementExtractor, GenericLineExtractor, split_lines
from .models import ParseMetadata, ParseResult

logger = logging.getLogger(__name__)

NO_TRANSACTIONS_MESSAGE = "Nenhuma transação detectada no PDF"


class PDFExtractor:
    """Parser for PDF bank and credit-card statements."""

    def __init__(self, detector: BankDetector | None = None, config_dir: Path | str | None = None):
        """Initialize the parser.

        Args:
            detector: Bank detector (created from config_dir when omitted)
            config_dir: Directory holding the YAML signatures
        """
        self.detector = detector or BankDetector(config_dir)

    def extract_text(self, data: bytes, password: str | None = None) -> str:
        """Extract the text of every page.

        Args:
            data: Raw PDF bytes
            password: User password for encrypted documents

        Returns:
            Page texts joined by newlines

        Raises:
            PasswordRequiredError: Document is encrypted and cannot be opened
            StatementParseError: Bytes are not a readable PDF
        """
        try:
            reader = PdfReader(BytesIO(data))

            if reader.is_encrypted:
                logger.info("PDF is encrypted, attempting to decrypt")
                if reader.decrypt(password or "") == PasswordType.NOT_DECRYPTED:
                    raise PasswordRequiredError(
                        "Senha do PDF incorreta" if password else "PDF protegido por senha",
                        password_given=bool(password),
                    )

            pages = [page.extract_text() or "" for page in reader.pages]
        except (FileNotDecryptedError, WrongPasswordError) as e:
            raise PasswordRequiredError(password_given=bool(password)) from e
        except PdfReadError as e:
            logger.error(f"Could not read PDF: {e}")
            raise StatementParseError(f"Não foi possível ler o PDF: {e}") from e

        logger.info(f"Extracted text from {len(pages)} PDF page(s)")
        return "\n".join(pages)

    def parse_bytes(self, data: bytes, password: str | None = None) -> ParseResult:
        """Parse raw PDF bytes."""
        return self.parse_text(self.extract_text(data, password))

    def parse_file(self, file_path: Path | str, password: str | None = None) -> ParseResult:
        """Parse a PDF file."""
        return self.parse_bytes(Path(file_path).read_bytes(), password)

    def parse_text(self, text: str, today: date | None = None) -> ParseResult:
        """Reconstruct transactions from extracted statement text.

        Card statements try the card layout first and fall back to the
        generic line layout; every other statement tries them the other way
        round.

        Args:
            text: Extracted text
            today: Reference date for year-less dates

        Returns:
            ParseResult with at least one transaction

        Raises:
            NoTransactionsFoundError: No strategy found a transaction
        """
        lines = split_lines(text)
        bank = self.detector.detect_from_text(text)

        metadata = ParseMetadata(
            total_rows=len(lines),
            detected_bank=bank,
            detected_format="pdf",
        )
        result = ParseResult(metadata=metadata)

        card = CardStatementExtractor(today=today)
        generic = GenericLineExtractor()
        strategies = [card, generic] if self.detector.is_card_statement(bank) else [generic, card]

        for strategy in strategies:
            transactions, warnings = strategy.extract(lines)
            if transactions:
                result.transactions = transactions
                metadata.warnings.extend(warnings)
                metadata.extractor = strategy.name
                break
            logger.info(f"Strategy '{strategy.name}' found no transactions for bank '{bank}'")

        metadata.successful_rows = len(result.transactions)
        metadata.error_rows = max(0, len(lines) - len(result.transactions))

        if not result.transactions:
            metadata.errors.append(NO_TRANSACTIONS_MESSAGE)
            logger.warning(f"No transactions found in PDF text ({len(lines)} lines)")
            raise NoTransactionsFoundError(NO_TRANSACTIONS_MESSAGE, result=result)

        logger.info(
            f"PDF parsed: {len(result.transactions)} transactions from {len(lines)} lines "
            f"(bank={bank}, extractor={metadata.extractor})"
        )
        return result


def parse_pdf(
    data: bytes,
    password: str | None = None,
    config_dir: Path | str | None = None,
) -> ParseResult:
    """Parse raw PDF bytes, decrypting with the password when needed."""
    return PDFExtractor(config_dir=config_dir).parse_bytes(data, password)


def parse_pdf_text(
    text: str,
    today: date | None = None,
    config_dir: Path | str | None = None,
) -> ParseResult:
    """Parse text already extracted from a PDF statement."""
    return PDFExtractor(config_dir=config_dir).parse_text(text, today=today)
