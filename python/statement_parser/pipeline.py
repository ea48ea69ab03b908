"""
Statement Processing Pipeline

End-to-end processing of one uploaded statement: format dispatch, decoding,
parsing, a single batched categorization call and channel structuring.
Independent statements can be processed concurrently with asyncio.gather.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .categorizer import (
    CategorizationAnalysis,
    CategorizedTransaction,
    TransactionCategorizer,
    analyze_categorization_confidence,
)
from .csv_parser import CSVParser
from .exceptions import StatementParseError
from .file_validator import PDF_MAGIC, FileValidator, decode_content
from .models import NormalizedTransaction, ParseMetadata
from .pdf_extractor import PDFExtractor
from .structurer import StructuredInfo, structure_transaction

logger = logging.getLogger(__name__)


@dataclass
class ProcessedTransaction:
    """A normalized transaction with its category and channel."""

    transaction: NormalizedTransaction
    categorization: CategorizedTransaction
    structure: StructuredInfo

    def to_dict(self) -> dict:
        data = self.transaction.to_dict()
        data["category"] = self.categorization.category.value
        data["category_confidence"] = self.categorization.confidence
        data["category_reasoning"] = self.categorization.reasoning
        data["categorization_method"] = self.categorization.method
        data["structure"] = self.structure.to_dict()
        return data


@dataclass
class ProcessedStatement:
    """Result of processing one statement file."""

    filename: str
    file_format: str
    metadata: ParseMetadata
    transactions: list[ProcessedTransaction] = field(default_factory=list)
    analysis: CategorizationAnalysis | None = None
    encoding: str | None = None

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "format": self.file_format,
            "encoding": self.encoding,
            "transactions": [t.to_dict() for t in self.transactions],
            "metadata": self.metadata.to_dict(),
            "analysis": self.analysis.to_dict() if self.analysis else None,
        }


def is_pdf(data: bytes, filename: str = "") -> bool:
    """PDF by magic bytes, or by extension when the header is unreadable."""
    return data.lstrip()[:4] == PDF_MAGIC or Path(filename).suffix.lower() == ".pdf"


async def process_statement(
    data: bytes,
    filename: str = "",
    password: str | None = None,
    categorizer: TransactionCategorizer | None = None,
    config_dir: Path | str | None = None,
) -> ProcessedStatement:
    """Parse, categorize and structure a statement file.

    Args:
        data: Raw file bytes
        filename: Original file name
        password: PDF password, if the document is encrypted
        categorizer: Categorizer to use (a default one is built when omitted)
        config_dir: Optional override for the YAML configuration directory

    Returns:
        ProcessedStatement

    Raises:
        PasswordRequiredError: Encrypted PDF without a working password
        NoTransactionsFoundError: Nothing could be extracted
        StatementParseError: The file is not a readable statement
    """
    validator = FileValidator()
    encoding = None

    if is_pdf(data, filename):
        validation = validator.validate_pdf(data, filename)
        if not validation.is_valid:
            raise StatementParseError("; ".join(validation.errors))
        result = PDFExtractor(config_dir=config_dir).parse_bytes(data, password)
        file_format = "pdf"
    else:
        content, encoding = decode_content(data)
        validation = validator.validate_csv(content, filename)
        result = CSVParser(config_dir=config_dir).parse_content(content)
        result.metadata.warnings.extend(validation.errors + validation.warnings)
        file_format = "csv"

    result.raise_for_empty()

    categorizer = categorizer or TransactionCategorizer(config_dir=config_dir)
    categorized = await categorizer.categorize([t.description for t in result.transactions])

    processed = [
        ProcessedTransaction(
            transaction=txn,
            categorization=category,
            structure=structure_transaction(txn.description, txn.type),
        )
        for txn, category in zip(result.transactions, categorized)
    ]

    statement = ProcessedStatement(
        filename=filename,
        file_format=file_format,
        metadata=result.metadata,
        transactions=processed,
        analysis=analyze_categorization_confidence(categorized),
        encoding=encoding,
    )

    logger.info(
        f"Processed {filename or 'statement'}: {len(processed)} transactions "
        f"({file_format}, bank={result.metadata.detected_bank})"
    )
    return statement
