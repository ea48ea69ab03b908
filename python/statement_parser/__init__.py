"""
Statement Parser Module

Parses Brazilian bank statements (CSV exports and PDF card statements) into
normalized transactions and categorizes them with Claude or local patterns.
"""

from .bank_detector import BankDetection, BankDetector
from .categorizer import (
    CategorizationAnalysis,
    CategorizedTransaction,
    Category,
    TransactionCategorizer,
    analyze_categorization_confidence,
    fallback_categorize,
)
from .column_mapper import ColumnMapping, map_columns
from .csv_parser import CSVParser, parse_csv
from .exceptions import (
    CategorizationUnavailable,
    FieldMissingError,
    NoTransactionsFoundError,
    PasswordRequiredError,
    RowError,
    StatementParseError,
    StatementParserError,
    ValueParseError,
)
from .file_validator import FileValidationResult, FileValidator, decode_content, detect_encoding
from .models import (
    BankSignature,
    NormalizedTransaction,
    ParseMetadata,
    ParseResult,
    TransactionMetadata,
    TransactionType,
)
from .normalizers import format_amount, parse_amount, parse_date
from .pdf_extractor import PDFExtractor, parse_pdf, parse_pdf_text
from .pipeline import ProcessedStatement, ProcessedTransaction, process_statement
from .scoring import calculate_confidence
from .settings import ParserSettings
from .structurer import StructuredInfo, structure_transaction

__all__ = [
    # Entry points
    "parse_csv",
    "parse_pdf",
    "parse_pdf_text",
    "process_statement",
    # Parsing
    "CSVParser",
    "PDFExtractor",
    "BankDetector",
    "BankDetection",
    "ColumnMapping",
    "map_columns",
    # Models
    "BankSignature",
    "NormalizedTransaction",
    "ParseMetadata",
    "ParseResult",
    "TransactionMetadata",
    "TransactionType",
    "ProcessedStatement",
    "ProcessedTransaction",
    # Normalization
    "parse_amount",
    "parse_date",
    "format_amount",
    "calculate_confidence",
    # Categorization
    "Category",
    "CategorizedTransaction",
    "CategorizationAnalysis",
    "TransactionCategorizer",
    "fallback_categorize",
    "analyze_categorization_confidence",
    "StructuredInfo",
    "structure_transaction",
    # Validation
    "FileValidator",
    "FileValidationResult",
    "decode_content",
    "detect_encoding",
    # Configuration
    "ParserSettings",
    # Errors
    "StatementParserError",
    "RowError",
    "FieldMissingError",
    "ValueParseError",
    "StatementParseError",
    "PasswordRequiredError",
    "NoTransactionsFoundError",
    "CategorizationUnavailable",
]
