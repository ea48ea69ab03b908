"""
Statement Models

Canonical transaction record and batch result shared by the CSV and PDF parsers.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Mapping

from .exceptions import NoTransactionsFoundError


class TransactionType(str, Enum):
    """Direction of money flow."""
    DEBIT = "debit"
    CREDIT = "credit"


@dataclass
class TransactionMetadata:
    """Optional details kept alongside a normalized transaction."""

    balance: Decimal | None = None
    original_date: str | None = None
    processing_notes: list[str] = field(default_factory=list)
    usd_amount: str | None = None
    exchange_rate: str | None = None

    def to_dict(self) -> dict:
        return {
            "balance": float(self.balance) if self.balance is not None else None,
            "original_date": self.original_date,
            "processing_notes": list(self.processing_notes),
            "usd_amount": self.usd_amount,
            "exchange_rate": self.exchange_rate,
        }


@dataclass
class NormalizedTransaction:
    """A transaction normalized from a statement row or line."""

    date: date
    description: str
    amount: Decimal
    type: TransactionType
    original_amount: str
    confidence: float
    metadata: TransactionMetadata = field(default_factory=TransactionMetadata)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "description": self.description,
            "amount": float(self.amount),
            "type": self.type.value,
            "original_amount": self.original_amount,
            "confidence": self.confidence,
            "metadata": self.metadata.to_dict(),
        }


@dataclass
class ParseMetadata:
    """Batch-level information about a parse."""

    total_rows: int = 0
    successful_rows: int = 0
    error_rows: int = 0
    detected_bank: str | None = None
    detected_format: str | None = None
    headers: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    skipped_rows: int = 0
    delimiter: str | None = None
    bank_confidence: float | None = None
    column_mapping: dict[str, str | None] = field(default_factory=dict)
    extractor: str | None = None

    def to_dict(self) -> dict:
        return {
            "total_rows": self.total_rows,
            "successful_rows": self.successful_rows,
            "error_rows": self.error_rows,
            "detected_bank": self.detected_bank,
            "detected_format": self.detected_format,
            "headers": list(self.headers),
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "skipped_rows": self.skipped_rows,
            "delimiter": self.delimiter,
            "bank_confidence": self.bank_confidence,
            "column_mapping": dict(self.column_mapping),
            "extractor": self.extractor,
        }


@dataclass
class ParseResult:
    """Result of parsing a bank statement."""

    transactions: list[NormalizedTransaction] = field(default_factory=list)
    metadata: ParseMetadata = field(default_factory=ParseMetadata)

    @property
    def success(self) -> bool:
        return self.metadata.successful_rows > 0

    def raise_for_empty(self) -> "ParseResult":
        """Raise NoTransactionsFoundError when nothing was extracted."""
        if not self.transactions:
            detail = "; ".join(self.metadata.errors[:3])
            message = "Nenhuma transação válida encontrada"
            if detail:
                message = f"{message}: {detail}"
            raise NoTransactionsFoundError(message, result=self)
        return self

    def to_dict(self) -> dict:
        return {
            "transactions": [t.to_dict() for t in self.transactions],
            "metadata": self.metadata.to_dict(),
        }


@dataclass(frozen=True)
class BankSignature:
    """Header aliases for each logical field of a bank's CSV export."""

    bank: str
    fields: Mapping[str, tuple[str, ...]]

    def aliases(self, logical_field: str) -> tuple[str, ...]:
        return self.fields.get(logical_field, ())
