"""
Column Mapper

Resolves logical transaction fields to the actual CSV header names using a
bank signature's aliases. Matching is a case- and accent-insensitive
substring test, so 'historico' finds 'Histórico (R$)'.
"""

from dataclasses import dataclass, field
from typing import Mapping

from .models import BankSignature
from .normalizers import fold_text

REQUIRED_FIELDS = ("date", "description", "amount")
OPTIONAL_FIELDS = ("type", "balance")
SPLIT_FIELDS = ("debit", "credit")


@dataclass
class ColumnMapping:
    """Header chosen for each logical field (None when unmapped)."""

    date: str | None = None
    description: str | None = None
    amount: str | None = None
    type: str | None = None
    balance: str | None = None
    debit: str | None = None
    credit: str | None = None
    warnings: list[str] = field(default_factory=list)

    def get(self, logical_field: str) -> str | None:
        return getattr(self, logical_field, None)

    @property
    def has_amount_source(self) -> bool:
        return any((self.amount, self.debit, self.credit))

    def to_dict(self) -> dict[str, str | None]:
        names = REQUIRED_FIELDS + OPTIONAL_FIELDS + SPLIT_FIELDS
        return {name: self.get(name) for name in names}


def _find_header(headers: list[str], folded: list[str], aliases) -> str | None:
    for alias in aliases:
        alias_folded = fold_text(alias)
        for index, header in enumerate(folded):
            if alias_folded in header:
                return headers[index]
    return None


def map_columns(
    headers: list[str],
    signature: BankSignature,
    split_columns: Mapping[str, tuple[str, ...]] | None = None,
) -> ColumnMapping:
    """Map logical fields to headers.

    For each field the aliases are tried in declared order; the first header
    containing the alias wins. Missing required fields only produce warnings
    here; rows fail later if they actually lack the value.

    Args:
        headers: CSV column headers
        signature: Bank signature with header aliases
        split_columns: Optional aliases for separate debit/credit columns

    Returns:
        ColumnMapping
    """
    folded = [fold_text(h) for h in headers]
    mapping = ColumnMapping()

    for logical_field in REQUIRED_FIELDS + OPTIONAL_FIELDS:
        header = _find_header(headers, folded, signature.aliases(logical_field))
        setattr(mapping, logical_field, header)

    for logical_field in SPLIT_FIELDS:
        aliases = (split_columns or {}).get(logical_field, ())
        setattr(mapping, logical_field, _find_header(headers, folded, aliases))

    for logical_field in REQUIRED_FIELDS:
        if mapping.get(logical_field) is None:
            if logical_field == "amount" and mapping.has_amount_source:
                continue
            mapping.warnings.append(f"Campo obrigatório '{logical_field}' não encontrado")

    return mapping
