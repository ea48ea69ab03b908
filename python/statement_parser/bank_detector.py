"""
Bank Detector Module

Scores CSV headers or extracted PDF text against known Brazilian bank
signatures loaded from config/bank_signatures.yaml.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

import yaml

from .models import BankSignature
from .normalizers import fold_text
from .settings import resolve_config_dir

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BankDetection:
    """Best-matching bank for a set of headers."""

    bank: str
    confidence: float
    signature: BankSignature


class BankDetector:
    """Detects the issuing bank of a statement."""

    GENERIC = "generic"
    MIN_CONFIDENCE = 0.6
    SIGNATURES_FILE = "bank_signatures.yaml"

    def __init__(self, config_dir: Path | str | None = None):
        """Initialize the detector.

        Args:
            config_dir: Directory holding bank_signatures.yaml
        """
        self.config_dir = resolve_config_dir(config_dir)
        self._signatures: tuple[BankSignature, ...] = ()
        self._text_markers: tuple[tuple[str, tuple[str, ...]], ...] = ()
        self._card_statement_banks: frozenset[str] = frozenset()
        self._split_columns: MappingProxyType = MappingProxyType({})
        self._load_signatures()

    def _load_signatures(self) -> None:
        """Load bank signatures from config file."""
        signatures_file = self.config_dir / self.SIGNATURES_FILE

        if not signatures_file.exists():
            logger.error(f"Bank signatures file not found: {signatures_file}")
            raise FileNotFoundError(signatures_file)

        with open(signatures_file, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        signatures = []
        markers = []
        card_banks = set()

        for bank, entry in (data.get("banks") or {}).items():
            fields = {
                name: tuple(str(alias) for alias in aliases)
                for name, aliases in (entry.get("fields") or {}).items()
            }
            signatures.append(BankSignature(bank=bank, fields=MappingProxyType(fields)))
            markers.append((bank, tuple(m.lower() for m in entry.get("text_markers") or [])))
            if entry.get("card_statement"):
                card_banks.add(bank)

        if not any(s.bank == self.GENERIC for s in signatures):
            raise ValueError(f"{signatures_file} must declare a '{self.GENERIC}' signature")

        self._signatures = tuple(signatures)
        self._text_markers = tuple(markers)
        self._card_statement_banks = frozenset(card_banks)
        self._split_columns = MappingProxyType({
            name: tuple(str(alias) for alias in aliases)
            for name, aliases in (data.get("split_amount_columns") or {}).items()
        })

        logger.debug(f"Loaded {len(self._signatures)} bank signatures")

    @property
    def split_columns(self) -> MappingProxyType:
        """Aliases for separate debit/credit value columns."""
        return self._split_columns

    @property
    def signatures(self) -> tuple[BankSignature, ...]:
        return self._signatures

    def signature(self, bank: str) -> BankSignature:
        """Return the signature for a bank, or the generic one if unknown."""
        by_bank = {sig.bank: sig for sig in self._signatures}
        return by_bank.get(bank) or by_bank[self.GENERIC]

    def detect_from_headers(self, headers: list[str]) -> BankDetection:
        """Pick the bank whose aliases cover the most logical fields.

        Args:
            headers: CSV column headers

        Returns:
            BankDetection; generic with confidence 1.0 when no bank reaches
            MIN_CONFIDENCE
        """
        normalized = [fold_text(h) for h in headers]
        best: BankDetection | None = None

        for sig in self._signatures:
            if sig.bank == self.GENERIC or not sig.fields:
                continue

            matched = 0
            for aliases in sig.fields.values():
                if any(fold_text(alias) in h for alias in aliases for h in normalized):
                    matched += 1

            score = matched / len(sig.fields)
            if best is None or score > best.confidence:
                best = BankDetection(bank=sig.bank, confidence=score, signature=sig)

        if best is None or best.confidence < self.MIN_CONFIDENCE:
            return BankDetection(
                bank=self.GENERIC,
                confidence=1.0,
                signature=self.signature(self.GENERIC),
            )

        return best

    def detect_from_text(self, text: str) -> str:
        """Find the first bank whose name appears in the statement text."""
        lowered = (text or "").lower()
        for bank, markers in self._text_markers:
            if any(marker in lowered for marker in markers):
                return bank
        return self.GENERIC

    def is_card_statement(self, bank: str) -> bool:
        """Whether this bank's PDFs use the credit-card line layout."""
        return bank in self._card_statement_banks
