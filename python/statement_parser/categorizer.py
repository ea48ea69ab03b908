"""
Transaction Categorizer Module

Assigns a household-finance category to each transaction description. One
batched Claude request is made per statement; when Claude is unavailable,
slow, or answers with something unusable, the local regex table in
config/category_patterns.yaml is used instead.
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import anthropic
import yaml

from .exceptions import CategorizationUnavailable
from .normalizers import fold_text
from .settings import ParserSettings, resolve_config_dir

logger = logging.getLogger(__name__)

PATTERNS_FILE = "category_patterns.yaml"
DEFAULT_MATCH_CONFIDENCE = 0.8
DEFAULT_NO_MATCH_CONFIDENCE = 0.3
LOW_CONFIDENCE = 0.6
HIGH_CONFIDENCE = 0.8


class Category(str, Enum):
    """Closed set of spending categories."""
    ALIMENTACAO = "Alimentacao"
    TRANSPORTE = "Transporte"
    MORADIA = "Moradia"
    SAUDE = "Saude"
    EDUCACAO = "Educacao"
    LAZER = "Lazer"
    COMPRAS = "Compras"
    SERVICOS = "Servicos"
    INVESTIMENTOS = "Investimentos"
    TRANSFERENCIAS = "Transferencias"
    PAGAMENTOS = "Pagamentos"
    OUTROS = "Outros"


_CATEGORY_BY_KEY = {fold_text(c.value): c for c in Category}


@dataclass
class CategorizedTransaction:
    """Category assigned to one description."""

    description: str
    category: Category
    confidence: float
    reasoning: str | None = None
    method: str = "fallback"  # 'claude' or 'fallback'

    def to_dict(self) -> dict:
        return {
            "description": self.description,
            "category": self.category.value,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "method": self.method,
        }


@dataclass
class CategorizationAnalysis:
    """Quality summary of a categorized batch."""

    average_confidence: float
    low_confidence_count: int
    high_confidence_count: int
    suggestions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "average_confidence": self.average_confidence,
            "low_confidence_count": self.low_confidence_count,
            "high_confidence_count": self.high_confidence_count,
            "suggestions": self.suggestions,
        }


def validate_category(label) -> Category:
    """Map a free-form label onto the closed set; unknown labels become Outros."""
    if isinstance(label, Category):
        return label
    if not isinstance(label, str):
        return Category.OUTROS
    return _CATEGORY_BY_KEY.get(fold_text(label), Category.OUTROS)


def _clamp(value, default: float = 0.5) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return max(0.0, min(1.0, number))


class PatternCategorizer:
    """Deterministic regex categorizer used when Claude is unavailable."""

    def __init__(self, config_dir: Path | str | None = None):
        """Initialize the categorizer.

        Args:
            config_dir: Directory holding category_patterns.yaml
        """
        self.config_dir = resolve_config_dir(config_dir)
        self.rules: list[tuple[Category, re.Pattern]] = []
        self.match_confidence = DEFAULT_MATCH_CONFIDENCE
        self.default_confidence = DEFAULT_NO_MATCH_CONFIDENCE
        self._load_patterns()

    def _load_patterns(self) -> None:
        """Load category patterns from config file."""
        patterns_file = self.config_dir / PATTERNS_FILE

        if not patterns_file.exists():
            logger.warning(f"Category patterns file not found: {patterns_file}")
            return

        with open(patterns_file, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        self.match_confidence = float(data.get("match_confidence", DEFAULT_MATCH_CONFIDENCE))
        self.default_confidence = float(data.get("default_confidence", DEFAULT_NO_MATCH_CONFIDENCE))

        for rule in data.get("rules") or []:
            category = validate_category(rule.get("category"))
            self.rules.append((category, re.compile(rule["pattern"], re.IGNORECASE)))

        logger.debug(f"Loaded {len(self.rules)} category patterns")

    def categorize_one(self, description: str) -> CategorizedTransaction:
        for category, pattern in self.rules:
            if pattern.search(description or ""):
                return CategorizedTransaction(
                    description=description,
                    category=category,
                    confidence=self.match_confidence,
                    reasoning="Detectado por padrão",
                    method="fallback",
                )

        return CategorizedTransaction(
            description=description,
            category=Category.OUTROS,
            confidence=self.default_confidence,
            reasoning="Nenhum padrão reconhecido",
            method="fallback",
        )

    def categorize(self, descriptions: list[str]) -> list[CategorizedTransaction]:
        return [self.categorize_one(d) for d in descriptions]


def fallback_categorize(
    descriptions: list[str],
    config_dir: Path | str | None = None,
) -> list[CategorizedTransaction]:
    """Categorize descriptions with the local pattern table only."""
    return PatternCategorizer(config_dir).categorize(descriptions)


class TransactionCategorizer:
    """Categorizes transaction descriptions using Claude with a local fallback."""

    def __init__(
        self,
        config_dir: Path | str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        use_claude: bool | None = None,
        timeout: float | None = None,
    ):
        """Initialize the categorizer.

        Args:
            config_dir: Path to configuration directory
            api_key: Anthropic API key (defaults to ANTHROPIC_API_KEY)
            model: Claude model to use
            use_claude: Whether to call Claude at all
            timeout: Seconds to wait for Claude before falling back
        """
        settings = ParserSettings.from_env()
        self.model = model or settings.model
        self.timeout = timeout if timeout is not None else settings.categorize_timeout
        self.use_claude = settings.use_claude if use_claude is None else use_claude
        self.fallback = PatternCategorizer(config_dir or settings.config_dir)

        api_key = api_key or settings.anthropic_api_key
        if self.use_claude and api_key:
            self.client = anthropic.AsyncAnthropic(api_key=api_key)
        else:
            self.client = None

    async def categorize(
        self,
        descriptions: list[str],
        timeout: float | None = None,
    ) -> list[CategorizedTransaction]:
        """Categorize a batch of descriptions.

        Args:
            descriptions: Transaction descriptions, in statement order
            timeout: Overrides the configured timeout for this call

        Returns:
            One CategorizedTransaction per description, same order
        """
        if not descriptions:
            return []

        timeout = self.timeout if timeout is None else timeout

        try:
            return await asyncio.wait_for(self._categorize_with_claude(descriptions), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Claude categorization timed out after {timeout}s, using patterns")
        except CategorizationUnavailable as e:
            logger.warning(f"Claude categorization unavailable, using patterns: {e}")

        return self.fallback.categorize(descriptions)

    async def _categorize_with_claude(self, descriptions: list[str]) -> list[CategorizedTransaction]:
        """Categorize descriptions using Claude API.

        Raises:
            CategorizationUnavailable: No client, API failure or unusable answer
        """
        if self.client is None:
            raise CategorizationUnavailable("Claude client not configured")

        categories = ", ".join(c.value for c in Category)
        system_prompt = f"""Você categoriza transações bancárias brasileiras.
Categorias permitidas: {categories}

Responda SOMENTE com JSON válido no formato:
{{"transactions": [{{"category": "...", "confidence": 0.0, "reasoning": "..."}}]}}
Uma entrada por transação, na mesma ordem."""

        numbered = "\n".join(f"{i + 1}. {d}" for i, d in enumerate(descriptions))
        user_prompt = f"Categorize estas {len(descriptions)} transações:\n{numbered}"

        try:
            message = await self.client.messages.create(
                model=self.model,
                max_tokens=4096,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.APIError as e:
            logger.error(f"Claude categorization error: {e}")
            raise CategorizationUnavailable(str(e)) from e

        if not message.content:
            raise CategorizationUnavailable("Empty response from Claude")

        results = self._parse_response(message.content[0].text, descriptions)
        logger.info(f"Claude categorized {len(results)} transactions")
        return results

    def _parse_response(
        self,
        response_text: str,
        descriptions: list[str],
    ) -> list[CategorizedTransaction]:
        cleaned = response_text.strip()
        cleaned = re.sub(r"^```json\s*", "", cleaned)
        cleaned = re.sub(r"^```\s*", "", cleaned)
        cleaned = re.sub(r"\s*```$", "", cleaned)

        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError:
            start, end = cleaned.find("{"), cleaned.rfind("}")
            if start == -1 or end <= start:
                raise CategorizationUnavailable("Claude response is not JSON")
            try:
                data = json.loads(cleaned[start:end + 1])
            except json.JSONDecodeError as e:
                raise CategorizationUnavailable(f"Claude response is not JSON: {e}") from e

        items = data.get("transactions") if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise CategorizationUnavailable("Claude response has no transactions list")
        if len(items) != len(descriptions):
            raise CategorizationUnavailable(
                f"Claude returned {len(items)} results for {len(descriptions)} transactions"
            )

        results = []
        for description, item in zip(descriptions, items):
            if not isinstance(item, dict):
                raise CategorizationUnavailable(f"Unexpected result item: {item!r}")

            category = validate_category(item.get("category"))
            reasoning = item.get("reasoning")
            results.append(CategorizedTransaction(
                description=description,
                category=category,
                confidence=_clamp(item.get("confidence")),
                reasoning=str(reasoning) if reasoning else None,
                method="claude",
            ))

        return results


def analyze_categorization_confidence(
    items: list[CategorizedTransaction],
) -> CategorizationAnalysis:
    """Summarize how confident a categorized batch is.

    Args:
        items: Categorized transactions

    Returns:
        CategorizationAnalysis with counts and human-readable suggestions
    """
    if not items:
        return CategorizationAnalysis(0.0, 0, 0, ["Nenhuma transação para analisar"])

    average = sum(i.confidence for i in items) / len(items)
    low = sum(1 for i in items if i.confidence < LOW_CONFIDENCE)
    high = sum(1 for i in items if i.confidence >= HIGH_CONFIDENCE)

    suggestions = []
    if low > len(items) * 0.3:
        suggestions.append("Muitas transações com baixa confiança")
    if average < 0.7:
        suggestions.append("Confiança geral baixa; pode exigir mais contexto")
    if not suggestions:
        suggestions.append("Categorização com boa qualidade")

    return CategorizationAnalysis(
        average_confidence=round(average, 4),
        low_confidence_count=low,
        high_confidence_count=high,
        suggestions=suggestions,
    )
