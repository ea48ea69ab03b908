"""
Categorizer Tests

Tests for the local pattern fallback, the Claude path with a mocked client,
and the confidence analysis.
"""

import asyncio
import json
import pytest
from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

import anthropic
import httpx

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "python"))

from statement_parser.categorizer import (
    CategorizedTransaction,
    Category,
    PatternCategorizer,
    TransactionCategorizer,
    analyze_categorization_confidence,
    fallback_categorize,
    validate_category,
)


def claude_response(payload) -> Mock:
    """Build a fake messages.create response."""
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return Mock(content=[Mock(text=text)])


class TestFallbackCategorizer:
    """Tests for the regex fallback."""

    def test_uber_eats_is_food(self):
        """Test the fallback is deterministic across calls."""
        first = fallback_categorize(["UBER EATS PEDIDO 123"])
        second = fallback_categorize(["UBER EATS PEDIDO 123"])

        assert first[0].category == Category.ALIMENTACAO
        assert first[0].confidence == 0.8
        assert first[0].method == "fallback"
        assert first == second

    @pytest.mark.parametrize("description,expected", [
        ("UBER TRIP SAO PAULO", Category.TRANSPORTE),
        ("POSTO SHELL", Category.TRANSPORTE),
        ("MERCADO LIVRE", Category.COMPRAS),
        ("SUPERMERCADO EXTRA", Category.ALIMENTACAO),
        ("NETFLIX.COM", Category.LAZER),
        ("DROGASIL 123", Category.SAUDE),
        ("CONDOMINIO EDIFICIO", Category.MORADIA),
        ("PIX ENVIADO JOAO", Category.TRANSFERENCIAS),
        ("PAGAMENTO BOLETO", Category.PAGAMENTOS),
        ("APLICACAO CDB", Category.INVESTIMENTOS),
    ])
    def test_patterns(self, description, expected):
        """Test the ordered pattern table."""
        assert fallback_categorize([description])[0].category == expected

    def test_no_match_is_outros(self):
        result = fallback_categorize(["XPTO 0001"])[0]

        assert result.category == Category.OUTROS
        assert result.confidence == 0.3

    def test_order_preserved(self):
        descriptions = ["NETFLIX", "XPTO", "IFOOD"]

        result = fallback_categorize(descriptions)

        assert [r.description for r in result] == descriptions

    def test_missing_patterns_file(self, tmp_path):
        """Test a missing table categorizes everything as Outros."""
        categorizer = PatternCategorizer(tmp_path)

        assert categorizer.categorize_one("IFOOD").category == Category.OUTROS


class TestValidateCategory:
    """Tests for validate_category."""

    @pytest.mark.parametrize("label,expected", [
        ("Alimentacao", Category.ALIMENTACAO),
        ("alimentação", Category.ALIMENTACAO),
        ("SAÚDE", Category.SAUDE),
        ("Food", Category.OUTROS),
        ("", Category.OUTROS),
        (None, Category.OUTROS),
        (3, Category.OUTROS),
    ])
    def test_labels(self, label, expected):
        assert validate_category(label) == expected


class TestTransactionCategorizer:
    """Tests for TransactionCategorizer."""

    @pytest.fixture
    def mock_client(self):
        """Patch the async Anthropic client."""
        with patch("statement_parser.categorizer.anthropic.AsyncAnthropic") as mock_cls:
            client = Mock()
            client.messages.create = AsyncMock()
            mock_cls.return_value = client
            yield client

    @pytest.fixture
    def categorizer(self, mock_client, config_dir):
        return TransactionCategorizer(config_dir=config_dir, api_key="test-key", use_claude=True)

    def test_without_api_key_uses_fallback(self, config_dir):
        """Test a missing credential degrades to patterns."""
        categorizer = TransactionCategorizer(config_dir=config_dir)

        result = asyncio.run(categorizer.categorize(["UBER EATS PEDIDO 123"]))

        assert categorizer.client is None
        assert result[0].category == Category.ALIMENTACAO
        assert result[0].method == "fallback"

    def test_api_key_from_env(self, monkeypatch, mock_client, config_dir):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "env-key")

        categorizer = TransactionCategorizer(config_dir=config_dir)

        assert categorizer.client is mock_client

    def test_use_claude_disabled_by_env(self, monkeypatch, mock_client, config_dir):
        monkeypatch.setenv("STATEMENT_PARSER_USE_CLAUDE", "false")

        categorizer = TransactionCategorizer(config_dir=config_dir, api_key="test-key")

        assert categorizer.client is None

    def test_categorize_with_claude(self, categorizer, mock_client):
        """Test one batched call with validated labels."""
        mock_client.messages.create.return_value = claude_response(
            "```json\n"
            + json.dumps({"transactions": [
                {"category": "Alimentação", "confidence": 0.95, "reasoning": "delivery"},
                {"category": "Comida", "confidence": 1.7},
            ]})
            + "\n```"
        )

        result = asyncio.run(categorizer.categorize(["IFOOD", "LOJA X"]))

        assert mock_client.messages.create.await_count == 1
        assert [r.method for r in result] == ["claude", "claude"]
        assert result[0].category == Category.ALIMENTACAO
        assert result[0].confidence == 0.95
        assert result[0].reasoning == "delivery"
        assert result[1].category == Category.OUTROS
        assert result[1].confidence == 1.0

    def test_json_surrounded_by_text(self, categorizer, mock_client):
        mock_client.messages.create.return_value = claude_response(
            'Aqui está: {"transactions": [{"category": "Lazer", "confidence": 0.9}]} Obrigado'
        )

        result = asyncio.run(categorizer.categorize(["NETFLIX"]))

        assert result[0].category == Category.LAZER
        assert result[0].method == "claude"

    def test_malformed_output_falls_back(self, categorizer, mock_client):
        mock_client.messages.create.return_value = claude_response("não sei")

        result = asyncio.run(categorizer.categorize(["UBER EATS PEDIDO 123"]))

        assert result[0].method == "fallback"
        assert result[0].category == Category.ALIMENTACAO

    def test_length_mismatch_falls_back(self, categorizer, mock_client):
        mock_client.messages.create.return_value = claude_response(
            {"transactions": [{"category": "Lazer", "confidence": 0.9}]}
        )

        result = asyncio.run(categorizer.categorize(["NETFLIX", "IFOOD"]))

        assert len(result) == 2
        assert all(r.method == "fallback" for r in result)

    def test_api_error_falls_back(self, categorizer, mock_client):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        mock_client.messages.create.side_effect = anthropic.APIConnectionError(request=request)

        result = asyncio.run(categorizer.categorize(["POSTO SHELL"]))

        assert result[0].category == Category.TRANSPORTE
        assert result[0].method == "fallback"

    def test_timeout_falls_back(self, categorizer, mock_client):
        """Test a slow remote call degrades instead of hanging."""
        async def slow_create(**kwargs):
            await asyncio.sleep(5)

        mock_client.messages.create.side_effect = slow_create

        result = asyncio.run(categorizer.categorize(["IFOOD"], timeout=0.01))

        assert result[0].method == "fallback"
        assert result[0].category == Category.ALIMENTACAO

    def test_cancellation_propagates(self, categorizer, mock_client):
        """Test caller cancellation is not swallowed by the fallback."""
        async def slow_create(**kwargs):
            await asyncio.sleep(5)

        mock_client.messages.create.side_effect = slow_create

        async def run():
            task = asyncio.create_task(categorizer.categorize(["IFOOD"], timeout=10))
            await asyncio.sleep(0.01)
            task.cancel()
            await task

        with pytest.raises(asyncio.CancelledError):
            asyncio.run(run())

    def test_empty_input(self, categorizer, mock_client):
        assert asyncio.run(categorizer.categorize([])) == []
        mock_client.messages.create.assert_not_called()


class TestCategorizationAnalysis:
    """Tests for analyze_categorization_confidence."""

    def test_empty(self):
        analysis = analyze_categorization_confidence([])

        assert analysis.average_confidence == 0.0
        assert analysis.suggestions == ["Nenhuma transação para analisar"]

    def test_good_batch(self):
        items = [
            CategorizedTransaction("IFOOD", Category.ALIMENTACAO, 0.9),
            CategorizedTransaction("UBER", Category.TRANSPORTE, 0.8),
        ]

        analysis = analyze_categorization_confidence(items)

        assert analysis.average_confidence == 0.85
        assert analysis.high_confidence_count == 2
        assert analysis.low_confidence_count == 0
        assert analysis.suggestions == ["Categorização com boa qualidade"]

    def test_low_batch(self):
        items = [
            CategorizedTransaction("XPTO", Category.OUTROS, 0.3),
            CategorizedTransaction("ABC", Category.OUTROS, 0.3),
            CategorizedTransaction("IFOOD", Category.ALIMENTACAO, 0.8),
        ]

        analysis = analyze_categorization_confidence(items)

        assert analysis.low_confidence_count == 2
        assert "Muitas transações com baixa confiança" in analysis.suggestions
        assert "Confiança geral baixa; pode exigir mais contexto" in analysis.suggestions
