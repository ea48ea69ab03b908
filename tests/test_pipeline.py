"""
Pipeline Tests

End-to-end tests for process_statement with the pattern categorizer.
"""

import asyncio
import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "python"))

from statement_parser.categorizer import Category, TransactionCategorizer
from statement_parser.exceptions import (
    NoTransactionsFoundError,
    PasswordRequiredError,
    StatementParseError,
)
from statement_parser.pipeline import is_pdf, process_statement
from statement_parser.structurer import Channel, Direction


@pytest.fixture
def categorizer(config_dir):
    """Categorizer that never calls the API."""
    return TransactionCategorizer(config_dir=config_dir, use_claude=False)


def test_latin1_csv(categorizer, config_dir):
    """Test Latin-1 bytes are decoded and every transaction is enriched."""
    data = (
        "Data;Descrição;Valor\n"
        "01/03/2024;Padaria São João;-12,50\n"
        "02/03/2024;PIX RECEBIDO MARIA;100,00\n"
    ).encode("latin-1")

    statement = asyncio.run(process_statement(
        data, "extrato.csv", categorizer=categorizer, config_dir=config_dir
    ))

    assert statement.file_format == "csv"
    assert statement.encoding == "latin-1"
    bakery, pix = statement.transactions
    assert bakery.transaction.description == "Padaria São João"
    assert bakery.categorization.category == Category.ALIMENTACAO
    assert pix.categorization.category == Category.TRANSFERENCIAS
    assert pix.structure.channel == Channel.PIX
    assert pix.structure.direction == Direction.IN
    assert statement.analysis.average_confidence == 0.8


def test_empty_csv(categorizer):
    with pytest.raises(NoTransactionsFoundError):
        asyncio.run(process_statement(b"", "vazio.csv", categorizer=categorizer))


def test_csv_without_valid_rows(categorizer):
    """Test row errors are carried on the raised exception."""
    data = "Data;Descrição;Valor\n01/03/2024;SEM VALOR;\n".encode("utf-8")

    with pytest.raises(NoTransactionsFoundError) as exc_info:
        asyncio.run(process_statement(data, "extrato.csv", categorizer=categorizer))

    assert exc_info.value.result.metadata.error_rows == 1


def test_pdf(categorizer, make_text_pdf):
    data = make_text_pdf([
        "Nu Pagamentos S.A.",
        "15/03/2024 UBER EATS PEDIDO 45,90",
        "16/03/2024 POSTO SHELL 120,00",
    ])

    statement = asyncio.run(process_statement(data, "fatura.pdf", categorizer=categorizer))

    assert statement.file_format == "pdf"
    assert statement.encoding is None
    assert statement.metadata.detected_bank == "nubank"
    assert [t.categorization.category for t in statement.transactions] == [
        Category.ALIMENTACAO, Category.TRANSPORTE,
    ]


def test_encrypted_pdf(categorizer, make_encrypted_pdf):
    with pytest.raises(PasswordRequiredError):
        asyncio.run(process_statement(make_encrypted_pdf(), "fatura.pdf", categorizer=categorizer))


def test_invalid_pdf(categorizer):
    """Test a .pdf name without PDF content is rejected."""
    with pytest.raises(StatementParseError):
        asyncio.run(process_statement(b"nao sou pdf", "fatura.pdf", categorizer=categorizer))


def test_concurrent_statements(categorizer, sample_csv):
    """Test independent statements can be processed together."""
    async def run():
        return await asyncio.gather(
            process_statement(sample_csv.encode("utf-8"), "a.csv", categorizer=categorizer),
            process_statement(b"Data;Descricao;Valor\n05/03/2024;NETFLIX;-39,90\n", "b.csv",
                              categorizer=categorizer),
        )

    first, second = asyncio.run(run())

    assert len(first.transactions) == 3
    assert second.transactions[0].categorization.category == Category.LAZER


def test_to_dict(categorizer, sample_csv):
    statement = asyncio.run(process_statement(sample_csv.encode("utf-8"), "a.csv", categorizer=categorizer))

    data = statement.to_dict()

    assert data["format"] == "csv"
    assert data["encoding"] == "utf-8"
    first = data["transactions"][0]
    assert first["description"] == "PADARIA PAO QUENTE"
    assert first["amount"] == 12.5
    assert first["type"] == "debit"
    assert first["category"] == "Alimentacao"
    assert first["categorization_method"] == "fallback"
    assert first["structure"]["direction"] == "out"
    assert data["analysis"]["average_confidence"] == 0.8


def test_is_pdf():
    assert is_pdf(b"%PDF-1.7 ...")
    assert is_pdf(b"", "FATURA.PDF")
    assert not is_pdf(b"Data;Valor", "extrato.csv")
