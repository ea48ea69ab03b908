"""
Pytest configuration and fixtures for statement parser tests.
"""

import sys
from datetime import date
from io import BytesIO
from pathlib import Path

import pytest

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "python"))

ENV_VARS = (
    "ANTHROPIC_API_KEY",
    "STATEMENT_PARSER_MODEL",
    "STATEMENT_PARSER_CATEGORIZE_TIMEOUT",
    "STATEMENT_PARSER_USE_CLAUDE",
    "STATEMENT_PARSER_CONFIG_DIR",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep tests independent of the developer's environment."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_dir() -> Path:
    """Return the bundled config directory path."""
    return PROJECT_ROOT / "python" / "statement_parser" / "config"


@pytest.fixture
def today() -> date:
    """Fixed reference date for year-less statement dates."""
    return date(2024, 6, 1)


@pytest.fixture
def sample_csv() -> str:
    """A small semicolon-delimited Brazilian export."""
    return (
        "Data;Descrição;Valor\n"
        "01/03/2024;PADARIA PAO QUENTE;-12,50\n"
        "02/03/2024;PIX RECEBIDO MARIA SOUZA;1.500,00\n"
        "03/03/2024;UBER EATS PEDIDO 123;-45,90\n"
    )


@pytest.fixture
def make_text_pdf():
    """Build a one-page PDF whose text layer holds the given lines."""
    from reportlab.pdfgen import canvas

    def _make(lines: list[str]) -> bytes:
        buffer = BytesIO()
        pdf = canvas.Canvas(buffer)
        y = 800
        for line in lines:
            pdf.drawString(50, y, line)
            y -= 20
        pdf.save()
        return buffer.getvalue()

    return _make


@pytest.fixture
def make_encrypted_pdf():
    """Build a blank PDF encrypted with the given user password."""
    from pypdf import PdfWriter

    def _make(password: str = "secret") -> bytes:
        writer = PdfWriter()
        writer.add_blank_page(width=200, height=200)
        writer.encrypt(password)
        buffer = BytesIO()
        writer.write(buffer)
        return buffer.getvalue()

    return _make
