"""
Transaction Structurer

Keyword heuristics that describe how money moved: the payment channel (card,
PIX, transfer, boleto...), the direction and, when the description carries
one, the counterparty.
"""

import re
from dataclasses import dataclass
from enum import Enum

from .models import TransactionType
from .normalizers import fold_text


class Channel(str, Enum):
    CARD = "card"
    PIX = "pix"
    TRANSFER = "transfer"
    BOLETO = "boleto"
    FEE = "fee"
    INTEREST = "interest"
    INVESTMENT = "investment"
    CASH = "cash"
    OTHER = "other"


class Direction(str, Enum):
    IN = "in"
    OUT = "out"


@dataclass
class StructuredInfo:
    """Channel and direction of a transaction."""

    channel: Channel
    direction: Direction
    method: str | None = None
    counterparty: str | None = None

    def to_dict(self) -> dict:
        return {
            "channel": self.channel.value,
            "direction": self.direction.value,
            "method": self.method,
            "counterparty": self.counterparty,
        }


_INCOMING_RE = re.compile(r"recebid|entrada")
_PIX_RE = re.compile(r"\bpix\b")
_TRANSFER_RE = re.compile(r"\bted\b|\bdoc\b|transferencia|entre contas")
_BOLETO_RE = re.compile(r"boleto|fatura|conta de luz|conta de agua|conta de gas")
_FEE_RE = re.compile(r"tarifa|\biof\b|juros|anuidade|multa")
_INVESTMENT_RE = re.compile(r"aplicacao|resgate|\bcdb\b|tesouro|poupanca|rendimento")
_CASH_RE = re.compile(r"\bsaque\b|deposito em dinheiro|caixa eletronico|\batm\b")
_CARD_RE = re.compile(
    r"\*|visa|master|\belo\b|amex|parcel|compra|mercadolivre|ifood|uber|recarga"
    r"|pag\s*seguro|pichau|magalu|loja|ltda|lanchonete|restaurante"
)
_REFUND_RE = re.compile(r"recebid|deposito|cashback|estorno|reembolso")

# Words that name the operation rather than the other party
_OPERATION_WORDS_RE = re.compile(
    r"\b(?:pix|ted|doc|transferencia|transf|enviad[oa]|recebid[oa]|entre contas"
    r"|compra|cartao|debito|credito|pagamento|para|de|no|na)\b"
)
_COUNTERPARTY_RE = re.compile(r"([a-z0-9][a-z0-9\s\-*.&]{2,29})$")


def extract_counterparty(description: str) -> str | None:
    """Best-effort name of the other party, taken from the end of the description."""
    text = _OPERATION_WORDS_RE.sub(" ", fold_text(description))
    text = re.sub(r"\d{2}/\d{2}(?:/\d{2,4})?", " ", text)
    text = re.sub(r"\s+", " ", text).strip(" -*.")
    match = _COUNTERPARTY_RE.search(text)
    if not match:
        return None
    return match.group(1).strip().upper() or None


def structure_transaction(
    description: str,
    txn_type: TransactionType,
) -> StructuredInfo:
    """Classify the channel and direction of a transaction.

    Args:
        description: Normalized description
        txn_type: Debit or credit

    Returns:
        StructuredInfo
    """
    text = fold_text(description)
    is_credit = txn_type == TransactionType.CREDIT
    default_direction = Direction.IN if is_credit else Direction.OUT

    if _PIX_RE.search(text):
        incoming = is_credit or bool(_INCOMING_RE.search(text))
        return StructuredInfo(
            channel=Channel.PIX,
            direction=Direction.IN if incoming else Direction.OUT,
            method="PIX",
            counterparty=extract_counterparty(description),
        )

    if _TRANSFER_RE.search(text):
        incoming = is_credit or bool(_INCOMING_RE.search(text))
        if re.search(r"\bted\b", text):
            method = "TED"
        elif re.search(r"\bdoc\b", text):
            method = "DOC"
        else:
            method = "Transferencia"
        return StructuredInfo(
            channel=Channel.TRANSFER,
            direction=Direction.IN if incoming else Direction.OUT,
            method=method,
            counterparty=extract_counterparty(description),
        )

    if _BOLETO_RE.search(text):
        return StructuredInfo(channel=Channel.BOLETO, direction=Direction.OUT, method="Boleto")

    if _FEE_RE.search(text):
        channel = Channel.INTEREST if "juros" in text else Channel.FEE
        return StructuredInfo(channel=channel, direction=Direction.OUT)

    if _INVESTMENT_RE.search(text):
        return StructuredInfo(channel=Channel.INVESTMENT, direction=default_direction)

    if _CASH_RE.search(text):
        return StructuredInfo(channel=Channel.CASH, direction=default_direction, method="Dinheiro")

    if _CARD_RE.search(text):
        return StructuredInfo(
            channel=Channel.CARD,
            direction=default_direction,
            method="Cartao",
            counterparty=extract_counterparty(description),
        )

    if is_credit or _REFUND_RE.search(text):
        return StructuredInfo(
            channel=Channel.OTHER,
            direction=Direction.IN,
            counterparty=extract_counterparty(description),
        )

    return StructuredInfo(channel=Channel.OTHER, direction=default_direction)
