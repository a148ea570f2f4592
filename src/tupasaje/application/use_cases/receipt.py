"""Receipt construction and fee/net display for completed transfers.

Fees are computed by the server. The client only formats them and checks
that ``net_amount == amount - fee``; a mismatch is logged and flagged,
never corrected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from ...domain.entities import (
    CounterpartyIdentity,
    TransactionStatus,
    TransferResult,
    utc_now,
)
from ...domain.money import amounts_match
from ..formatters import format_currency

logger = logging.getLogger(__name__)

_STATUS_LABELS = {
    TransactionStatus.COMPLETED: "Successful",
    TransactionStatus.PENDING: "Pending",
    TransactionStatus.FAILED: "Failed",
    TransactionStatus.CANCELLED: "Cancelled",
}


def status_label(status: TransactionStatus) -> str:
    return _STATUS_LABELS.get(status, status.value)


@dataclass(frozen=True)
class FeeBreakdown:
    """Gross amount, platform fee and net received, as reported by the server."""

    gross: Decimal
    fee: Decimal
    net: Decimal
    consistent: bool

    @classmethod
    def from_result(cls, result: TransferResult) -> "FeeBreakdown":
        consistent = amounts_match(result.net_amount, result.amount - result.fee)
        if not consistent:
            logger.warning(
                "Transfer %s reports net %s but amount %s minus fee %s is %s",
                result.transaction_id,
                result.net_amount,
                result.amount,
                result.fee,
                result.amount - result.fee,
            )
        return cls(
            gross=result.amount,
            fee=result.fee,
            net=result.net_amount,
            consistent=consistent,
        )

    def lines(self, currency: str = "COP") -> list[tuple[str, str]]:
        """Label/value pairs for the payee's receipt."""
        return [
            ("Amount", format_currency(self.gross, currency)),
            ("Platform fee", f"-{format_currency(self.fee, currency)}"),
            ("Net received", format_currency(self.net, currency)),
        ]


@dataclass(frozen=True)
class PaymentReceipt:
    """Everything the receipt view needs after a successful transfer."""

    transaction_id: str
    reference: str
    amount: Decimal
    fee: Decimal
    net_amount: Decimal
    counterparty_username: str
    payer_username: Optional[str]
    created_at: datetime
    status: TransactionStatus
    breakdown: FeeBreakdown
    currency: str = "COP"

    @classmethod
    def from_result(
        cls,
        result: TransferResult,
        counterparty: CounterpartyIdentity,
        *,
        payer_username: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
        currency: str = "COP",
    ) -> "PaymentReceipt":
        return cls(
            transaction_id=result.transaction_id,
            reference=result.reference,
            amount=result.amount,
            fee=result.fee,
            net_amount=result.net_amount,
            counterparty_username=counterparty.username or counterparty.display_name,
            payer_username=payer_username,
            created_at=clock(),
            status=TransactionStatus.COMPLETED,
            breakdown=FeeBreakdown.from_result(result),
            currency=currency,
        )

    @property
    def status_label(self) -> str:
        return status_label(self.status)

    def lines(self) -> list[tuple[str, str]]:
        return self.breakdown.lines(self.currency)
