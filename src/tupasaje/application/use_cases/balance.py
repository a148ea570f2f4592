"""Balance oracle: the single read-side view of the wallet balance."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ...domain.entities import WalletBalance
from ...domain.shared import WalletApiProtocol


@dataclass(frozen=True)
class BalancePreview:
    """Projected balance after a pending payment.

    Shown for user feedback only; never written back or used as truth.
    """

    current: Decimal
    amount: Decimal
    projected: Decimal
    authoritative: bool = False


class BalanceOracle:
    """Exposes the latest fetched wallet balance.

    Nothing in the client mutates the balance; it is re-fetched after every
    submission instead of being decremented locally.
    """

    def __init__(self, wallet_api: WalletApiProtocol) -> None:
        self._wallet_api = wallet_api
        self._latest: Optional[WalletBalance] = None

    @property
    def latest(self) -> Optional[WalletBalance]:
        return self._latest

    async def refresh(self) -> WalletBalance:
        dto = await self._wallet_api.get_balance()
        self._latest = dto.to_entity()
        return self._latest

    async def current(self) -> WalletBalance:
        """Return the latest fetched balance, fetching once if none is known."""
        if self._latest is None:
            return await self.refresh()
        return self._latest

    def preview(self, amount: Decimal) -> Optional[BalancePreview]:
        if self._latest is None:
            return None
        return BalancePreview(
            current=self._latest.balance,
            amount=amount,
            projected=self._latest.balance - amount,
        )
