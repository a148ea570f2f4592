"""Pull-to-refresh: independent concurrent re-fetches."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from ...domain.entities import Transaction
from ...domain.shared import WalletApiProtocol
from .balance import BalanceOracle
from .qr_token import QRTokenLifecycleManager

logger = logging.getLogger(__name__)


@dataclass
class RefreshReport:
    results: dict[str, Any] = field(default_factory=dict)
    errors: dict[str, BaseException] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


class WalletRefresher:
    """Re-fetches balance, active tokens and history concurrently.

    Each source is independent: a failure is recorded in the report and
    never cancels or rolls back its siblings.
    """

    def __init__(
        self,
        balance_oracle: BalanceOracle,
        qr_manager: QRTokenLifecycleManager,
        wallet_api: WalletApiProtocol,
        wallet_id: str,
    ) -> None:
        self._balance_oracle = balance_oracle
        self._qr_manager = qr_manager
        self._wallet_api = wallet_api
        self._wallet_id = wallet_id

    async def refresh(self) -> RefreshReport:
        sources = {
            "balance": self._balance_oracle.refresh(),
            "active_tokens": self._qr_manager.list_active(self._wallet_id),
            "transactions": self._fetch_transactions(),
        }
        outcomes = await asyncio.gather(*sources.values(), return_exceptions=True)

        report = RefreshReport()
        for name, outcome in zip(sources, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, Exception):
                logger.warning("Refresh of %s failed: %s", name, outcome)
                report.errors[name] = outcome
            else:
                report.results[name] = outcome
        return report

    async def _fetch_transactions(self) -> list[Transaction]:
        dtos = await self._wallet_api.get_transactions()
        return [dto.to_entity() for dto in dtos]
