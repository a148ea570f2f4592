from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime
from typing import Callable, Optional

from ...domain.entities import utc_now
from ..formatters import format_countdown

logger = logging.getLogger(__name__)


class Countdown:
    """Local liveness timer for a payment token.

    ``remaining`` is computed once from ``expires_at - now`` and then only
    decremented, one second per tick, down to exactly zero. It never touches
    the token's server status. Ticks after ``stop()`` are no-ops.
    """

    def __init__(
        self,
        expires_at: datetime,
        *,
        clock: Callable[[], datetime] = utc_now,
        tick_interval: float = 1.0,
        on_expire: Optional[Callable[[], None]] = None,
    ) -> None:
        self._remaining = max(0, math.floor((expires_at - clock()).total_seconds()))
        self._tick_interval = tick_interval
        self._on_expire = on_expire
        self._stopped = False
        self._expire_notified = False
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def expired(self) -> bool:
        return self._remaining == 0

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def display(self) -> str:
        return format_countdown(self._remaining)

    def tick(self) -> int:
        """Advance one second and return the new remaining value."""
        if self._stopped or self._remaining == 0:
            return self._remaining
        self._remaining -= 1
        if self._remaining == 0:
            self._notify_expired()
        return self._remaining

    def start(self) -> Optional[asyncio.Task[None]]:
        """Start ticking on the running loop.

        An already-expired countdown notifies immediately and starts nothing.
        """
        if self._stopped:
            return None
        if self._remaining == 0:
            self._notify_expired()
            return None
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    def stop(self) -> None:
        self._stopped = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def _run(self) -> None:
        while not self._stopped and self._remaining > 0:
            await asyncio.sleep(self._tick_interval)
            self.tick()

    def _notify_expired(self) -> None:
        if self._expire_notified or self._stopped:
            return
        self._expire_notified = True
        if self._on_expire is None:
            return
        try:
            self._on_expire()
        except Exception:
            logger.exception("Countdown expiry callback failed")
