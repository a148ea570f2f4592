from __future__ import annotations

import logging
from typing import Optional
from uuid import uuid4

from ...infrastructure.metrics import duplicate_submissions_suppressed_total

logger = logging.getLogger(__name__)


class SingleFlightGuard:
    """At most one in-flight invocation per logical attempt.

    Execution is cooperative on a single event loop, so a plain flag is
    enough as long as ``try_acquire`` runs before the first ``await`` and
    ``release`` runs in a ``finally`` block.
    """

    def __init__(self, operation: str) -> None:
        self._operation = operation
        self._attempt_id: Optional[str] = None

    @property
    def in_flight(self) -> bool:
        return self._attempt_id is not None

    @property
    def attempt_id(self) -> Optional[str]:
        """Identifier of the pending attempt, for log correlation."""
        return self._attempt_id

    def try_acquire(self) -> bool:
        if self._attempt_id is not None:
            duplicate_submissions_suppressed_total.labels(
                operation=self._operation
            ).inc()
            logger.info(
                "Ignoring duplicate %s while attempt %s is pending",
                self._operation,
                self._attempt_id,
            )
            return False
        self._attempt_id = uuid4().hex
        return True

    def release(self) -> None:
        self._attempt_id = None
