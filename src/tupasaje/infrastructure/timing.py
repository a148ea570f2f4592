from __future__ import annotations

import functools
import logging
import time
from typing import Optional

logger = logging.getLogger(__name__)


def log_timing(tag: Optional[str] = None):
    """Log the wall time of an async backend call at DEBUG level."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            t0 = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                dt_ms = (time.perf_counter() - t0) * 1000.0
                logger.debug("[API-TIME][%s] %.3fms", tag or func.__name__, dt_ms)

        return wrapper

    return decorator
