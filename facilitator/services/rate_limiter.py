from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class MinIntervalRateLimiter:
    """Lets one caller through per ``min_interval`` seconds.

    Callers queue on a lock and the wait happens while holding it, so two
    callers arriving together are spaced apart instead of both reading the
    same last-call time.
    """

    def __init__(
        self,
        min_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_call: float | None = None
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        async with self._lock:
            if self._last_call is not None:
                wait = self._last_call + self.min_interval - self._clock()
                if wait > 0:
                    logger.debug("Rate limiting: waiting %.0fms before next call", wait * 1000)
                    await self._sleep(wait)
            self._last_call = self._clock()
