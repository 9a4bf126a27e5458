from __future__ import annotations

import asyncio
from dataclasses import dataclass
import time
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")

Clock = Callable[[], float]
Sleeper = Callable[[float], None]


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded polling: stop on a result, an attempt limit or a deadline.

    After the deadline passes one last attempt is made, so a result that
    appeared during the final wait is not missed.
    """

    timeout: float
    interval: float = 0.2
    max_attempts: int | None = None

    def run(
        self,
        probe: Callable[[], T | None],
        *,
        clock: Clock = time.monotonic,
        sleep: Sleeper = time.sleep,
    ) -> T | None:
        deadline = clock() + max(0.0, self.timeout)
        attempts = 0
        while True:
            result = probe()
            attempts += 1
            if result is not None:
                return result
            if self._exhausted(attempts):
                return None
            remaining = deadline - clock()
            if remaining <= 0:
                break
            sleep(min(self.interval, remaining))
        return probe()

    async def run_async(
        self,
        probe: Callable[[], T | None],
        *,
        clock: Clock = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> T | None:
        deadline = clock() + max(0.0, self.timeout)
        attempts = 0
        while True:
            result = probe()
            attempts += 1
            if result is not None:
                return result
            if self._exhausted(attempts):
                return None
            remaining = deadline - clock()
            if remaining <= 0:
                break
            await sleep(min(self.interval, remaining))
        return probe()

    def _exhausted(self, attempts: int) -> bool:
        return self.max_attempts is not None and attempts >= self.max_attempts
