from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimitedScheduler:
    """Bounds concurrency and dispatch spacing for one external service.

    Tasks are dispatched in submission order. At most ``max_concurrent`` tasks
    run at once and consecutive dispatches are at least ``min_interval``
    seconds apart. A failing task raises to its own awaiter only; nothing is
    retried here.
    """

    def __init__(
        self,
        *,
        name: str,
        max_concurrent: int = 1,
        min_interval: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_concurrent <= 0:
            msg = "max_concurrent must be > 0"
            raise ValueError(msg)
        if min_interval < 0:
            msg = "min_interval must be >= 0"
            raise ValueError(msg)

        self.name = name
        self.max_concurrent = max_concurrent
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._slots = asyncio.Semaphore(max_concurrent)
        self._dispatch_lock = asyncio.Lock()
        self._last_dispatch: float | None = None

    async def schedule(self, task: Callable[[], Awaitable[T]]) -> T:
        # The lock is FIFO, so holding it while waiting for a slot keeps
        # dispatch order equal to submission order.
        async with self._dispatch_lock:
            await self._slots.acquire()
            try:
                await self._wait_for_spacing()
            except BaseException:
                self._slots.release()
                raise
            self._last_dispatch = self._clock()

        try:
            return await task()
        finally:
            self._slots.release()

    async def schedule_blocking(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        return await self.schedule(lambda: asyncio.to_thread(fn, *args, **kwargs))

    async def _wait_for_spacing(self) -> None:
        if self._last_dispatch is None or self.min_interval == 0:
            return
        delay = self._last_dispatch + self.min_interval - self._clock()
        if delay > 0:
            logger.debug("%s: waiting %.3fs before next dispatch", self.name, delay)
            await self._sleep(delay)


def build_etherscan_scheduler() -> RateLimitedScheduler:
    return RateLimitedScheduler(name="etherscan", max_concurrent=1, min_interval=0.2)


def build_coingecko_scheduler() -> RateLimitedScheduler:
    return RateLimitedScheduler(name="coingecko", max_concurrent=1, min_interval=0.6)


__all__ = ["RateLimitedScheduler", "build_coingecko_scheduler", "build_etherscan_scheduler"]
