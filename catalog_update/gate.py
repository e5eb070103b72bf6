"""Admission gate bounding concurrent registry and API calls.

A counting semaphore with an explicit FIFO wait queue. Every network call
in the registry client enters the gate with ``async with gate:`` so the
slot is released on every exit path, including errors and timeouts.
"""

from __future__ import annotations

import asyncio
from collections import deque
from types import TracebackType


class AdmissionGate:
    """Lets at most ``limit`` holders in at once; waiters are served FIFO.

    Releasing a slot hands it directly to the oldest waiter, so a newly
    arriving caller can never overtake someone already queued.
    """

    def __init__(self, limit: int) -> None:
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        self._limit = limit
        self._running = 0
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def running(self) -> int:
        """Number of slots currently held."""
        return self._running

    @property
    def waiting(self) -> int:
        """Number of callers queued for a slot."""
        return len(self._waiters)

    async def acquire(self) -> None:
        """Wait for a free slot and take it."""
        if self._running < self._limit and not self._waiters:
            self._running += 1
            return

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # The slot was handed over just before cancellation; pass it on.
                self.release()
            elif waiter in self._waiters:
                self._waiters.remove(waiter)
            raise

    def release(self) -> None:
        """Give a slot back, handing it to the oldest waiter if any."""
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # Slot ownership transfers; the running count stays the same.
                waiter.set_result(None)
                return
        if self._running <= 0:
            raise RuntimeError("release() called more times than acquire()")
        self._running -= 1

    async def __aenter__(self) -> AdmissionGate:
        await self.acquire()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
