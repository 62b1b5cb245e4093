"""Elapsed-time counter for batch feedback.

Runs as an asyncio task sampling the clock at a fixed interval. Used as an
async context manager so the task is cancelled on every exit path.
Purely observational: nothing reads it to make a control decision.
"""

from __future__ import annotations

import asyncio
import contextlib
import time


class ElapsedTimer:
    def __init__(self, interval_s: float = 0.1) -> None:
        self.interval_s = interval_s
        self._start: float | None = None
        self._elapsed = 0.0
        self._task: asyncio.Task[None] | None = None

    @property
    def elapsed(self) -> float:
        """Seconds since start, as of the last tick (final value once stopped)."""
        return self._elapsed

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _tick(self, started_at: float) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            self._elapsed = time.monotonic() - started_at

    def start(self) -> None:
        self._start = time.monotonic()
        self._elapsed = 0.0
        self._task = asyncio.create_task(self._tick(self._start))

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        if self._start is not None:
            self._elapsed = time.monotonic() - self._start

    async def __aenter__(self) -> ElapsedTimer:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
