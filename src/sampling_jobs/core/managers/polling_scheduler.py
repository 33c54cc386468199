"""Fixed-interval polling on the event loop.

Each started poll runs as one asyncio task that awaits its tick before
scheduling the next, so ticks never overlap. A tick that overruns the
interval makes the loop skip the missed slots instead of firing them
back to back.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, Set

from sampling_jobs.core.settings import logger

# Returns True once a terminal result was observed
PollFn = Callable[[], Awaitable[bool]]


class PollHandle:
    """Handle to one running poll loop.

    `stop()` never waits. If a tick is in flight its request is allowed to
    finish (its result is the caller's to discard) and the loop exits right
    after; otherwise the sleeping task is cancelled immediately.
    """

    def __init__(self, name: str):
        self.name = name
        self.ticks = 0
        self._stopped = False
        self._in_flight = False
        self._task: Optional[asyncio.Task] = None

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        if self._task is not None and not self._task.done() and not self._in_flight:
            self._task.cancel()
        logger.debug(f"[poll:stop] name={self.name} ticks={self.ticks} in_flight={self._in_flight}")

    async def wait(self) -> None:
        """Wait until the loop has exited (naturally or through stop)."""
        if self._task is None:
            return
        try:
            await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise


class PollingScheduler:
    """Issues poll ticks on a fixed interval until terminal or stopped.

    Attributes:
        interval: Seconds between the starts of consecutive ticks
        initial_delay: Seconds before the first tick
    """

    def __init__(self, interval: float, initial_delay: float = 0.1):
        if interval <= 0:
            raise ValueError("interval must be positive")
        if initial_delay < 0:
            raise ValueError("initial_delay must not be negative")
        self.interval = interval
        self.initial_delay = initial_delay
        self._handles: Set[PollHandle] = set()

    @property
    def active(self) -> int:
        return len(self._handles)

    def start(self, poll_fn: PollFn, name: str = "poll") -> PollHandle:
        handle = PollHandle(name)
        task = asyncio.create_task(self._run(handle, poll_fn), name=f"poll:{name}")
        handle._task = task
        self._handles.add(handle)
        task.add_done_callback(lambda t: self._handles.discard(handle))
        logger.debug(
            f"[poll:start] name={name} interval={self.interval}s initial_delay={self.initial_delay}s"
        )
        return handle

    def stop(self, handle: Optional[PollHandle]) -> None:
        if handle is not None:
            handle.stop()

    async def _run(self, handle: PollHandle, poll_fn: PollFn) -> None:
        loop = asyncio.get_running_loop()
        try:
            await asyncio.sleep(self.initial_delay)
            next_at = loop.time()
            while not handle.stopped:
                handle._in_flight = True
                try:
                    terminal = await poll_fn()
                except Exception as exc:
                    logger.error(f"[poll:tick] unexpected error name={handle.name} error={exc}")
                    terminal = False
                finally:
                    handle._in_flight = False
                handle.ticks += 1

                if terminal:
                    logger.debug(f"[poll:tick] terminal result name={handle.name} ticks={handle.ticks}")
                    handle._stopped = True
                    return
                if handle.stopped:
                    return

                next_at += self.interval
                now = loop.time()
                if now > next_at:
                    skipped = int((now - next_at) // self.interval) + 1
                    next_at += skipped * self.interval
                    logger.debug(f"[poll:tick] overran interval, skipping {skipped} slot(s) name={handle.name}")
                await asyncio.sleep(next_at - now)
        except asyncio.CancelledError:
            logger.debug(f"[poll:cancel] name={handle.name} ticks={handle.ticks}")
            raise

    async def shutdown(self) -> None:
        """Stop every loop, cancelling in-flight ticks, and wait for them."""
        handles = list(self._handles)
        tasks = []
        for handle in handles:
            handle.stop()
            if handle._task is not None and not handle._task.done():
                handle._task.cancel()
                tasks.append(handle._task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
