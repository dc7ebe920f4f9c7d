"""Host-driven clock for layout ticks and timed animation callbacks.

Nothing in the visualizer core owns a real timer. The host render loop calls
:meth:`Scheduler.tick` with the elapsed milliseconds, which runs every frame
callback once and then fires due timers in deadline order.
"""
from __future__ import annotations

import heapq
import itertools
from dataclasses import dataclass, field
from typing import Callable, Hashable, Optional

from repoverse.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class TimerHandle:
    """Cancellable reference to a scheduled callback."""

    callback: Callable[[], None]
    deadline: Optional[float] = None
    owner: Hashable | None = None
    cancelled: bool = False
    fired: bool = False

    @property
    def active(self) -> bool:
        return not self.cancelled and not self.fired

    def cancel(self) -> None:
        self.cancelled = True


@dataclass(order=True)
class _Entry:
    deadline: float
    seq: int
    handle: TimerHandle = field(compare=False)


class Scheduler:
    """Priority queue of ``(deadline, callback)`` pairs advanced by ``tick``."""

    def __init__(self) -> None:
        self._now = 0.0
        self._queue: list[_Entry] = []
        self._frame_callbacks: list[TimerHandle] = []
        self._counter = itertools.count()

    @property
    def now(self) -> float:
        return self._now

    def call_later(
        self,
        delay_ms: float,
        callback: Callable[[], None],
        owner: Hashable | None = None,
    ) -> TimerHandle:
        """Run ``callback`` once ``delay_ms`` milliseconds from now."""

        deadline = self._now + max(0.0, float(delay_ms))
        handle = TimerHandle(callback=callback, deadline=deadline, owner=owner)
        heapq.heappush(self._queue, _Entry(deadline, next(self._counter), handle))
        return handle

    def add_frame_callback(
        self,
        callback: Callable[[], None],
        owner: Hashable | None = None,
    ) -> TimerHandle:
        """Run ``callback`` once per tick until the handle is cancelled."""

        handle = TimerHandle(callback=callback, owner=owner)
        self._frame_callbacks.append(handle)
        return handle

    def cancel_all(self, owner: Hashable) -> int:
        """Cancel every live handle registered for ``owner``."""

        cancelled = 0
        for handle in self._frame_callbacks:
            if handle.owner == owner and handle.active:
                handle.cancel()
                cancelled += 1
        for entry in self._queue:
            if entry.handle.owner == owner and entry.handle.active:
                entry.handle.cancel()
                cancelled += 1
        if cancelled:
            logger.debug("Cancelled %d scheduled callbacks for %r", cancelled, owner)
        return cancelled

    def pending(self) -> int:
        """Number of timers that have not fired or been cancelled."""

        return sum(1 for entry in self._queue if entry.handle.active)

    def tick(self, dt_ms: float) -> int:
        """Advance the clock by ``dt_ms`` and run everything that became due."""

        self._now += max(0.0, float(dt_ms))
        ran = 0

        self._frame_callbacks = [handle for handle in self._frame_callbacks if handle.active]
        for handle in list(self._frame_callbacks):
            if handle.active:
                handle.callback()
                ran += 1

        while self._queue and self._queue[0].deadline <= self._now:
            entry = heapq.heappop(self._queue)
            handle = entry.handle
            if not handle.active:
                continue
            handle.fired = True
            handle.callback()
            ran += 1
        return ran

    def advance(self, total_ms: float, step_ms: float = 16.0) -> int:
        """Tick repeatedly until ``total_ms`` has elapsed."""

        ran = 0
        remaining = float(total_ms)
        while remaining > 0:
            step = min(step_ms, remaining)
            ran += self.tick(step)
            remaining -= step
        return ran
