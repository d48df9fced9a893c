"""
Ready-queue + timer-heap loop.

The loop drives frames that were handed to it (by ``schedule``/``spawn`` or by
a body yielding ``Sleep``/``WaitUntil``/``Reschedule``) until both structures
are empty. It never owns frames: entries are transient references, and the
task handles behind them must outlive the entries.

Each pass of ``run()``:

1. Drains a snapshot of the ready queue in FIFO order, resuming each entry
   once. Anything scheduled during the pass waits for the next pass.
2. If the ready queue is then empty, moves every due timer (expiry <= now)
   into the ready queue in expiry order, ties broken by insertion order.
   If none are due, the idle collaborator is asked to wait for
   ``earliest_expiry - now`` (clamped to zero).
"""

from __future__ import annotations

import heapq
import itertools
import logging
import time
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Protocol

from cotask import config
from cotask.errors import LoopStalledError
from cotask.frame import FrameId, FrameTable
from cotask.protocol import drive

logger = logging.getLogger(__name__)


class Resumable(Protocol):
    """Anything the loop can drive: task handles and frame references."""

    def resume(self) -> None: ...

    def is_done(self) -> bool: ...


@dataclass(frozen=True)
class FrameRef:
    """Non-owning reference to a frame, resumed on behalf of the loop.

    ``token`` is set only on the entry created when the frame parked; that
    entry alone may wake it.
    """

    table: FrameTable = field(repr=False, compare=False)
    frame_id: FrameId
    token: int | None = None

    def resume(self) -> None:
        drive(self.table, self.frame_id, from_scheduler=True, token=self.token)

    def is_done(self) -> bool:
        return self.table.get(self.frame_id).is_complete()


@dataclass(order=True)
class TimerEntry:
    """Timer heap entry ordered by expiry, then by insertion sequence."""

    when: float
    sequence: int
    target: Resumable = field(compare=False)


class Loop:
    """Single-threaded cooperative scheduler.

    Args:
        clock: Returns the current time in seconds. Defaults to ``time.monotonic``.
        idle: Called with a delay when only future timers remain. Defaults
            to ``time.sleep``; a ``SimulatedClock`` advances virtual time instead.
        max_passes: Upper bound on passes per ``run()``; defaults to
            ``COTASK_MAX_PASSES``.
    """

    def __init__(
        self,
        clock: Callable[[], float] | None = None,
        idle: Callable[[float], None] | None = None,
        max_passes: int | None = None,
    ) -> None:
        self._clock = clock if clock is not None else time.monotonic
        self._idle = idle if idle is not None else time.sleep
        self._max_passes = max_passes if max_passes is not None else config.MAX_PASSES
        self._ready: deque[Resumable] = deque()
        self._timers: list[TimerEntry] = []
        self._seq = itertools.count()

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def time(self) -> float:
        return self._clock()

    def schedule(self, target: Resumable) -> None:
        """Append ``target`` to the back of the ready queue."""
        self._ready.append(target)

    def schedule_at(self, when: float, target: Resumable) -> None:
        """Insert ``target`` into the timer heap, due at ``when``."""
        heapq.heappush(self._timers, TimerEntry(when, next(self._seq), target))

    def schedule_after(self, delay: float, target: Resumable) -> None:
        if delay < 0:
            raise ValueError(f"delay must be non-negative, got {delay}")
        self.schedule_at(self.time() + delay, target)

    def spawn(self, task: Resumable) -> Resumable:
        """Schedule a task for its first resume and hand it back.

        The caller keeps the returned handle alive until the loop is done
        with it.
        """
        ref = getattr(task, "ref", None)
        self.schedule(ref() if callable(ref) else task)
        return task

    @property
    def ready_count(self) -> int:
        return len(self._ready)

    @property
    def timer_count(self) -> int:
        return len(self._timers)

    def is_idle(self) -> bool:
        return not self._ready and not self._timers

    def next_delay(self) -> float | None:
        """Seconds until the earliest timer is due, or ``None`` without timers."""
        if not self._timers:
            return None
        return max(0.0, self._timers[0].when - self.time())

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    def run_once(self) -> float | None:
        """Run one pass.

        Returns:
            The idle delay the driver may wait before the next pass when only
            future timers remain, otherwise ``None``.
        """
        with self.activate():
            return self._pass()

    def _pass(self) -> float | None:
        snapshot = len(self._ready)
        for _ in range(snapshot):
            target = self._ready.popleft()
            if target.is_done():
                logger.debug("Skipping completed entry %r", target)
                continue
            target.resume()

        if self._ready:
            return None
        self._promote_due_timers()
        if self._ready:
            return None
        return self.next_delay()

    def _promote_due_timers(self) -> None:
        now = self.time()
        while self._timers and self._timers[0].when <= now:
            entry = heapq.heappop(self._timers)
            self._ready.append(entry.target)

    @contextmanager
    def activate(self) -> Iterator[Loop]:
        """Make this the loop that parked frames land on, for the block's duration."""
        global _running_loop

        previous, _running_loop = _running_loop, self
        try:
            yield self
        finally:
            _running_loop = previous

    def run(self) -> None:
        """Run passes until the ready queue and the timer heap are both empty."""
        passes = 0
        with self.activate():
            while not self.is_idle():
                if self._max_passes is not None and passes >= self._max_passes:
                    raise LoopStalledError(self._max_passes, len(self._ready), len(self._timers))
                delay = self._pass()
                passes += 1
                if delay is not None and delay > 0:
                    if config.DEBUG_TRANSFERS:
                        logger.debug("Loop idle for %.6fs", delay)
                    self._idle(delay)
        logger.debug("Loop drained after %d passes", passes)


_global_loop: Loop | None = None
_running_loop: Loop | None = None


def get_global_loop() -> Loop:
    """Process-wide default loop, created on first use."""
    global _global_loop

    if _global_loop is None:
        _global_loop = Loop()
    return _global_loop


def current_loop() -> Loop:
    """The loop inside ``run()`` right now, else the global loop."""
    if _running_loop is not None:
        return _running_loop
    return get_global_loop()


__all__ = [
    "FrameRef",
    "Loop",
    "Resumable",
    "TimerEntry",
    "current_loop",
    "get_global_loop",
]
