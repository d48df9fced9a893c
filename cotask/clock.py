"""Virtual time for driving a loop without real waiting."""

from __future__ import annotations


class SimulatedClock:
    """Manually advanced clock usable as both ``clock`` and ``idle`` of a ``Loop``.

    ``sleep`` advances virtual time instead of blocking, so a loop built as
    ``Loop(clock=clock, idle=clock.sleep)`` jumps straight to each timer.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)

    def __call__(self) -> float:
        return self._now

    @property
    def now(self) -> float:
        return self._now

    def sleep(self, delay: float) -> None:
        self.advance(delay)

    def advance(self, delta: float) -> None:
        if delta < 0:
            raise ValueError(f"Cannot move simulated time backwards by {delta}")
        self._now += delta

    def set_time(self, when: float) -> None:
        if when < self._now:
            raise ValueError(f"Cannot move simulated time back from {self._now} to {when}")
        self._now = float(when)

    def __repr__(self) -> str:
        return f"SimulatedClock(now={self._now})"


__all__ = ["SimulatedClock"]
