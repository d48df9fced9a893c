"""Loop instructions a task body can yield.

These suspend the yielding frame onto the current loop instead of returning
a value to the driver:

    @task
    def poller():
        yield Sleep(0.5)          # park on the timer heap for half a second
        yield WaitUntil(deadline) # park until the loop clock reaches deadline
        yield Reschedule()        # go to the back of the ready queue
        return "done"

Each one is resumed with ``None`` by the loop.
"""

from __future__ import annotations

from dataclasses import dataclass


class LoopInstruction:
    """Base class for values that park the yielding frame on the loop."""

    __slots__ = ()


@dataclass(frozen=True)
class Sleep(LoopInstruction):
    """Park for ``seconds`` of loop-clock time. Must be non-negative."""

    seconds: float

    def __post_init__(self) -> None:
        if self.seconds < 0:
            raise ValueError(f"seconds must be non-negative, got {self.seconds}")


@dataclass(frozen=True)
class WaitUntil(LoopInstruction):
    """Park until the loop clock reaches ``when``.

    A ``when`` in the past fires on the next timer check.
    """

    when: float


@dataclass(frozen=True)
class Reschedule(LoopInstruction):
    """Give up the rest of this pass and rejoin the back of the ready queue."""


__all__ = ["LoopInstruction", "Reschedule", "Sleep", "WaitUntil"]
