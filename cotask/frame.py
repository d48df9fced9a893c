"""Frames and the frame table.

A frame is the suspended state of one task body plus its completion slot:

- the body generator, started lazily on the first resume
- a completion flag that flips false -> true exactly once
- either a result or an error, never both
- the most recently yielded value
- a write-once continuation: the id of the frame to resume on completion

Frames live in a ``FrameTable`` and refer to each other only by ``FrameId``.
A continuation that outlives its target turns into a ``DanglingFrameError``
on lookup instead of a stale object reference.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Generator, Iterator
from dataclasses import dataclass, field
from typing import Any, Final, NewType

from cotask.errors import (
    ContinuationAlreadyAttachedError,
    DanglingFrameError,
    DoubleCompletionError,
    FrameCompletedError,
    UsageError,
)
from cotask.outcome import NOTHING, Err, Maybe, Ok, Result, Some

logger = logging.getLogger(__name__)

FrameId = NewType("FrameId", int)


class _ReturnToScheduler:
    """Continuation sentinel: nobody is waiting, control goes back to the driver."""

    _instance: _ReturnToScheduler | None = None

    def __new__(cls) -> _ReturnToScheduler:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "RETURN_TO_SCHEDULER"

    def __bool__(self) -> bool:
        return False


RETURN_TO_SCHEDULER: Final = _ReturnToScheduler()

Continuation = FrameId | _ReturnToScheduler


@dataclass(eq=False)
class Frame:
    """Suspended state and completion slot for one task body."""

    frame_id: FrameId
    generator: Generator[Any, Any, Any]
    name: str = "<task>"
    continuation: Continuation = RETURN_TO_SCHEDULER
    # Callee this frame is suspended on, plus the handle that keeps it alive
    awaiting: FrameId | None = None
    awaiting_owner: Any = field(default=None, repr=False)
    started: bool = False
    running: bool = False
    parked: bool = False
    # Identifies the loop entry allowed to wake a parked frame
    park_token: int | None = None
    _complete: bool = field(default=False, repr=False)
    _value: Maybe[Any] = field(default=NOTHING, repr=False)
    _error: Exception | None = field(default=None, repr=False)

    # ------------------------------------------------------------------
    # Completion contract
    # ------------------------------------------------------------------

    def mark_return(self, value: Any) -> None:
        if self._complete:
            raise DoubleCompletionError(self.frame_id)
        self._complete = True
        self._value = Some(value)

    def mark_yield(self, value: Any) -> None:
        if self._complete:
            raise FrameCompletedError(self.frame_id, operation="yield from")
        self._value = Some(value)

    def mark_failed(self, error: Exception) -> None:
        if self._complete:
            raise DoubleCompletionError(self.frame_id)
        self._complete = True
        self._value = NOTHING
        self._error = error

    def current_value(self) -> Maybe[Any]:
        """Last yielded value, or the result once returned."""
        return self._value

    def is_complete(self) -> bool:
        return self._complete

    @property
    def error(self) -> Exception | None:
        return self._error

    def attach_continuation(self, caller: FrameId) -> None:
        """Record ``caller`` as the frame to resume when this one completes.

        Set-once: a second attach, or an attach after completion, is a
        usage error.
        """
        if self._complete:
            raise FrameCompletedError(self.frame_id, operation="attach a continuation to")
        if self.continuation is not RETURN_TO_SCHEDULER:
            raise ContinuationAlreadyAttachedError(self.frame_id, self.continuation, caller)
        self.continuation = caller

    def outcome(self) -> Result[Any] | None:
        if not self._complete:
            return None
        if self._error is not None:
            return Err(self._error)
        return Ok(self._value.unwrap())

    def read_result(self) -> Any:
        """Return the stored result, re-raising the stored error if there is one."""
        if not self._complete:
            return None
        if self._error is not None:
            raise self._error
        return self._value.unwrap()


class FrameTable:
    """Arena that owns frame storage and hands out ``FrameId`` indices."""

    def __init__(self) -> None:
        self._frames: dict[FrameId, Frame] = {}
        self._ids = itertools.count(1)

    def allocate(self, generator: Generator[Any, Any, Any], name: str = "<task>") -> Frame:
        frame = Frame(frame_id=FrameId(next(self._ids)), generator=generator, name=name)
        self._frames[frame.frame_id] = frame
        return frame

    def get(self, frame_id: FrameId) -> Frame:
        try:
            return self._frames[frame_id]
        except KeyError:
            raise DanglingFrameError(frame_id) from None

    def release(self, frame_id: FrameId) -> None:
        """Drop a frame and close its generator. Only task handles call this."""
        frame = self._frames.pop(frame_id, None)
        if frame is None:
            raise DanglingFrameError(frame_id)
        if frame.running:
            self._frames[frame_id] = frame
            raise UsageError(f"Cannot release frame {frame_id} while it is running")
        if frame.started and not frame.is_complete():
            logger.debug("Releasing suspended frame %s (%s)", frame_id, frame.name)
        frame.generator.close()

    def __contains__(self, frame_id: object) -> bool:
        return frame_id in self._frames

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[Frame]:
        return iter(list(self._frames.values()))


_default_table = FrameTable()


def default_table() -> FrameTable:
    """Process-wide frame table used when ``create()`` is not given one."""
    return _default_table


__all__ = [
    "Continuation",
    "Frame",
    "FrameId",
    "FrameTable",
    "RETURN_TO_SCHEDULER",
    "default_table",
]
