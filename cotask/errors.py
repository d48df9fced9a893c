"""Error types for the cotask runtime.

Two kinds of failure travel through the runtime:

- Computation errors are ordinary exceptions raised inside a task body. They
  are captured at the frame boundary, stored unwrapped, and re-raised lazily
  by ``Task.result()`` or at the await point of the caller.
- Usage errors are precondition violations by the code driving the runtime.
  They are raised immediately and never caught by the runtime itself.
"""

from __future__ import annotations

from typing import Any


class CotaskError(Exception):
    """Base class for all errors raised by the runtime itself."""


class UsageError(CotaskError):
    """A caller violated a precondition of the frame/task protocol."""


class FrameCompletedError(UsageError):
    """Raised when a completed frame would be resumed or yielded into again."""

    def __init__(self, frame_id: Any, operation: str = "resume") -> None:
        self.frame_id = frame_id
        self.operation = operation
        super().__init__(f"Cannot {operation} frame {frame_id}: frame already completed")


class DoubleCompletionError(UsageError):
    """Raised when a frame would be completed a second time."""

    def __init__(self, frame_id: Any) -> None:
        self.frame_id = frame_id
        super().__init__(f"Frame {frame_id} is already complete")


class ContinuationAlreadyAttachedError(UsageError):
    """Raised when a second caller tries to await a frame that already has one."""

    def __init__(self, frame_id: Any, existing: Any, requested: Any) -> None:
        self.frame_id = frame_id
        self.existing = existing
        self.requested = requested
        super().__init__(
            f"Frame {frame_id} already continues into frame {existing}; "
            f"cannot also continue into frame {requested}"
        )


class DanglingFrameError(UsageError, LookupError):
    """Raised when a frame id no longer refers to a live frame.

    This is the detectable form of a dangling continuation: the owning task
    handle was closed while something still referred to its frame.
    """

    def __init__(self, frame_id: Any) -> None:
        self.frame_id = frame_id
        super().__init__(f"Frame {frame_id} has been released by its owner")


class TaskReleasedError(UsageError):
    """Raised when a task handle that no longer owns a frame is used."""


class TaskCopyError(UsageError, TypeError):
    """Raised when a task handle is copied; ownership can only be moved."""


class FrameParkedError(UsageError):
    """Raised when a frame waiting on the loop is resumed from outside the loop."""

    def __init__(self, frame_id: Any) -> None:
        self.frame_id = frame_id
        super().__init__(
            f"Frame {frame_id} is parked on the loop and can only be woken by it"
        )


class AwaitCycleError(UsageError):
    """Raised when a frame awaits a task that is (transitively) awaiting it."""

    def __init__(self, caller: Any, callee: Any) -> None:
        self.caller = caller
        self.callee = callee
        super().__init__(f"Frame {caller} cannot await frame {callee}: await cycle")


class LoopStalledError(CotaskError):
    """Raised when ``Loop.run()`` exceeds its configured pass limit."""

    def __init__(self, max_passes: int, ready: int, timers: int) -> None:
        self.max_passes = max_passes
        self.ready = ready
        self.timers = timers
        super().__init__(
            f"Loop did not drain within {max_passes} passes "
            f"({ready} ready, {timers} timers pending)\n"
            f"Hint: raise COTASK_MAX_PASSES or check for tasks that reschedule forever"
        )


__all__ = [
    "AwaitCycleError",
    "ContinuationAlreadyAttachedError",
    "CotaskError",
    "DanglingFrameError",
    "DoubleCompletionError",
    "FrameCompletedError",
    "FrameParkedError",
    "LoopStalledError",
    "TaskCopyError",
    "TaskReleasedError",
    "UsageError",
]
