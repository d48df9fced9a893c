"""
Task handles: the exclusive owners of frames.

A ``Task`` is the only legitimate way to resume or query a frame from outside
the protocol. Ownership is single: ``move()`` transfers it and empties the
source, copying is rejected, and ``close()`` (or garbage collection) releases
the frame exactly once.

Typical use::

    @task
    def factorial(n: int):
        if n <= 1:
            return 1
        sub = yield factorial(n - 1)
        return n * sub

    with factorial(5) as t:
        t.resume()
        assert t.result() == 120
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Generator
from functools import wraps
from typing import Any, Generic, ParamSpec, TypeVar

from cotask.errors import TaskCopyError, TaskReleasedError, UsageError
from cotask.frame import RETURN_TO_SCHEDULER, Frame, FrameId, FrameTable, default_table
from cotask.outcome import Maybe, Result
from cotask.protocol import drive, innermost

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

TaskBody = Generator[Any, Any, T]


def _to_generator(body: Any, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Generator[Any, Any, Any]:
    if inspect.isgenerator(body):
        if args or kwargs:
            raise TypeError("Arguments cannot be passed with an already created generator")
        return body
    if callable(body):
        result = body(*args, **kwargs)
        if inspect.isgenerator(result):
            return result
        raise TypeError(f"Task body did not return a generator, got {type(result).__name__}")
    raise TypeError(f"Cannot create a task from {type(body).__name__}")


def _body_name(body: Any) -> str:
    return getattr(body, "__qualname__", None) or getattr(body, "__name__", None) or repr(body)


class Task(Generic[T]):
    """Exclusive owner of one frame.

    Not thread-safe; the runtime is single-threaded by design of the protocol.
    """

    def __init__(self, table: FrameTable, frame_id: FrameId) -> None:
        self._table = table
        self._frame_id: FrameId | None = frame_id

    # ------------------------------------------------------------------
    # Ownership
    # ------------------------------------------------------------------

    @property
    def frame_id(self) -> FrameId | None:
        """Id of the owned frame, or ``None`` once moved or closed."""
        return self._frame_id

    @property
    def table(self) -> FrameTable:
        return self._table

    def owns_frame(self) -> bool:
        return self._frame_id is not None

    def _frame(self) -> Frame:
        if self._frame_id is None:
            raise TaskReleasedError("Task handle no longer owns a frame (moved or closed)")
        return self._table.get(self._frame_id)

    def move(self) -> Task[T]:
        """Transfer ownership to a new handle; this handle becomes empty."""
        frame_id = self._frame().frame_id
        self._frame_id = None
        return Task(self._table, frame_id)

    def close(self) -> None:
        """Release the owned frame. Calling it again is a no-op."""
        if self._frame_id is None:
            return
        frame_id = self._frame_id
        if frame_id not in self._table:
            self._frame_id = None
            return
        frame = self._table.get(frame_id)
        continuation = frame.continuation
        if (
            continuation is not RETURN_TO_SCHEDULER
            and continuation in self._table
            and self._table.get(continuation).awaiting == frame_id
        ):
            logger.warning(
                "Closing task %s (frame %s) while frame %s is still waiting on it",
                frame.name,
                frame_id,
                continuation,
            )
        self._table.release(frame_id)
        self._frame_id = None

    def __enter__(self) -> Task[T]:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __del__(self) -> None:
        if getattr(self, "_frame_id", None) is not None:
            self.close()

    def __copy__(self) -> Task[T]:
        raise TaskCopyError("Task handles cannot be copied; use move() to transfer ownership")

    def __deepcopy__(self, memo: dict[int, Any]) -> Task[T]:
        raise TaskCopyError("Task handles cannot be copied; use move() to transfer ownership")

    def __reduce__(self) -> Any:
        raise TaskCopyError("Task handles cannot be pickled")

    # ------------------------------------------------------------------
    # Driving and observing
    # ------------------------------------------------------------------

    def resume(self) -> None:
        """Advance the chain rooted at this task to its next suspension point.

        Raises ``FrameCompletedError`` if the task already finished; errors
        raised by the body are stored, not raised here.
        """
        drive(self._table, self._frame().frame_id)

    def is_done(self) -> bool:
        return self._frame().is_complete()

    def result(self) -> T | None:
        """Return the result, re-raise the stored error, or ``None`` if not done."""
        return self._frame().read_result()

    def outcome(self) -> Result[T] | None:
        """``Ok``/``Err`` once done, ``None`` before."""
        return self._frame().outcome()

    def current_value(self) -> Maybe[Any]:
        """Latest value yielded anywhere in this task's active await chain."""
        frame = self._frame()
        if frame.is_complete():
            return frame.current_value()
        return innermost(self._table, frame).current_value()

    def run_to_completion(self) -> T | None:
        """Resume until done and return ``result()``.

        Only for tasks that never park on the loop; a parked frame raises
        ``FrameParkedError``.
        """
        while not self.is_done():
            self.resume()
        return self.result()

    def ref(self) -> Any:
        """Non-owning, resumable reference for scheduling on a loop."""
        from cotask.loop import FrameRef

        return FrameRef(self._table, self._frame().frame_id)

    def awaitable_frame(self, table: FrameTable) -> Frame:
        """Frame targeted by the call protocol when a body yields this task."""
        if table is not self._table:
            raise UsageError("Cannot await a task that belongs to a different frame table")
        return self._frame()

    def __repr__(self) -> str:
        if self._frame_id is None:
            return "Task(<released>)"
        if self._frame_id not in self._table:
            return f"Task(frame={self._frame_id}, <dangling>)"
        frame = self._table.get(self._frame_id)
        state = "done" if frame.is_complete() else "suspended"
        return f"Task({frame.name}, frame={self._frame_id}, {state})"


def create(
    body: Callable[..., TaskBody[T]] | TaskBody[T],
    /,
    *args: Any,
    table: FrameTable | None = None,
    **kwargs: Any,
) -> Task[T]:
    """Allocate a suspended frame for ``body`` and return the owning handle.

    ``body`` is a generator function (called with ``args``/``kwargs``) or an
    already created generator. Nothing in the body runs before the first
    ``resume()``.
    """
    generator = _to_generator(body, args, kwargs)
    frame_table = table if table is not None else default_table()
    frame = frame_table.allocate(generator, name=_body_name(body))
    return Task(frame_table, frame.frame_id)


def task(func: Callable[P, TaskBody[T]]) -> Callable[P, Task[T]]:
    """Decorator turning a generator function into a task factory.

    Calling the decorated function creates a new suspended ``Task``; the body
    starts on the first ``resume()`` or when another task awaits it.
    """
    if not inspect.isgeneratorfunction(inspect.unwrap(func)):
        raise TypeError(f"@task requires a generator function, got {func!r}")

    @wraps(func)
    def factory(*args: P.args, **kwargs: P.kwargs) -> Task[T]:
        return create(func, *args, **kwargs)

    factory.original_func = func  # type: ignore[attr-defined]
    return factory


__all__ = ["Task", "TaskBody", "create", "task"]
