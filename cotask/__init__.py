"""
cotask: a single-threaded cooperative task runtime.

Task bodies are generator functions. A body suspends by yielding: a plain
value is an intermediate result, a ``Task`` is awaited (the callee runs
immediately and its result or error comes back at the yield), and the loop
instructions ``Sleep``/``WaitUntil``/``Reschedule`` park the frame on the
current ``Loop``.

    from cotask import Loop, task

    @task
    def factorial(n):
        if n <= 1:
            return 1
        return n * (yield factorial(n - 1))

    t = factorial(5)
    t.resume()
    assert t.result() == 120
"""

from cotask.clock import SimulatedClock
from cotask.errors import (
    AwaitCycleError,
    ContinuationAlreadyAttachedError,
    CotaskError,
    DanglingFrameError,
    DoubleCompletionError,
    FrameCompletedError,
    FrameParkedError,
    LoopStalledError,
    TaskCopyError,
    TaskReleasedError,
    UsageError,
)
from cotask.frame import RETURN_TO_SCHEDULER, Frame, FrameId, FrameTable, default_table
from cotask.instructions import LoopInstruction, Reschedule, Sleep, WaitUntil
from cotask.loop import FrameRef, Loop, Resumable, TimerEntry, current_loop, get_global_loop
from cotask.outcome import NOTHING, Err, Maybe, Nothing, Ok, Result, Some
from cotask.protocol import AwaitOutcome, ascend, descend, drive
from cotask.task import Task, create, task

__version__ = "0.1.0"

__all__ = [
    "NOTHING",
    "RETURN_TO_SCHEDULER",
    "AwaitCycleError",
    "AwaitOutcome",
    "ContinuationAlreadyAttachedError",
    "CotaskError",
    "DanglingFrameError",
    "DoubleCompletionError",
    "Err",
    "Frame",
    "FrameCompletedError",
    "FrameId",
    "FrameParkedError",
    "FrameRef",
    "FrameTable",
    "Loop",
    "LoopInstruction",
    "LoopStalledError",
    "Maybe",
    "Nothing",
    "Ok",
    "Reschedule",
    "Result",
    "Resumable",
    "SimulatedClock",
    "Sleep",
    "Some",
    "Task",
    "TaskCopyError",
    "TaskReleasedError",
    "TimerEntry",
    "UsageError",
    "WaitUntil",
    "ascend",
    "create",
    "current_loop",
    "default_table",
    "descend",
    "drive",
    "get_global_loop",
    "task",
]
