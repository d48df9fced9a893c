"""Call/return protocol and the trampoline that drives it.

Every control transfer between frames is expressed as data: each step of a
frame returns the next frame to step (or ``None`` to hand control back to
whoever called ``resume()``), and ``drive`` loops over those steps. A chain
of N nested awaits therefore costs N loop iterations, not N native stack
levels.

Suspension points a body can reach:

- ``yield task``: Call protocol (``descend``). The callee runs immediately
  as part of the same ``drive``, linked back via its continuation.
- ``return`` / raised exception: Return protocol (``ascend``). Control moves
  to the continuation, or back to the driver when there is none.
- ``yield Sleep(...)`` / ``WaitUntil(...)`` / ``Reschedule()``: the frame is
  parked on the current loop and ``drive`` stops.
- ``yield value``: an intermediate value; ``drive`` stops.
"""

from __future__ import annotations

import itertools
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

from cotask import config
from cotask.errors import (
    AwaitCycleError,
    FrameCompletedError,
    FrameParkedError,
    UsageError,
)
from cotask.frame import RETURN_TO_SCHEDULER, Frame, FrameId, FrameTable
from cotask.instructions import LoopInstruction, Reschedule, Sleep, WaitUntil

if TYPE_CHECKING:
    from cotask.task import Task

logger = logging.getLogger(__name__)

_park_tokens = itertools.count(1)


class AwaitOutcome(Enum):
    """What a suspension point resolved to."""

    READY = "ready"
    SUSPEND_AND_LINK = "suspend_and_link"
    SUSPEND_TO_SCHEDULER = "suspend_to_scheduler"


# ============================================================================
# Call protocol (descend)
# ============================================================================


def descend(table: FrameTable, caller: Frame, callee: Frame) -> AwaitOutcome:
    """Link ``caller`` to ``callee`` for an await.

    A completed callee short-circuits: nothing is attached and the caller can
    read the result in the same step. Otherwise the caller becomes the
    callee's continuation and control should move into the callee.
    """
    if callee.frame_id == caller.frame_id:
        raise AwaitCycleError(caller.frame_id, callee.frame_id)
    if callee.is_complete():
        caller.awaiting = callee.frame_id
        return AwaitOutcome.READY
    _check_no_cycle(table, caller, callee)
    callee.attach_continuation(caller.frame_id)
    caller.awaiting = callee.frame_id
    return AwaitOutcome.SUSPEND_AND_LINK


def _check_no_cycle(table: FrameTable, caller: Frame, callee: Frame) -> None:
    frame_id = callee.awaiting
    while frame_id is not None:
        if frame_id == caller.frame_id:
            raise AwaitCycleError(caller.frame_id, callee.frame_id)
        frame_id = table.get(frame_id).awaiting
    if callee.running:
        raise AwaitCycleError(caller.frame_id, callee.frame_id)


# ============================================================================
# Return protocol (ascend)
# ============================================================================


def ascend(table: FrameTable, frame: Frame) -> Frame | None:
    """Pick the frame to continue with after ``frame`` completed.

    Never raises: a missing, released or already complete continuation just
    means control returns to the driver.
    """
    continuation = frame.continuation
    if continuation is RETURN_TO_SCHEDULER:
        return None
    if continuation not in table:
        logger.debug("Continuation %s of frame %s is gone", continuation, frame.frame_id)
        return None
    caller = table.get(continuation)
    if caller.is_complete():
        return None
    return caller


# ============================================================================
# Trampoline
# ============================================================================


def innermost(table: FrameTable, frame: Frame) -> Frame:
    """Follow the awaiting chain down to the frame that actually suspended."""
    while frame.awaiting is not None:
        callee = table.get(frame.awaiting)
        if callee.is_complete():
            break
        frame = callee
    return frame


def drive(
    table: FrameTable,
    frame_id: FrameId,
    *,
    from_scheduler: bool = False,
    token: int | None = None,
) -> None:
    """Run the chain rooted at ``frame_id`` until the next suspension point.

    A parked frame is only woken by the loop entry that parked it: the entry
    must name the parked frame itself and carry its park ``token``. Other
    loop entries reaching it are dropped; direct resumes raise
    ``FrameParkedError``.

    Computation errors never escape: they are stored on the failing frame and
    re-raised at the await point of its caller. Usage errors propagate.
    """
    frame = table.get(frame_id)
    if frame.is_complete():
        raise FrameCompletedError(frame_id)
    target = innermost(table, frame)
    if target.parked:
        if not from_scheduler:
            raise FrameParkedError(target.frame_id)
        if target is not frame or token is None or token != target.park_token:
            logger.debug(
                "Ignoring loop entry for frame %s: frame %s is parked", frame_id, target.frame_id
            )
            return
        target.parked = False
        target.park_token = None

    current: Frame | None = target
    while current is not None:
        current = _step(table, current)


def _take_input(table: FrameTable, frame: Frame) -> tuple[Any, Exception | None]:
    if frame.awaiting is None:
        return None, None
    callee = table.get(frame.awaiting)
    frame.awaiting = None
    frame.awaiting_owner = None
    if callee.error is not None:
        return None, callee.error
    return callee.current_value().unwrap(), None


def _step(table: FrameTable, frame: Frame) -> Frame | None:
    if frame.running:
        raise UsageError(f"Frame {frame.frame_id} ({frame.name}) is already running")
    value, error = _take_input(table, frame)
    if config.DEBUG_TRANSFERS:
        logger.debug("Stepping frame %s (%s)", frame.frame_id, frame.name)

    try:
        instruction = _advance(frame, value, error)
    except StopIteration as stop:
        frame.mark_return(stop.value)
        return _complete(table, frame)
    except UsageError as exc:
        # Misuse inside a body is not a computation error; it aborts the drive
        frame.mark_failed(exc)
        raise
    except Exception as exc:
        frame.mark_failed(exc)
        return _complete(table, frame)

    return _dispatch(table, frame, instruction)


def _advance(frame: Frame, value: Any, error: Exception | None) -> Any:
    frame.started = True
    frame.running = True
    try:
        if error is not None:
            return frame.generator.throw(error)
        return frame.generator.send(value)
    finally:
        frame.running = False


def _complete(table: FrameTable, frame: Frame) -> Frame | None:
    next_frame = ascend(table, frame)
    if config.DEBUG_TRANSFERS:
        target = next_frame.frame_id if next_frame is not None else "driver"
        logger.debug("Frame %s completed, returning to %s", frame.frame_id, target)
    return next_frame


def _dispatch(table: FrameTable, frame: Frame, instruction: Any) -> Frame | None:
    from cotask.task import Task

    if isinstance(instruction, Task):
        return _call(table, frame, instruction)
    if isinstance(instruction, LoopInstruction):
        park(table, frame, instruction)
        return None
    frame.mark_yield(instruction)
    return None


def _call(table: FrameTable, caller: Frame, task: Task[Any]) -> Frame | None:
    callee = task.awaitable_frame(table)
    outcome = descend(table, caller, callee)
    caller.awaiting_owner = task
    if outcome is AwaitOutcome.READY:
        return caller
    if config.DEBUG_TRANSFERS:
        logger.debug("Frame %s awaits frame %s", caller.frame_id, callee.frame_id)
    target = innermost(table, callee)
    if target.parked:
        # The loop will wake the callee; its completion ascends into the caller
        return None
    return target


def park(table: FrameTable, frame: Frame, instruction: LoopInstruction) -> AwaitOutcome:
    """Hand ``frame`` to the current loop; the loop will resume it later."""
    from cotask.loop import FrameRef, current_loop

    loop = current_loop()
    token = next(_park_tokens)
    ref = FrameRef(table, frame.frame_id, token=token)
    frame.parked = True
    frame.park_token = token
    if isinstance(instruction, Reschedule):
        loop.schedule(ref)
    elif isinstance(instruction, Sleep):
        loop.schedule_at(loop.time() + instruction.seconds, ref)
    elif isinstance(instruction, WaitUntil):
        loop.schedule_at(instruction.when, ref)
    else:
        raise TypeError(f"Unknown loop instruction: {type(instruction).__name__}")
    if config.DEBUG_TRANSFERS:
        logger.debug("Frame %s parked on loop: %r", frame.frame_id, instruction)
    return AwaitOutcome.SUSPEND_TO_SCHEDULER


__all__ = [
    "AwaitOutcome",
    "ascend",
    "descend",
    "drive",
    "innermost",
    "park",
]
