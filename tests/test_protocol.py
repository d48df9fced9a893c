"""Tests for the call/return protocol and the trampoline driver."""

from __future__ import annotations

import logging

import pytest

from cotask import (
    RETURN_TO_SCHEDULER,
    AwaitCycleError,
    AwaitOutcome,
    ContinuationAlreadyAttachedError,
    FrameTable,
    Some,
    ascend,
    config,
    create,
    descend,
    drive,
)


def _idle():
    yield None


class TestDescend:
    def test_links_incomplete_callee(self, table: FrameTable):
        caller = table.allocate(_idle())
        callee = table.allocate(_idle())

        outcome = descend(table, caller, callee)

        assert outcome is AwaitOutcome.SUSPEND_AND_LINK
        assert callee.continuation == caller.frame_id
        assert caller.awaiting == callee.frame_id

    def test_completed_callee_short_circuits(self, table: FrameTable):
        caller = table.allocate(_idle())
        callee = table.allocate(_idle())
        callee.mark_return(7)

        outcome = descend(table, caller, callee)

        assert outcome is AwaitOutcome.READY
        assert callee.continuation is RETURN_TO_SCHEDULER

    def test_self_await_is_a_cycle(self, table: FrameTable):
        frame = table.allocate(_idle())

        with pytest.raises(AwaitCycleError):
            descend(table, frame, frame)

    def test_transitive_cycle_is_rejected(self, table: FrameTable):
        a = table.allocate(_idle())
        b = table.allocate(_idle())
        descend(table, a, b)

        with pytest.raises(AwaitCycleError):
            descend(table, b, a)
        assert a.continuation is RETURN_TO_SCHEDULER


class TestAscend:
    def test_returns_waiting_caller(self, table: FrameTable):
        caller = table.allocate(_idle())
        callee = table.allocate(_idle())
        descend(table, caller, callee)
        callee.mark_return(1)

        assert ascend(table, callee) is caller

    def test_without_continuation_goes_to_driver(self, table: FrameTable):
        frame = table.allocate(_idle())
        frame.mark_return(1)

        assert ascend(table, frame) is None

    def test_completed_caller_goes_to_driver(self, table: FrameTable):
        caller = table.allocate(_idle())
        callee = table.allocate(_idle())
        descend(table, caller, callee)
        caller.mark_failed(RuntimeError("gone"))
        callee.mark_return(1)

        assert ascend(table, callee) is None

    def test_released_caller_never_raises(self, table: FrameTable):
        caller = table.allocate(_idle())
        callee = table.allocate(_idle())
        descend(table, caller, callee)
        table.release(caller.frame_id)
        callee.mark_return(1)

        assert ascend(table, callee) is None


class TestTrampoline:
    def test_deep_chain_completes_in_one_resume(self, table: FrameTable):
        def factorial(n):
            if n <= 1:
                return 1
            sub = yield create(factorial, n - 1, table=table)
            return n * sub

        top = create(factorial, 5, table=table)
        top.resume()

        assert top.is_done()
        assert top.result() == 120

    def test_chain_deeper_than_recursion_limit(self, table: FrameTable):
        def depth(n):
            if n == 0:
                return 0
            return 1 + (yield create(depth, n - 1, table=table))

        top = create(depth, 5000, table=table)
        top.resume()

        assert top.result() == 5000

    def test_finished_callees_are_released(self, table: FrameTable):
        def leaf():
            return "leaf"
            yield

        def root():
            return (yield create(leaf, table=table))

        top = create(root, table=table)
        top.resume()

        assert top.result() == "leaf"
        assert len(table) == 1

    def test_error_thrown_at_await_point(self, table: FrameTable):
        def failing():
            raise KeyError("missing")
            yield

        def handler():
            try:
                yield create(failing, table=table)
            except KeyError as exc:
                return f"handled {exc.args[0]}"
            return "unreachable"

        top = create(handler, table=table)
        top.resume()

        assert top.result() == "handled missing"

    def test_ready_callee_resumes_caller_synchronously(self, table: FrameTable):
        calls = []

        def child():
            calls.append("child")
            return 21
            yield

        sub = create(child, table=table)
        sub.resume()

        def parent():
            value = yield sub
            return value * 2

        top = create(parent, table=table)
        top.resume()

        assert top.result() == 42
        assert calls == ["child"]
        assert table.get(sub.frame_id).continuation is RETURN_TO_SCHEDULER

    def test_second_waiter_on_same_callee_is_rejected(self, table: FrameTable):
        def shared():
            yield "waiting"
            return "shared"

        sub = create(shared, table=table)

        def waiter():
            return (yield sub)

        first = create(waiter, table=table)
        second = create(waiter, table=table)
        first.resume()

        with pytest.raises(ContinuationAlreadyAttachedError):
            second.resume()

    def test_drive_by_frame_id(self, table: FrameTable):
        def body():
            yield "a"
            return "b"

        t = create(body, table=table)

        drive(table, t.frame_id)
        assert t.current_value() == Some("a")
        drive(table, t.frame_id)
        assert t.result() == "b"


class TestTransferLogging:
    def test_debug_flag_logs_transfers(self, table: FrameTable, monkeypatch, caplog):
        monkeypatch.setattr(config, "DEBUG_TRANSFERS", True)
        caplog.set_level(logging.DEBUG, logger="cotask.protocol")

        def child():
            return 1
            yield

        def parent():
            return (yield create(child, table=table))

        create(parent, table=table).resume()

        assert "awaits frame" in caplog.text
        assert "completed, returning to" in caplog.text

    def test_quiet_by_default(self, table: FrameTable, monkeypatch, caplog):
        monkeypatch.setattr(config, "DEBUG_TRANSFERS", False)
        caplog.set_level(logging.DEBUG, logger="cotask.protocol")

        def child():
            return 1
            yield

        def parent():
            return (yield create(child, table=table))

        create(parent, table=table).resume()

        assert "awaits frame" not in caplog.text
