"""Result/Maybe values reported by frames and task handles."""

from __future__ import annotations

import pytest

from cotask import NOTHING, Err, FrameTable, Nothing, Ok, Some, create


def test_completed_frame_reports_ok(table: FrameTable):
    def body():
        return 3
        yield

    t = create(body, table=table)
    t.resume()

    outcome = t.outcome()
    assert outcome == Ok(3)
    assert outcome.is_ok()
    assert outcome.unwrap() == 3


def test_failed_frame_reports_err(table: FrameTable):
    error = KeyError("missing")

    def body():
        raise error
        yield

    t = create(body, table=table)
    t.resume()

    outcome = t.outcome()
    assert not outcome
    with pytest.raises(KeyError) as excinfo:
        outcome.unwrap()
    assert excinfo.value is error


def test_yielded_none_is_distinct_from_nothing(table: FrameTable):
    def body():
        yield None
        return 1

    t = create(body, table=table)
    assert t.current_value() is NOTHING
    assert not t.current_value()

    t.resume()

    assert t.current_value() == Some(None)
    assert t.current_value().is_some()
    assert t.current_value().unwrap() is None


def test_nothing_is_a_singleton():
    assert Nothing() is NOTHING
    with pytest.raises(RuntimeError):
        NOTHING.unwrap()
