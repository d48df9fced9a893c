"""Shared fixtures for cotask tests."""

from __future__ import annotations

import pytest

from cotask import FrameTable, Loop, SimulatedClock


@pytest.fixture
def table() -> FrameTable:
    """A fresh frame table, isolated from the process-wide default."""
    return FrameTable()


@pytest.fixture
def clock() -> SimulatedClock:
    return SimulatedClock()


@pytest.fixture
def loop(clock: SimulatedClock) -> Loop:
    """Loop on virtual time: idling advances the clock instead of sleeping."""
    return Loop(clock=clock, idle=clock.sleep)
