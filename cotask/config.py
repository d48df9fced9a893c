"""
Environment-driven settings for the cotask runtime.

Values are read once at import time:

- ``COTASK_DEBUG``: ``1``/``true``/``yes`` turns on per-transfer debug logging.
- ``COTASK_MAX_PASSES``: upper bound on ``Loop.run()`` passes (unset = no bound).
"""

from __future__ import annotations

import os

_TRUTHY = ("1", "true", "yes")


def _read_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in _TRUTHY


def _read_positive_int(name: str) -> int | None:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


# Environment variable to control verbose transfer logging
DEBUG_TRANSFERS = _read_flag("COTASK_DEBUG")

MAX_PASSES = _read_positive_int("COTASK_MAX_PASSES")


__all__ = ["DEBUG_TRANSFERS", "MAX_PASSES"]
