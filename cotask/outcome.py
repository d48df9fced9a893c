"""
Small sum types used to report frame state without sentinel ``None`` values.

``Maybe`` distinguishes "nothing yielded yet" from a yielded ``None``;
``Result`` carries the terminal value or error of a completed frame.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Generic, NoReturn, TypeVar, cast

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


# =========================================================
# Result
# =========================================================
class Result(Generic[T_co]):
    """Outcome of a completed frame: ``Ok(value)`` or ``Err(error)``."""

    __slots__ = ()

    def is_ok(self) -> bool:
        return isinstance(self, Ok)

    def unwrap(self) -> T_co:
        """Return the value or raise the stored error."""

        if isinstance(self, Ok):
            return self.value
        raise cast(Err, self).error

    def __bool__(self) -> bool:
        return self.is_ok()


@dataclass(frozen=True)
class Ok(Result[T], Generic[T]):
    value: T


@dataclass(frozen=True)
class Err(Result[NoReturn]):
    error: Exception


# =========================================================
# Maybe
# =========================================================
class Maybe(Generic[T_co]):
    """Latest value of a frame: ``Some(value)`` or ``Nothing``."""

    __slots__ = ()

    def is_some(self) -> bool:
        return isinstance(self, Some)

    def unwrap(self) -> T_co:
        """Return the contained value or raise ``RuntimeError``."""

        if isinstance(self, Some):
            return self.value
        raise RuntimeError("Called unwrap on Nothing value")

    def __bool__(self) -> bool:
        return self.is_some()


@dataclass(frozen=True)
class Some(Maybe[T], Generic[T]):
    value: T


class Nothing(Maybe[NoReturn]):
    """Singleton representing the absence of a value."""

    __slots__ = ()
    _instance: Nothing | None = None

    def __new__(cls) -> Nothing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "Nothing()"


NOTHING: Final[Maybe[NoReturn]] = Nothing()


__all__ = ["NOTHING", "Err", "Maybe", "Nothing", "Ok", "Result", "Some"]
