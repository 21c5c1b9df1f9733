from __future__ import annotations
"""Result value returned by structural edits and storage calls.

A rejection travels back to the caller as data (``Result.failure(err)``)
so it can be surfaced without unwinding; :meth:`Result.unwrap` turns it back
into an exception where a caller cannot continue.
"""
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

__all__ = ["Result"]


@dataclass(slots=True, frozen=True)
class Result(Generic[T]):  # noqa: D101
    value: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:  # noqa: D401
        return self.error is None

    @property
    def message(self) -> str | None:  # noqa: D401
        """Human-readable reason for a failure, ``None`` on success."""
        return None if self.error is None else str(self.error)

    # ------------------------------------------------------------------ #
    @classmethod
    def success(cls, val: T) -> "Result[T]":  # noqa: D401
        return cls(value=val)

    @classmethod
    def failure(cls, err: Exception) -> "Result[T]":  # noqa: D401
        return cls(error=err)

    # ------------------------------------------------------------------ #
    def value_or(self, default: T) -> T:
        """*value* on success (``None`` included), *default* on failure."""
        return self.value if self.error is None else default  # type: ignore[return-value]

    def unwrap(self) -> T:  # noqa: D401
        """Return *value* or raise the stored error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
