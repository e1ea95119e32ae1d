"""Result<T> for input rules: validators report failures as values, services decide what to raise."""
from __future__ import annotations
from typing import Callable, TypeVar, Generic, Optional

T = TypeVar("T")


class Result(Generic[T]):
    def __init__(self, is_success: bool, value: Optional[T] = None, error: Optional[str] = None):
        self.is_success = is_success
        self.value = value
        self.error = error

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(is_success=True, value=value)

    @classmethod
    def fail(cls, error: str) -> "Result[T]":
        return cls(is_success=False, error=error)

    def unwrap(self, error_cls: Callable[[str], Exception]) -> T:
        """Return the value, or raise ``error_cls(error)`` for a failed rule."""
        if not self.is_success:
            raise error_cls(self.error or "Invalid input.")
        return self.value

    def __repr__(self) -> str:
        if self.is_success:
            return f"Result.ok({self.value!r})"
        return f"Result.fail({self.error!r})"
