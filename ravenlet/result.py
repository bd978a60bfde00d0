"""Result type for context extraction."""

from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    """Extraction produced a value (which may itself be None)."""

    value: T

    @property
    def ok(self) -> bool:
        return True

    def to_optional(self) -> Optional[T]:
        return self.value


@dataclass(frozen=True)
class Failure:
    """Extraction raised; the exception is kept as the reason."""

    reason: Exception

    @property
    def ok(self) -> bool:
        return False

    def to_optional(self) -> None:
        return None


Result = Union[Success[T], Failure]


def extract(getter: Callable[[], T]) -> "Result[T]":
    """
    Run getter and wrap its outcome.

    Args:
        getter: Zero-argument callable reading from a live context

    Returns:
        Success with the value, or Failure with the raised exception
    """
    try:
        return Success(getter())
    except Exception as e:
        return Failure(e)
