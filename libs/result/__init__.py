"""Result type used by use cases

A use case never raises for an expected failure. It returns either
``Return.ok(value)`` or ``Return.err(Error(...))`` and the caller branches on
``is_ok()`` / ``is_err()``.
"""

from typing import Generic, Optional, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


class Error(BaseModel):
    """Machine-readable error carried by a failed Result"""

    code: str
    message: str
    reason: Optional[str] = None


class Result(Generic[T]):
    def __init__(self, value: Optional[T] = None, error: Optional[Error] = None):
        self.value = value
        self.error = error

    def is_ok(self) -> bool:
        return self.error is None

    def is_err(self) -> bool:
        return self.error is not None

    def __repr__(self) -> str:
        if self.is_ok():
            return f"Result.ok({self.value!r})"
        return f"Result.err({self.error!r})"


class Return:
    @staticmethod
    def ok(value: Optional[T] = None) -> Result[T]:
        return Result(value=value)

    @staticmethod
    def err(error: Error) -> Result:
        return Result(error=error)


__all__ = ["Error", "Result", "Return"]
