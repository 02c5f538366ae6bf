"""
Two-variant outcome returned by every network-facing operation.
"""
from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from roomwire.shared.errors import ErrorDetail, ErrorKind

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    error: ErrorDetail

    @property
    def ok(self) -> bool:
        return False

    @property
    def retryable(self) -> bool:
        return self.error.retryable


OutcomeResult = Union[Success[T], Failure]


def client_failure(message: str, status: int | None = None, errcode: str | None = None) -> Failure:
    """Shortcut for failures detected locally, before any I/O happens."""
    return Failure(ErrorDetail(kind=ErrorKind.CLIENT, message=message, status=status, errcode=errcode))
