# shop/errors.py
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ShopError(Exception):
    """Base class for every error the shop core reports."""


class ValidationError(ShopError):
    """Input breaks an invariant (price floor, duplicate name, duplicate link)."""


class NotFoundError(ShopError):
    """A referenced product, folder or link does not exist."""


class AuthorizationError(ShopError):
    """The caller does not own the referenced product and/or folder."""


class ExternalServiceError(ShopError):
    """The search provider failed or answered with something unparseable."""

    def __init__(self, query: str, cause: object):
        self.query = query
        self.cause = cause
        super().__init__(f"Search for {query!r} failed: {cause}")


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a catalog operation: either a value or one ShopError.

    Callers branch on ``ok``; ``unwrap()`` is for places that want the
    error raised instead.
    """
    value: Optional[T] = None
    error: Optional[ShopError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


def success(value=None) -> Result:
    return Result(value=value)


def failure(error: ShopError) -> Result:
    return Result(error=error)
