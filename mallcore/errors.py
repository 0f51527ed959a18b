"""Exceptions raised by the mall services and repositories."""

from __future__ import annotations


class MallError(Exception):
    """Base class for every error raised by the package."""

    default_message = "internal error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message if message is not None else self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class RecordNotFoundError(MallError):
    """A repository lookup matched no row."""

    default_message = "no rows in result set"


class NotFoundError(MallError):
    """A requested resource does not exist."""

    default_message = "not found"


class InvalidRequestError(MallError):
    """The request is malformed or breaks a business rule."""

    default_message = "invalid request"


class PermissionDeniedError(MallError):
    """The caller may not access the resource."""

    default_message = "permission denied"


class ConflictError(MallError):
    """The request conflicts with existing state."""

    default_message = "conflict"


class ConcurrentUpdateError(ConflictError):
    """An optimistic-lock version check failed."""

    default_message = "concurrent update: version mismatch"


class InsufficientStockError(InvalidRequestError):
    """Not enough available stock to satisfy a request."""

    default_message = "insufficient stock"