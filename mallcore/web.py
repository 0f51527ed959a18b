"""Transport-neutral HTTP responses, route descriptions and path parsing."""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from mallcore.errors import InvalidRequestError

HTTP_OK = 200
HTTP_CREATED = 201

_INTEGER = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


@dataclass
class Response:
    """An HTTP status with a JSON-ready body."""

    status: int
    body: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Route:
    """An HTTP method and path bound to the callable that serves it."""

    method: str
    path: str
    handler: Callable[..., Response]


def _jsonable(value: Any) -> Any:
    """Turn response objects, mappings and sequences into plain JSON values."""
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if isinstance(value, Mapping):
        return {
            key if isinstance(key, str) else str(key): _jsonable(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def success(data: Any = None) -> Response:
    """A 200 response wrapping ``data``."""
    return Response(HTTP_OK, {"code": 0, "message": "success", "data": _jsonable(data)})


def created(data: Any = None) -> Response:
    """A 201 response wrapping ``data``."""
    return Response(
        HTTP_CREATED, {"code": 0, "message": "success", "data": _jsonable(data)}
    )


def error(status: int, message: str) -> Response:
    """An error response carrying ``status`` as its code."""
    return Response(status, {"code": status, "message": message})


def parse_id(text: str, message: str) -> int:
    """Parse a base-10 64-bit integer, raising ``InvalidRequestError(message)`` if it is not one."""
    if not isinstance(text, str) or not _INTEGER.fullmatch(text):
        raise InvalidRequestError(message)
    value = int(text, 10)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise InvalidRequestError(message)
    return value