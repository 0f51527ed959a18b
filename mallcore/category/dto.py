"""Category records and the request/response shapes built from them."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from mallcore.errors import InvalidRequestError

_INT32 = (-(2**31), 2**31 - 1)
_INT64 = (-(2**63), 2**63 - 1)


@dataclass(frozen=True)
class Category:
    """A stored category row."""

    id: int
    name: str
    slug: str | None
    parent_id: int | None
    icon: str | None
    sort: int
    level: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


def _require_mapping(data: Any) -> Mapping:
    if not isinstance(data, Mapping):
        raise InvalidRequestError("request body must be a JSON object")
    return data


def _str_field(
    data: Mapping,
    key: str,
    *,
    required: bool = False,
    min_len: int = 0,
    max_len: int | None = None,
) -> str | None:
    value = data.get(key)
    if value is None:
        if required:
            raise InvalidRequestError(f"{key} is required")
        return None
    if not isinstance(value, str):
        raise InvalidRequestError(f"{key} must be a string")
    if required and not value:
        raise InvalidRequestError(f"{key} is required")
    if len(value) < min_len:
        raise InvalidRequestError(f"{key} must be at least {min_len} characters")
    if max_len is not None and len(value) > max_len:
        raise InvalidRequestError(f"{key} must be at most {max_len} characters")
    return value


def _int_field(data: Mapping, key: str, bounds: tuple[int, int]) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRequestError(f"{key} must be an integer")
    low, high = bounds
    if not low <= value <= high:
        raise InvalidRequestError(f"{key} is out of range")
    return value


def _bool_field(data: Mapping, key: str) -> bool | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise InvalidRequestError(f"{key} must be a boolean")
    return value


@dataclass
class CreateCategoryRequest:
    """Input for creating a category."""

    name: str
    slug: str = ""
    parent_id: int | None = None
    icon: str = ""
    sort: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> CreateCategoryRequest:
        data = _require_mapping(data)
        return cls(
            name=_str_field(data, "name", required=True, min_len=1, max_len=100),
            slug=_str_field(data, "slug", max_len=100) or "",
            parent_id=_int_field(data, "parent_id", _INT64),
            icon=_str_field(data, "icon", max_len=500) or "",
            sort=_int_field(data, "sort", _INT32) or 0,
        )


@dataclass
class UpdateCategoryRequest:
    """Partial update of a category; ``None`` leaves a field unchanged."""

    name: str | None = None
    slug: str | None = None
    parent_id: int | None = None
    icon: str | None = None
    sort: int | None = None
    is_active: bool | None = None

    @classmethod
    def from_dict(cls, data: Any) -> UpdateCategoryRequest:
        data = _require_mapping(data)
        return cls(
            name=_str_field(data, "name", min_len=1, max_len=100),
            slug=_str_field(data, "slug", max_len=100),
            parent_id=_int_field(data, "parent_id", _INT64),
            icon=_str_field(data, "icon", max_len=500),
            sort=_int_field(data, "sort", _INT32),
            is_active=_bool_field(data, "is_active"),
        )


@dataclass
class CategoryResponse:
    """A category as returned to clients."""

    id: int
    name: str
    slug: str
    parent_id: int | None
    icon: str
    sort: int
    level: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_category(cls, category: Category) -> CategoryResponse:
        return cls(
            id=category.id,
            name=category.name,
            slug=category.slug or "",
            parent_id=category.parent_id,
            icon=category.icon or "",
            sort=category.sort,
            level=category.level,
            is_active=category.is_active,
            created_at=category.created_at,
            updated_at=category.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.slug:
            result["slug"] = self.slug
        if self.parent_id is not None:
            result["parent_id"] = self.parent_id
        if self.icon:
            result["icon"] = self.icon
        result.update(
            sort=self.sort,
            level=self.level,
            is_active=self.is_active,
            created_at=self.created_at.isoformat(),
            updated_at=self.updated_at.isoformat(),
        )
        return result


@dataclass
class CategoryTreeNode:
    """A category with its nested children."""

    id: int
    name: str
    slug: str
    icon: str
    sort: int
    level: int
    children: list[CategoryTreeNode] = field(default_factory=list)

    @classmethod
    def from_category(cls, category: Category) -> CategoryTreeNode:
        return cls(
            id=category.id,
            name=category.name,
            slug=category.slug or "",
            icon=category.icon or "",
            sort=category.sort,
            level=category.level,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.slug:
            result["slug"] = self.slug
        if self.icon:
            result["icon"] = self.icon
        result["sort"] = self.sort
        result["level"] = self.level
        if self.children:
            result["children"] = [child.to_dict() for child in self.children]
        return result