"""Category storage."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import AbstractContextManager, contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Protocol

from mallcore.category.dto import Category
from mallcore.errors import RecordNotFoundError


class CategoryRepository(Protocol):
    """Data access used by the category service."""

    def create_category(
        self,
        *,
        name: str,
        slug: str | None,
        parent_id: int | None,
        icon: str | None,
        sort: int,
        level: int,
        is_active: bool,
    ) -> Category: ...

    def get_category_by_id(self, category_id: int) -> Category: ...

    def get_category_by_slug(self, slug: str) -> Category: ...

    def update_category(
        self,
        category_id: int,
        *,
        name: str | None,
        slug: str | None,
        parent_id: int | None,
        icon: str | None,
        sort: int | None,
        is_active: bool | None,
    ) -> None: ...

    def delete_category(self, category_id: int) -> None: ...

    def list_categories(self, is_active: bool | None) -> list[Category]: ...

    def get_root_categories(self) -> list[Category]: ...

    def get_category_children(self, parent_id: int) -> list[Category]: ...

    def count_category_children(self, parent_id: int) -> int: ...

    def count_products_by_category(self, category_id: int) -> int: ...

    def transaction(self) -> AbstractContextManager[CategoryRepository]: ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryCategoryRepository:
    """Category repository kept in process memory, with soft deletes."""

    def __init__(self, product_counts: Mapping[int, int] | None = None) -> None:
        self._categories: dict[int, Category] = {}
        self._deleted: set[int] = set()
        self._next_id = 1
        self._product_counts = dict(product_counts or {})

    def _select(self, predicate: Callable[[Category], bool]) -> list[Category]:
        rows = (
            c
            for c in self._categories.values()
            if c.id not in self._deleted and predicate(c)
        )
        return sorted(rows, key=lambda c: (c.sort, c.id))

    def create_category(
        self,
        *,
        name: str,
        slug: str | None = None,
        parent_id: int | None = None,
        icon: str | None = None,
        sort: int = 0,
        level: int = 1,
        is_active: bool = True,
    ) -> Category:
        stamp = _now()
        category = Category(
            id=self._next_id,
            name=name,
            slug=slug,
            parent_id=parent_id,
            icon=icon,
            sort=sort,
            level=level,
            is_active=is_active,
            created_at=stamp,
            updated_at=stamp,
        )
        self._categories[category.id] = category
        self._next_id += 1
        return category

    def get_category_by_id(self, category_id: int) -> Category:
        category = self._categories.get(category_id)
        if category is None or category_id in self._deleted:
            raise RecordNotFoundError()
        return category

    def get_category_by_slug(self, slug: str) -> Category:
        for category in self._select(lambda c: c.slug == slug):
            return category
        raise RecordNotFoundError()

    def update_category(
        self,
        category_id: int,
        *,
        name: str | None = None,
        slug: str | None = None,
        parent_id: int | None = None,
        icon: str | None = None,
        sort: int | None = None,
        is_active: bool | None = None,
    ) -> None:
        current = self.get_category_by_id(category_id)
        changes = {
            key: value
            for key, value in (
                ("name", name),
                ("slug", slug),
                ("parent_id", parent_id),
                ("icon", icon),
                ("sort", sort),
                ("is_active", is_active),
            )
            if value is not None
        }
        self._categories[category_id] = replace(current, updated_at=_now(), **changes)

    def delete_category(self, category_id: int) -> None:
        if category_id in self._categories:
            self._deleted.add(category_id)

    def list_categories(self, is_active: bool | None = None) -> list[Category]:
        """Active categories when ``is_active`` is true, otherwise all of them."""
        if is_active:
            return self._select(lambda c: c.is_active)
        return self._select(lambda c: True)

    def get_root_categories(self) -> list[Category]:
        return self._select(lambda c: c.parent_id is None)

    def get_category_children(self, parent_id: int) -> list[Category]:
        return self._select(lambda c: c.parent_id == parent_id)

    def count_category_children(self, parent_id: int) -> int:
        return len(self.get_category_children(parent_id))

    def count_products_by_category(self, category_id: int) -> int:
        return self._product_counts.get(category_id, 0)

    @contextmanager
    def transaction(self) -> Iterator[InMemoryCategoryRepository]:
        """Run a block atomically; state is restored if it raises."""
        snapshot = (dict(self._categories), set(self._deleted), self._next_id)
        try:
            yield self
        except BaseException:
            self._categories, self._deleted, self._next_id = snapshot
            raise