"""Business rules for categories."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from mallcore.category.dto import (
    CategoryResponse,
    CategoryTreeNode,
    CreateCategoryRequest,
    UpdateCategoryRequest,
)
from mallcore.category.repository import CategoryRepository
from mallcore.errors import (
    InvalidRequestError,
    MallError,
    NotFoundError,
    RecordNotFoundError,
)


def generate_slug(name: str) -> str:
    """Lower-case the name and turn spaces into hyphens."""
    return name.lower().replace(" ", "-")


@contextmanager
def _failure(action: str, missing: str | None = None) -> Iterator[None]:
    """Translate storage errors into service errors."""
    try:
        yield
    except RecordNotFoundError as exc:
        if missing is not None:
            raise NotFoundError(missing) from exc
        raise MallError(f"failed to {action}: {exc}") from exc
    except MallError:
        raise
    except Exception as exc:
        raise MallError(f"failed to {action}: {exc}") from exc


class CategoryService:
    """Category use cases on top of a repository."""

    def __init__(self, repo: CategoryRepository) -> None:
        self._repo = repo

    def create_category(self, req: CreateCategoryRequest) -> CategoryResponse:
        level = 1
        if req.parent_id is not None:
            with _failure("get parent category", "parent category not found"):
                parent = self._repo.get_category_by_id(req.parent_id)
            level = parent.level + 1

        slug = req.slug or generate_slug(req.name)
        with _failure("create category"):
            category = self._repo.create_category(
                name=req.name,
                slug=slug,
                parent_id=req.parent_id,
                icon=req.icon,
                sort=req.sort,
                level=level,
                is_active=True,
            )
        return CategoryResponse.from_category(category)

    def get_category(self, category_id: int) -> CategoryResponse:
        with _failure("get category", "category not found"):
            category = self._repo.get_category_by_id(category_id)
        return CategoryResponse.from_category(category)

    def update_category(self, category_id: int, req: UpdateCategoryRequest) -> None:
        with _failure("get category", "category not found"):
            self._repo.get_category_by_id(category_id)

        if req.parent_id is not None:
            if req.parent_id == category_id:
                raise InvalidRequestError("category cannot be its own parent")
            with _failure("get parent category", "parent category not found"):
                self._repo.get_category_by_id(req.parent_id)

        with _failure("update category"):
            self._repo.update_category(
                category_id,
                name=req.name,
                slug=req.slug,
                parent_id=req.parent_id,
                icon=req.icon,
                sort=req.sort,
                is_active=req.is_active,
            )

    def delete_category(self, category_id: int) -> None:
        with _failure("count children"):
            child_count = self._repo.count_category_children(category_id)
        if child_count > 0:
            raise InvalidRequestError("cannot delete category with children")

        with _failure("count products"):
            product_count = self._repo.count_products_by_category(category_id)
        if product_count > 0:
            raise InvalidRequestError("cannot delete category with products")

        with _failure("delete category"):
            self._repo.delete_category(category_id)

    def list_categories(self, is_active: bool | None = None) -> list[CategoryResponse]:
        with _failure("list categories"):
            categories = self._repo.list_categories(is_active)
        return [CategoryResponse.from_category(c) for c in categories]

    def get_category_tree(self) -> list[CategoryTreeNode]:
        """Build the hierarchy of active categories; orphans are dropped."""
        with _failure("list categories"):
            categories = self._repo.list_categories(True)

        nodes = {c.id: CategoryTreeNode.from_category(c) for c in categories}
        roots: list[CategoryTreeNode] = []
        for category in categories:
            node = nodes[category.id]
            if category.parent_id is None:
                roots.append(node)
            elif category.parent_id in nodes:
                nodes[category.parent_id].children.append(node)
        return roots

    def get_children(self, parent_id: int) -> list[CategoryResponse]:
        with _failure("get children"):
            categories = self._repo.get_category_children(parent_id)
        return [CategoryResponse.from_category(c) for c in categories]

    def get_roots(self) -> list[CategoryResponse]:
        with _failure("get root categories"):
            categories = self._repo.get_root_categories()
        return [CategoryResponse.from_category(c) for c in categories]