"""HTTP-facing category endpoints."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from mallcore.category.dto import CreateCategoryRequest, UpdateCategoryRequest
from mallcore.category.service import CategoryService
from mallcore.errors import InvalidRequestError, MallError
from mallcore.web import Response, Route, created, error, parse_id, success

HTTP_BAD_REQUEST = 400
HTTP_NOT_FOUND = 404
HTTP_INTERNAL_ERROR = 500

_INVALID_ID = "invalid category id"

_GET_ERRORS = {"category not found": HTTP_NOT_FOUND}
_UPDATE_ERRORS = {
    "category not found": HTTP_NOT_FOUND,
    "parent category not found": HTTP_NOT_FOUND,
    "category cannot be its own parent": HTTP_BAD_REQUEST,
}
_DELETE_ERRORS = {
    "cannot delete category with children": HTTP_BAD_REQUEST,
    "cannot delete category with products": HTTP_BAD_REQUEST,
}


def _failure(exc: Exception, statuses: Mapping[str, int] | None = None) -> Response:
    message = str(exc)
    status = (statuses or {}).get(message, HTTP_INTERNAL_ERROR)
    return error(status, message)


def _invalid(exc: Exception) -> Response:
    return error(HTTP_BAD_REQUEST, f"invalid request: {exc}")


def _query_value(query: Mapping, key: str) -> str:
    value = query.get(key, "")
    if isinstance(value, (list, tuple)):
        value = value[0] if value else ""
    return "" if value is None else str(value)


class CategoryHandler:
    """Maps category requests onto the service and errors onto status codes."""

    def __init__(self, service: CategoryService) -> None:
        self._service = service

    def routes(self) -> list[Route]:
        """Every category endpoint with its method and path."""
        return [
            Route("GET", "/categories", self.list_categories),
            Route("GET", "/categories/tree", self.get_category_tree),
            Route("GET", "/categories/roots", self.get_roots),
            Route("GET", "/categories/:id", self.get_category),
            Route("GET", "/categories/:id/children", self.get_children),
            Route("POST", "/categories", self.create_category),
            Route("PUT", "/categories/:id", self.update_category),
            Route("DELETE", "/categories/:id", self.delete_category),
        ]

    def create_category(self, body: Any) -> Response:
        try:
            req = CreateCategoryRequest.from_dict(body)
        except InvalidRequestError as exc:
            return _invalid(exc)
        try:
            category = self._service.create_category(req)
        except MallError as exc:
            return _failure(exc)
        return created(category)

    def get_category(self, category_id: str) -> Response:
        try:
            cid = parse_id(category_id, _INVALID_ID)
        except InvalidRequestError as exc:
            return error(HTTP_BAD_REQUEST, str(exc))
        try:
            category = self._service.get_category(cid)
        except MallError as exc:
            return _failure(exc, _GET_ERRORS)
        return success(category)

    def update_category(self, category_id: str, body: Any) -> Response:
        try:
            cid = parse_id(category_id, _INVALID_ID)
        except InvalidRequestError as exc:
            return error(HTTP_BAD_REQUEST, str(exc))
        try:
            req = UpdateCategoryRequest.from_dict(body)
        except InvalidRequestError as exc:
            return _invalid(exc)
        try:
            self._service.update_category(cid, req)
        except MallError as exc:
            return _failure(exc, _UPDATE_ERRORS)
        return success({"message": "category updated successfully"})

    def delete_category(self, category_id: str) -> Response:
        try:
            cid = parse_id(category_id, _INVALID_ID)
        except InvalidRequestError as exc:
            return error(HTTP_BAD_REQUEST, str(exc))
        try:
            self._service.delete_category(cid)
        except MallError as exc:
            return _failure(exc, _DELETE_ERRORS)
        return success({"message": "category deleted successfully"})

    def list_categories(self, query: Mapping) -> Response:
        raw = _query_value(query, "is_active")
        is_active = raw == "true" if raw else None
        try:
            categories = self._service.list_categories(is_active)
        except MallError as exc:
            return _failure(exc)
        return success(categories)

    def get_category_tree(self) -> Response:
        try:
            tree = self._service.get_category_tree()
        except MallError as exc:
            return _failure(exc)
        return success(tree)

    def get_children(self, category_id: str) -> Response:
        try:
            cid = parse_id(category_id, _INVALID_ID)
        except InvalidRequestError as exc:
            return error(HTTP_BAD_REQUEST, str(exc))
        try:
            children = self._service.get_children(cid)
        except MallError as exc:
            return _failure(exc)
        return success(children)

    def get_roots(self) -> Response:
        try:
            roots = self._service.get_roots()
        except MallError as exc:
            return _failure(exc)
        return success(roots)