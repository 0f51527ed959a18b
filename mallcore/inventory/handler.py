"""HTTP-facing inventory endpoints."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from mallcore.errors import (
    InsufficientStockError,
    InvalidRequestError,
    MallError,
    NotFoundError,
)
from mallcore.inventory.dto import (
    AdjustStockRequest,
    CreateInventoryRequest,
    DeductStockRequest,
    ListInventoriesRequest,
    ListInventoryLogsRequest,
    ReleaseStockRequest,
    ReserveStockRequest,
    RestockRequest,
    StockCheckItem,
    UpdateLowStockThresholdRequest,
)
from mallcore.inventory.service import InventoryService
from mallcore.web import Response, Route, created, error, parse_id, success

HTTP_BAD_REQUEST = 400
HTTP_NOT_FOUND = 404
HTTP_INTERNAL_ERROR = 500

RESERVATION_MINUTES = 30

_INTEGER = re.compile(r"[+-]?[0-9]+")
_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


def _invalid(exc: Exception) -> Response:
    return error(HTTP_BAD_REQUEST, f"invalid request: {exc}")


def _failed(exc: Exception) -> Response:
    return error(HTTP_INTERNAL_ERROR, str(exc))


def _query_value(query: Mapping, key: str, default: str | None = None) -> str:
    if key not in query:
        return "" if default is None else default
    value = query[key]
    if isinstance(value, (list, tuple)):
        value = value[0] if value else ""
    return "" if value is None else str(value)


def _parse_int32(text: str) -> int | None:
    """Strict base-10 int32 parse; ``None`` when the text is not one."""
    if not _INTEGER.fullmatch(text):
        return None
    value = int(text, 10)
    if not _INT32_MIN <= value <= _INT32_MAX:
        return None
    return value


def _lenient_int32(text: str) -> int:
    """Parse like a forgiving query reader: garbage is 0, overflow clamps."""
    if not _INTEGER.fullmatch(text):
        return 0
    return max(_INT32_MIN, min(_INT32_MAX, int(text, 10)))


class InventoryHandler:
    """Maps inventory requests onto the service and errors onto status codes."""

    def __init__(self, service: InventoryService) -> None:
        self._service = service

    def routes(self) -> list[Route]:
        """Every inventory endpoint with its method and path."""
        return [
            Route("GET", "/inventory/check/:product_id", self.check_stock),
            Route("POST", "/inventory/check/batch", self.batch_check_stock),
            Route("POST", "/inventory", self.create_inventory),
            Route("GET", "/inventory", self.list_inventories),
            Route("GET", "/inventory/product/:product_id", self.get_inventory_by_product),
            Route("GET", "/inventory/low-stock", self.list_low_stock),
            Route("POST", "/inventory/restock", self.restock),
            Route("POST", "/inventory/adjust", self.adjust_stock),
            Route("PUT", "/inventory/:product_id/threshold", self.update_threshold),
            Route("GET", "/inventory/logs/:product_id", self.get_inventory_logs),
            Route("POST", "/inventory/reserve", self.reserve_stock),
            Route("POST", "/inventory/release", self.release_stock),
            Route("POST", "/inventory/deduct", self.deduct_stock),
            Route("POST", "/inventory/cleanup-expired", self.cleanup_expired_reservations),
        ]

    def create_inventory(self, body: Any) -> Response:
        try:
            req = CreateInventoryRequest.from_dict(body)
        except InvalidRequestError as exc:
            return _invalid(exc)
        try:
            inventory = self._service.create_inventory(req)
        except MallError as exc:
            return _failed(exc)
        return created(inventory)

    def get_inventory_by_product(self, product_id: str) -> Response:
        try:
            pid = parse_id(product_id, "invalid product id")
        except InvalidRequestError as exc:
            return error(HTTP_BAD_REQUEST, str(exc))
        try:
            inventory = self._service.get_inventory_by_product_id(pid)
        except NotFoundError as exc:
            return error(HTTP_NOT_FOUND, str(exc))
        except MallError as exc:
            return _failed(exc)
        return success(inventory)

    def list_inventories(self, query: Mapping) -> Response:
        try:
            req = ListInventoriesRequest.from_query(query)
        except InvalidRequestError as exc:
            return _invalid(exc)
        try:
            page = self._service.list_inventories(req)
        except MallError as exc:
            return _failed(exc)
        return success(page)

    def list_low_stock(self, query: Mapping) -> Response:
        page = _lenient_int32(_query_value(query, "page", "1"))
        page_size = _lenient_int32(_query_value(query, "page_size", "20"))
        try:
            result = self._service.list_low_stock_inventories(page, page_size)
        except MallError as exc:
            return _failed(exc)
        return success(result)

    def check_stock(self, product_id: str, query: Mapping) -> Response:
        try:
            pid = parse_id(product_id, "invalid product id")
        except InvalidRequestError as exc:
            return error(HTTP_BAD_REQUEST, str(exc))
        quantity = _parse_int32(_query_value(query, "quantity"))
        if quantity is None or quantity <= 0:
            return error(HTTP_BAD_REQUEST, "invalid quantity")
        try:
            check = self._service.check_stock_availability(pid, quantity)
        except MallError as exc:
            return _failed(exc)
        return success(check)

    def batch_check_stock(self, body: Any) -> Response:
        if not isinstance(body, list):
            return _invalid(InvalidRequestError("request body must be a JSON array"))
        try:
            items = [StockCheckItem.from_dict(raw) for raw in body]
        except InvalidRequestError as exc:
            return _invalid(exc)
        try:
            result = self._service.batch_check_stock_availability(items)
        except MallError as exc:
            return _failed(exc)
        return success(result)

    def reserve_stock(self, body: Any) -> Response:
        try:
            req = ReserveStockRequest.from_dict(body)
        except InvalidRequestError as exc:
            return _invalid(exc)
        try:
            self._service.reserve_stock(req, RESERVATION_MINUTES)
        except InsufficientStockError as exc:
            return error(HTTP_BAD_REQUEST, str(exc))
        except MallError as exc:
            return _failed(exc)
        return success({"message": "stock reserved successfully"})

    def release_stock(self, body: Any) -> Response:
        try:
            req = ReleaseStockRequest.from_dict(body)
        except InvalidRequestError as exc:
            return _invalid(exc)
        try:
            self._service.release_stock(req)
        except MallError as exc:
            return _failed(exc)
        return success({"message": "stock released successfully"})

    def deduct_stock(self, body: Any) -> Response:
        try:
            req = DeductStockRequest.from_dict(body)
        except InvalidRequestError as exc:
            return _invalid(exc)
        try:
            self._service.deduct_stock(req)
        except MallError as exc:
            return _failed(exc)
        return success({"message": "stock deducted successfully"})

    def restock(self, body: Any, operator_id: int | None = None) -> Response:
        try:
            req = RestockRequest.from_dict(body)
        except InvalidRequestError as exc:
            return _invalid(exc)
        try:
            self._service.restock_inventory(req, operator_id)
        except MallError as exc:
            return _failed(exc)
        return success({"message": "inventory restocked successfully"})

    def adjust_stock(self, body: Any, operator_id: int | None = None) -> Response:
        try:
            req = AdjustStockRequest.from_dict(body)
        except InvalidRequestError as exc:
            return _invalid(exc)
        try:
            self._service.adjust_stock(req, operator_id)
        except MallError as exc:
            return _failed(exc)
        return success({"message": "stock adjusted successfully"})

    def update_threshold(self, product_id: str, body: Any) -> Response:
        try:
            pid = parse_id(product_id, "invalid product id")
        except InvalidRequestError as exc:
            return error(HTTP_BAD_REQUEST, str(exc))
        try:
            req = UpdateLowStockThresholdRequest.from_dict(body)
        except InvalidRequestError as exc:
            return _invalid(exc)
        try:
            self._service.update_low_stock_threshold(pid, req)
        except MallError as exc:
            return _failed(exc)
        return success({"message": "threshold updated successfully"})

    def get_inventory_logs(self, product_id: str, query: Mapping) -> Response:
        try:
            pid = parse_id(product_id, "invalid product id")
        except InvalidRequestError as exc:
            return error(HTTP_BAD_REQUEST, str(exc))
        try:
            req = ListInventoryLogsRequest.from_query(pid, query)
        except InvalidRequestError as exc:
            return _invalid(exc)
        try:
            logs = self._service.get_inventory_logs(req)
        except MallError as exc:
            return _failed(exc)
        return success(logs)

    def cleanup_expired_reservations(self) -> Response:
        try:
            self._service.cleanup_expired_reservations()
        except MallError as exc:
            return _failed(exc)
        return success({"message": "expired reservations cleaned up successfully"})