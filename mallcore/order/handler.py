"""HTTP-facing order endpoints."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from mallcore.errors import InvalidRequestError, MallError
from mallcore.order.dto import CreateOrderRequest, ListOrdersRequest, UpdateOrderStatusRequest
from mallcore.order.service import OrderService
from mallcore.web import Response, Route, created, error, parse_id, success

HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_INTERNAL_ERROR = 500

_INVALID_ID = "invalid order id"

_ACCESS_ERRORS = {
    "order not found": HTTP_NOT_FOUND,
    "unauthorized access to order": HTTP_FORBIDDEN,
}
_CANCEL_ERRORS = {**_ACCESS_ERRORS, "order cannot be cancelled": HTTP_BAD_REQUEST}


def _failure(
    exc: Exception, statuses: Mapping[str, int] | None = None, default: int = HTTP_INTERNAL_ERROR
) -> Response:
    message = str(exc)
    return error((statuses or {}).get(message, default), message)


def _invalid(exc: Exception) -> Response:
    return error(HTTP_BAD_REQUEST, f"invalid request: {exc}")


def _unauthorized() -> Response:
    return error(HTTP_UNAUTHORIZED, "unauthorized")


class OrderHandler:
    """Maps order requests onto the service and errors onto status codes.

    ``user_id`` is the authenticated caller, or ``None`` when unauthenticated.
    """

    def __init__(self, service: OrderService) -> None:
        self._service = service

    def routes(self) -> list[Route]:
        """Every order endpoint with its method and path."""
        return [
            Route("POST", "/orders", self.create_order),
            Route("GET", "/orders", self.list_orders),
            Route("GET", "/orders/:id", self.get_order),
            Route("GET", "/orders/order-no/:order_no", self.get_order_by_order_no),
            Route("PUT", "/orders/:id/status", self.update_order_status),
            Route("POST", "/orders/:id/cancel", self.cancel_order),
            Route("POST", "/orders/:id/pay", self.pay_order),
            Route("POST", "/orders/:id/ship", self.ship_order),
            Route("POST", "/orders/:id/complete", self.complete_order),
        ]

    def create_order(self, user_id: int | None, body: Any) -> Response:
        if user_id is None:
            return _unauthorized()
        try:
            req = CreateOrderRequest.from_dict(body)
        except InvalidRequestError as exc:
            return _invalid(exc)
        try:
            order = self._service.create_order(user_id, req)
        except MallError as exc:
            return _failure(exc)
        return created(order)

    def get_order(self, user_id: int | None, order_id: str) -> Response:
        if user_id is None:
            return _unauthorized()
        try:
            oid = parse_id(order_id, _INVALID_ID)
        except InvalidRequestError as exc:
            return error(HTTP_BAD_REQUEST, str(exc))
        try:
            order = self._service.get_order(user_id, oid)
        except MallError as exc:
            return _failure(exc, _ACCESS_ERRORS)
        return success(order)

    def get_order_by_order_no(self, user_id: int | None, order_no: str) -> Response:
        if user_id is None:
            return _unauthorized()
        if not order_no:
            return error(HTTP_BAD_REQUEST, "order number is required")
        try:
            order = self._service.get_order_by_order_no(user_id, order_no)
        except MallError as exc:
            return _failure(exc, _ACCESS_ERRORS)
        return success(order)

    def list_orders(self, user_id: int | None, query: Mapping) -> Response:
        if user_id is None:
            return _unauthorized()
        try:
            req = ListOrdersRequest.from_query(query)
        except InvalidRequestError as exc:
            return _invalid(exc)
        try:
            orders = self._service.list_user_orders(user_id, req)
        except MallError as exc:
            return _failure(exc)
        return success(orders)

    def update_order_status(self, user_id: int | None, order_id: str, body: Any) -> Response:
        if user_id is None:
            return _unauthorized()
        try:
            oid = parse_id(order_id, _INVALID_ID)
        except InvalidRequestError as exc:
            return error(HTTP_BAD_REQUEST, str(exc))
        try:
            req = UpdateOrderStatusRequest.from_dict(body)
        except InvalidRequestError as exc:
            return _invalid(exc)
        try:
            self._service.update_order_status(user_id, oid, req)
        except MallError as exc:
            return _failure(exc, _ACCESS_ERRORS)
        return success(None)

    def cancel_order(self, user_id: int | None, order_id: str) -> Response:
        if user_id is None:
            return _unauthorized()
        try:
            oid = parse_id(order_id, _INVALID_ID)
        except InvalidRequestError as exc:
            return error(HTTP_BAD_REQUEST, str(exc))
        try:
            self._service.cancel_order(user_id, oid)
        except MallError as exc:
            return _failure(exc, _CANCEL_ERRORS)
        return success({"message": "order cancelled successfully"})

    def pay_order(self, user_id: int | None, order_id: str) -> Response:
        if user_id is None:
            return _unauthorized()
        try:
            oid = parse_id(order_id, _INVALID_ID)
        except InvalidRequestError as exc:
            return error(HTTP_BAD_REQUEST, str(exc))
        try:
            self._service.pay_order(user_id, oid)
        except MallError as exc:
            return _failure(exc, _ACCESS_ERRORS, HTTP_BAD_REQUEST)
        return success({"message": "order paid successfully"})

    def ship_order(self, order_id: str) -> Response:
        try:
            oid = parse_id(order_id, _INVALID_ID)
        except InvalidRequestError as exc:
            return error(HTTP_BAD_REQUEST, str(exc))
        try:
            self._service.ship_order(oid)
        except MallError as exc:
            return error(HTTP_BAD_REQUEST, str(exc))
        return success({"message": "order shipped successfully"})

    def complete_order(self, user_id: int | None, order_id: str) -> Response:
        if user_id is None:
            return _unauthorized()
        try:
            oid = parse_id(order_id, _INVALID_ID)
        except InvalidRequestError as exc:
            return error(HTTP_BAD_REQUEST, str(exc))
        try:
            self._service.complete_order(oid)
        except MallError as exc:
            return error(HTTP_BAD_REQUEST, str(exc))
        return success({"message": "order completed successfully"})