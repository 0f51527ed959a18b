"""Order records and the request/response shapes built from them."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from mallcore.errors import InvalidRequestError

_INT32 = (-(2**31), 2**31 - 1)
_INT64 = (-(2**63), 2**63 - 1)

_ORDER_STATUSES = ("pending", "paid", "shipped", "completed", "cancelled", "refunded")


@dataclass(frozen=True)
class Order:
    """A stored order row."""

    id: int
    order_no: str
    user_id: int
    total_amount: int
    discount_amount: int
    shipping_fee: int
    pay_amount: int
    status: str
    payment_status: str
    ship_status: str
    receiver_name: str
    receiver_phone: str
    receiver_address: str
    receiver_zip_code: str | None
    remark: str | None
    created_at: datetime
    updated_at: datetime
    paid_at: datetime | None = None
    shipped_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None


@dataclass(frozen=True)
class OrderItem:
    """A stored order line."""

    id: int
    order_id: int
    product_id: int
    product_name: str
    product_image: str | None
    quantity: int
    unit_price: int
    total_price: int


def _require_mapping(data: Any, what: str = "request body") -> Mapping:
    if not isinstance(data, Mapping):
        raise InvalidRequestError(f"{what} must be a JSON object")
    return data


def _int(
    data: Mapping,
    key: str,
    bounds: tuple[int, int],
    *,
    required: bool = False,
    minimum: int | None = None,
) -> int:
    value = data.get(key)
    if value is None:
        value = 0
    elif isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRequestError(f"{key} must be an integer")
    low, high = bounds
    if not low <= value <= high:
        raise InvalidRequestError(f"{key} is out of range")
    if required and value == 0:
        raise InvalidRequestError(f"{key} is required")
    if minimum is not None and value < minimum:
        raise InvalidRequestError(f"{key} must be at least {minimum}")
    return value


def _str(
    data: Mapping,
    key: str,
    *,
    required: bool = False,
    max_len: int | None = None,
) -> str:
    value = data.get(key)
    if value is None:
        value = ""
    elif not isinstance(value, str):
        raise InvalidRequestError(f"{key} must be a string")
    if required and not value:
        raise InvalidRequestError(f"{key} is required")
    if max_len is not None and len(value) > max_len:
        raise InvalidRequestError(f"{key} must be at most {max_len} characters")
    return value


def _query_int(query: Mapping, key: str) -> int:
    value = query.get(key, "")
    if isinstance(value, (list, tuple)):
        value = value[0] if value else ""
    if value == "":
        return 0
    try:
        number = int(str(value), 10)
    except ValueError:
        raise InvalidRequestError(f"{key} must be an integer") from None
    low, high = _INT32
    if not low <= number <= high:
        raise InvalidRequestError(f"{key} is out of range")
    return number


def _iso(moment: datetime | None) -> str | None:
    return moment.isoformat() if moment is not None else None


@dataclass
class OrderItemRequest:
    """One product and quantity to order."""

    product_id: int
    quantity: int

    @classmethod
    def from_dict(cls, data: Any) -> OrderItemRequest:
        data = _require_mapping(data, "order item")
        return cls(
            product_id=_int(data, "product_id", _INT64, required=True),
            quantity=_int(data, "quantity", _INT32, required=True, minimum=1),
        )


@dataclass
class CreateOrderRequest:
    """Input for placing an order."""

    items: list[OrderItemRequest]
    receiver_name: str
    receiver_phone: str
    receiver_address: str
    receiver_zip_code: str = ""
    remark: str = ""
    discount_amount: int = 0
    shipping_fee: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> CreateOrderRequest:
        data = _require_mapping(data)
        raw_items = data.get("items")
        if raw_items is None:
            raise InvalidRequestError("items is required")
        if not isinstance(raw_items, list):
            raise InvalidRequestError("items must be a list")
        if not raw_items:
            raise InvalidRequestError("items must have at least 1 element")
        items = []
        for index, raw in enumerate(raw_items):
            try:
                items.append(OrderItemRequest.from_dict(raw))
            except InvalidRequestError as exc:
                raise InvalidRequestError(f"items[{index}]: {exc}") from exc
        return cls(
            items=items,
            receiver_name=_str(data, "receiver_name", required=True, max_len=50),
            receiver_phone=_str(data, "receiver_phone", required=True, max_len=20),
            receiver_address=_str(data, "receiver_address", required=True, max_len=500),
            receiver_zip_code=_str(data, "receiver_zip_code", max_len=20),
            remark=_str(data, "remark"),
            discount_amount=_int(data, "discount_amount", _INT64, minimum=0),
            shipping_fee=_int(data, "shipping_fee", _INT64, minimum=0),
        )


@dataclass
class UpdateOrderStatusRequest:
    """Input for setting an order's status."""

    status: str

    @classmethod
    def from_dict(cls, data: Any) -> UpdateOrderStatusRequest:
        data = _require_mapping(data)
        status = _str(data, "status", required=True)
        if status not in _ORDER_STATUSES:
            raise InvalidRequestError(
                "status must be one of " + " ".join(_ORDER_STATUSES)
            )
        return cls(status=status)


@dataclass
class ListOrdersRequest:
    """Paging parameters for listing a user's orders."""

    page: int = 0
    page_size: int = 0

    @classmethod
    def from_query(cls, query: Mapping) -> ListOrdersRequest:
        page = _query_int(query, "page")
        page_size = _query_int(query, "page_size")
        if page < 1:
            raise InvalidRequestError("page must be at least 1")
        if not 1 <= page_size <= 100:
            raise InvalidRequestError("page_size must be between 1 and 100")
        return cls(page=page, page_size=page_size)


@dataclass
class OrderItemResponse:
    """An order line as returned to clients."""

    id: int
    product_id: int
    product_name: str
    product_image: str
    quantity: int
    unit_price: int
    total_price: int

    @classmethod
    def from_item(cls, item: OrderItem) -> OrderItemResponse:
        return cls(
            id=item.id,
            product_id=item.product_id,
            product_name=item.product_name,
            product_image=item.product_image or "",
            quantity=item.quantity,
            unit_price=item.unit_price,
            total_price=item.total_price,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
        }
        if self.product_image:
            result["product_image"] = self.product_image
        result.update(
            quantity=self.quantity,
            unit_price=self.unit_price,
            total_price=self.total_price,
        )
        return result


@dataclass
class OrderResponse:
    """An order, optionally with its lines, as returned to clients."""

    id: int
    order_no: str
    user_id: int
    total_amount: int
    discount_amount: int
    shipping_fee: int
    pay_amount: int
    status: str
    payment_status: str
    ship_status: str
    receiver_name: str
    receiver_phone: str
    receiver_address: str
    receiver_zip_code: str
    remark: str
    paid_at: datetime | None
    shipped_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None
    created_at: datetime
    updated_at: datetime
    items: list[OrderItemResponse] = field(default_factory=list)

    @classmethod
    def from_order(
        cls, order: Order, items: Iterable[OrderItem] | None = None
    ) -> OrderResponse:
        return cls(
            id=order.id,
            order_no=order.order_no,
            user_id=order.user_id,
            total_amount=order.total_amount,
            discount_amount=order.discount_amount,
            shipping_fee=order.shipping_fee,
            pay_amount=order.pay_amount,
            status=order.status,
            payment_status=order.payment_status,
            ship_status=order.ship_status,
            receiver_name=order.receiver_name,
            receiver_phone=order.receiver_phone,
            receiver_address=order.receiver_address,
            receiver_zip_code=order.receiver_zip_code or "",
            remark=order.remark or "",
            paid_at=order.paid_at,
            shipped_at=order.shipped_at,
            completed_at=order.completed_at,
            cancelled_at=order.cancelled_at,
            created_at=order.created_at,
            updated_at=order.updated_at,
            items=[OrderItemResponse.from_item(item) for item in items or ()],
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "order_no": self.order_no,
            "user_id": self.user_id,
            "total_amount": self.total_amount,
            "discount_amount": self.discount_amount,
            "shipping_fee": self.shipping_fee,
            "pay_amount": self.pay_amount,
            "status": self.status,
            "payment_status": self.payment_status,
            "ship_status": self.ship_status,
            "receiver_name": self.receiver_name,
            "receiver_phone": self.receiver_phone,
            "receiver_address": self.receiver_address,
        }
        if self.receiver_zip_code:
            result["receiver_zip_code"] = self.receiver_zip_code
        if self.remark:
            result["remark"] = self.remark
        for key in ("paid_at", "shipped_at", "completed_at", "cancelled_at"):
            moment = _iso(getattr(self, key))
            if moment is not None:
                result[key] = moment
        result["created_at"] = self.created_at.isoformat()
        result["updated_at"] = self.updated_at.isoformat()
        if self.items:
            result["items"] = [item.to_dict() for item in self.items]
        return result


@dataclass
class PaginatedOrdersResponse:
    """One page of orders."""

    orders: list[OrderResponse] = field(default_factory=list)
    total: int = 0
    page: int = 0
    page_size: int = 0
    total_pages: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "orders": [order.to_dict() for order in self.orders],
            "total": self.total,
            "page": self.page,
            "page_size": self.page_size,
            "total_pages": self.total_pages,
        }