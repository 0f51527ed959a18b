"""Inventory records and the request/response shapes built from them."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from mallcore.errors import InvalidRequestError

_INT32 = (-(2**31), 2**31 - 1)
_INT64 = (-(2**63), 2**63 - 1)


@dataclass(frozen=True)
class Inventory:
    """A stored inventory row."""

    id: int
    product_id: int
    available_stock: int
    reserved_stock: int
    low_stock_threshold: int | None
    version: int
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class InventoryLog:
    """A stored record of one stock change."""

    id: int
    product_id: int
    order_id: int | None
    change_type: str
    quantity_change: int
    before_available: int
    after_available: int
    before_reserved: int
    after_reserved: int
    reason: str | None
    operator_id: int | None
    created_at: datetime


@dataclass(frozen=True)
class InventoryReservation:
    """A stored hold on stock for an order."""

    id: int
    product_id: int
    order_id: int
    quantity: int
    status: str | None
    expires_at: datetime
    created_at: datetime
    updated_at: datetime


def _require_mapping(data: Any) -> Mapping:
    if not isinstance(data, Mapping):
        raise InvalidRequestError("request body must be a JSON object")
    return data


def _int(
    data: Mapping,
    key: str,
    bounds: tuple[int, int],
    *,
    required: bool = False,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int:
    """Read an integer; absent means zero, and ``required`` rejects zero."""
    value = data.get(key)
    if value is None:
        value = 0
    elif isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRequestError(f"{key} must be an integer")
    low, high = bounds
    if not low <= value <= high:
        raise InvalidRequestError(f"{key} is out of range")
    return _check_int(key, value, required=required, minimum=minimum, maximum=maximum)


def _check_int(
    key: str,
    value: int,
    *,
    required: bool = False,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int:
    if required and value == 0:
        raise InvalidRequestError(f"{key} is required")
    if minimum is not None and value < minimum:
        raise InvalidRequestError(f"{key} must be at least {minimum}")
    if maximum is not None and value > maximum:
        raise InvalidRequestError(f"{key} must be at most {maximum}")
    return value


def _str(
    data: Mapping, key: str, *, required: bool = False, max_len: int | None = None
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


def _query_int(query: Mapping, key: str, bounds: tuple[int, int]) -> int:
    value = query.get(key, "")
    if isinstance(value, (list, tuple)):
        value = value[0] if value else ""
    if value == "":
        return 0
    try:
        number = int(str(value), 10)
    except ValueError:
        raise InvalidRequestError(f"{key} must be an integer") from None
    low, high = bounds
    if not low <= number <= high:
        raise InvalidRequestError(f"{key} is out of range")
    return number


def _check_paging(page: int, page_size: int) -> None:
    _check_int("page", page, minimum=1)
    _check_int("page_size", page_size, minimum=1, maximum=100)


@dataclass
class CreateInventoryRequest:
    """Input for creating an inventory record."""

    product_id: int
    available_stock: int
    reserved_stock: int = 0
    low_stock_threshold: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> CreateInventoryRequest:
        data = _require_mapping(data)
        return cls(
            product_id=_int(data, "product_id", _INT64, required=True),
            available_stock=_int(data, "available_stock", _INT32, required=True, minimum=0),
            reserved_stock=_int(data, "reserved_stock", _INT32, minimum=0),
            low_stock_threshold=_int(data, "low_stock_threshold", _INT32, minimum=0),
        )


@dataclass
class UpdateInventoryStockRequest:
    """Input for overwriting stock levels."""

    available_stock: int
    reserved_stock: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> UpdateInventoryStockRequest:
        data = _require_mapping(data)
        return cls(
            available_stock=_int(data, "available_stock", _INT32, required=True, minimum=0),
            reserved_stock=_int(data, "reserved_stock", _INT32, minimum=0),
        )


@dataclass
class StockCheckItem:
    """One product and quantity to check for availability."""

    product_id: int
    quantity: int

    @classmethod
    def from_dict(cls, data: Any) -> StockCheckItem:
        data = _require_mapping(data)
        return cls(
            product_id=_int(data, "product_id", _INT64, required=True),
            quantity=_int(data, "quantity", _INT32, required=True, minimum=1),
        )


def _order_stock_fields(data: Any) -> dict[str, int]:
    data = _require_mapping(data)
    return {
        "product_id": _int(data, "product_id", _INT64, required=True),
        "quantity": _int(data, "quantity", _INT32, required=True, minimum=1),
        "order_id": _int(data, "order_id", _INT64, required=True),
    }


@dataclass
class ReserveStockRequest:
    """Input for holding stock for an order."""

    product_id: int
    quantity: int
    order_id: int

    @classmethod
    def from_dict(cls, data: Any) -> ReserveStockRequest:
        return cls(**_order_stock_fields(data))


@dataclass
class ReleaseStockRequest:
    """Input for returning held stock to availability."""

    product_id: int
    quantity: int
    order_id: int

    @classmethod
    def from_dict(cls, data: Any) -> ReleaseStockRequest:
        return cls(**_order_stock_fields(data))


@dataclass
class DeductStockRequest:
    """Input for consuming held stock."""

    product_id: int
    quantity: int
    order_id: int

    @classmethod
    def from_dict(cls, data: Any) -> DeductStockRequest:
        return cls(**_order_stock_fields(data))


@dataclass
class RestockRequest:
    """Input for adding stock."""

    product_id: int
    quantity: int
    reason: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> RestockRequest:
        data = _require_mapping(data)
        return cls(
            product_id=_int(data, "product_id", _INT64, required=True),
            quantity=_int(data, "quantity", _INT32, required=True, minimum=1),
            reason=_str(data, "reason", max_len=500),
        )


@dataclass
class AdjustStockRequest:
    """Input for a signed stock correction."""

    product_id: int
    quantity: int
    reason: str

    @classmethod
    def from_dict(cls, data: Any) -> AdjustStockRequest:
        data = _require_mapping(data)
        return cls(
            product_id=_int(data, "product_id", _INT64, required=True),
            quantity=_int(data, "quantity", _INT32, required=True),
            reason=_str(data, "reason", required=True, max_len=500),
        )


@dataclass
class UpdateLowStockThresholdRequest:
    """Input for changing the low-stock threshold."""

    threshold: int

    @classmethod
    def from_dict(cls, data: Any) -> UpdateLowStockThresholdRequest:
        data = _require_mapping(data)
        return cls(threshold=_int(data, "threshold", _INT32, required=True, minimum=0))


@dataclass
class ListInventoriesRequest:
    """Paging parameters for listing inventories."""

    page: int = 0
    page_size: int = 0

    @classmethod
    def from_query(cls, query: Mapping) -> ListInventoriesRequest:
        page = _query_int(query, "page", _INT32)
        page_size = _query_int(query, "page_size", _INT32)
        _check_paging(page, page_size)
        return cls(page=page, page_size=page_size)


@dataclass
class ListInventoryLogsRequest:
    """Paging parameters for one product's stock log."""

    product_id: int
    page: int = 0
    page_size: int = 0

    @classmethod
    def from_query(cls, product_id: int, query: Mapping) -> ListInventoryLogsRequest:
        if query.get("product_id") not in (None, ""):
            product_id = _query_int(query, "product_id", _INT64)
        page = _query_int(query, "page", _INT32)
        page_size = _query_int(query, "page_size", _INT32)
        _check_int("product_id", product_id, required=True)
        _check_paging(page, page_size)
        return cls(product_id=product_id, page=page, page_size=page_size)


@dataclass
class InventoryResponse:
    """An inventory record as returned to clients."""

    id: int
    product_id: int
    available_stock: int
    reserved_stock: int
    total_stock: int
    low_stock_threshold: int
    is_low_stock: bool
    version: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_inventory(cls, inventory: Inventory) -> InventoryResponse:
        threshold = inventory.low_stock_threshold or 0
        return cls(
            id=inventory.id,
            product_id=inventory.product_id,
            available_stock=inventory.available_stock,
            reserved_stock=inventory.reserved_stock,
            total_stock=inventory.available_stock + inventory.reserved_stock,
            low_stock_threshold=threshold,
            is_low_stock=inventory.available_stock <= threshold,
            version=inventory.version,
            created_at=inventory.created_at,
            updated_at=inventory.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "available_stock": self.available_stock,
            "reserved_stock": self.reserved_stock,
            "total_stock": self.total_stock,
            "low_stock_threshold": self.low_stock_threshold,
            "is_low_stock": self.is_low_stock,
            "version": self.version,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class InventoryLogResponse:
    """A stock change as returned to clients."""

    id: int
    product_id: int
    order_id: int | None
    change_type: str
    quantity_change: int
    before_available: int
    after_available: int
    before_reserved: int
    after_reserved: int
    reason: str
    operator_id: int | None
    created_at: datetime

    @classmethod
    def from_log(cls, log: InventoryLog) -> InventoryLogResponse:
        return cls(
            id=log.id,
            product_id=log.product_id,
            order_id=log.order_id,
            change_type=log.change_type,
            quantity_change=log.quantity_change,
            before_available=log.before_available,
            after_available=log.after_available,
            before_reserved=log.before_reserved,
            after_reserved=log.after_reserved,
            reason=log.reason or "",
            operator_id=log.operator_id,
            created_at=log.created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.id, "product_id": self.product_id}
        if self.order_id is not None:
            result["order_id"] = self.order_id
        result.update(
            change_type=self.change_type,
            quantity_change=self.quantity_change,
            before_available=self.before_available,
            after_available=self.after_available,
            before_reserved=self.before_reserved,
            after_reserved=self.after_reserved,
        )
        if self.reason:
            result["reason"] = self.reason
        if self.operator_id is not None:
            result["operator_id"] = self.operator_id
        result["created_at"] = self.created_at.isoformat()
        return result


@dataclass
class InventoryReservationResponse:
    """A stock reservation as returned to clients."""

    id: int
    product_id: int
    order_id: int
    quantity: int
    status: str
    expires_at: datetime
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_reservation(
        cls, reservation: InventoryReservation
    ) -> InventoryReservationResponse:
        return cls(
            id=reservation.id,
            product_id=reservation.product_id,
            order_id=reservation.order_id,
            quantity=reservation.quantity,
            status=reservation.status or "",
            expires_at=reservation.expires_at,
            created_at=reservation.created_at,
            updated_at=reservation.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "order_id": self.order_id,
            "quantity": self.quantity,
            "status": self.status,
            "expires_at": self.expires_at.isoformat(),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class PaginatedInventoriesResponse:
    """One page of inventories."""

    inventories: list[InventoryResponse] = field(default_factory=list)
    total: int = 0
    page: int = 0
    page_size: int = 0
    total_pages: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "inventories": [item.to_dict() for item in self.inventories],
            "total": self.total,
            "page": self.page,
            "page_size": self.page_size,
            "total_pages": self.total_pages,
        }


@dataclass
class PaginatedInventoryLogsResponse:
    """One page of stock log entries."""

    logs: list[InventoryLogResponse] = field(default_factory=list)
    total: int = 0
    page: int = 0
    page_size: int = 0
    total_pages: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "logs": [log.to_dict() for log in self.logs],
            "total": self.total,
            "page": self.page,
            "page_size": self.page_size,
            "total_pages": self.total_pages,
        }


@dataclass
class StockCheckResponse:
    """Result of checking one product's availability."""

    product_id: int
    available_stock: int
    reserved_stock: int
    is_available: bool
    requested_qty: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "available_stock": self.available_stock,
            "reserved_stock": self.reserved_stock,
            "is_available": self.is_available,
            "requested_qty": self.requested_qty,
        }