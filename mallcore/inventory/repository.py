"""Inventory storage: stock levels, change logs and reservations."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Protocol

from mallcore.errors import (
    ConcurrentUpdateError,
    ConflictError,
    InsufficientStockError,
    RecordNotFoundError,
)
from mallcore.inventory.dto import Inventory, InventoryLog, InventoryReservation


class InventoryRepository(Protocol):
    """Data access used by the inventory service."""

    def create_inventory(
        self, *, product_id: int, available_stock: int, reserved_stock: int,
        low_stock_threshold: int | None,
    ) -> Inventory: ...

    def get_inventory_by_product_id(self, product_id: int) -> Inventory: ...

    def get_inventory_by_id(self, inventory_id: int) -> Inventory: ...

    def list_inventories(self, limit: int, offset: int) -> list[Inventory]: ...

    def list_low_stock_inventories(self, limit: int, offset: int) -> list[Inventory]: ...

    def count_inventories(self) -> int: ...

    def count_low_stock_inventories(self) -> int: ...

    def update_inventory_stock(
        self, *, product_id: int, available_stock: int, reserved_stock: int, version: int
    ) -> None: ...

    def reserve_stock(self, *, product_id: int, quantity: int, version: int) -> None: ...

    def release_reserved_stock(self, *, product_id: int, quantity: int, version: int) -> None: ...

    def deduct_reserved_stock(self, *, product_id: int, quantity: int, version: int) -> None: ...

    def add_available_stock(self, *, product_id: int, quantity: int) -> None: ...

    def update_low_stock_threshold(self, product_id: int, threshold: int | None) -> None: ...

    def delete_inventory(self, product_id: int) -> None: ...

    def create_inventory_log(
        self, *, product_id: int, order_id: int | None, change_type: str,
        quantity_change: int, before_available: int, after_available: int,
        before_reserved: int, after_reserved: int, reason: str | None,
        operator_id: int | None,
    ) -> InventoryLog: ...

    def get_inventory_logs_by_product_id(
        self, product_id: int, limit: int, offset: int
    ) -> list[InventoryLog]: ...

    def get_inventory_logs_by_order_id(self, order_id: int) -> list[InventoryLog]: ...

    def count_inventory_logs_by_product_id(self, product_id: int) -> int: ...

    def create_inventory_reservation(
        self, *, product_id: int, order_id: int, quantity: int, status: str | None,
        expires_at: datetime,
    ) -> InventoryReservation: ...

    def get_inventory_reservation_by_id(self, reservation_id: int) -> InventoryReservation: ...

    def get_inventory_reservation_by_order_id(self, order_id: int) -> list[InventoryReservation]: ...

    def get_active_reservations_by_product_id(
        self, product_id: int
    ) -> list[InventoryReservation]: ...

    def update_reservation_status(self, reservation_id: int, status: str) -> None: ...

    def confirm_reservation(self, order_id: int) -> None: ...

    def cancel_reservation(self, order_id: int) -> None: ...

    def get_expired_reservations(self, limit: int) -> list[InventoryReservation]: ...

    def delete_reservation(self, reservation_id: int) -> None: ...

    def transaction(self) -> AbstractContextManager[InventoryRepository]: ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _is_low(inventory: Inventory) -> bool:
    return inventory.available_stock <= (inventory.low_stock_threshold or 0)


class InMemoryInventoryRepository:
    """Inventory repository kept in process memory, with optimistic locking."""

    def __init__(self) -> None:
        self._inventories: dict[int, Inventory] = {}
        self._logs: list[InventoryLog] = []
        self._reservations: dict[int, InventoryReservation] = {}
        self._next_ids = {"inventory": 1, "log": 1, "reservation": 1}

    def _allocate(self, kind: str) -> int:
        new_id = self._next_ids[kind]
        self._next_ids[kind] = new_id + 1
        return new_id

    def _store(self, current: Inventory, **changes: int | None) -> None:
        self._inventories[current.product_id] = replace(
            current, version=current.version + 1, updated_at=_now(), **changes
        )

    def _locked(self, product_id: int, version: int) -> Inventory:
        current = self.get_inventory_by_product_id(product_id)
        if current.version != version:
            raise ConcurrentUpdateError()
        return current

    def _inventory_page(
        self, predicate: Callable[[Inventory], bool], limit: int, offset: int
    ) -> list[Inventory]:
        rows = sorted(
            (inv for inv in self._inventories.values() if predicate(inv)),
            key=lambda inv: inv.id,
        )
        return rows[offset : offset + limit]

    def create_inventory(
        self,
        *,
        product_id: int,
        available_stock: int,
        reserved_stock: int = 0,
        low_stock_threshold: int | None = None,
    ) -> Inventory:
        if product_id in self._inventories:
            raise ConflictError("inventory already exists for this product")
        stamp = _now()
        inventory = Inventory(
            id=self._allocate("inventory"),
            product_id=product_id,
            available_stock=available_stock,
            reserved_stock=reserved_stock,
            low_stock_threshold=low_stock_threshold,
            version=1,
            created_at=stamp,
            updated_at=stamp,
        )
        self._inventories[product_id] = inventory
        return inventory

    def get_inventory_by_product_id(self, product_id: int) -> Inventory:
        try:
            return self._inventories[product_id]
        except KeyError:
            raise RecordNotFoundError() from None

    def get_inventory_by_id(self, inventory_id: int) -> Inventory:
        for inventory in self._inventories.values():
            if inventory.id == inventory_id:
                return inventory
        raise RecordNotFoundError()

    def list_inventories(self, limit: int, offset: int) -> list[Inventory]:
        return self._inventory_page(lambda inv: True, limit, offset)

    def list_low_stock_inventories(self, limit: int, offset: int) -> list[Inventory]:
        return self._inventory_page(_is_low, limit, offset)

    def count_inventories(self) -> int:
        return len(self._inventories)

    def count_low_stock_inventories(self) -> int:
        return sum(1 for inv in self._inventories.values() if _is_low(inv))

    def update_inventory_stock(
        self, *, product_id: int, available_stock: int, reserved_stock: int, version: int
    ) -> None:
        current = self._locked(product_id, version)
        self._store(current, available_stock=available_stock, reserved_stock=reserved_stock)

    def reserve_stock(self, *, product_id: int, quantity: int, version: int) -> None:
        """Move ``quantity`` from available to reserved."""
        current = self._locked(product_id, version)
        if current.available_stock < quantity:
            raise InsufficientStockError()
        self._store(
            current,
            available_stock=current.available_stock - quantity,
            reserved_stock=current.reserved_stock + quantity,
        )

    def release_reserved_stock(self, *, product_id: int, quantity: int, version: int) -> None:
        """Move ``quantity`` from reserved back to available."""
        current = self._locked(product_id, version)
        if current.reserved_stock < quantity:
            raise InsufficientStockError("insufficient reserved stock")
        self._store(
            current,
            available_stock=current.available_stock + quantity,
            reserved_stock=current.reserved_stock - quantity,
        )

    def deduct_reserved_stock(self, *, product_id: int, quantity: int, version: int) -> None:
        """Consume ``quantity`` of reserved stock."""
        current = self._locked(product_id, version)
        if current.reserved_stock < quantity:
            raise InsufficientStockError("insufficient reserved stock")
        self._store(current, reserved_stock=current.reserved_stock - quantity)

    def add_available_stock(self, *, product_id: int, quantity: int) -> None:
        current = self.get_inventory_by_product_id(product_id)
        self._store(current, available_stock=current.available_stock + quantity)

    def update_low_stock_threshold(self, product_id: int, threshold: int | None) -> None:
        current = self.get_inventory_by_product_id(product_id)
        self._inventories[product_id] = replace(
            current, low_stock_threshold=threshold, updated_at=_now()
        )

    def delete_inventory(self, product_id: int) -> None:
        self._inventories.pop(product_id, None)

    def create_inventory_log(
        self,
        *,
        product_id: int,
        order_id: int | None = None,
        change_type: str,
        quantity_change: int,
        before_available: int,
        after_available: int,
        before_reserved: int,
        after_reserved: int,
        reason: str | None = None,
        operator_id: int | None = None,
    ) -> InventoryLog:
        log = InventoryLog(
            id=self._allocate("log"),
            product_id=product_id,
            order_id=order_id,
            change_type=change_type,
            quantity_change=quantity_change,
            before_available=before_available,
            after_available=after_available,
            before_reserved=before_reserved,
            after_reserved=after_reserved,
            reason=reason,
            operator_id=operator_id,
            created_at=_now(),
        )
        self._logs.append(log)
        return log

    def get_inventory_logs_by_product_id(
        self, product_id: int, limit: int, offset: int
    ) -> list[InventoryLog]:
        """Logs for a product, newest first."""
        rows = [log for log in reversed(self._logs) if log.product_id == product_id]
        return rows[offset : offset + limit]

    def get_inventory_logs_by_order_id(self, order_id: int) -> list[InventoryLog]:
        return [log for log in self._logs if log.order_id == order_id]

    def count_inventory_logs_by_product_id(self, product_id: int) -> int:
        return sum(1 for log in self._logs if log.product_id == product_id)

    def create_inventory_reservation(
        self,
        *,
        product_id: int,
        order_id: int,
        quantity: int,
        status: str | None = "active",
        expires_at: datetime,
    ) -> InventoryReservation:
        stamp = _now()
        reservation = InventoryReservation(
            id=self._allocate("reservation"),
            product_id=product_id,
            order_id=order_id,
            quantity=quantity,
            status=status,
            expires_at=expires_at,
            created_at=stamp,
            updated_at=stamp,
        )
        self._reservations[reservation.id] = reservation
        return reservation

    def get_inventory_reservation_by_id(self, reservation_id: int) -> InventoryReservation:
        try:
            return self._reservations[reservation_id]
        except KeyError:
            raise RecordNotFoundError() from None

    def get_inventory_reservation_by_order_id(self, order_id: int) -> list[InventoryReservation]:
        return [r for r in self._reservations.values() if r.order_id == order_id]

    def get_active_reservations_by_product_id(
        self, product_id: int
    ) -> list[InventoryReservation]:
        return [
            r
            for r in self._reservations.values()
            if r.product_id == product_id and r.status == "active"
        ]

    def update_reservation_status(self, reservation_id: int, status: str) -> None:
        current = self.get_inventory_reservation_by_id(reservation_id)
        self._reservations[reservation_id] = replace(current, status=status, updated_at=_now())

    def _set_active_status(self, order_id: int, status: str) -> None:
        stamp = _now()
        for reservation in list(self._reservations.values()):
            if reservation.order_id == order_id and reservation.status == "active":
                self._reservations[reservation.id] = replace(
                    reservation, status=status, updated_at=stamp
                )

    def confirm_reservation(self, order_id: int) -> None:
        self._set_active_status(order_id, "confirmed")

    def cancel_reservation(self, order_id: int) -> None:
        self._set_active_status(order_id, "cancelled")

    def get_expired_reservations(self, limit: int) -> list[InventoryReservation]:
        """Active reservations past their expiry, oldest expiry first."""
        now = _now()
        expired = sorted(
            (
                r
                for r in self._reservations.values()
                if r.status == "active" and r.expires_at < now
            ),
            key=lambda r: (r.expires_at, r.id),
        )
        return expired[:limit]

    def delete_reservation(self, reservation_id: int) -> None:
        self._reservations.pop(reservation_id, None)

    @contextmanager
    def transaction(self) -> Iterator[InMemoryInventoryRepository]:
        """Run a block atomically; state is restored if it raises."""
        snapshot = (
            dict(self._inventories),
            list(self._logs),
            dict(self._reservations),
            dict(self._next_ids),
        )
        try:
            yield self
        except BaseException:
            (
                self._inventories,
                self._logs,
                self._reservations,
                self._next_ids,
            ) = snapshot
            raise