"""Order storage: orders and their line items."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Protocol

from mallcore.errors import RecordNotFoundError
from mallcore.order.dto import Order, OrderItem


class OrderRepository(Protocol):
    """Data access used by the order service."""

    def create_order(
        self, *, order_no: str, user_id: int, total_amount: int, discount_amount: int,
        shipping_fee: int, pay_amount: int, status: str, payment_status: str,
        ship_status: str, receiver_name: str, receiver_phone: str,
        receiver_address: str, receiver_zip_code: str | None, remark: str | None,
    ) -> Order: ...

    def get_order_by_id(self, order_id: int) -> Order: ...

    def get_order_by_order_no(self, order_no: str) -> Order: ...

    def list_user_orders(self, user_id: int, limit: int, offset: int) -> list[Order]: ...

    def count_user_orders(self, user_id: int) -> int: ...

    def update_order_status(self, order_id: int, status: str) -> None: ...

    def update_order_payment_status(self, order_id: int, payment_status: str) -> None: ...

    def update_order_ship_status(self, order_id: int, ship_status: str) -> None: ...

    def cancel_order(self, order_id: int) -> None: ...

    def create_order_item(
        self, *, order_id: int, product_id: int, product_name: str,
        product_image: str | None, quantity: int, unit_price: int, total_price: int,
    ) -> OrderItem: ...

    def get_order_items(self, order_id: int) -> list[OrderItem]: ...

    def get_order_items_by_ids(self, order_ids: Iterable[int]) -> list[OrderItem]: ...

    def transaction(self) -> AbstractContextManager[OrderRepository]: ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryOrderRepository:
    """Order repository kept in process memory."""

    def __init__(self) -> None:
        self._orders: dict[int, Order] = {}
        self._items: list[OrderItem] = []
        self._next_ids = {"order": 1, "item": 1}

    def _allocate(self, kind: str) -> int:
        new_id = self._next_ids[kind]
        self._next_ids[kind] = new_id + 1
        return new_id

    def _update(self, order_id: int, **changes: object) -> None:
        current = self.get_order_by_id(order_id)
        self._orders[order_id] = replace(current, updated_at=_now(), **changes)

    def create_order(
        self,
        *,
        order_no: str,
        user_id: int,
        total_amount: int,
        discount_amount: int = 0,
        shipping_fee: int = 0,
        pay_amount: int,
        status: str = "pending",
        payment_status: str = "unpaid",
        ship_status: str = "unshipped",
        receiver_name: str,
        receiver_phone: str,
        receiver_address: str,
        receiver_zip_code: str | None = None,
        remark: str | None = None,
    ) -> Order:
        stamp = _now()
        order = Order(
            id=self._allocate("order"),
            order_no=order_no,
            user_id=user_id,
            total_amount=total_amount,
            discount_amount=discount_amount,
            shipping_fee=shipping_fee,
            pay_amount=pay_amount,
            status=status,
            payment_status=payment_status,
            ship_status=ship_status,
            receiver_name=receiver_name,
            receiver_phone=receiver_phone,
            receiver_address=receiver_address,
            receiver_zip_code=receiver_zip_code,
            remark=remark,
            created_at=stamp,
            updated_at=stamp,
        )
        self._orders[order.id] = order
        return order

    def get_order_by_id(self, order_id: int) -> Order:
        try:
            return self._orders[order_id]
        except KeyError:
            raise RecordNotFoundError() from None

    def get_order_by_order_no(self, order_no: str) -> Order:
        for order in self._orders.values():
            if order.order_no == order_no:
                return order
        raise RecordNotFoundError()

    def list_user_orders(self, user_id: int, limit: int, offset: int) -> list[Order]:
        """A user's orders, newest first."""
        rows = sorted(
            (o for o in self._orders.values() if o.user_id == user_id),
            key=lambda o: o.id,
            reverse=True,
        )
        return rows[offset : offset + limit]

    def count_user_orders(self, user_id: int) -> int:
        return sum(1 for o in self._orders.values() if o.user_id == user_id)

    def update_order_status(self, order_id: int, status: str) -> None:
        self._update(order_id, status=status)

    def update_order_payment_status(self, order_id: int, payment_status: str) -> None:
        self._update(order_id, payment_status=payment_status)

    def update_order_ship_status(self, order_id: int, ship_status: str) -> None:
        self._update(order_id, ship_status=ship_status)

    def cancel_order(self, order_id: int) -> None:
        self._update(order_id, status="cancelled", cancelled_at=_now())

    def create_order_item(
        self,
        *,
        order_id: int,
        product_id: int,
        product_name: str,
        product_image: str | None = None,
        quantity: int,
        unit_price: int,
        total_price: int,
    ) -> OrderItem:
        item = OrderItem(
            id=self._allocate("item"),
            order_id=order_id,
            product_id=product_id,
            product_name=product_name,
            product_image=product_image,
            quantity=quantity,
            unit_price=unit_price,
            total_price=total_price,
        )
        self._items.append(item)
        return item

    def get_order_items(self, order_id: int) -> list[OrderItem]:
        return [item for item in self._items if item.order_id == order_id]

    def get_order_items_by_ids(self, order_ids: Iterable[int]) -> list[OrderItem]:
        wanted = set(order_ids)
        return [item for item in self._items if item.order_id in wanted]

    @contextmanager
    def transaction(self) -> Iterator[InMemoryOrderRepository]:
        """Run a block atomically; state is restored if it raises."""
        snapshot = (dict(self._orders), list(self._items), dict(self._next_ids))
        try:
            yield self
        except BaseException:
            self._orders, self._items, self._next_ids = snapshot
            raise