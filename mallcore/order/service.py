"""Order business rules: placement, payment, shipping and cancellation."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from mallcore.errors import (
    InsufficientStockError,
    InvalidRequestError,
    MallError,
    NotFoundError,
    PermissionDeniedError,
    RecordNotFoundError,
)
from mallcore.inventory.dto import (
    DeductStockRequest,
    ReleaseStockRequest,
    ReserveStockRequest,
    StockCheckItem,
)
from mallcore.inventory.service import InventoryService
from mallcore.order.dto import (
    CreateOrderRequest,
    ListOrdersRequest,
    Order,
    OrderResponse,
    PaginatedOrdersResponse,
    UpdateOrderStatusRequest,
)
from mallcore.order.repository import OrderRepository

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RESERVATION_MINUTES = 30
DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 20


@dataclass(frozen=True)
class ProductInfo:
    """What the order service needs to know about a product."""

    id: int
    price: int
    main_image: str = ""


class ProductLookup(Protocol):
    """Source of product prices and images."""

    def get_products_by_ids(self, product_ids: Iterable[int]) -> Mapping[int, ProductInfo]: ...


@contextmanager
def _failing(context: str) -> Iterator[None]:
    """Prefix any package error raised in the block with ``context``, keeping its type."""
    try:
        yield
    except MallError as exc:
        raise type(exc)(f"{context}: {exc}") from exc


def _is_retryable(exc: MallError) -> bool:
    message = str(exc)
    return "concurrent update" in message or "version" in message


def generate_order_no() -> str:
    """Return ``ORD`` + local YYYYMMDDHHMMSS + a three-digit sub-second suffix."""
    nanos = time.time_ns()
    moment = datetime.fromtimestamp(nanos // 1_000_000_000)
    return f"ORD{moment.strftime('%Y%m%d%H%M%S')}{nanos % 1000:03d}"


class OrderService:
    """Places orders and moves them through their lifecycle."""

    def __init__(
        self,
        repo: OrderRepository,
        inventory_service: InventoryService,
        product_service: ProductLookup,
    ) -> None:
        self._repo = repo
        self._inventory = inventory_service
        self._products = product_service

    def _owned_order(self, repo: OrderRepository, user_id: int, order_id: int) -> Order:
        try:
            order = repo.get_order_by_id(order_id)
        except RecordNotFoundError:
            raise NotFoundError("order not found") from None
        except MallError as exc:
            raise type(exc)(f"failed to get order: {exc}") from exc
        if order.user_id != user_id:
            raise PermissionDeniedError("unauthorized access to order")
        return order

    def create_order(self, user_id: int, req: CreateOrderRequest) -> OrderResponse:
        """Place an order, retrying a few times on optimistic-lock conflicts."""
        last_error: MallError | None = None
        for attempt in range(MAX_RETRIES):
            try:
                return self._create_order_once(user_id, req)
            except MallError as exc:
                if not _is_retryable(exc):
                    raise
                last_error = exc
                time.sleep(0.01 * (attempt + 1))
        assert last_error is not None
        raise type(last_error)(
            f"failed after {MAX_RETRIES} retries: {last_error}"
        ) from last_error

    def _create_order_once(self, user_id: int, req: CreateOrderRequest) -> OrderResponse:
        product_ids = [item.product_id for item in req.items]
        with _failing("failed to get products"):
            products = self._products.get_products_by_ids(product_ids)
        for item in req.items:
            if item.product_id not in products:
                raise NotFoundError(f"product {item.product_id} not found")

        with _failing("failed to check stock availability"):
            checks = self._inventory.batch_check_stock_availability(
                StockCheckItem(product_id=item.product_id, quantity=item.quantity)
                for item in req.items
            )
        for product_id, check in checks.items():
            if not check.is_available:
                raise InsufficientStockError(
                    f"product {product_id} insufficient stock, "
                    f"available: {check.available_stock}, requested: {check.requested_qty}"
                )

        with self._repo.transaction() as tx:
            total_amount = sum(
                item.quantity * products[item.product_id].price for item in req.items
            )
            pay_amount = total_amount - req.discount_amount + req.shipping_fee

            with _failing("failed to create order"):
                order = tx.create_order(
                    order_no=generate_order_no(),
                    user_id=user_id,
                    total_amount=total_amount,
                    discount_amount=req.discount_amount,
                    shipping_fee=req.shipping_fee,
                    pay_amount=pay_amount,
                    status="pending",
                    payment_status="unpaid",
                    ship_status="unshipped",
                    receiver_name=req.receiver_name,
                    receiver_phone=req.receiver_phone,
                    receiver_address=req.receiver_address,
                    receiver_zip_code=req.receiver_zip_code,
                    remark=req.remark,
                )

            items = []
            for item_req in req.items:
                product = products[item_req.product_id]
                with _failing("failed to create order item"):
                    items.append(
                        tx.create_order_item(
                            order_id=order.id,
                            product_id=item_req.product_id,
                            product_name=f"Product {item_req.product_id}",
                            product_image=product.main_image or None,
                            quantity=item_req.quantity,
                            unit_price=product.price,
                            total_price=item_req.quantity * product.price,
                        )
                    )

            for item_req in req.items:
                with _failing(f"failed to reserve stock for product {item_req.product_id}"):
                    self._inventory.reserve_stock(
                        ReserveStockRequest(
                            product_id=item_req.product_id,
                            quantity=item_req.quantity,
                            order_id=order.id,
                        ),
                        RESERVATION_MINUTES,
                    )

            return OrderResponse.from_order(order, items)

    def get_order(self, user_id: int, order_id: int) -> OrderResponse:
        order = self._owned_order(self._repo, user_id, order_id)
        with _failing("failed to get order items"):
            items = self._repo.get_order_items(order_id)
        return OrderResponse.from_order(order, items)

    def get_order_by_order_no(self, user_id: int, order_no: str) -> OrderResponse:
        try:
            order = self._repo.get_order_by_order_no(order_no)
        except RecordNotFoundError:
            raise NotFoundError("order not found") from None
        except MallError as exc:
            raise type(exc)(f"failed to get order: {exc}") from exc
        if order.user_id != user_id:
            raise PermissionDeniedError("unauthorized access to order")
        with _failing("failed to get order items"):
            items = self._repo.get_order_items(order.id)
        return OrderResponse.from_order(order, items)

    def list_user_orders(self, user_id: int, req: ListOrdersRequest) -> PaginatedOrdersResponse:
        page = req.page or DEFAULT_PAGE
        page_size = req.page_size or DEFAULT_PAGE_SIZE
        offset = (page - 1) * page_size

        with _failing("failed to list orders"):
            orders = self._repo.list_user_orders(user_id, page_size, offset)
        with _failing("failed to count orders"):
            total = self._repo.count_user_orders(user_id)

        items_by_order: dict[int, list] = {}
        if orders:
            try:
                all_items = self._repo.get_order_items_by_ids([o.id for o in orders])
            except MallError:
                all_items = []
            for item in all_items:
                items_by_order.setdefault(item.order_id, []).append(item)

        return PaginatedOrdersResponse(
            orders=[OrderResponse.from_order(o, items_by_order.get(o.id)) for o in orders],
            total=total,
            page=page,
            page_size=page_size,
            total_pages=(total + page_size - 1) // page_size,
        )

    def update_order_status(
        self, user_id: int, order_id: int, req: UpdateOrderStatusRequest
    ) -> None:
        self._owned_order(self._repo, user_id, order_id)
        with _failing("failed to update order status"):
            self._repo.update_order_status(order_id, req.status)

    def cancel_order(self, user_id: int, order_id: int) -> None:
        """Cancel an order, releasing its reserved stock if it was never paid."""
        with self._repo.transaction() as tx:
            order = self._owned_order(tx, user_id, order_id)
            if order.status in ("completed", "cancelled"):
                raise InvalidRequestError("order cannot be cancelled")

            with _failing("failed to get order items"):
                items = tx.get_order_items(order_id)

            if order.status == "pending" and order.payment_status == "unpaid":
                for item in items:
                    try:
                        self._inventory.release_stock(
                            ReleaseStockRequest(
                                product_id=item.product_id,
                                quantity=item.quantity,
                                order_id=order_id,
                            )
                        )
                    except MallError as exc:
                        logger.warning(
                            "failed to release stock for product %d: %s",
                            item.product_id,
                            exc,
                        )

            with _failing("failed to cancel order"):
                tx.cancel_order(order_id)

    def update_payment_status(self, order_id: int, status: str) -> None:
        with _failing("failed to update payment status"):
            self._repo.update_order_payment_status(order_id, status)
        if status == "paid":
            with _failing("failed to update order status"):
                self._repo.update_order_status(order_id, "paid")

    def update_ship_status(self, order_id: int, status: str) -> None:
        with _failing("failed to update ship status"):
            self._repo.update_order_ship_status(order_id, status)
        if status == "shipped":
            with _failing("failed to update order status"):
                self._repo.update_order_status(order_id, "shipped")

    def pay_order(self, user_id: int, order_id: int) -> None:
        """Mark a pending order paid and consume its reserved stock."""
        with self._repo.transaction() as tx:
            order = self._owned_order(tx, user_id, order_id)
            if order.status != "pending":
                raise InvalidRequestError(f"order status is {order.status}, cannot pay")

            with _failing("failed to get order items"):
                items = tx.get_order_items(order_id)

            for item in items:
                with _failing(f"failed to deduct stock for product {item.product_id}"):
                    self._inventory.deduct_stock(
                        DeductStockRequest(
                            product_id=item.product_id,
                            quantity=item.quantity,
                            order_id=item.order_id,
                        )
                    )

            with _failing("failed to update payment status"):
                tx.update_order_status(order_id, "paid")

    def _advance(self, order_id: int, required: str, verb: str, new_status: str,
                 update_context: str) -> None:
        with self._repo.transaction() as tx:
            with _failing("failed to get order"):
                order = tx.get_order_by_id(order_id)
            if order.status != required:
                raise InvalidRequestError(f"order status is {order.status}, cannot {verb}")
            with _failing(update_context):
                tx.update_order_status(order_id, new_status)

    def ship_order(self, order_id: int) -> None:
        """Mark a paid order shipped."""
        self._advance(order_id, "paid", "ship", "shipped", "failed to update ship status")

    def complete_order(self, order_id: int) -> None:
        """Mark a shipped order completed."""
        self._advance(
            order_id, "shipped", "complete", "completed", "failed to update order status"
        )