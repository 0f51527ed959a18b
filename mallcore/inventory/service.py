"""Inventory business rules: stock levels, reservations and change logs."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

from mallcore.errors import (
    ConflictError,
    InsufficientStockError,
    InvalidRequestError,
    MallError,
    NotFoundError,
    RecordNotFoundError,
)
from mallcore.inventory.dto import (
    AdjustStockRequest,
    CreateInventoryRequest,
    DeductStockRequest,
    Inventory,
    InventoryLogResponse,
    InventoryResponse,
    ListInventoriesRequest,
    ListInventoryLogsRequest,
    PaginatedInventoriesResponse,
    PaginatedInventoryLogsResponse,
    ReleaseStockRequest,
    ReserveStockRequest,
    RestockRequest,
    StockCheckItem,
    StockCheckResponse,
    UpdateLowStockThresholdRequest,
)
from mallcore.inventory.repository import InventoryRepository

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 20
EXPIRED_BATCH_SIZE = 100


@contextmanager
def _failing(context: str) -> Iterator[None]:
    """Prefix any package error raised in the block with ``context``, keeping its type."""
    try:
        yield
    except MallError as exc:
        raise type(exc)(f"{context}: {exc}") from exc


def _page_defaults(page: int, page_size: int) -> tuple[int, int]:
    return page or DEFAULT_PAGE, page_size or DEFAULT_PAGE_SIZE


def _total_pages(total: int, page_size: int) -> int:
    return (total + page_size - 1) // page_size


class InventoryService:
    """Stock management with optimistic locking to prevent overselling."""

    def __init__(self, repo: InventoryRepository) -> None:
        self._repo = repo

    def _find(self, repo: InventoryRepository, product_id: int) -> Inventory:
        """Fetch an inventory, turning a missing row into ``NotFoundError``."""
        try:
            return repo.get_inventory_by_product_id(product_id)
        except RecordNotFoundError:
            raise NotFoundError("inventory not found") from None
        except MallError as exc:
            raise type(exc)(f"failed to get inventory: {exc}") from exc

    def create_inventory(self, req: CreateInventoryRequest) -> InventoryResponse:
        try:
            self._repo.get_inventory_by_product_id(req.product_id)
        except RecordNotFoundError:
            pass
        except MallError as exc:
            raise type(exc)(f"failed to check existing inventory: {exc}") from exc
        else:
            raise ConflictError("inventory already exists for this product")

        with _failing("failed to create inventory"):
            inventory = self._repo.create_inventory(
                product_id=req.product_id,
                available_stock=req.available_stock,
                reserved_stock=req.reserved_stock,
                low_stock_threshold=req.low_stock_threshold,
            )
        return InventoryResponse.from_inventory(inventory)

    def get_inventory_by_product_id(self, product_id: int) -> InventoryResponse:
        return InventoryResponse.from_inventory(self._find(self._repo, product_id))

    def list_inventories(self, req: ListInventoriesRequest) -> PaginatedInventoriesResponse:
        page, page_size = _page_defaults(req.page, req.page_size)
        offset = (page - 1) * page_size
        with _failing("failed to list inventories"):
            rows = self._repo.list_inventories(page_size, offset)
        with _failing("failed to count inventories"):
            total = self._repo.count_inventories()
        return PaginatedInventoriesResponse(
            inventories=[InventoryResponse.from_inventory(inv) for inv in rows],
            total=total,
            page=page,
            page_size=page_size,
            total_pages=_total_pages(total, page_size),
        )

    def list_low_stock_inventories(
        self, page: int = 0, page_size: int = 0
    ) -> PaginatedInventoriesResponse:
        page, page_size = _page_defaults(page, page_size)
        offset = (page - 1) * page_size
        with _failing("failed to list low stock inventories"):
            rows = self._repo.list_low_stock_inventories(page_size, offset)
        with _failing("failed to count low stock inventories"):
            total = self._repo.count_low_stock_inventories()
        return PaginatedInventoriesResponse(
            inventories=[InventoryResponse.from_inventory(inv) for inv in rows],
            total=total,
            page=page,
            page_size=page_size,
            total_pages=_total_pages(total, page_size),
        )

    def update_low_stock_threshold(
        self, product_id: int, req: UpdateLowStockThresholdRequest
    ) -> None:
        self._repo.update_low_stock_threshold(product_id, req.threshold)

    def reserve_stock(self, req: ReserveStockRequest, expires_in_minutes: int = 30) -> None:
        """Hold stock for an order until it is paid, released or expires."""
        with self._repo.transaction() as tx:
            inventory = self._find(tx, req.product_id)
            if inventory.available_stock < req.quantity:
                raise InsufficientStockError()

            with _failing("failed to reserve stock (possible concurrent update)"):
                tx.reserve_stock(
                    product_id=req.product_id,
                    quantity=req.quantity,
                    version=inventory.version,
                )

            expires_at = datetime.now(timezone.utc) + timedelta(minutes=expires_in_minutes)
            with _failing("failed to create reservation"):
                tx.create_inventory_reservation(
                    product_id=req.product_id,
                    order_id=req.order_id,
                    quantity=req.quantity,
                    status="active",
                    expires_at=expires_at,
                )

            with _failing("failed to create inventory log"):
                tx.create_inventory_log(
                    product_id=req.product_id,
                    order_id=req.order_id,
                    change_type="reserve",
                    quantity_change=req.quantity,
                    before_available=inventory.available_stock,
                    after_available=inventory.available_stock - req.quantity,
                    before_reserved=inventory.reserved_stock,
                    after_reserved=inventory.reserved_stock + req.quantity,
                    reason="Stock reserved for order",
                    operator_id=None,
                )

    def release_stock(self, req: ReleaseStockRequest) -> None:
        """Return reserved stock to availability, e.g. for a cancelled order."""
        with self._repo.transaction() as tx:
            with _failing("failed to get inventory"):
                inventory = tx.get_inventory_by_product_id(req.product_id)

            with _failing("failed to release stock"):
                tx.release_reserved_stock(
                    product_id=req.product_id,
                    quantity=req.quantity,
                    version=inventory.version,
                )

            with _failing("failed to cancel reservation"):
                tx.cancel_reservation(req.order_id)

            with _failing("failed to create inventory log"):
                tx.create_inventory_log(
                    product_id=req.product_id,
                    order_id=req.order_id,
                    change_type="release",
                    quantity_change=-req.quantity,
                    before_available=inventory.available_stock,
                    after_available=inventory.available_stock + req.quantity,
                    before_reserved=inventory.reserved_stock,
                    after_reserved=inventory.reserved_stock - req.quantity,
                    reason="Stock released from cancelled order",
                    operator_id=None,
                )

    def deduct_stock(self, req: DeductStockRequest) -> None:
        """Consume reserved stock, e.g. once an order is paid."""
        with self._repo.transaction() as tx:
            with _failing("failed to get inventory"):
                inventory = tx.get_inventory_by_product_id(req.product_id)

            with _failing("failed to deduct stock"):
                tx.deduct_reserved_stock(
                    product_id=req.product_id,
                    quantity=req.quantity,
                    version=inventory.version,
                )

            with _failing("failed to confirm reservation"):
                tx.confirm_reservation(req.order_id)

            with _failing("failed to create inventory log"):
                tx.create_inventory_log(
                    product_id=req.product_id,
                    order_id=req.order_id,
                    change_type="deduct",
                    quantity_change=-req.quantity,
                    before_available=inventory.available_stock,
                    after_available=inventory.available_stock,
                    before_reserved=inventory.reserved_stock,
                    after_reserved=inventory.reserved_stock - req.quantity,
                    reason="Stock deducted for confirmed order",
                    operator_id=None,
                )

    def restock_inventory(self, req: RestockRequest, operator_id: int | None = None) -> None:
        with self._repo.transaction() as tx:
            with _failing("failed to get inventory"):
                inventory = tx.get_inventory_by_product_id(req.product_id)

            with _failing("failed to add stock"):
                tx.add_available_stock(product_id=req.product_id, quantity=req.quantity)

            with _failing("failed to create inventory log"):
                tx.create_inventory_log(
                    product_id=req.product_id,
                    order_id=None,
                    change_type="restock",
                    quantity_change=req.quantity,
                    before_available=inventory.available_stock,
                    after_available=inventory.available_stock + req.quantity,
                    before_reserved=inventory.reserved_stock,
                    after_reserved=inventory.reserved_stock,
                    reason=req.reason,
                    operator_id=operator_id,
                )

    def adjust_stock(self, req: AdjustStockRequest, operator_id: int | None = None) -> None:
        """Apply a signed correction to available stock."""
        with self._repo.transaction() as tx:
            with _failing("failed to get inventory"):
                inventory = tx.get_inventory_by_product_id(req.product_id)

            new_available = inventory.available_stock + req.quantity
            if new_available < 0:
                raise InvalidRequestError("adjustment would result in negative stock")

            with _failing("failed to adjust stock"):
                tx.update_inventory_stock(
                    product_id=req.product_id,
                    available_stock=new_available,
                    reserved_stock=inventory.reserved_stock,
                    version=inventory.version,
                )

            with _failing("failed to create inventory log"):
                tx.create_inventory_log(
                    product_id=req.product_id,
                    order_id=None,
                    change_type="adjust",
                    quantity_change=req.quantity,
                    before_available=inventory.available_stock,
                    after_available=new_available,
                    before_reserved=inventory.reserved_stock,
                    after_reserved=inventory.reserved_stock,
                    reason=req.reason,
                    operator_id=operator_id,
                )

    def check_stock_availability(self, product_id: int, quantity: int) -> StockCheckResponse:
        inventory = self._find(self._repo, product_id)
        return StockCheckResponse(
            product_id=product_id,
            available_stock=inventory.available_stock,
            reserved_stock=inventory.reserved_stock,
            is_available=inventory.available_stock >= quantity,
            requested_qty=quantity,
        )

    def batch_check_stock_availability(
        self, items: Iterable[StockCheckItem]
    ) -> dict[int, StockCheckResponse]:
        return {
            item.product_id: self.check_stock_availability(item.product_id, item.quantity)
            for item in items
        }

    def confirm_reservation(self, order_id: int) -> None:
        self._repo.confirm_reservation(order_id)

    def cancel_reservation(self, order_id: int) -> None:
        self._repo.cancel_reservation(order_id)

    def cleanup_expired_reservations(self) -> None:
        """Release stock held by one batch of expired reservations."""
        with _failing("failed to get expired reservations"):
            expired = self._repo.get_expired_reservations(EXPIRED_BATCH_SIZE)

        for reservation in expired:
            try:
                self.release_stock(
                    ReleaseStockRequest(
                        product_id=reservation.product_id,
                        quantity=reservation.quantity,
                        order_id=reservation.order_id,
                    )
                )
            except MallError as exc:
                logger.warning(
                    "failed to release stock for expired reservation %d: %s",
                    reservation.id,
                    exc,
                )

    def get_inventory_logs(self, req: ListInventoryLogsRequest) -> PaginatedInventoryLogsResponse:
        page, page_size = _page_defaults(req.page, req.page_size)
        offset = (page - 1) * page_size
        with _failing("failed to get inventory logs"):
            logs = self._repo.get_inventory_logs_by_product_id(req.product_id, page_size, offset)
        with _failing("failed to count inventory logs"):
            total = self._repo.count_inventory_logs_by_product_id(req.product_id)
        return PaginatedInventoryLogsResponse(
            logs=[InventoryLogResponse.from_log(log) for log in logs],
            total=total,
            page=page,
            page_size=page_size,
            total_pages=_total_pages(total, page_size),
        )