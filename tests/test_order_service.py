import pytest

from mallcore.errors import (
    ConcurrentUpdateError,
    InsufficientStockError,
    InvalidRequestError,
    NotFoundError,
    PermissionDeniedError,
    RecordNotFoundError,
)
from mallcore.inventory.dto import CreateInventoryRequest
from mallcore.inventory.repository import InMemoryInventoryRepository
from mallcore.inventory.service import InventoryService
from mallcore.order.dto import (
    CreateOrderRequest,
    ListOrdersRequest,
    OrderItemRequest,
    UpdateOrderStatusRequest,
)
from mallcore.order.repository import InMemoryOrderRepository
from mallcore.order.service import OrderService, ProductInfo, generate_order_no

USER = 1
OTHER_USER = 2


class Catalog:
    def __init__(self, products):
        self._products = {p.id: p for p in products}

    def get_products_by_ids(self, product_ids):
        return {pid: self._products[pid] for pid in product_ids if pid in self._products}


class FlakyInventory:
    """Delegates to a real inventory service but fails reservations a few times."""

    def __init__(self, inner, failures):
        self._inner = inner
        self.failures = failures
        self.calls = 0

    def batch_check_stock_availability(self, items):
        return self._inner.batch_check_stock_availability(items)

    def reserve_stock(self, req, expires_in_minutes=30):
        self.calls += 1
        if self.failures > 0:
            self.failures -= 1
            raise ConcurrentUpdateError()
        self._inner.reserve_stock(req, expires_in_minutes)


@pytest.fixture
def env():
    inv_repo = InMemoryInventoryRepository()
    inventory = InventoryService(inv_repo)
    inventory.create_inventory(
        CreateInventoryRequest(product_id=10, available_stock=5, low_stock_threshold=1)
    )
    inventory.create_inventory(
        CreateInventoryRequest(product_id=20, available_stock=3, low_stock_threshold=1)
    )
    catalog = Catalog(
        [ProductInfo(id=10, price=500, main_image="a.png"), ProductInfo(id=20, price=300)]
    )
    repo = InMemoryOrderRepository()
    return repo, inventory, OrderService(repo, inventory, catalog), catalog


def _request(items=((10, 2), (20, 1)), discount=0, shipping=0):
    return CreateOrderRequest(
        items=[OrderItemRequest(product_id=p, quantity=q) for p, q in items],
        receiver_name="Alice",
        receiver_phone="555-0100",
        receiver_address="1 Example Street",
        discount_amount=discount,
        shipping_fee=shipping,
    )


def test_generate_order_no_format():
    order_no = generate_order_no()
    assert order_no[:3] == "ORD"
    assert len(order_no) == 20
    assert order_no[3:].isdigit() is True


def test_create_order_reserves_stock_and_totals(env):
    repo, inventory, service, _ = env
    order = service.create_order(USER, _request(discount=100, shipping=50))
    assert order.status == "pending"
    assert order.payment_status == "unpaid"
    assert order.ship_status == "unshipped"
    assert order.total_amount == sum(item.total_price for item in order.items)
    assert order.pay_amount == order.total_amount - 100 + 50
    assert [i.product_name for i in order.items] == ["Product 10", "Product 20"]
    assert order.items[0].product_image == "a.png"
    assert order.items[1].product_image == ""
    stock = inventory.get_inventory_by_product_id(10)
    assert stock.reserved_stock == 2
    assert stock.available_stock + stock.reserved_stock == 5


def test_create_order_missing_product(env):
    repo, _, service, _ = env
    with pytest.raises(NotFoundError, match="product 99 not found"):
        service.create_order(USER, _request(items=((99, 1),)))
    assert repo.count_user_orders(USER) == 0


def test_create_order_insufficient_stock(env):
    repo, inventory, service, _ = env
    with pytest.raises(InsufficientStockError, match="product 20 insufficient stock"):
        service.create_order(USER, _request(items=((20, 4),)))
    assert repo.count_user_orders(USER) == 0
    assert inventory.get_inventory_by_product_id(20).reserved_stock == 0


def test_create_order_retries_concurrent_update(env):
    repo, inventory, _, catalog = env
    flaky = FlakyInventory(inventory, failures=1)
    service = OrderService(repo, flaky, catalog)
    order = service.create_order(USER, _request(items=((10, 1),)))
    assert flaky.calls == 2
    assert repo.count_user_orders(USER) == 1
    assert service.get_order(USER, order.id).order_no == order.order_no


def test_create_order_gives_up_after_retries(env):
    repo, inventory, _, catalog = env
    flaky = FlakyInventory(inventory, failures=10)
    service = OrderService(repo, flaky, catalog)
    with pytest.raises(ConcurrentUpdateError, match="failed after 3 retries"):
        service.create_order(USER, _request(items=((10, 1),)))
    assert flaky.calls == 3
    assert repo.count_user_orders(USER) == 0


def test_get_order_checks_existence_and_owner(env):
    _, _, service, _ = env
    order = service.create_order(USER, _request())
    assert service.get_order(USER, order.id).items == order.items
    assert service.get_order_by_order_no(USER, order.order_no).id == order.id
    with pytest.raises(PermissionDeniedError, match="unauthorized access to order"):
        service.get_order(OTHER_USER, order.id)
    with pytest.raises(PermissionDeniedError):
        service.get_order_by_order_no(OTHER_USER, order.order_no)
    with pytest.raises(NotFoundError, match="order not found"):
        service.get_order(USER, 999)
    with pytest.raises(NotFoundError, match="order not found"):
        service.get_order_by_order_no(USER, "missing")


def test_list_user_orders_pages(env):
    _, _, service, _ = env
    first = service.create_order(USER, _request(items=((10, 1),)))
    second = service.create_order(USER, _request(items=((20, 1),)))
    page = service.list_user_orders(USER, ListOrdersRequest(page=1, page_size=1))
    assert page.total == 2
    assert page.total_pages == 2
    assert [o.id for o in page.orders] == [second.id]
    assert page.orders[0].items == second.items
    defaults = service.list_user_orders(USER, ListOrdersRequest())
    assert (defaults.page, defaults.page_size) == (1, 20)
    assert [o.id for o in defaults.orders] == [second.id, first.id]


def test_update_order_status_owner_only(env):
    _, _, service, _ = env
    order = service.create_order(USER, _request())
    with pytest.raises(PermissionDeniedError):
        service.update_order_status(OTHER_USER, order.id, UpdateOrderStatusRequest("paid"))
    service.update_order_status(USER, order.id, UpdateOrderStatusRequest("refunded"))
    assert service.get_order(USER, order.id).status == "refunded"


def test_cancel_pending_order_releases_stock(env):
    _, inventory, service, _ = env
    order = service.create_order(USER, _request(items=((10, 2),)))
    service.cancel_order(USER, order.id)
    assert service.get_order(USER, order.id).status == "cancelled"
    stock = inventory.get_inventory_by_product_id(10)
    assert stock.reserved_stock == 0
    assert stock.available_stock == 5
    with pytest.raises(InvalidRequestError, match="order cannot be cancelled"):
        service.cancel_order(USER, order.id)


def test_cancel_order_other_user(env):
    _, _, service, _ = env
    order = service.create_order(USER, _request())
    with pytest.raises(PermissionDeniedError):
        service.cancel_order(OTHER_USER, order.id)
    assert service.get_order(USER, order.id).status == "pending"


def test_pay_ship_complete_lifecycle(env):
    _, inventory, service, _ = env
    order = service.create_order(USER, _request(items=((10, 2),)))
    with pytest.raises(InvalidRequestError, match="order status is pending, cannot ship"):
        service.ship_order(order.id)
    service.pay_order(USER, order.id)
    assert service.get_order(USER, order.id).status == "paid"
    stock = inventory.get_inventory_by_product_id(10)
    assert stock.reserved_stock == 0
    assert stock.available_stock + 2 == 5
    with pytest.raises(InvalidRequestError, match="order status is paid, cannot pay"):
        service.pay_order(USER, order.id)
    with pytest.raises(InvalidRequestError, match="cannot complete"):
        service.complete_order(order.id)
    service.ship_order(order.id)
    service.complete_order(order.id)
    assert service.get_order(USER, order.id).status == "completed"
    with pytest.raises(InvalidRequestError):
        service.cancel_order(USER, order.id)


def test_pay_order_errors(env):
    _, _, service, _ = env
    order = service.create_order(USER, _request())
    with pytest.raises(NotFoundError):
        service.pay_order(USER, 999)
    with pytest.raises(PermissionDeniedError):
        service.pay_order(OTHER_USER, order.id)


def test_ship_missing_order(env):
    _, _, service, _ = env
    with pytest.raises(RecordNotFoundError, match="failed to get order"):
        service.ship_order(999)


def test_update_payment_and_ship_status(env):
    _, _, service, _ = env
    order = service.create_order(USER, _request())
    service.update_payment_status(order.id, "paid")
    paid = service.get_order(USER, order.id)
    assert (paid.status, paid.payment_status) == ("paid", "paid")
    service.update_ship_status(order.id, "shipped")
    shipped = service.get_order(USER, order.id)
    assert (shipped.status, shipped.ship_status) == ("shipped", "shipped")
    service.update_payment_status(order.id, "refunding")
    assert service.get_order(USER, order.id).status == "shipped"