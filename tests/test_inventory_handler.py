import pytest

from mallcore.inventory.handler import InventoryHandler
from mallcore.inventory.repository import InMemoryInventoryRepository
from mallcore.inventory.service import InventoryService

PAGE = {"page": "1", "page_size": "20"}


@pytest.fixture
def handler():
    return InventoryHandler(InventoryService(InMemoryInventoryRepository()))


def _create(handler, product_id=7, stock=10, **extra):
    body = {"product_id": product_id, "available_stock": stock, **extra}
    return handler.create_inventory(body)


def _inventory(handler, product_id=7):
    return handler.get_inventory_by_product(str(product_id)).body["data"]


def test_routes_cover_every_endpoint(handler):
    routes = handler.routes()
    pairs = {(r.method, r.path) for r in routes}
    assert len(pairs) == len(routes) == 14
    assert ("POST", "/inventory/reserve") in pairs
    assert ("PUT", "/inventory/:product_id/threshold") in pairs
    assert all(callable(r.handler) for r in routes)


def test_create_inventory_returns_201(handler):
    resp = _create(handler)
    assert resp.status == 201
    data = resp.body["data"]
    assert data["product_id"] == 7
    assert data["available_stock"] == 10
    assert data["total_stock"] == data["available_stock"] + data["reserved_stock"]


def test_create_inventory_twice_fails(handler):
    _create(handler)
    resp = _create(handler)
    assert resp.status == 500
    assert resp.body["message"] == "inventory already exists for this product"


def test_create_inventory_invalid_body(handler):
    resp = handler.create_inventory({"available_stock": 3})
    assert resp.status == 400
    assert resp.body["message"].startswith("invalid request: ")


def test_get_inventory_bad_id(handler):
    resp = handler.get_inventory_by_product("x")
    assert resp.status == 400
    assert resp.body["message"] == "invalid product id"


def test_get_inventory_missing(handler):
    resp = handler.get_inventory_by_product("99")
    assert resp.status == 404
    assert resp.body["message"] == "inventory not found"


def test_get_inventory_found(handler):
    _create(handler)
    resp = handler.get_inventory_by_product("7")
    assert resp.status == 200
    assert resp.body["data"]["product_id"] == 7


@pytest.mark.parametrize("query", [{}, {"quantity": "0"}, {"quantity": "-1"}, {"quantity": "x"}])
def test_check_stock_invalid_quantity(handler, query):
    _create(handler)
    resp = handler.check_stock("7", query)
    assert resp.status == 400
    assert resp.body["message"] == "invalid quantity"


def test_check_stock_available_and_not(handler):
    _create(handler)
    ok = handler.check_stock("7", {"quantity": "10"}).body["data"]
    too_many = handler.check_stock("7", {"quantity": "11"}).body["data"]
    assert ok["is_available"] is True
    assert ok["requested_qty"] == 10
    assert too_many["is_available"] is False


def test_check_stock_missing_inventory_is_server_error(handler):
    resp = handler.check_stock("5", {"quantity": "1"})
    assert resp.status == 500
    assert resp.body["message"] == "inventory not found"


def test_batch_check_stock(handler):
    _create(handler, product_id=1)
    _create(handler, product_id=2)
    resp = handler.batch_check_stock(
        [{"product_id": 1, "quantity": 2}, {"product_id": 2, "quantity": 50}]
    )
    assert resp.status == 200
    data = resp.body["data"]
    assert set(data) == {"1", "2"}
    assert data["1"]["is_available"] is True
    assert data["2"]["is_available"] is False


def test_batch_check_stock_rejects_non_list(handler):
    resp = handler.batch_check_stock({"product_id": 1, "quantity": 1})
    assert resp.status == 400


def test_batch_check_stock_rejects_bad_item(handler):
    resp = handler.batch_check_stock([{"product_id": 1, "quantity": 0}])
    assert resp.status == 400
    assert resp.body["message"].startswith("invalid request: ")


def test_reserve_moves_stock_to_reserved(handler):
    _create(handler)
    before = _inventory(handler)
    resp = handler.reserve_stock({"product_id": 7, "quantity": 4, "order_id": 3})
    assert resp.status == 200
    assert resp.body["data"] == {"message": "stock reserved successfully"}
    after = _inventory(handler)
    assert after["reserved_stock"] == 4
    assert after["total_stock"] == before["total_stock"]


def test_reserve_insufficient_stock(handler):
    _create(handler)
    resp = handler.reserve_stock({"product_id": 7, "quantity": 11, "order_id": 3})
    assert resp.status == 400
    assert _inventory(handler)["reserved_stock"] == 0


def test_release_returns_reserved_stock(handler):
    _create(handler)
    before = _inventory(handler)
    handler.reserve_stock({"product_id": 7, "quantity": 4, "order_id": 3})
    resp = handler.release_stock({"product_id": 7, "quantity": 4, "order_id": 3})
    assert resp.body["data"] == {"message": "stock released successfully"}
    after = _inventory(handler)
    assert after["reserved_stock"] == 0
    assert after["available_stock"] == before["available_stock"]


def test_deduct_consumes_reserved_stock(handler):
    _create(handler)
    handler.reserve_stock({"product_id": 7, "quantity": 4, "order_id": 3})
    reserved = _inventory(handler)
    resp = handler.deduct_stock({"product_id": 7, "quantity": 4, "order_id": 3})
    assert resp.body["data"] == {"message": "stock deducted successfully"}
    after = _inventory(handler)
    assert after["reserved_stock"] == 0
    assert after["available_stock"] == reserved["available_stock"]


def test_deduct_invalid_body(handler):
    resp = handler.deduct_stock({"product_id": 7, "quantity": 1})
    assert resp.status == 400


def test_restock_records_operator(handler):
    _create(handler)
    resp = handler.restock({"product_id": 7, "quantity": 5, "reason": "delivery"}, 42)
    assert resp.body["data"] == {"message": "inventory restocked successfully"}
    logs = handler.get_inventory_logs("7", PAGE).body["data"]["logs"]
    restocks = [log for log in logs if log["change_type"] == "restock"]
    assert len(restocks) == 1
    assert restocks[0]["operator_id"] == 42
    assert restocks[0]["reason"] == "delivery"
    assert restocks[0]["quantity_change"] == 5


def test_adjust_negative_beyond_stock_fails(handler):
    _create(handler)
    resp = handler.adjust_stock({"product_id": 7, "quantity": -11, "reason": "loss"})
    assert resp.status == 500
    assert resp.body["message"] == "adjustment would result in negative stock"


def test_adjust_requires_reason(handler):
    _create(handler)
    resp = handler.adjust_stock({"product_id": 7, "quantity": -1})
    assert resp.status == 400


def test_update_threshold(handler):
    _create(handler)
    resp = handler.update_threshold("7", {"threshold": 15})
    assert resp.body["data"] == {"message": "threshold updated successfully"}
    data = _inventory(handler)
    assert data["low_stock_threshold"] == 15
    assert data["is_low_stock"] is True


def test_update_threshold_bad_id(handler):
    resp = handler.update_threshold("abc", {"threshold": 1})
    assert resp.status == 400
    assert resp.body["message"] == "invalid product id"


def test_list_inventories_requires_paging(handler):
    resp = handler.list_inventories({})
    assert resp.status == 400


def test_list_inventories_page(handler):
    _create(handler, product_id=1)
    _create(handler, product_id=2)
    data = handler.list_inventories({"page": "1", "page_size": "10"}).body["data"]
    assert data["total"] == 2
    assert {inv["product_id"] for inv in data["inventories"]} == {1, 2}


def test_list_low_stock_defaults(handler):
    data = handler.list_low_stock({}).body["data"]
    assert data["page"] == 1
    assert data["page_size"] == 20


def test_list_low_stock_garbage_falls_back_to_defaults(handler):
    data = handler.list_low_stock({"page": "abc", "page_size": "x"}).body["data"]
    assert data["page"] == 1
    assert data["page_size"] == 20


def test_get_inventory_logs_bad_id(handler):
    resp = handler.get_inventory_logs("nope", PAGE)
    assert resp.status == 400
    assert resp.body["message"] == "invalid product id"


def test_cleanup_expired_reservations(handler):
    resp = handler.cleanup_expired_reservations()
    assert resp.status == 200
    assert resp.body["data"] == {"message": "expired reservations cleaned up successfully"}