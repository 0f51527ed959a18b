import pytest

from mallcore.category.handler import CategoryHandler
from mallcore.category.repository import InMemoryCategoryRepository
from mallcore.category.service import CategoryService


@pytest.fixture
def handler():
    return CategoryHandler(CategoryService(InMemoryCategoryRepository({})))


def _create(handler, body):
    response = handler.create_category(body)
    assert response.status == 201
    return response.body["data"]


def test_routes_cover_all_endpoints(handler):
    pairs = {(route.method, route.path) for route in handler.routes()}
    assert pairs == {
        ("GET", "/categories"),
        ("GET", "/categories/tree"),
        ("GET", "/categories/roots"),
        ("GET", "/categories/:id"),
        ("GET", "/categories/:id/children"),
        ("POST", "/categories"),
        ("PUT", "/categories/:id"),
        ("DELETE", "/categories/:id"),
    }


def test_create_category_generates_slug(handler):
    response = handler.create_category({"name": "Home Appliances"})
    assert response.status == 201
    assert response.body["code"] == 0
    assert response.body["message"] == "success"
    assert response.body["data"]["name"] == "Home Appliances"
    assert response.body["data"]["slug"] == "home-appliances"


def test_create_child_is_one_level_deeper(handler):
    root = _create(handler, {"name": "Root"})
    child = _create(handler, {"name": "Child", "parent_id": root["id"]})
    assert child["level"] == root["level"] + 1
    assert child["parent_id"] == root["id"]


def test_create_invalid_body(handler):
    response = handler.create_category({})
    assert response.status == 400
    assert response.body["message"].startswith("invalid request: ")


def test_get_category_round_trip(handler):
    made = _create(handler, {"name": "Books"})
    response = handler.get_category(str(made["id"]))
    assert response.status == 200
    assert response.body["data"]["id"] == made["id"]
    assert response.body["data"]["name"] == "Books"


def test_get_category_missing(handler):
    response = handler.get_category("999")
    assert response.status == 404
    assert response.body["message"] == "category not found"


def test_get_category_bad_id(handler):
    response = handler.get_category("abc")
    assert response.status == 400
    assert response.body["message"] == "invalid category id"


def test_update_category_changes_name(handler):
    made = _create(handler, {"name": "Old"})
    response = handler.update_category(str(made["id"]), {"name": "Renamed"})
    assert response.status == 200
    assert response.body["data"] == {"message": "category updated successfully"}
    assert handler.get_category(str(made["id"])).body["data"]["name"] == "Renamed"


def test_update_own_parent(handler):
    made = _create(handler, {"name": "Loop"})
    response = handler.update_category(str(made["id"]), {"parent_id": made["id"]})
    assert response.status == 400
    assert response.body["message"] == "category cannot be its own parent"


def test_update_missing_category(handler):
    response = handler.update_category("999", {"name": "x"})
    assert response.status == 404
    assert response.body["message"] == "category not found"


def test_update_missing_parent(handler):
    made = _create(handler, {"name": "Orphan"})
    response = handler.update_category(str(made["id"]), {"parent_id": 999})
    assert response.status == 404
    assert response.body["message"] == "parent category not found"


def test_update_bad_id(handler):
    response = handler.update_category("x1", {"name": "x"})
    assert response.status == 400
    assert response.body["message"] == "invalid category id"


def test_delete_with_children_refused(handler):
    root = _create(handler, {"name": "Root"})
    _create(handler, {"name": "Child", "parent_id": root["id"]})
    response = handler.delete_category(str(root["id"]))
    assert response.status == 400
    assert response.body["message"] == "cannot delete category with children"


def test_delete_leaf(handler):
    leaf = _create(handler, {"name": "Leaf"})
    response = handler.delete_category(str(leaf["id"]))
    assert response.status == 200
    assert response.body["data"] == {"message": "category deleted successfully"}


def test_list_active_categories(handler):
    _create(handler, {"name": "A"})
    _create(handler, {"name": "B"})
    response = handler.list_categories({"is_active": "true"})
    assert response.status == 200
    assert {c["name"] for c in response.body["data"]} == {"A", "B"}


def test_children_and_roots(handler):
    root = _create(handler, {"name": "Root"})
    child = _create(handler, {"name": "Child", "parent_id": root["id"]})
    children = handler.get_children(str(root["id"]))
    assert children.status == 200
    assert [c["id"] for c in children.body["data"]] == [child["id"]]
    roots = handler.get_roots()
    assert [c["id"] for c in roots.body["data"]] == [root["id"]]


def test_children_bad_id(handler):
    response = handler.get_children("nope")
    assert response.status == 400
    assert response.body["message"] == "invalid category id"


def test_tree_has_only_roots_at_top(handler):
    root = _create(handler, {"name": "Root"})
    _create(handler, {"name": "Child", "parent_id": root["id"]})
    response = handler.get_category_tree()
    assert response.status == 200
    assert [node["id"] for node in response.body["data"]] == [root["id"]]