import pytest

from mallcore.category.dto import CreateCategoryRequest, UpdateCategoryRequest
from mallcore.category.repository import InMemoryCategoryRepository
from mallcore.category.service import CategoryService, generate_slug
from mallcore.errors import InvalidRequestError, MallError, NotFoundError


class BrokenRepository:
    def list_categories(self, is_active):
        raise RuntimeError("connection lost")

    def get_category_by_id(self, category_id):
        raise RuntimeError("connection lost")


@pytest.fixture
def repo():
    return InMemoryCategoryRepository()


@pytest.fixture
def service(repo):
    return CategoryService(repo)


def create(service, name, **kwargs):
    return service.create_category(CreateCategoryRequest(name=name, **kwargs))


def test_generate_slug():
    assert generate_slug("Home Garden") == "home-garden"


def test_create_root_and_child_levels(service):
    root = create(service, "Electronics")
    child = create(service, "Phones", parent_id=root.id)
    grandchild = create(service, "Cases", parent_id=child.id)
    assert root.level == 1
    assert child.level == root.level + 1
    assert grandchild.level == child.level + 1
    assert child.parent_id == root.id


def test_create_generates_slug_when_missing(service):
    made = create(service, "Big Toys")
    assert made.slug == generate_slug("Big Toys")
    explicit = create(service, "Other", slug="custom")
    assert explicit.slug == "custom"


def test_create_with_missing_parent(service):
    with pytest.raises(NotFoundError) as info:
        create(service, "Orphan", parent_id=99)
    assert str(info.value) == "parent category not found"


def test_get_category(service):
    made = create(service, "Books")
    assert service.get_category(made.id) == made
    with pytest.raises(NotFoundError) as info:
        service.get_category(999)
    assert str(info.value) == "category not found"


def test_update_category(service):
    made = create(service, "Books")
    service.update_category(made.id, UpdateCategoryRequest(name="Novels"))
    assert service.get_category(made.id).name == "Novels"


def test_update_missing_category(service):
    with pytest.raises(NotFoundError) as info:
        service.update_category(5, UpdateCategoryRequest(name="x"))
    assert str(info.value) == "category not found"


def test_update_own_parent(service):
    made = create(service, "Books")
    with pytest.raises(InvalidRequestError) as info:
        service.update_category(made.id, UpdateCategoryRequest(parent_id=made.id))
    assert str(info.value) == "category cannot be its own parent"


def test_update_missing_parent(service):
    made = create(service, "Books")
    with pytest.raises(NotFoundError) as info:
        service.update_category(made.id, UpdateCategoryRequest(parent_id=77))
    assert str(info.value) == "parent category not found"


def test_delete_with_children(service):
    root = create(service, "Root")
    create(service, "Leaf", parent_id=root.id)
    with pytest.raises(InvalidRequestError) as info:
        service.delete_category(root.id)
    assert str(info.value) == "cannot delete category with children"


def test_delete_with_products():
    repo = InMemoryCategoryRepository({1: 3})
    service = CategoryService(repo)
    made = create(service, "Stocked")
    assert made.id == 1
    with pytest.raises(InvalidRequestError) as info:
        service.delete_category(made.id)
    assert str(info.value) == "cannot delete category with products"


def test_delete_removes(service):
    made = create(service, "Temp")
    service.delete_category(made.id)
    with pytest.raises(NotFoundError):
        service.get_category(made.id)


def test_list_categories_filter(service):
    on = create(service, "On")
    off = create(service, "Off")
    service.update_category(off.id, UpdateCategoryRequest(is_active=False))
    assert [c.id for c in service.list_categories(True)] == [on.id]
    assert {c.id for c in service.list_categories(None)} == {on.id, off.id}


def test_category_tree(service):
    root = create(service, "Root")
    child = create(service, "Child", parent_id=root.id)
    grandchild = create(service, "Grandchild", parent_id=child.id)
    hidden = create(service, "Hidden", parent_id=root.id)
    service.update_category(hidden.id, UpdateCategoryRequest(is_active=False))
    other_root = create(service, "Other")

    tree = service.get_category_tree()
    assert [node.id for node in tree] == [root.id, other_root.id]
    assert [node.id for node in tree[0].children] == [child.id]
    assert [node.id for node in tree[0].children[0].children] == [grandchild.id]
    assert tree[1].children == []


def test_tree_empty(service):
    assert service.get_category_tree() == []


def test_children_and_roots(service):
    root = create(service, "Root")
    child = create(service, "Child", parent_id=root.id)
    assert [c.id for c in service.get_children(root.id)] == [child.id]
    assert [c.id for c in service.get_roots()] == [root.id]


def test_storage_failure_is_wrapped():
    service = CategoryService(BrokenRepository())
    with pytest.raises(MallError) as info:
        service.list_categories(None)
    assert str(info.value).startswith("failed to list categories")
    with pytest.raises(MallError) as info:
        service.get_category(1)
    assert "connection lost" in str(info.value)