from datetime import datetime, timezone

import pytest

from mallcore.errors import InvalidRequestError
from mallcore.inventory.dto import StockCheckResponse
from mallcore.web import Response, created, error, parse_id, success


def test_success_wraps_plain_data():
    resp = success({"a": 1})
    assert resp.status == 200
    assert resp.body == {"code": 0, "message": "success", "data": {"a": 1}}


def test_success_with_none_data():
    resp = success(None)
    assert resp.body["data"] is None
    assert resp.body["code"] == 0


def test_created_uses_201():
    resp = created([1, 2])
    assert resp.status == 201
    assert resp.body["data"] == [1, 2]
    assert resp.body["message"] == "success"


def test_success_converts_objects_with_to_dict():
    check = StockCheckResponse(
        product_id=5, available_stock=3, reserved_stock=1, is_available=True, requested_qty=2
    )
    resp = success([check])
    assert resp.body["data"] == [check.to_dict()]


def test_success_stringifies_integer_keys():
    check = StockCheckResponse(
        product_id=5, available_stock=3, reserved_stock=1, is_available=False, requested_qty=9
    )
    resp = success({5: check})
    assert list(resp.body["data"]) == ["5"]
    assert resp.body["data"]["5"]["requested_qty"] == 9


def test_success_formats_datetimes():
    moment = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    resp = success({"at": moment})
    assert resp.body["data"]["at"] == moment.isoformat()


def test_error_body_carries_status_and_message():
    resp = error(404, "category not found")
    assert isinstance(resp, Response)
    assert resp.status == 404
    assert resp.body == {"code": 404, "message": "category not found"}


@pytest.mark.parametrize("text, expected", [("42", 42), ("-7", -7), ("+3", 3), ("0", 0)])
def test_parse_id_accepts_integers(text, expected):
    assert parse_id(text, "invalid id") == expected


@pytest.mark.parametrize(
    "text", ["", "abc", "1.5", " 1", "1_000", "9223372036854775808"]
)
def test_parse_id_rejects_non_integers(text):
    with pytest.raises(InvalidRequestError) as info:
        parse_id(text, "invalid category id")
    assert str(info.value) == "invalid category id"


def test_parse_id_accepts_int64_max():
    assert parse_id("9223372036854775807", "invalid id") == 2**63 - 1