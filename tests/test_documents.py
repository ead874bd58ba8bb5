import pytest

from milli.codecs import encode_obkv
from milli.documents import json_to_string, obkv_to_json
from milli.fields_ids_map import FieldsIdsMap


def test_json_to_string_object():
    value = {"name": "John Doe", "age": 43, "not_there": None}
    assert json_to_string(value) == "name: John Doe. age: 43. "


def test_json_to_string_array():
    value = [{"name": "John Doe"}, 43, "hello", ["I", "am", "fine"], None]
    assert json_to_string(value) == "name: John Doe. . 43. hello. I. am. fine. . "


def test_json_to_string_nothing_written():
    assert json_to_string(None) is None
    assert json_to_string([]) is None
    assert json_to_string({"a": None}) is None


def test_json_to_string_scalars():
    assert json_to_string(True) == "true"
    assert json_to_string(1.5) == "1.5"
    assert json_to_string("word") == "word"


@pytest.fixture
def fields():
    fields_map = FieldsIdsMap()
    fields_map.insert("id")
    fields_map.insert("title")
    fields_map.insert("tags")
    return fields_map


def test_obkv_to_json_from_bytes(fields):
    raw = encode_obkv({0: b"1", 1: b'"Hello"', 2: b'["a","b"]'})
    assert obkv_to_json([0, 1, 2], fields, raw) == {"id": 1, "title": "Hello", "tags": ["a", "b"]}


def test_obkv_to_json_follows_displayed_order(fields):
    document = obkv_to_json([2, 0], fields, {0: b"1", 1: b'"Hello"', 2: b"[]"})
    assert list(document.items()) == [("tags", []), ("id", 1)]


def test_obkv_to_json_skips_missing_fields(fields):
    assert obkv_to_json([0, 1, 5], fields, {0: b"7"}) == {"id": 7}


def test_obkv_to_json_unknown_field_id(fields):
    with pytest.raises(ValueError, match="unknown obkv field id"):
        obkv_to_json([9], fields, {9: b"1"})


def test_obkv_to_json_invalid_json(fields):
    with pytest.raises(ValueError):
        obkv_to_json([0], fields, {0: b"{not json"})