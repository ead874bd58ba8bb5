import pytest

from milli.external_documents_ids import DELETED, ExternalDocumentsIds


def test_simple_insert_delete_ids():
    ids = ExternalDocumentsIds()

    ids.insert_ids({"a": 1, "b": 2, "c": 3, "d": 4})
    assert ids.get("a") == 1
    assert ids.get("b") == 2
    assert ids.get("c") == 3
    assert ids.get("d") == 4

    ids.insert_ids({"e": 5, "f": 6, "g": 7})
    assert ids.get("a") == 1
    assert ids.get("b") == 2
    assert ids.get("c") == 3
    assert ids.get("d") == 4
    assert ids.get("e") == 5
    assert ids.get("f") == 6
    assert ids.get("g") == 7

    ids.delete_ids(["a", "c", "f"])
    assert ids.get("a") is None
    assert ids.get("b") == 2
    assert ids.get("c") is None
    assert ids.get("d") == 4
    assert ids.get("e") == 5
    assert ids.get("f") is None
    assert ids.get("g") == 7

    ids.insert_ids({"a": 5, "b": 6, "h": 8})
    assert ids.get("a") == 5
    assert ids.get("b") == 6
    assert ids.get("c") is None
    assert ids.get("d") == 4
    assert ids.get("e") == 5
    assert ids.get("f") is None
    assert ids.get("g") == 7
    assert ids.get("h") == 8


def test_first_insert_is_merged_into_hard():
    ids = ExternalDocumentsIds()
    ids.insert_ids({"b": 2, "a": 1})
    assert dict(ids.hard) == {"a": 1, "b": 2}
    assert dict(ids.soft) == {}
    assert list(ids.hard) == ["a", "b"]


def test_small_soft_map_stays_pending():
    ids = ExternalDocumentsIds(hard={"a": 1, "b": 2, "c": 3, "d": 4, "e": 5})
    ids.insert_ids({"f": 6})
    assert dict(ids.soft) == {"f": 6}
    assert ids.get("f") == 6
    ids.delete_ids(["a"])
    assert dict(ids.soft) == {"a": DELETED, "f": 6}
    assert ids.get("a") is None
    assert ids.hard["a"] == 1


def test_merge_drops_deleted_hard_entries():
    ids = ExternalDocumentsIds(hard={"a": 1, "b": 2})
    ids.delete_ids(["a"])
    assert dict(ids.hard) == {"b": 2}
    assert dict(ids.soft) == {}


def test_deleting_unknown_id_keeps_marker():
    ids = ExternalDocumentsIds()
    ids.delete_ids(["z"])
    assert dict(ids.hard) == {"z": DELETED}
    assert ids.get("z") is None


def test_get_accepts_bytes():
    ids = ExternalDocumentsIds(hard={"doc": 9})
    assert ids.get(b"doc") == 9


def test_insert_rejects_negative_ids():
    ids = ExternalDocumentsIds()
    with pytest.raises(ValueError):
        ids.insert_ids({"a": -1})