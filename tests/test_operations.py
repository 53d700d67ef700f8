"""Tests for pending operations and bulk NDJSON encoding."""

from __future__ import annotations

import json

from graph_index_sync.operations import Delete, OperationKey, UpdatePartial, Upsert, bulk_lines, encode_bulk


def test_operation_keys():
    assert Upsert("idx", "1", "L", {}).key == OperationKey("idx", "1")
    assert UpdatePartial("idx", "1", "L", {}).key == ("idx", "1")
    assert Delete("idx", "1").key == OperationKey(index_name="idx", doc_id="1")


def test_last_write_wins_by_key():
    batch = {}
    for op in (Upsert("idx", "1", "L", {"a": 1}), Delete("idx", "1", "L")):
        batch[op.key] = op
    assert list(batch.values()) == [Delete("idx", "1", "L")]


def test_bulk_lines_per_kind():
    assert bulk_lines(Upsert("idx", "1", "L", {"a": 1})) == [{"index": {"_index": "idx", "_id": "1"}}, {"a": 1}]
    assert bulk_lines(UpdatePartial("idx", "1", "L", {"a": 1})) == [
        {"update": {"_index": "idx", "_id": "1"}},
        {"doc": {"a": 1}},
    ]
    assert bulk_lines(Delete("idx", "1", "L")) == [{"delete": {"_index": "idx", "_id": "1"}}]


def test_bulk_lines_mapping_types():
    assert bulk_lines(Upsert("idx", "1", "L", {}), mapping_types=True)[0] == {
        "index": {"_index": "idx", "_id": "1", "_type": "L"}
    }
    # no type label, no _type
    assert bulk_lines(Delete("idx", "1"), mapping_types=True) == [{"delete": {"_index": "idx", "_id": "1"}}]


def test_encode_bulk_ndjson():
    body = encode_bulk([Upsert("idx", "1", "L", {"name": "Zoë"}), Delete("other", "2", "M")])
    text = body.decode()
    assert text.endswith("\n")
    lines = text.splitlines()
    assert [json.loads(line) for line in lines] == [
        {"index": {"_index": "idx", "_id": "1"}},
        {"name": "Zoë"},
        {"delete": {"_index": "other", "_id": "2"}},
    ]
    assert "Zoë" in text


def test_encode_bulk_non_json_values_as_strings():
    class Point:
        def __str__(self) -> str:
            return "POINT(1 2)"

    body = encode_bulk([Upsert("idx", "1", "L", {"loc": Point()})])
    assert json.loads(body.decode().splitlines()[1]) == {"loc": "POINT(1 2)"}
