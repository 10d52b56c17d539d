"""Tests for the in-memory document store and the optimistic transaction loop."""
import pytest

from errors import ReadAfterWriteError, StoreError, TransactionAborted, TransactionConflict
from store import MemoryStore, Transaction, run_transaction


def test_insert_and_get_returns_copy(store):
    doc_id = store.insert("products", {"name": "Apple", "tags": ["fruit"]})
    doc = store.get("products", doc_id)
    assert doc["id"] == doc_id
    assert "_version" not in doc

    doc["tags"].append("mutated")
    assert store.get("products", doc_id)["tags"] == ["fruit"]


def test_insert_existing_id_fails(store):
    store.insert("products", {"name": "Apple"}, doc_id="p1")
    with pytest.raises(StoreError):
        store.insert("products", {"name": "Other"}, doc_id="p1")


def test_every_write_bumps_version(store):
    store.insert("products", {"name": "Apple"}, doc_id="p1")
    assert store.read_versioned("products", "p1")[1] == 1
    store.update("products", "p1", {"name": "Red Apple"})
    assert store.read_versioned("products", "p1")[1] == 2
    store.set("products", "p1", {"name": "Green Apple"})
    doc, version = store.read_versioned("products", "p1")
    assert version == 3
    assert doc["name"] == "Green Apple"


def test_update_and_delete_missing(store):
    assert store.update("products", "nope", {"name": "x"}) is False
    assert store.delete("products", "nope") is False
    assert store.read_versioned("products", "nope") == (None, 0)


def test_find_filters_sorts_and_limits(store):
    store.insert("products", {"name": "Banana", "category": "fruits"})
    store.insert("products", {"name": "Apple", "category": "fruits"})
    store.insert("products", {"name": "Carrot", "category": "veg"})

    fruits = store.find("products", {"category": "fruits"}, sort=[("name", 1)])
    assert [p["name"] for p in fruits] == ["Apple", "Banana"]

    newest = store.find("products", sort=[("name", -1)], limit=1)
    assert [p["name"] for p in newest] == ["Carrot"]
    assert store.count("products", {"category": "veg"}) == 1


def test_list_collections_skips_empty(store):
    store.insert("products", {"name": "Apple"}, doc_id="p1")
    store.delete("products", "p1")
    store.insert("orders", {"status": "preparing"})
    assert store.list_collections() == ["orders"]


def test_read_after_write_is_rejected(store):
    store.insert("products", {"name": "Apple"}, doc_id="p1")
    txn = Transaction(store)
    txn.get("products", "p1")
    txn.update("products", "p1", {"name": "Red Apple"})
    with pytest.raises(ReadAfterWriteError):
        txn.get("products", "p1")


def test_commit_detects_concurrent_change(store):
    store.insert("products", {"stock_quantity": 3}, doc_id="p1")
    txn = Transaction(store)
    txn.get("products", "p1")
    txn.update("products", "p1", {"stock_quantity": 1})

    store.update("products", "p1", {"stock_quantity": 2})

    with pytest.raises(TransactionConflict):
        txn.commit()
    assert store.get("products", "p1")["stock_quantity"] == 2


def test_commit_detects_creation_of_absent_document(store):
    txn = Transaction(store)
    assert txn.get("carts", "u1") is None
    txn.set("carts", "u1", {"items": []})
    store.insert("carts", {"items": [{"product_id": "p1", "quantity": 1}]}, doc_id="u1")
    with pytest.raises(TransactionConflict):
        txn.commit()


def test_run_transaction_retries_on_conflict(store):
    store.insert("counters", {"value": 0}, doc_id="c1")
    attempts = []

    def body(txn):
        doc = txn.get("counters", "c1")
        attempts.append(doc["value"])
        if len(attempts) == 1:
            # Another writer sneaks in between our read and commit
            store.update("counters", "c1", {"value": 10})
        txn.update("counters", "c1", {"value": doc["value"] + 1})
        return doc["value"] + 1

    assert run_transaction(store, body) == 11
    assert attempts == [0, 10]
    assert store.get("counters", "c1")["value"] == 11


def test_run_transaction_gives_up(store):
    store.insert("counters", {"value": 0}, doc_id="c1")

    def body(txn):
        doc = txn.get("counters", "c1")
        store.update("counters", "c1", {"value": doc["value"] + 100})
        txn.update("counters", "c1", {"value": doc["value"] + 1})

    with pytest.raises(TransactionAborted):
        run_transaction(store, body, max_attempts=3)
    assert store.get("counters", "c1")["value"] == 300


def test_body_errors_write_nothing(store):
    store.insert("counters", {"value": 0}, doc_id="c1")

    def body(txn):
        txn.get("counters", "c1")
        txn.update("counters", "c1", {"value": 99})
        raise ValueError("boom")

    with pytest.raises(ValueError):
        run_transaction(store, body)
    assert store.get("counters", "c1")["value"] == 0


def test_stores_are_independent():
    a, b = MemoryStore(), MemoryStore()
    a.insert("products", {"name": "Apple"}, doc_id="p1")
    assert b.get("products", "p1") is None
