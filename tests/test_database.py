import json
import os

import pytest

import database
from database import DocumentStore
from errors import PersistenceFailure
from shop import RentalShop


def _read(path):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def test_load_creates_missing_file_and_directory(data_file):
    assert not os.path.exists(os.path.dirname(data_file))

    store = DocumentStore(data_file).load()

    assert os.path.exists(data_file)
    assert store.books == [] and store.customers == [] and store.rentals == []
    assert _read(data_file) == {
        "books": [],
        "customers": [],
        "rentals": [],
        "nextId": {"books": 1, "customers": 1, "rentals": 1},
    }


def test_round_trip_keeps_rows_and_counters(shop, make_book, make_customer, reload):
    book = make_book(stock=2)
    customer = make_customer(email="reader@example.com")
    rental = shop.create_rental(book.id, customer.id, 7)
    shop.delete_customer(make_customer().id)

    fresh = reload()

    assert fresh.to_document() == shop.store.to_document()
    assert fresh.next_id == {"books": 2, "customers": 3, "rentals": 2}
    assert fresh.rentals[0].due_date.isoformat() == rental["due_date"]


def test_unreadable_file_falls_back_to_empty_dataset(data_file):
    os.makedirs(os.path.dirname(data_file))
    with open(data_file, "w", encoding="utf-8") as f:
        f.write("{ this is not json")

    store = DocumentStore(data_file).load()

    assert store.books == []
    assert store.next_id == {"books": 1, "customers": 1, "rentals": 1}
    # The broken file has been replaced by a valid empty document
    assert _read(data_file)["books"] == []


@pytest.mark.parametrize("payload", ["[]", '{"books": [{"title": "no id"}]}', '{"books": 5}'])
def test_structurally_invalid_document_is_recovered(data_file, payload):
    os.makedirs(os.path.dirname(data_file))
    with open(data_file, "w", encoding="utf-8") as f:
        f.write(payload)

    store = DocumentStore(data_file).load()

    assert store.books == []
    assert store.last_save_ok is True


def test_missing_counters_are_rebuilt_from_ids(data_file):
    os.makedirs(os.path.dirname(data_file))
    legacy = {
        "books": [
            {"id": 3, "title": "A", "author": "X", "stock": 1, "created_at": "2024-01-01T00:00:00.000Z"},
            {"id": 7, "title": "B", "author": "Y", "stock": 1, "created_at": "2024-01-02T00:00:00.000Z"},
        ],
        "customers": [],
        "rentals": [],
    }
    with open(data_file, "w", encoding="utf-8") as f:
        json.dump(legacy, f)

    store = DocumentStore(data_file).load()

    assert store.next_id == {"books": 8, "customers": 1, "rentals": 1}
    assert store.next_identifier("books") == 8


def test_counter_behind_existing_ids_is_bumped(data_file):
    os.makedirs(os.path.dirname(data_file))
    doc = {
        "books": [{"id": 4, "title": "A", "author": "X"}],
        "customers": [],
        "rentals": [],
        "nextId": {"books": 2, "customers": 9, "rentals": 1},
    }
    with open(data_file, "w", encoding="utf-8") as f:
        json.dump(doc, f)

    store = DocumentStore(data_file).load()

    assert store.next_id == {"books": 5, "customers": 9, "rentals": 1}


def test_save_failure_is_logged_and_swallowed(data_file, monkeypatch, caplog):
    store = DocumentStore(data_file, strict=False).load()

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(database.os, "replace", broken_replace)

    assert store.save() is False
    assert store.last_save_ok is False
    assert "disk full" in store.last_save_error
    assert "Error saving data" in caplog.text


def test_strict_store_raises_persistence_failure(data_file, monkeypatch):
    store = DocumentStore(data_file, strict=True).load()

    def broken_replace(src, dst):
        raise OSError("read-only file system")

    monkeypatch.setattr(database.os, "replace", broken_replace)

    with pytest.raises(PersistenceFailure):
        store.save()
    assert store.last_save_ok is False


def test_strict_write_failure_rolls_back_memory(data_file, monkeypatch):
    shop = RentalShop(DocumentStore(data_file, strict=True).load())

    def broken_replace(src, dst):
        raise OSError("read-only file system")

    monkeypatch.setattr(database.os, "replace", broken_replace)

    for _ in range(2):
        with pytest.raises(PersistenceFailure):
            shop.create_book({"title": "Dune", "author": "Frank Herbert"})
        assert shop.store.books == []

    # The ids used by the failed writes are not handed out again
    assert shop.store.next_id["books"] == 3
    assert _read(data_file)["books"] == []


def test_transaction_rolls_back_memory_and_skips_write(shop, make_book, data_file):
    make_book()
    before = _read(data_file)

    with pytest.raises(RuntimeError):
        with shop.store.transaction():
            shop.store.books[0].stock = 99
            shop.store.books.append(shop.store.books[0])
            shop.store.mark_dirty()
            raise RuntimeError("boom")

    assert len(shop.store.books) == 1
    assert shop.store.books[0].stock == 1
    assert _read(data_file) == before


def test_transaction_persists_once(shop, monkeypatch):
    calls = []
    original = shop.store.save

    def counting_save():
        calls.append(1)
        return original()

    monkeypatch.setattr(shop.store, "save", counting_save)

    with shop.store.transaction():
        shop.create_book({"title": "One", "author": "A"})
        shop.create_book({"title": "Two", "author": "B"})

    assert len(calls) == 1
