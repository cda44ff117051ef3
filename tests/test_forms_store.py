import sqlite3

import pytest

from form_gateway.proxy.exceptions import StoreError
from form_gateway.proxy.forms_store import FormStore


@pytest.fixture
def store(tmp_path):
    store = FormStore(str(tmp_path / "forms.db"))
    store.initialize()
    return store


def test_store_and_get(store):
    stored = store.store({"name": "John Doe", "email": "john@example.com"})

    assert stored.id == 1
    assert stored.created_at
    fetched = store.get(stored.id)
    assert fetched.data == {"name": "John Doe", "email": "john@example.com"}
    assert fetched.created_at
    assert fetched.updated_at


def test_get_missing_returns_none(store):
    assert store.get(999) is None


def test_list_is_newest_first_with_pagination(store):
    for index in range(3):
        store.store({"index": index})

    forms = store.list()
    assert [form.data["index"] for form in forms] == [2, 1, 0]
    page = store.list(limit=1, offset=1)
    assert [form.data["index"] for form in page] == [1]
    assert store.list(limit=10, offset=5) == []


def test_update(store):
    stored = store.store({"name": "Original"})

    updated = store.update(stored.id, {"name": "Updated"})
    assert updated.id == stored.id
    assert updated.data == {"name": "Updated"}
    assert updated.updated_at
    assert store.get(stored.id).data == {"name": "Updated"}


def test_update_missing_returns_none(store):
    assert store.update(42, {"name": "nobody"}) is None


def test_delete(store):
    stored = store.store({"name": "gone"})
    assert store.delete(stored.id) is True
    assert store.get(stored.id) is None
    assert store.delete(stored.id) is False


def test_initialize_is_idempotent(store):
    store.store({"kept": True})
    store.initialize()
    assert len(store.list()) == 1


def test_corrupt_row_raises_store_error(store, tmp_path):
    with sqlite3.connect(str(tmp_path / "forms.db")) as connection:
        connection.execute("INSERT INTO forms (data) VALUES (?)", ("not json",))
    with pytest.raises(StoreError):
        store.list()


def test_missing_table_raises_store_error(tmp_path):
    store = FormStore(str(tmp_path / "empty.db"))
    with pytest.raises(StoreError):
        store.store({"a": 1})
