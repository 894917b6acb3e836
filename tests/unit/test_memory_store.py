from __future__ import annotations

from datetime import datetime

import pytest

from beneficiary_hub.db.store import MemoryStore, NotFoundError, StoreError


def test_insert_sets_id_and_created_at(store: MemoryStore):
    docs = store.insert("teams", [{"name": "A"}, {"name": "B", "description": "b"}])
    assert len({d["id"] for d in docs}) == 2
    assert all(isinstance(d["created_at"], datetime) for d in docs)
    assert docs[0]["description"] is None


def test_returned_documents_are_copies(store: MemoryStore):
    doc = store.insert("teams", [{"name": "A"}])[0]
    doc["name"] = "changed"
    assert store.get("teams", doc["id"])["name"] == "A"


def test_unknown_collection_and_column(store: MemoryStore):
    with pytest.raises(StoreError):
        store.find("widgets")
    with pytest.raises(StoreError):
        store.insert("teams", [{"name": "A", "color": "red"}])
    with pytest.raises(StoreError):
        store.find("teams", order_by="color")


def test_find_filters(store: MemoryStore):
    a, b, c = store.insert("team_members", [
        {"team_id": "t1", "email": "a@x", "role": "admin", "pending": False},
        {"team_id": "t1", "email": "b@x", "role": "member", "pending": True},
        {"team_id": "t2", "email": "c@x", "role": "member", "pending": False},
    ])
    assert [d["id"] for d in store.find("team_members", {"team_id": "t1"})] == [a["id"], b["id"]]
    assert [d["id"] for d in store.find("team_members", {"email": ["a@x", "c@x"]})] == [a["id"], c["id"]]
    assert [d["id"] for d in store.find("team_members", {"user_id": None})] == [a["id"], b["id"], c["id"]]
    assert store.count("team_members", {"pending": False}) == 2


def test_order_by_nulls_last(store: MemoryStore):
    store.insert("teams", [{"name": "b", "description": "2"}, {"name": "a"}, {"name": "c", "description": "1"}])
    asc = [d["name"] for d in store.find("teams", order_by="description")]
    desc = [d["name"] for d in store.find("teams", order_by="description", descending=True)]
    assert asc == ["c", "b", "a"]
    assert desc == ["b", "c", "a"]


def test_update_delete_and_get(store: MemoryStore):
    a, b = store.insert("teams", [{"name": "A"}, {"name": "B"}])
    assert store.update("teams", [a["id"], "missing"], {"description": "x"}) == 1
    assert store.get("teams", a["id"])["description"] == "x"
    assert store.delete("teams", [b["id"]]) == 1
    with pytest.raises(NotFoundError):
        store.get("teams", b["id"])


def test_delete_where_requires_filter(store: MemoryStore):
    store.insert("form_links", [{"team_id": "t1", "name": "x"}, {"team_id": "t2", "name": "y"}])
    with pytest.raises(StoreError):
        store.delete_where("form_links", {})
    assert store.delete_where("form_links", {"team_id": "t1"}) == 1
    assert store.count("form_links") == 1
