"""Tests for DocumentStore."""

import json

import pytest

from agent_board.storage import DocumentStore, PROJECTS_COLLECTION, tasks_collection


@pytest.fixture
def store(tmp_path):
    return DocumentStore(tmp_path / "data")


class TestDocumentStore:
    """Tests for collection reads, writes and persistence."""

    def test_missing_collection_is_empty(self, store):
        assert store.get(PROJECTS_COLLECTION) == []

    def test_set_is_not_persisted_until_save(self, store, tmp_path):
        store.set(PROJECTS_COLLECTION, [{"id": "p1", "name": "web"}])
        path = tmp_path / "data" / "projects.json"
        assert not path.exists()

        store.save()

        assert json.loads(path.read_text()) == [{"id": "p1", "name": "web"}]
        assert DocumentStore(tmp_path / "data").get(PROJECTS_COLLECTION) == [{"id": "p1", "name": "web"}]

    def test_get_returns_copy(self, store):
        store.set(PROJECTS_COLLECTION, [{"id": "p1", "name": "web"}])
        docs = store.get(PROJECTS_COLLECTION)
        docs[0]["name"] = "changed"

        assert store.find(PROJECTS_COLLECTION, "p1")["name"] == "web"

    def test_upsert_inserts_then_replaces(self, store):
        collection = tasks_collection("p1")
        store.upsert(collection, {"id": "t1", "title": "a"})
        store.upsert(collection, {"id": "t2", "title": "b"})
        store.upsert(collection, {"id": "t1", "title": "a2"})

        assert store.get(collection) == [{"id": "t1", "title": "a2"}, {"id": "t2", "title": "b"}]

    def test_find_missing_raises_key_error(self, store):
        with pytest.raises(KeyError):
            store.find(PROJECTS_COLLECTION, "nope")

    def test_corrupt_file(self, tmp_path):
        root = tmp_path / "data"
        root.mkdir()
        (root / "projects.json").write_text("{not json")

        with pytest.raises(ValueError, match="Corrupt"):
            DocumentStore(root).get(PROJECTS_COLLECTION)

    def test_non_array_file(self, tmp_path):
        root = tmp_path / "data"
        root.mkdir()
        (root / "projects.json").write_text('{"id": "p1"}')

        with pytest.raises(ValueError, match="JSON array"):
            DocumentStore(root).get(PROJECTS_COLLECTION)

    def test_collection_name_must_be_safe(self, store):
        with pytest.raises(ValueError):
            store.get("../escape")

    def test_datetimes_are_serialized(self, store, tmp_path):
        from datetime import datetime, timezone

        store.upsert(PROJECTS_COLLECTION, {"id": "p1", "created_at": datetime(2024, 1, 2, tzinfo=timezone.utc)})
        store.save()

        saved = json.loads((tmp_path / "data" / "projects.json").read_text())
        assert saved[0]["created_at"].startswith("2024-01-02")
