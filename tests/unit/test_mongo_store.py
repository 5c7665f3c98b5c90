"""
Unit tests for MongoDocumentStore (mocked client, no server required).
"""

from unittest.mock import MagicMock

import pytest
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from syncstate.core.exceptions import StoreUnavailableError, SyncConflictError
from syncstate.store.mongo_store import MongoDocumentStore


KEY = {"entity_type": "UserModel", "entity_id": "42"}


@pytest.fixture
def mongo():
    """Store wired to a mocked client; yields (store, collection)."""
    client = MagicMock()
    collection = client.__getitem__.return_value.__getitem__.return_value
    store = MongoDocumentStore(database="syncstate", collection="sync_records", client=client)
    yield store, collection
    store.close()
    # Injected clients are owned by the caller
    client.close.assert_not_called()


class TestMongoDocumentStore:
    """Tests for MongoDocumentStore."""

    def test_collection_selected(self):
        client = MagicMock()
        MongoDocumentStore(database="db1", collection="col1", client=client)
        client.__getitem__.assert_called_with("db1")
        client.__getitem__.return_value.__getitem__.assert_called_with("col1")

    def test_find(self, mongo):
        store, collection = mongo
        collection.find.return_value.limit.return_value = [{**KEY, "version": 1}]

        assert store.find(KEY) == [{**KEY, "version": 1}]
        collection.find.assert_called_once_with(KEY, projection={"_id": False})
        collection.find.return_value.limit.assert_called_once_with(1)

    def test_find_unavailable(self, mongo):
        store, collection = mongo
        collection.find.side_effect = ServerSelectionTimeoutError("no servers")

        with pytest.raises(StoreUnavailableError) as exc_info:
            store.find(KEY)
        assert exc_info.value.backend == "mongodb"
        assert isinstance(exc_info.value.__cause__, ServerSelectionTimeoutError)

    def test_upsert_inserted(self, mongo):
        store, collection = mongo
        collection.replace_one.return_value = MagicMock(upserted_id="abc", matched_count=0)

        assert store.upsert(KEY, {"services": {}, "version": 1}) == "inserted"
        collection.replace_one.assert_called_once_with(
            KEY, {**KEY, "services": {}, "version": 1}, upsert=True
        )

    def test_upsert_updated(self, mongo):
        store, collection = mongo
        collection.replace_one.return_value = MagicMock(upserted_id=None, matched_count=1)
        assert store.upsert(KEY, {"version": 2}) == "updated"

    def test_versioned_create_uses_insert(self, mongo):
        store, collection = mongo
        assert store.upsert(KEY, {"version": 1}, expected_version=0) == "inserted"
        collection.insert_one.assert_called_once_with({**KEY, "version": 1})

    def test_versioned_create_conflict(self, mongo):
        store, collection = mongo
        collection.insert_one.side_effect = DuplicateKeyError("duplicate key")
        with pytest.raises(SyncConflictError):
            store.upsert(KEY, {"version": 1}, expected_version=0)

    def test_versioned_update(self, mongo):
        store, collection = mongo
        collection.replace_one.return_value = MagicMock(matched_count=1)

        assert store.upsert(KEY, {"version": 3}, expected_version=2) == "updated"
        collection.replace_one.assert_called_once_with(
            {**KEY, "version": 2}, {**KEY, "version": 3}, upsert=False
        )

    def test_versioned_update_conflict(self, mongo):
        store, collection = mongo
        collection.replace_one.return_value = MagicMock(matched_count=0)
        with pytest.raises(SyncConflictError) as exc_info:
            store.upsert(KEY, {"version": 3}, expected_version=2)
        assert exc_info.value.expected_version == 2

    def test_upsert_unavailable(self, mongo):
        store, collection = mongo
        collection.replace_one.side_effect = ServerSelectionTimeoutError("no servers")
        with pytest.raises(StoreUnavailableError):
            store.upsert(KEY, {"version": 1})

    def test_ensure_unique_index(self, mongo):
        store, collection = mongo
        collection.create_index.return_value = "entity_type_1_entity_id_1"

        store.ensure_unique_index(["entity_type", "entity_id"])
        collection.create_index.assert_called_once_with(
            [("entity_type", ASCENDING), ("entity_id", ASCENDING)],
            unique=True,
        )

    def test_owned_client_closed(self, monkeypatch):
        client = MagicMock()
        monkeypatch.setattr(
            "syncstate.store.mongo_store.MongoClient",
            MagicMock(return_value=client),
        )
        store = MongoDocumentStore(uri="mongodb://db.example:27017")
        store.close()
        client.close.assert_called_once()
