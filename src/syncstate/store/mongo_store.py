"""
MongoDB document store for sync records.

Documents are stored one per (entity_type, entity_id) in a single
collection, guarded by a unique compound index.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from pymongo import ASCENDING, MongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..core.document_store import DocumentStore
from ..core.exceptions import StoreUnavailableError, SyncConflictError


logger = logging.getLogger(__name__)


class MongoDocumentStore(DocumentStore):
    """
    pymongo-based implementation of the document store.

    Whole documents are replaced on upsert. Versioned upserts filter on the
    expected version so a concurrent writer turns into a conflict instead
    of a silent overwrite.
    """

    backend_name = "mongodb"

    def __init__(
        self,
        uri: str = "mongodb://localhost:27017",
        database: str = "syncstate",
        collection: str = "sync_records",
        server_selection_timeout_ms: int = 5000,
        client: Optional[MongoClient] = None,
    ):
        """
        Initialize the MongoDB store.

        Args:
            uri: MongoDB connection URI
            database: Database name
            collection: Collection holding sync records
            server_selection_timeout_ms: How long to wait for a server
            client: Existing client to use instead of connecting to uri
        """
        self._owns_client = client is None
        self.client = client or MongoClient(
            uri,
            serverSelectionTimeoutMS=server_selection_timeout_ms,
        )
        self.database_name = database
        self.collection_name = collection
        self.collection = self.client[database][collection]
        logger.debug(f"Using MongoDB collection {database}.{collection}")

    def find(self, query: Dict[str, Any], limit: int = 1) -> List[Dict[str, Any]]:
        try:
            cursor = self.collection.find(query, projection={"_id": False})
            if limit:
                cursor = cursor.limit(limit)
            return list(cursor)
        except PyMongoError as e:
            logger.error(f"Failed to query {self.collection_name}: {e}")
            raise StoreUnavailableError(
                f"MongoDB find failed: {e}", backend=self.backend_name
            ) from e

    def upsert(
        self,
        key: Dict[str, Any],
        document: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> str:
        replacement = {**document, **key}
        try:
            if expected_version is None:
                result = self.collection.replace_one(key, replacement, upsert=True)
                return "inserted" if result.upserted_id is not None else "updated"

            if expected_version == 0:
                self.collection.insert_one(dict(replacement))
                return "inserted"

            result = self.collection.replace_one(
                {**key, "version": expected_version},
                replacement,
                upsert=False,
            )
            if result.matched_count == 0:
                raise SyncConflictError(
                    f"Expected version {expected_version} not found for {key}",
                    backend=self.backend_name,
                    expected_version=expected_version,
                )
            return "updated"

        except DuplicateKeyError as e:
            raise SyncConflictError(
                f"Concurrent insert for {key}",
                backend=self.backend_name,
                expected_version=expected_version,
            ) from e
        except PyMongoError as e:
            logger.error(f"Failed to upsert into {self.collection_name}: {e}")
            raise StoreUnavailableError(
                f"MongoDB upsert failed: {e}", backend=self.backend_name
            ) from e

    def ensure_unique_index(self, fields: Sequence[str]) -> None:
        try:
            name = self.collection.create_index(
                [(field, ASCENDING) for field in fields],
                unique=True,
            )
            logger.info(f"Ensured unique index {name} on {self.collection_name}")
        except PyMongoError as e:
            logger.error(f"Failed to create index on {self.collection_name}: {e}")
            raise StoreUnavailableError(
                f"MongoDB index creation failed: {e}", backend=self.backend_name
            ) from e

    def close(self) -> None:
        if self._owns_client:
            self.client.close()
