"""
In-memory document store.

Intended for tests and local runs. Documents are deep-copied on the way in
and out so callers never share state with the store, matching the behavior
of a networked store.
"""

import copy
import logging
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..core.document_store import DocumentStore
from ..core.exceptions import SyncConflictError, SyncStoreError


logger = logging.getLogger(__name__)


class InMemoryDocumentStore(DocumentStore):
    """
    Dictionary-backed implementation of the document store.

    Unique indexes are enforced on insert once registered.
    """

    backend_name = "memory"

    def __init__(self):
        self._documents: List[Dict[str, Any]] = []
        self._unique_indexes: List[Tuple[str, ...]] = []
        self._lock = threading.Lock()

    def find(self, query: Dict[str, Any], limit: int = 1) -> List[Dict[str, Any]]:
        with self._lock:
            matches = [doc for doc in self._documents if self._matches(doc, query)]
            if limit:
                matches = matches[:limit]
            return copy.deepcopy(matches)

    def upsert(
        self,
        key: Dict[str, Any],
        document: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> str:
        with self._lock:
            index = self._index_of(key)
            current_version = (
                self._documents[index].get("version", 0) if index is not None else 0
            )
            if expected_version is not None and current_version != expected_version:
                raise SyncConflictError(
                    f"Expected version {expected_version}, found {current_version} for {key}",
                    backend=self.backend_name,
                    expected_version=expected_version,
                )

            stored = copy.deepcopy(document)
            stored.update(key)

            if index is not None:
                self._documents[index] = stored
                return "updated"

            self._check_unique(stored)
            self._documents.append(stored)
            return "inserted"

    def ensure_unique_index(self, fields: Sequence[str]) -> None:
        with self._lock:
            index_fields = tuple(fields)
            if index_fields in self._unique_indexes:
                return
            seen = set()
            for doc in self._documents:
                value = tuple(doc.get(field) for field in index_fields)
                if value in seen:
                    raise SyncStoreError(
                        f"Cannot create unique index on {index_fields}: duplicate {value}"
                    )
                seen.add(value)
            self._unique_indexes.append(index_fields)
            logger.debug(f"Created unique index on {index_fields}")

    def count(self) -> int:
        """Get the number of stored documents."""
        with self._lock:
            return len(self._documents)

    def clear(self) -> None:
        """Remove all documents, keeping indexes."""
        with self._lock:
            self._documents.clear()

    def _index_of(self, key: Dict[str, Any]) -> Optional[int]:
        for index, doc in enumerate(self._documents):
            if self._matches(doc, key):
                return index
        return None

    def _check_unique(self, document: Dict[str, Any]) -> None:
        for fields in self._unique_indexes:
            query = {field: document.get(field) for field in fields}
            if any(self._matches(doc, query) for doc in self._documents):
                raise SyncConflictError(
                    f"Duplicate key for unique index {fields}: {query}",
                    backend=self.backend_name,
                )

    @staticmethod
    def _matches(document: Dict[str, Any], query: Dict[str, Any]) -> bool:
        return all(document.get(field) == value for field, value in query.items())
