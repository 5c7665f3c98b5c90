"""
Document store interface used to persist sync records.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence


class DocumentStore(ABC):
    """
    Abstract base class for document stores.

    A document store keeps sync record documents and guarantees that at
    most one document exists per unique key once ``ensure_unique_index``
    has been called for that key's fields.
    """

    backend_name = "abstract"

    @abstractmethod
    def find(self, query: Dict[str, Any], limit: int = 1) -> List[Dict[str, Any]]:
        """
        Find documents whose fields equal every value in the query.

        Args:
            query: Field name to value mapping
            limit: Maximum number of documents to return

        Returns:
            List of matching documents (possibly empty)
        """
        pass

    @abstractmethod
    def upsert(
        self,
        key: Dict[str, Any],
        document: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> str:
        """
        Insert the document, or replace the one stored under the same key.

        Args:
            key: Unique key fields identifying the document
            document: Full document to store
            expected_version: If given, the stored document must have this
                version (or must not exist when it is 0)

        Returns:
            'inserted' or 'updated'

        Raises:
            SyncConflictError: If expected_version does not match
        """
        pass

    @abstractmethod
    def ensure_unique_index(self, fields: Sequence[str]) -> None:
        """
        Guarantee uniqueness of the given field combination.

        Args:
            fields: Field names forming the unique key
        """
        pass

    def close(self) -> None:
        """Close any open resources. Optional."""
        pass

    def __enter__(self) -> "DocumentStore":
        return self

    def __exit__(self, *args) -> None:
        self.close()
