"""
Sync record persistence on top of a document store.

Loads existing sync records by (entity_type, entity_id), creates fresh
in-memory records for entities that have none, and persists records as
whole-document upserts.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .core.document_store import DocumentStore
from .core.exceptions import SyncConflictError
from .core.logging import sync_extra
from .core.models import SyncRecord
from .fingerprint import Fingerprinter


logger = logging.getLogger(__name__)

UNIQUE_KEY_FIELDS = ("entity_type", "entity_id")


class LoadStatus(str, Enum):
    """How a sync record was obtained."""
    FOUND = "found"
    CREATED = "created"


@dataclass
class LoadResult:
    """
    Result of loading a sync record.

    Attributes:
        status: FOUND if the store held a record, CREATED if a new
            (not yet persisted) record was made
        record: The sync record
    """
    status: LoadStatus
    record: SyncRecord

    @property
    def found(self) -> bool:
        return self.status == LoadStatus.FOUND

    @property
    def created(self) -> bool:
        return self.status == LoadStatus.CREATED


@dataclass
class PersistResult:
    """Result of persisting a sync record."""
    action: str  # 'inserted' or 'updated'
    version: int


class SyncRecordStore:
    """
    Load-or-create and persist sync records.

    With ``optimistic_concurrency`` enabled, ``persist`` only succeeds when
    the stored record still has the version that was loaded; otherwise the
    last writer wins.
    """

    def __init__(
        self,
        document_store: DocumentStore,
        optimistic_concurrency: bool = False,
        fingerprinter: Optional[Fingerprinter] = None,
    ):
        """
        Initialize the record store.

        Args:
            document_store: Backing document store
            optimistic_concurrency: Reject saves over a newer stored version
            fingerprinter: Fingerprint computer used by bindings over this
                store (default: sha256)
        """
        self.document_store = document_store
        self.optimistic_concurrency = optimistic_concurrency
        self.fingerprinter = fingerprinter or Fingerprinter()

    def ensure_indexes(self) -> None:
        """Create the unique (entity_type, entity_id) index. Administrative."""
        self.document_store.ensure_unique_index(list(UNIQUE_KEY_FIELDS))
        logger.info(
            f"Ensured unique index on {', '.join(UNIQUE_KEY_FIELDS)}",
            extra=sync_extra(backend=self.document_store.backend_name),
        )

    def load(self, entity_type: str, entity_id: str) -> Optional[SyncRecord]:
        """
        Load a stored sync record.

        Returns:
            The record, or None if the store has none for this entity
        """
        documents = self.document_store.find(
            {"entity_type": entity_type, "entity_id": str(entity_id)},
            limit=1,
        )
        if not documents:
            return None
        return SyncRecord.from_document(documents[0])

    def load_or_create(self, entity_type: str, entity_id: str) -> LoadResult:
        """
        Load the sync record for an entity, creating one in memory if absent.

        Created records are stamped with the entity type and id, have no
        services, and are not persisted until ``persist`` is called.
        """
        record = self.load(entity_type, entity_id)
        if record is not None:
            logger.debug(
                f"Loaded sync record {entity_type}:{entity_id} (version {record.version})",
                extra=sync_extra(entity_type=entity_type, entity_id=str(entity_id)),
            )
            return LoadResult(status=LoadStatus.FOUND, record=record)

        logger.debug(
            f"No sync record for {entity_type}:{entity_id}; created new",
            extra=sync_extra(entity_type=entity_type, entity_id=str(entity_id)),
        )
        record = SyncRecord(entity_type=entity_type, entity_id=str(entity_id))
        return LoadResult(status=LoadStatus.CREATED, record=record)

    def persist(self, record: SyncRecord) -> PersistResult:
        """
        Upsert a sync record keyed by (entity_type, entity_id).

        On success the record's version is advanced in place.

        Version checks only hold if every writer of a collection uses the
        same mode. A last-writer-wins save from a stale copy writes the same
        version number a checked save already wrote, so do not mix record
        stores with and without ``optimistic_concurrency`` over one store.

        Raises:
            StoreUnavailableError: If the document store fails
            SyncConflictError: If optimistic concurrency is enabled and the
                stored version changed since the record was loaded
        """
        document = record.to_document()
        document["version"] = record.version + 1
        expected_version = record.version if self.optimistic_concurrency else None

        try:
            action = self.document_store.upsert(
                record.key,
                document,
                expected_version=expected_version,
            )
        except SyncConflictError:
            logger.warning(
                f"Version conflict saving {record.entity_type}:{record.entity_id} "
                f"(expected version {record.version})",
                extra=sync_extra(entity_type=record.entity_type, entity_id=record.entity_id),
            )
            raise

        record.version += 1
        logger.debug(
            f"Persisted sync record {record.entity_type}:{record.entity_id} "
            f"({action}, version {record.version})",
            extra=sync_extra(entity_type=record.entity_type, entity_id=record.entity_id),
        )
        return PersistResult(action=action, version=record.version)


def create_record_store(config=None, backend: Optional[str] = None) -> SyncRecordStore:
    """
    Build a SyncRecordStore from configuration.

    Args:
        config: SyncStateConfig (default: loaded from environment)
        backend: Override for the configured store backend

    Returns:
        SyncRecordStore over the configured document store
    """
    from .config import SyncStateConfig
    from .store import create_document_store

    config = config or SyncStateConfig()
    document_store = create_document_store(backend=backend, config=config)
    return SyncRecordStore(
        document_store,
        optimistic_concurrency=config.optimistic_concurrency,
        fingerprinter=Fingerprinter(config.fingerprint_algorithm),
    )
