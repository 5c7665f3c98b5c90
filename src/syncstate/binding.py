"""
Sync binding between a live entity and its sync record.

A SyncBinding answers "has this entity changed since service X last saw
it?" and "is it synced everywhere?" by fingerprinting the entity on every
query and comparing against the record's stored fingerprints. It never
talks to the downstream services; callers push, then report success with
``mark_synced_for``.

Example:
    >>> binding = bind(user, "search", "billing", store=record_store)
    >>> if binding.needs_sync_for("search"):
    ...     push_to_search(user)
    ...     binding.mark_synced_for("search")
    >>> binding.save()
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

from .core.logging import sync_extra
from .core.models import Fingerprint, SyncEntry, SyncRecord
from .entity import DEFAULT_ID_ATTRIBUTE, entity_type_name, require_identifier
from .fingerprint import Fingerprinter
from .record_store import LoadStatus, PersistResult, SyncRecordStore


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncBinding:
    """
    Couples one entity instance to its sync record.

    Bindings for different entities share no state and may be used in
    parallel. Two bindings for the same entity must not be saved
    concurrently unless the record store uses optimistic concurrency.
    """

    def __init__(
        self,
        entity: Any,
        record_store: SyncRecordStore,
        required_services: tuple = (),
        fingerprinter: Optional[Fingerprinter] = None,
        clock: Optional[Callable[[], datetime]] = None,
        id_attribute: str = DEFAULT_ID_ATTRIBUTE,
    ):
        """
        Bind an entity to its sync record.

        Args:
            entity: Entity with an assigned identifier
            record_store: Store used to load and persist the record
            required_services: Services that must have an entry
            fingerprinter: Fingerprint computer (default: the record store's)
            clock: Returns the timestamp written by mark_synced_for
            id_attribute: Attribute holding the entity identifier

        Raises:
            SyncPreconditionError: If the entity has no identifier
            StoreUnavailableError: If the record cannot be loaded
        """
        entity_id = require_identifier(entity, id_attribute)

        self._entity = entity
        self._record_store = record_store
        self._fingerprinter = fingerprinter or record_store.fingerprinter
        self._clock = clock or _utcnow

        result = record_store.load_or_create(entity_type_name(entity), entity_id)
        self._record = result.record
        self._load_status = result.status
        self._record.ensure_services(*required_services)

        self._baseline = self.fingerprint

    @property
    def entity(self) -> Any:
        return self._entity

    @property
    def record(self) -> SyncRecord:
        return self._record

    @property
    def load_status(self) -> LoadStatus:
        return self._load_status

    @property
    def created(self) -> bool:
        """True if no record existed in the store when the entity was bound."""
        return self._load_status == LoadStatus.CREATED

    @property
    def fingerprint(self) -> Fingerprint:
        """The entity's current fingerprint, recomputed on every access."""
        return self._fingerprinter.compute(self._entity)

    def __getitem__(self, service_id: str) -> SyncEntry:
        return self._record[service_id]

    def ensure_service(self, service_id: str) -> SyncEntry:
        return self._record.ensure_service(service_id)

    def ensure_services(self, *service_ids: str) -> None:
        self._record.ensure_services(*service_ids)

    def changed(self) -> bool:
        """True if the entity changed since it was bound or last saved."""
        return self.fingerprint != self._baseline

    def synced(self) -> bool:
        """True if every registered service holds the current fingerprint."""
        return self._record.synced(self.fingerprint)

    def needs_sync_for(self, service_id: str) -> bool:
        """True if the service is registered and behind the current state."""
        return self._record.needs_sync(service_id, self.fingerprint)

    def pending_services(self) -> List[str]:
        """Registered services that are behind the current state, sorted."""
        fingerprint = self.fingerprint
        return sorted(
            service_id
            for service_id in self._record.service_ids
            if self._record.needs_sync(service_id, fingerprint)
        )

    def mark_synced_for(self, service_id: str) -> bool:
        """
        Record that the service now holds the entity's current state.

        Does not persist; call ``save`` afterwards.

        Returns:
            True if the entry was updated, False if it already matched

        Raises:
            UnknownServiceError: If the service was never registered
        """
        entry = self._record[service_id]
        fingerprint = self.fingerprint
        if not entry.needs_sync(fingerprint):
            return False

        self._record[service_id] = SyncEntry(fingerprint=fingerprint, synced_at=self._clock())
        logger.debug(
            f"Marked {self._record.entity_type}:{self._record.entity_id} synced",
            extra=sync_extra(
                entity_type=self._record.entity_type,
                entity_id=self._record.entity_id,
                service_id=service_id,
            ),
        )
        return True

    def save(self) -> PersistResult:
        """
        Persist the sync record, including any mark_synced_for updates.

        Raises:
            StoreUnavailableError: If the store cannot be reached
            SyncConflictError: If a newer version was saved meanwhile
                (optimistic concurrency only)
        """
        result = self._record_store.persist(self._record)
        self._load_status = LoadStatus.FOUND
        self._baseline = self.fingerprint
        return result

    def __repr__(self) -> str:
        return (
            f"SyncBinding({self._record.entity_type}:{self._record.entity_id}, "
            f"services={self._record.service_ids})"
        )


def bind(
    entity: Any,
    *required_services: str,
    store: SyncRecordStore,
    fingerprinter: Optional[Fingerprinter] = None,
    clock: Optional[Callable[[], datetime]] = None,
    id_attribute: str = DEFAULT_ID_ATTRIBUTE,
) -> SyncBinding:
    """
    Bind an entity to its sync record, registering the required services.

    Args:
        entity: Entity with an assigned identifier
        *required_services: Service ids that must have an entry
        store: Sync record store
        fingerprinter: Fingerprint computer (default: the store's)
        clock: Timestamp source for mark_synced_for
        id_attribute: Attribute holding the entity identifier

    Returns:
        SyncBinding

    Raises:
        SyncPreconditionError: If the entity has no identifier
    """
    return SyncBinding(
        entity,
        store,
        required_services=required_services,
        fingerprinter=fingerprinter,
        clock=clock,
        id_attribute=id_attribute,
    )
