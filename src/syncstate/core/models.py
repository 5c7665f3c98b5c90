"""
Core data models for sync state tracking.

A SyncRecord is the per-entity aggregate: the entity's type and identifier
plus one SyncEntry per downstream service, holding the fingerprint the
entity had when it was last synced to that service.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from .exceptions import UnknownServiceError


Fingerprint = bytes

EMPTY_FINGERPRINT: Fingerprint = b""


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp as stored in documents."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass
class SyncEntry:
    """
    Last-synced state of one entity for one service.

    Attributes:
        fingerprint: Entity fingerprint at the last successful sync
            (empty if the service was registered but never synced)
        synced_at: When that sync was recorded
    """
    fingerprint: Fingerprint = EMPTY_FINGERPRINT
    synced_at: Optional[datetime] = None

    def needs_sync(self, fingerprint: Fingerprint) -> bool:
        """True if the given fingerprint differs from the stored one."""
        return fingerprint != self.fingerprint

    @property
    def ever_synced(self) -> bool:
        return bool(self.fingerprint)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "fingerprint": self.fingerprint.hex(),
            "synced_at": self.synced_at.isoformat() if self.synced_at else None,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SyncEntry":
        """Create from dictionary."""
        if not data:
            return cls()
        return cls(
            fingerprint=bytes.fromhex(data.get("fingerprint") or ""),
            synced_at=_parse_timestamp(data.get("synced_at")),
        )


@dataclass
class SyncRecord:
    """
    Sync bookkeeping for a single entity.

    Attributes:
        entity_type: Type name of the tracked entity
        entity_id: Stable identifier of the tracked entity
        services: Mapping of service id to its SyncEntry
        version: Number of times the record has been persisted
    """
    entity_type: str
    entity_id: str
    services: Dict[str, SyncEntry] = field(default_factory=dict)
    version: int = 0

    @property
    def key(self) -> Dict[str, str]:
        """Unique key of this record in the document store."""
        return {"entity_type": self.entity_type, "entity_id": self.entity_id}

    @property
    def service_ids(self) -> List[str]:
        return list(self.services)

    def service_exists(self, service_id: str) -> bool:
        return service_id in self.services

    def __contains__(self, service_id: object) -> bool:
        return service_id in self.services

    def __iter__(self) -> Iterator[str]:
        return iter(self.services)

    def get_entry(self, service_id: str) -> SyncEntry:
        """
        Return the entry for a registered service.

        Raises:
            UnknownServiceError: If the service was never registered
        """
        try:
            return self.services[service_id]
        except KeyError:
            raise UnknownServiceError(service_id) from None

    def __getitem__(self, service_id: str) -> SyncEntry:
        return self.get_entry(service_id)

    def __setitem__(self, service_id: str, entry: SyncEntry) -> None:
        self.services[service_id] = entry

    def ensure_service(self, service_id: str) -> SyncEntry:
        """Return the entry for a service, creating an empty one if needed."""
        if service_id not in self.services:
            self.services[service_id] = SyncEntry()
        return self.services[service_id]

    def ensure_services(self, *service_ids: str) -> None:
        """Ensure an entry exists for every given service."""
        for service_id in service_ids:
            self.ensure_service(service_id)

    def needs_sync(self, service_id: str, fingerprint: Fingerprint) -> bool:
        """
        Check whether a service is behind the given fingerprint.

        Returns False for services that were never registered: there is
        nothing to compare against, so no staleness is claimed.
        """
        entry = self.services.get(service_id)
        if entry is None:
            return False
        return entry.needs_sync(fingerprint)

    def synced(self, fingerprint: Fingerprint) -> bool:
        """True if every registered service holds the given fingerprint."""
        return not any(
            entry.needs_sync(fingerprint) for entry in self.services.values()
        )

    def to_document(self) -> Dict[str, Any]:
        """Convert to the document form stored by document stores."""
        return {
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "services": {
                service_id: entry.to_dict()
                for service_id, entry in self.services.items()
            },
            "version": self.version,
        }

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> "SyncRecord":
        """Create from a stored document."""
        return cls(
            entity_type=data["entity_type"],
            entity_id=str(data["entity_id"]),
            services={
                service_id: SyncEntry.from_dict(entry)
                for service_id, entry in (data.get("services") or {}).items()
            },
            version=int(data.get("version", 0)),
        )
