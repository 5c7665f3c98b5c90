"""
Per-entity, per-service sync state tracking.

This package provides:
- Fingerprinting: stable content digests of entity state with opt-out hooks
- SyncRecord: last-synced fingerprint per downstream service
- SyncRecordStore: load-or-create and persist records in a document store
- SyncBinding: needs-sync / synced / mark-synced decisions for a live entity
"""

from .core.models import SyncEntry, SyncRecord
from .core.exceptions import (
    SyncStateError,
    SyncPreconditionError,
    SyncStoreError,
    StoreUnavailableError,
    SyncConflictError,
    FingerprintSerializationError,
    UnknownServiceError,
    SyncConfigError,
)
from .fingerprint import Fingerprinter, canonicalize, compute_fingerprint
from .record_store import (
    LoadResult,
    LoadStatus,
    PersistResult,
    SyncRecordStore,
    create_record_store,
)
from .binding import SyncBinding, bind

__version__ = "0.1.0"

__all__ = [
    "SyncEntry",
    "SyncRecord",
    "Fingerprinter",
    "canonicalize",
    "compute_fingerprint",
    "LoadResult",
    "LoadStatus",
    "PersistResult",
    "SyncRecordStore",
    "create_record_store",
    "SyncBinding",
    "bind",
    "SyncStateError",
    "SyncPreconditionError",
    "SyncStoreError",
    "StoreUnavailableError",
    "SyncConflictError",
    "FingerprintSerializationError",
    "UnknownServiceError",
    "SyncConfigError",
]
