"""
Core subpackage for sync state tracking.

Contains models, the document store interface, exceptions, and logging
utilities.
"""

from .models import EMPTY_FINGERPRINT, Fingerprint, SyncEntry, SyncRecord
from .document_store import DocumentStore
from .exceptions import (
    SyncStateError,
    SyncPreconditionError,
    SyncStoreError,
    StoreUnavailableError,
    SyncConflictError,
    FingerprintSerializationError,
    UnknownServiceError,
    SyncConfigError,
)

__all__ = [
    # Models
    "EMPTY_FINGERPRINT",
    "Fingerprint",
    "SyncEntry",
    "SyncRecord",
    "DocumentStore",
    # Exceptions
    "SyncStateError",
    "SyncPreconditionError",
    "SyncStoreError",
    "StoreUnavailableError",
    "SyncConflictError",
    "FingerprintSerializationError",
    "UnknownServiceError",
    "SyncConfigError",
]
