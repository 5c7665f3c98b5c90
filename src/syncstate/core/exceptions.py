"""
Custom exceptions for the sync state module.
"""


class SyncStateError(Exception):
    """Base exception for all sync state errors."""
    pass


class SyncPreconditionError(SyncStateError):
    """
    A sync operation was attempted on an entity that is not ready for it.

    Raised when:
    - Binding an entity that has no assigned identifier yet
    """

    def __init__(self, message: str, entity_type: str = None):
        super().__init__(message)
        self.entity_type = entity_type


class SyncStoreError(SyncStateError):
    """Error persisting or retrieving sync records."""

    def __init__(self, message: str, backend: str = None):
        super().__init__(message)
        self.backend = backend


class StoreUnavailableError(SyncStoreError):
    """
    The backing document store could not serve a request.

    Raised when:
    - The store is unreachable or the request timed out
    - The driver reports an error during find, upsert or index creation

    The driver exception is chained as ``__cause__``.
    """
    pass


class SyncConflictError(SyncStoreError):
    """
    A versioned upsert found a different version than expected.

    Raised when:
    - Optimistic concurrency is enabled and another writer saved the
      same record after it was loaded
    """

    def __init__(
        self,
        message: str,
        backend: str = None,
        expected_version: int = None,
    ):
        super().__init__(message, backend=backend)
        self.expected_version = expected_version


class FingerprintSerializationError(SyncStateError):
    """
    Entity state could not be canonicalized for fingerprinting.

    Raised when:
    - The state contains a cycle
    - The state contains a value with no canonical form
    - A float is NaN or infinite
    """
    pass


class UnknownServiceError(SyncStateError, KeyError):
    """
    A sync entry was accessed for a service that was never registered.

    Queries such as ``needs_sync`` never raise this; only direct entry
    access and ``mark_synced_for`` do.
    """

    def __init__(self, service_id: str):
        super().__init__(f"Service not registered: {service_id}")
        self.service_id = service_id

    def __str__(self) -> str:
        return self.args[0]


class SyncConfigError(SyncStateError):
    """
    Error in sync state configuration.

    Raised when:
    - Configuration file is missing or invalid
    - An unknown store backend or digest algorithm is requested
    """
    pass
