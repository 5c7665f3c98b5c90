"""
Document store implementations for sync records.

The default backend is MongoDB (MongoDocumentStore). SQL Server
(SqlServerDocumentStore) needs the ``sqlserver`` extra; the in-memory store
(InMemoryDocumentStore) is meant for tests and local runs.

To select backend, set the SYNCSTATE_BACKEND environment variable:
    - SYNCSTATE_BACKEND=mongodb (default)
    - SYNCSTATE_BACKEND=sqlserver
    - SYNCSTATE_BACKEND=memory
"""

import logging
import os
from typing import Any, Optional

from ..core.document_store import DocumentStore
from ..core.exceptions import SyncConfigError
from .memory_store import InMemoryDocumentStore


logger = logging.getLogger(__name__)

BACKENDS = ("mongodb", "sqlserver", "memory")


# Lazy imports so a missing driver only matters for the backend that needs it
def _get_mongo_store():
    from .mongo_store import MongoDocumentStore
    return MongoDocumentStore


def _get_sqlserver_store():
    from .sqlserver_store import SqlServerDocumentStore
    return SqlServerDocumentStore


def create_document_store(
    backend: Optional[str] = None,
    config: Optional[Any] = None,
    **overrides: Any,
) -> DocumentStore:
    """
    Factory function to create the document store for the configured backend.

    Args:
        backend: 'mongodb', 'sqlserver' or 'memory'. Defaults to the config's
            store.backend, then SYNCSTATE_BACKEND, then 'mongodb'.
        config: Optional SyncStateConfig supplying backend settings
        **overrides: Keyword arguments passed to the store constructor,
            taking precedence over config values

    Returns:
        DocumentStore instance

    Raises:
        SyncConfigError: If backend is not recognized
    """
    if backend is None and config is not None:
        backend = config.get("store.backend")
    if backend is None:
        backend = os.environ.get("SYNCSTATE_BACKEND", "mongodb")
    backend = backend.lower()

    store_config = config.get_store_config() if config is not None else {}

    if backend == "memory":
        logger.debug("Using in-memory document store")
        return InMemoryDocumentStore()

    elif backend == "mongodb":
        MongoDocumentStore = _get_mongo_store()
        settings = dict(store_config.get("mongodb") or {})
        settings.update(overrides)
        logger.debug(f"Using MongoDB document store ({settings.get('database', 'syncstate')})")
        return MongoDocumentStore(**settings)

    elif backend == "sqlserver":
        SqlServerDocumentStore = _get_sqlserver_store()
        settings = dict(store_config.get("sqlserver") or {})
        settings.update(overrides)
        logger.debug(f"Using SQL Server document store (schema: {settings.get('schema', 'sync')})")
        return SqlServerDocumentStore(**settings)

    else:
        raise SyncConfigError(
            f"Unknown backend: {backend}. "
            f"Supported backends: {', '.join(BACKENDS)}"
        )


__all__ = ["InMemoryDocumentStore", "create_document_store", "BACKENDS"]
