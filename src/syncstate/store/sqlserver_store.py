"""
SQL Server document store for sync records.

Each sync record document is stored as JSON in one row of
``[schema].[sync_records]``, with the key fields and version broken out into
columns so they can be indexed and filtered.
"""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

try:
    import pyodbc
except ImportError:
    pyodbc = None

from ..core.document_store import DocumentStore
from ..core.exceptions import StoreUnavailableError, SyncConflictError, SyncStoreError


logger = logging.getLogger(__name__)

TABLE_NAME = "sync_records"

# Document fields that are mirrored into columns and may be queried
QUERYABLE_COLUMNS = ("entity_type", "entity_id", "version")


class SqlServerDocumentStore(DocumentStore):
    """
    SQL Server-based implementation of the document store.

    Features:
    - One row per (entity_type, entity_id), enforced by a unique index
    - Whole-document replacement on upsert
    - Version-filtered updates for optimistic concurrency
    """

    backend_name = "sqlserver"

    def __init__(
        self,
        connection_string: Optional[str] = None,
        host: str = "localhost",
        port: int = 1433,
        database: str = "SyncState",
        username: str = "sa",
        password: Optional[str] = None,
        driver: str = "ODBC Driver 18 for SQL Server",
        schema: str = "sync",
        auto_init: bool = True,
        trust_server_certificate: bool = True,
    ):
        """
        Initialize the SQL Server store.

        Args:
            connection_string: Full ODBC connection string (if provided, other params ignored)
            host: SQL Server host
            port: SQL Server port
            database: Database name
            username: Database username
            password: Database password
            driver: ODBC driver name
            schema: Schema name for the sync_records table
            auto_init: Whether to create schema and table automatically
            trust_server_certificate: Whether to trust self-signed certificates
        """
        if pyodbc is None:
            raise ImportError(
                "pyodbc is required for SqlServerDocumentStore. "
                "Install with: pip install pyodbc"
            )

        if not self._is_valid_identifier(schema):
            raise ValueError(f"Invalid schema name: {schema}")

        self.schema = schema

        if connection_string:
            self.connection_string = connection_string
        else:
            trust_cert = "yes" if trust_server_certificate else "no"
            self.connection_string = (
                f"Driver={{{driver}}};"
                f"Server={host},{port};"
                f"Database={database};"
                f"UID={username};"
                f"PWD={password};"
                f"TrustServerCertificate={trust_cert}"
            )

        self.conn = None
        self._connect()

        if auto_init:
            self._init_schema()

    @property
    def table(self) -> str:
        return f"[{self.schema}].[{TABLE_NAME}]"

    @staticmethod
    def _is_valid_identifier(name: str) -> bool:
        """Validate that a name is a safe SQL identifier."""
        if not name or len(name) > 128:
            return False
        return bool(re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", name))

    def _connect(self) -> None:
        """Establish database connection."""
        try:
            self.conn = pyodbc.connect(self.connection_string)
            logger.debug(f"Connected to SQL Server sync store (schema: {self.schema})")
        except pyodbc.Error as e:
            logger.error(f"Failed to connect to SQL Server: {e}")
            raise StoreUnavailableError(
                f"Cannot connect to SQL Server: {e}", backend=self.backend_name
            ) from e

    def _init_schema(self) -> None:
        """Create schema and table if missing."""
        cursor = self.conn.cursor()
        try:
            # Schema name is validated in __init__; CREATE SCHEMA cannot be parameterized
            cursor.execute(f"""
                IF NOT EXISTS (SELECT * FROM sys.schemas WHERE name = ?)
                BEGIN
                    EXEC('CREATE SCHEMA [{self.schema}]')
                END
            """, (self.schema,))

            cursor.execute(f"""
                IF NOT EXISTS (SELECT * FROM sys.tables t
                               JOIN sys.schemas s ON t.schema_id = s.schema_id
                               WHERE t.name = '{TABLE_NAME}' AND s.name = ?)
                BEGIN
                    CREATE TABLE {self.table} (
                        entity_type NVARCHAR(200) NOT NULL,
                        entity_id NVARCHAR(400) NOT NULL,
                        version INT NOT NULL DEFAULT 0,
                        document_json NVARCHAR(MAX) NOT NULL,
                        updated_at DATETIME2 NOT NULL
                    )
                END
            """, (self.schema,))

            self.conn.commit()
            logger.debug("Initialized sync store schema")
        except pyodbc.Error as e:
            self.conn.rollback()
            logger.error(f"Failed to initialize sync store schema: {e}")
            raise StoreUnavailableError(
                f"Schema initialization failed: {e}", backend=self.backend_name
            ) from e

    def _where(self, query: Dict[str, Any]) -> tuple:
        clauses = []
        params = []
        for field, value in query.items():
            if field not in QUERYABLE_COLUMNS:
                raise SyncStoreError(
                    f"Field is not queryable in SQL Server store: {field}",
                    backend=self.backend_name,
                )
            clauses.append(f"{field} = ?")
            params.append(value)
        return " AND ".join(clauses) or "1 = 1", params

    def find(self, query: Dict[str, Any], limit: int = 1) -> List[Dict[str, Any]]:
        where, params = self._where(query)
        top = f"TOP ({int(limit)}) " if limit else ""
        try:
            cursor = self.conn.cursor()
            cursor.execute(
                f"SELECT {top}document_json FROM {self.table} WHERE {where}",
                params,
            )
            return [json.loads(row[0]) for row in cursor.fetchall()]
        except pyodbc.Error as e:
            logger.error(f"Failed to query sync records: {e}")
            raise StoreUnavailableError(
                f"SQL Server find failed: {e}", backend=self.backend_name
            ) from e

    def upsert(
        self,
        key: Dict[str, Any],
        document: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> str:
        stored = {**document, **key}
        payload_json = json.dumps(stored, ensure_ascii=False, sort_keys=True)
        version = int(stored.get("version", 0))
        now = datetime.now(timezone.utc)
        entity_type = key["entity_type"]
        entity_id = key["entity_id"]

        try:
            cursor = self.conn.cursor()

            if expected_version == 0:
                self._insert(cursor, entity_type, entity_id, version, payload_json, now)
                action = "inserted"
            else:
                sql = f"""
                    UPDATE {self.table}
                    SET version = ?, document_json = ?, updated_at = ?
                    WHERE entity_type = ? AND entity_id = ?
                """
                params = [version, payload_json, now, entity_type, entity_id]
                if expected_version is not None:
                    sql += " AND version = ?"
                    params.append(expected_version)
                cursor.execute(sql, params)

                if cursor.rowcount > 0:
                    action = "updated"
                elif expected_version is not None:
                    self.conn.rollback()
                    raise SyncConflictError(
                        f"Expected version {expected_version} not found for {key}",
                        backend=self.backend_name,
                        expected_version=expected_version,
                    )
                else:
                    self._insert(cursor, entity_type, entity_id, version, payload_json, now)
                    action = "inserted"

            self.conn.commit()
            return action

        except pyodbc.IntegrityError as e:
            self.conn.rollback()
            raise SyncConflictError(
                f"Concurrent insert for {key}",
                backend=self.backend_name,
                expected_version=expected_version,
            ) from e
        except pyodbc.Error as e:
            self.conn.rollback()
            logger.error(f"Failed to upsert sync record: {e}")
            raise StoreUnavailableError(
                f"SQL Server upsert failed: {e}", backend=self.backend_name
            ) from e

    def _insert(self, cursor, entity_type, entity_id, version, payload_json, now) -> None:
        cursor.execute(
            f"""
                INSERT INTO {self.table} (
                    entity_type, entity_id, version, document_json, updated_at
                ) VALUES (?, ?, ?, ?, ?)
            """,
            (entity_type, entity_id, version, payload_json, now),
        )

    def ensure_unique_index(self, fields: Sequence[str]) -> None:
        for field in fields:
            if field not in QUERYABLE_COLUMNS:
                raise SyncStoreError(
                    f"Cannot index non-column field: {field}",
                    backend=self.backend_name,
                )
        index_name = f"ux_{TABLE_NAME}_{'_'.join(fields)}"
        columns = ", ".join(fields)

        try:
            cursor = self.conn.cursor()
            cursor.execute(f"""
                IF NOT EXISTS (SELECT * FROM sys.indexes
                               WHERE name = ? AND object_id = OBJECT_ID(?))
                BEGIN
                    CREATE UNIQUE INDEX [{index_name}] ON {self.table} ({columns})
                END
            """, (index_name, f"{self.schema}.{TABLE_NAME}"))
            self.conn.commit()
            logger.info(f"Ensured unique index {index_name} on {self.table}")
        except pyodbc.Error as e:
            self.conn.rollback()
            logger.error(f"Failed to create unique index: {e}")
            raise StoreUnavailableError(
                f"SQL Server index creation failed: {e}", backend=self.backend_name
            ) from e

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None
