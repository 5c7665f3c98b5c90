"""
Unit tests for SqlServerDocumentStore.

pyodbc is replaced with a mock so these run without a driver or server.
"""

import json
from unittest.mock import MagicMock

import pytest

from syncstate.core.exceptions import StoreUnavailableError, SyncConflictError, SyncStoreError
from syncstate.store import sqlserver_store
from syncstate.store.sqlserver_store import SqlServerDocumentStore


KEY = {"entity_type": "UserModel", "entity_id": "42"}


class FakePyodbcError(Exception):
    pass


class FakeIntegrityError(FakePyodbcError):
    pass


@pytest.fixture
def fake_pyodbc(monkeypatch):
    module = MagicMock()
    module.Error = FakePyodbcError
    module.IntegrityError = FakeIntegrityError
    monkeypatch.setattr(sqlserver_store, "pyodbc", module)
    return module


@pytest.fixture
def store(fake_pyodbc):
    """Store with schema initialization skipped; yields (store, cursor)."""
    sql_store = SqlServerDocumentStore(password="secret", auto_init=False)
    cursor = sql_store.conn.cursor.return_value
    return sql_store, cursor


class TestConnection:
    """Tests for construction and connection handling."""

    def test_missing_driver(self, monkeypatch):
        monkeypatch.setattr(sqlserver_store, "pyodbc", None)
        with pytest.raises(ImportError):
            SqlServerDocumentStore()

    def test_connection_string_built(self, fake_pyodbc):
        SqlServerDocumentStore(host="db", port=1444, database="Sync", password="pw", auto_init=False)
        conn_str = fake_pyodbc.connect.call_args[0][0]
        assert "Server=db,1444;" in conn_str
        assert "Database=Sync;" in conn_str
        assert "TrustServerCertificate=yes" in conn_str

    def test_explicit_connection_string(self, fake_pyodbc):
        SqlServerDocumentStore(connection_string="DSN=sync", auto_init=False)
        fake_pyodbc.connect.assert_called_once_with("DSN=sync")

    def test_invalid_schema_rejected(self, fake_pyodbc):
        with pytest.raises(ValueError):
            SqlServerDocumentStore(schema="sync; DROP TABLE x", auto_init=False)

    def test_connect_failure(self, fake_pyodbc):
        fake_pyodbc.connect.side_effect = FakePyodbcError("login failed")
        with pytest.raises(StoreUnavailableError) as exc_info:
            SqlServerDocumentStore(auto_init=False)
        assert exc_info.value.backend == "sqlserver"

    def test_auto_init_creates_schema_and_table(self, fake_pyodbc):
        sql_store = SqlServerDocumentStore()
        cursor = sql_store.conn.cursor.return_value
        assert cursor.execute.call_count == 2
        sql_store.conn.commit.assert_called_once()

    def test_close(self, store):
        sql_store, _ = store
        conn = sql_store.conn
        sql_store.close()
        conn.close.assert_called_once()
        assert sql_store.conn is None


class TestFind:
    """Tests for find."""

    def test_find_decodes_documents(self, store):
        sql_store, cursor = store
        cursor.fetchall.return_value = [(json.dumps({**KEY, "version": 3}),)]

        assert sql_store.find(KEY) == [{**KEY, "version": 3}]
        sql, params = cursor.execute.call_args[0]
        assert "TOP (1)" in sql
        assert "[sync].[sync_records]" in sql
        assert params == ["UserModel", "42"]

    def test_unqueryable_field(self, store):
        sql_store, _ = store
        with pytest.raises(SyncStoreError):
            sql_store.find({"services": {}})

    def test_find_failure(self, store):
        sql_store, cursor = store
        cursor.execute.side_effect = FakePyodbcError("timeout")
        with pytest.raises(StoreUnavailableError):
            sql_store.find(KEY)


class TestUpsert:
    """Tests for upsert."""

    def test_update_existing(self, store):
        sql_store, cursor = store
        cursor.rowcount = 1

        assert sql_store.upsert(KEY, {"version": 2, "services": {}}) == "updated"
        assert cursor.execute.call_count == 1
        sql_store.conn.commit.assert_called_once()

    def test_insert_when_missing(self, store):
        sql_store, cursor = store
        cursor.rowcount = 0

        assert sql_store.upsert(KEY, {"version": 1, "services": {}}) == "inserted"
        insert_params = cursor.execute.call_args_list[1][0][1]
        assert insert_params[:3] == ("UserModel", "42", 1)
        assert json.loads(insert_params[3]) == {**KEY, "version": 1, "services": {}}

    def test_versioned_update_filters_on_version(self, store):
        sql_store, cursor = store
        cursor.rowcount = 1

        sql_store.upsert(KEY, {"version": 3}, expected_version=2)
        sql, params = cursor.execute.call_args[0]
        assert "AND version = ?" in sql
        assert params[-1] == 2

    def test_versioned_update_conflict(self, store):
        sql_store, cursor = store
        cursor.rowcount = 0

        with pytest.raises(SyncConflictError) as exc_info:
            sql_store.upsert(KEY, {"version": 3}, expected_version=2)
        assert exc_info.value.expected_version == 2
        sql_store.conn.rollback.assert_called()
        sql_store.conn.commit.assert_not_called()

    def test_versioned_create_conflict(self, store):
        sql_store, cursor = store
        cursor.execute.side_effect = FakeIntegrityError("duplicate key")

        with pytest.raises(SyncConflictError):
            sql_store.upsert(KEY, {"version": 1}, expected_version=0)
        sql_store.conn.rollback.assert_called_once()

    def test_driver_error(self, store):
        sql_store, cursor = store
        cursor.execute.side_effect = FakePyodbcError("connection reset")

        with pytest.raises(StoreUnavailableError):
            sql_store.upsert(KEY, {"version": 1})
        sql_store.conn.rollback.assert_called_once()


class TestUniqueIndex:
    """Tests for ensure_unique_index."""

    def test_creates_named_index(self, store):
        sql_store, cursor = store
        sql_store.ensure_unique_index(["entity_type", "entity_id"])

        sql, params = cursor.execute.call_args[0]
        assert "CREATE UNIQUE INDEX [ux_sync_records_entity_type_entity_id]" in sql
        assert params == ("ux_sync_records_entity_type_entity_id", "sync.sync_records")

    def test_non_column_field_rejected(self, store):
        sql_store, _ = store
        with pytest.raises(SyncStoreError):
            sql_store.ensure_unique_index(["services"])
