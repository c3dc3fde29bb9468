"""
Tests for the backend selector and its one-way failover
"""

import pytest
from unittest.mock import Mock

import mongomock

from loan_tracker.errors import BackendUnavailableError
from loan_tracker.selector import BackendSelector, BackendState
from loan_tracker.storage import DatabaseStore, FileStore


@pytest.fixture
def file_store(tmp_path) -> FileStore:
    return FileStore(tmp_path / "data.json")


class TestInitialState:
    """Test the starting state"""

    def test_file_only_without_database(self, file_store):
        """No database configured means file-active from the start"""
        selector = BackendSelector(file_store)
        assert selector.state == BackendState.FILE_ACTIVE
        assert not selector.database_configured
        assert selector.resolve() is file_store

    def test_database_active_when_configured(self, file_store):
        """A configured database starts database-active"""
        selector = BackendSelector(file_store, lambda: DatabaseStore(mongomock.MongoClient().loanapp))
        assert selector.state == BackendState.DATABASE_ACTIVE
        assert selector.database_configured


class TestResolve:
    """Test backend resolution"""

    def test_connects_lazily_once(self, file_store):
        """The database factory runs on first resolve only"""
        database = DatabaseStore(mongomock.MongoClient().loanapp)
        factory = Mock(return_value=database)
        selector = BackendSelector(file_store, factory)

        factory.assert_not_called()
        assert selector.resolve() is database
        assert selector.resolve() is database
        factory.assert_called_once()

    def test_connection_failure_falls_back_for_the_same_call(self, file_store):
        """A failed connect returns the file store immediately"""
        factory = Mock(side_effect=BackendUnavailableError("timed out"))
        selector = BackendSelector(file_store, factory)

        assert selector.resolve() is file_store
        assert selector.state == BackendState.FILE_ACTIVE
        assert selector.failure_reason == "timed out"
        assert selector.failed_over_at is not None

    def test_no_retry_after_failover(self, file_store):
        """Once failed over, the database is never tried again"""
        factory = Mock(side_effect=BackendUnavailableError("timed out"))
        selector = BackendSelector(file_store, factory)

        selector.resolve()
        selector.resolve()
        selector.resolve()
        factory.assert_called_once()


class TestFailOver:
    """Test the one-way transition"""

    def test_fail_over_closes_database(self, file_store):
        """Failing over releases the database store"""
        database = Mock(spec=DatabaseStore)
        selector = BackendSelector(file_store, lambda: database)
        selector.resolve()

        selector.fail_over(BackendUnavailableError("network error"))

        database.close.assert_called_once()
        assert selector.resolve() is file_store

    def test_fail_over_is_idempotent(self, file_store):
        """The first failure's timestamp and reason are kept"""
        selector = BackendSelector(file_store, lambda: DatabaseStore(mongomock.MongoClient().loanapp))
        selector.fail_over(BackendUnavailableError("first"))
        first_time = selector.failed_over_at

        selector.fail_over(BackendUnavailableError("second"))

        assert selector.failed_over_at == first_time
        assert selector.failure_reason == "first"

    def test_describe(self, file_store):
        """describe reports state for diagnostics"""
        selector = BackendSelector(file_store, Mock(side_effect=BackendUnavailableError("auth failed")))
        selector.resolve()

        snapshot = selector.describe()
        assert snapshot["state"] == "file-active"
        assert snapshot["databaseConfigured"] is True
        assert snapshot["databaseConnected"] is False
        assert snapshot["dataFile"] == str(file_store.path)
        assert snapshot["failureReason"] == "auth failed"
        assert snapshot["failedOverAt"]
