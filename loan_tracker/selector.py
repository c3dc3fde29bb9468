"""
Backend Selector Module

Decides which storage backend serves each operation. Starts on the database
when one is configured and fails over to the file store, one way and for the
rest of the process, the first time the database cannot be used.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional
import logging
import threading

from .errors import BackendUnavailableError
from .storage import DatabaseStore, FileStore, StorageBackend


logger = logging.getLogger("loan_tracker.selector")


class BackendState(Enum):
    """Selector states"""
    DATABASE_ACTIVE = "database-active"
    FILE_ACTIVE = "file-active"


class BackendSelector:
    """
    Resolves the active storage backend.

    The database store is created lazily through database_factory on first
    use. A failed connection, or any later report through fail_over, moves
    the selector to FILE_ACTIVE permanently.
    """

    def __init__(
        self,
        file_store: FileStore,
        database_factory: Optional[Callable[[], DatabaseStore]] = None
    ):
        self.file_store = file_store
        self._database_factory = database_factory
        self._database: Optional[DatabaseStore] = None
        self._lock = threading.RLock()

        self.state = BackendState.DATABASE_ACTIVE if database_factory else BackendState.FILE_ACTIVE
        self.failed_over_at: Optional[datetime] = None
        self.failure_reason: Optional[str] = None

        logger.info(f"Backend selector starting in {self.state.value} mode")

    @property
    def database_configured(self) -> bool:
        return self._database_factory is not None

    def resolve(self) -> StorageBackend:
        """Return the active backend, connecting to the database if needed"""
        with self._lock:
            if self.state == BackendState.FILE_ACTIVE:
                return self.file_store

            if self._database is None:
                try:
                    self._database = self._database_factory()
                except BackendUnavailableError as e:
                    self.fail_over(e)
                    return self.file_store

            return self._database

    def fail_over(self, error: Exception) -> None:
        """Switch to the file store for the rest of the process lifetime"""
        with self._lock:
            if self.state == BackendState.FILE_ACTIVE:
                return

            self.state = BackendState.FILE_ACTIVE
            self.failed_over_at = datetime.now(timezone.utc)
            self.failure_reason = str(error)

            database, self._database = self._database, None
            if database is not None:
                database.close()

        logger.warning(f"Database unavailable, using file storage at {self.file_store.path}: {error}")

    def describe(self) -> Dict[str, Any]:
        """Diagnostic snapshot of the selector state"""
        with self._lock:
            return {
                "state": self.state.value,
                "databaseConfigured": self.database_configured,
                "databaseConnected": self._database is not None,
                "dataFile": str(self.file_store.path),
                "failedOverAt": self.failed_over_at.isoformat() if self.failed_over_at else None,
                "failureReason": self.failure_reason,
            }
