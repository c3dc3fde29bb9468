"""
Storage Backend Module

Provides the abstract borrower storage interface and two implementations:
a single JSON document on local disk, and a MongoDB collection. Both return
the same Borrower objects so callers cannot tell which one served them.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
import json
import logging
import os
import secrets
import string
import tempfile
import threading
import time

from bson import ObjectId
from pymongo import DESCENDING, MongoClient
from pymongo.errors import PyMongoError

from .errors import BackendUnavailableError, MalformedIdentifierError, PersistenceError
from .models import Borrower, HistoryKind, Payment, Penalty, encode_fields


logger = logging.getLogger("loan_tracker.storage")

HistoryRecord = Union[Payment, Penalty]


class StorageBackend(ABC):
    """Abstract interface for borrower storage backends"""

    name = "abstract"

    @abstractmethod
    def list_all(self) -> List[Borrower]:
        """Load all borrowers, newest createdAt first"""
        pass

    @abstractmethod
    def get_by_id(self, borrower_id: str) -> Optional[Borrower]:
        """Load a borrower, or None if no record matches"""
        pass

    @abstractmethod
    def insert(self, borrower: Borrower) -> Borrower:
        """Store a new borrower and return it with its assigned id"""
        pass

    @abstractmethod
    def update_fields(self, borrower_id: str, fields: Dict[str, Any]) -> bool:
        """Overwrite top-level fields (attribute names); False if not found"""
        pass

    @abstractmethod
    def append_to_history(
        self,
        borrower_id: str,
        kind: HistoryKind,
        record: HistoryRecord,
        updated_fields: Dict[str, Any]
    ) -> bool:
        """Append a payment/penalty and update fields in one write; False if not found"""
        pass

    @abstractmethod
    def remove(self, borrower_id: str) -> bool:
        """Delete a borrower; False if not found"""
        pass

    @contextmanager
    def atomic(self):
        """Hold a read-compute-write cycle exclusive against other callers (default no-op)"""
        yield

    def close(self) -> None:
        """Release backend resources (default no-op)"""
        pass


ID_ALPHABET = string.digits + string.ascii_lowercase


class FileStore(StorageBackend):
    """
    Whole record set in one JSON document: {"borrowers": [...]}.

    Every operation reads the document, mutates it in memory and writes it
    back through a temporary file and os.replace, so a failed write leaves the
    previous document intact. The lock covers each read-modify-write cycle,
    and atomic() extends it over a caller's load-compute-write sequence.
    Several processes sharing one file are not supported (single writer).
    """

    name = "file"

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.RLock()
        self._last_timestamp = 0

    @contextmanager
    def atomic(self):
        with self._lock:
            yield

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {"borrowers": []}
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Failed to read data file {self.path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("borrowers", []), list):
            raise PersistenceError(f"Data file {self.path} is not a borrower document")
        data.setdefault("borrowers", [])
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        # Serialize before touching the filesystem
        payload = json.dumps(data, indent=2)
        temp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, self.path)
            temp_path = None
        except OSError as e:
            raise PersistenceError(f"Failed to write data file {self.path}: {e}") from e
        finally:
            if temp_path and os.path.exists(temp_path):
                os.unlink(temp_path)

    @staticmethod
    def _find(data: Dict[str, Any], borrower_id: str) -> Optional[Dict[str, Any]]:
        for document in data["borrowers"]:
            if document.get("id") == borrower_id:
                return document
        return None

    def generate_id(self, existing: Optional[set] = None) -> str:
        """Millisecond timestamp (never decreasing) plus a random base-36 suffix"""
        existing = existing or set()
        with self._lock:
            while True:
                timestamp = max(int(time.time() * 1000), self._last_timestamp)
                self._last_timestamp = timestamp
                suffix = "".join(secrets.choice(ID_ALPHABET) for _ in range(9))
                candidate = f"{timestamp}{suffix}"
                if candidate not in existing:
                    return candidate

    def list_all(self) -> List[Borrower]:
        with self._lock:
            data = self._read()
        borrowers = [Borrower.from_document(d) for d in data["borrowers"]]
        borrowers.sort(key=lambda b: b.created_at, reverse=True)
        return borrowers

    def get_by_id(self, borrower_id: str) -> Optional[Borrower]:
        with self._lock:
            document = self._find(self._read(), borrower_id)
        return Borrower.from_document(document) if document else None

    def insert(self, borrower: Borrower) -> Borrower:
        with self._lock:
            data = self._read()
            existing = {d.get("id") for d in data["borrowers"]}
            stored = replace(borrower, id=self.generate_id(existing))
            data["borrowers"].append(stored.to_document())
            self._write(data)
        logger.debug(f"Inserted borrower {stored.id} into {self.path}")
        return stored

    def update_fields(self, borrower_id: str, fields: Dict[str, Any]) -> bool:
        with self._lock:
            data = self._read()
            document = self._find(data, borrower_id)
            if document is None:
                return False
            document.update(encode_fields(fields))
            self._write(data)
        return True

    def append_to_history(
        self,
        borrower_id: str,
        kind: HistoryKind,
        record: HistoryRecord,
        updated_fields: Dict[str, Any]
    ) -> bool:
        with self._lock:
            data = self._read()
            document = self._find(data, borrower_id)
            if document is None:
                return False
            document.setdefault(kind.value, []).append(record.to_document())
            document.update(encode_fields(updated_fields))
            self._write(data)
        return True

    def remove(self, borrower_id: str) -> bool:
        with self._lock:
            data = self._read()
            remaining = [d for d in data["borrowers"] if d.get("id") != borrower_id]
            if len(remaining) == len(data["borrowers"]):
                return False
            data["borrowers"] = remaining
            self._write(data)
        return True


class DatabaseStore(StorageBackend):
    """
    MongoDB collection of borrower documents keyed by ObjectId.

    Driver errors surface as BackendUnavailableError so the selector can fail
    over. Single-document updates rely on MongoDB's native atomicity; atomic()
    serializes read-compute-write cycles within this process.
    """

    name = "database"

    def __init__(self, database, collection_name: str = "borrowers",
                 client: Optional[MongoClient] = None):
        self._database = database
        self._collection = database[collection_name]
        self._client = client
        self._lock = threading.RLock()

    @classmethod
    def connect(cls, uri: str, database_name: str, collection_name: str = "borrowers",
                timeout_ms: int = 5000) -> 'DatabaseStore':
        """Open a client with bounded timeouts and verify the server answers"""
        try:
            client = MongoClient(
                uri,
                serverSelectionTimeoutMS=timeout_ms,
                connectTimeoutMS=timeout_ms,
            )
            client.admin.command("ping")
        except PyMongoError as e:
            raise BackendUnavailableError(f"MongoDB connection failed: {e}") from e

        logger.info(f"Connected to MongoDB database '{database_name}'")
        return cls(client[database_name], collection_name=collection_name, client=client)

    @contextmanager
    def atomic(self):
        with self._lock:
            yield

    @staticmethod
    def _object_id(borrower_id: str) -> ObjectId:
        if not isinstance(borrower_id, str) or not ObjectId.is_valid(borrower_id):
            raise MalformedIdentifierError("Invalid borrower ID format.")
        return ObjectId(borrower_id)

    @contextmanager
    def _guard(self, operation: str):
        """Translate driver errors into BackendUnavailableError"""
        try:
            yield
        except PyMongoError as e:
            raise BackendUnavailableError(f"MongoDB {operation} failed: {e}") from e

    @staticmethod
    def _to_borrower(document: Dict[str, Any]) -> Borrower:
        document = dict(document)
        document["id"] = str(document.pop("_id"))
        return Borrower.from_document(document)

    def list_all(self) -> List[Borrower]:
        with self._guard("find"):
            documents = list(self._collection.find({}).sort("createdAt", DESCENDING))
        return [self._to_borrower(d) for d in documents]

    def get_by_id(self, borrower_id: str) -> Optional[Borrower]:
        object_id = self._object_id(borrower_id)
        with self._guard("find_one"):
            document = self._collection.find_one({"_id": object_id})
        return self._to_borrower(document) if document else None

    def insert(self, borrower: Borrower) -> Borrower:
        document = borrower.to_document(include_id=False, native_datetimes=True)
        with self._guard("insert_one"):
            result = self._collection.insert_one(document)
        logger.debug(f"Inserted borrower {result.inserted_id} into MongoDB")
        return replace(borrower, id=str(result.inserted_id))

    def update_fields(self, borrower_id: str, fields: Dict[str, Any]) -> bool:
        object_id = self._object_id(borrower_id)
        with self._guard("update_one"):
            result = self._collection.update_one(
                {"_id": object_id},
                {"$set": encode_fields(fields, native_datetimes=True)}
            )
        return result.matched_count > 0

    def append_to_history(
        self,
        borrower_id: str,
        kind: HistoryKind,
        record: HistoryRecord,
        updated_fields: Dict[str, Any]
    ) -> bool:
        object_id = self._object_id(borrower_id)
        update = {"$push": {kind.value: record.to_document(native_datetimes=True)}}
        if updated_fields:
            update["$set"] = encode_fields(updated_fields, native_datetimes=True)
        with self._guard("update_one"):
            result = self._collection.update_one({"_id": object_id}, update)
        return result.matched_count > 0

    def remove(self, borrower_id: str) -> bool:
        object_id = self._object_id(borrower_id)
        with self._guard("delete_one"):
            result = self._collection.delete_one({"_id": object_id})
        return result.deleted_count > 0

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
