"""
Storage Backend Module

Provides abstract storage interface and implementations for in-memory (testing)
and SQLite (persistence). All monetary values stored as Decimal strings.

Revisions are written with ``insert`` and never overwritten; only the small
per-lineage head records are replaced with ``save``.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Union
from decimal import Decimal
from datetime import datetime
import sqlite3
import json
import threading
from dataclasses import dataclass, asdict
from pathlib import Path
from contextlib import contextmanager

from .exceptions import RecordExistsError


@dataclass(frozen=True)
class StorageRecord:
    """Base class for all stored revisions"""
    id: str
    lineage_id: str
    version: int
    updated: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        result = asdict(self)
        # Convert datetime and Decimal objects to strings
        for key, value in result.items():
            if isinstance(value, datetime):
                result[key] = value.isoformat()
            elif isinstance(value, Decimal):
                result[key] = str(value)
        return result

    @staticmethod
    def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
        """Convert an ISO string back to datetime"""
        if value is None or isinstance(value, datetime):
            return value
        return datetime.fromisoformat(value)


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    @abstractmethod
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save (insert or replace) a record"""
        pass

    @abstractmethod
    def insert(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Insert a new record, raising RecordExistsError if the id is taken"""
        pass

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from storage"""
        pass

    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        pass

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        pass

    @abstractmethod
    def count(self, table: str) -> int:
        """Count records in table"""
        pass

    @abstractmethod
    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close storage connection"""
        pass

    @abstractmethod
    def begin_transaction(self) -> None:
        """Start a transaction and take the writer lock"""
        pass

    @abstractmethod
    def commit(self) -> None:
        """Commit current transaction"""
        pass

    @abstractmethod
    def rollback(self) -> None:
        """Rollback current transaction"""
        pass

    @property
    @abstractmethod
    def in_transaction(self) -> bool:
        """True if the calling thread owns the open transaction"""
        pass

    @contextmanager
    def atomic(self):
        """Context manager for atomic operations; joins an enclosing transaction"""
        if self.in_transaction:
            yield
            return
        self.begin_transaction()
        try:
            yield
            self.commit()
        except Exception:
            self.rollback()
            raise


def _matches(record: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    for key, value in filters.items():
        if key not in record or record[key] != value:
            return False
    return True


class InMemoryStorage(StorageInterface):
    """In-memory storage implementation for testing"""

    def __init__(self):
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()
        self._snapshot: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None
        self._owner: Optional[int] = None

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists"""
        if table not in self._data:
            self._data[table] = {}

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to memory"""
        with self._lock:
            self._ensure_table(table)
            # Deep copy to prevent external mutation
            self._data[table][record_id] = json.loads(json.dumps(data, default=str))

    def insert(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Insert a record, refusing to overwrite"""
        with self._lock:
            self._ensure_table(table)
            if record_id in self._data[table]:
                raise RecordExistsError(table, record_id)
            self._data[table][record_id] = json.loads(json.dumps(data, default=str))

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from memory"""
        with self._lock:
            self._ensure_table(table)
            record = self._data[table].get(record_id)
            if record:
                # Deep copy to prevent external mutation
                return json.loads(json.dumps(record))
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        with self._lock:
            self._ensure_table(table)
            return [json.loads(json.dumps(record)) for record in self._data[table].values()]

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        with self._lock:
            self._ensure_table(table)
            return [
                json.loads(json.dumps(record))
                for record in self._data[table].values()
                if _matches(record, filters)
            ]

    def count(self, table: str) -> int:
        """Count records in table"""
        with self._lock:
            self._ensure_table(table)
            return len(self._data[table])

    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        with self._lock:
            self._data[table] = {}

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass

    @property
    def in_transaction(self) -> bool:
        return self._owner == threading.get_ident()

    def begin_transaction(self) -> None:
        """Take the lock and snapshot every table for rollback"""
        # Copies the whole store, so each transaction costs O(total records)
        self._lock.acquire()
        self._snapshot = json.loads(json.dumps(self._data))
        self._owner = threading.get_ident()

    def commit(self) -> None:
        """Drop the snapshot and release the lock"""
        if not self.in_transaction:
            return
        self._snapshot = None
        self._owner = None
        self._lock.release()

    def rollback(self) -> None:
        """Restore the snapshot and release the lock"""
        if not self.in_transaction:
            return
        self._data = self._snapshot
        self._snapshot = None
        self._owner = None
        self._lock.release()


class SQLiteStorage(StorageInterface):
    """SQLite storage implementation for persistence"""

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        # Autocommit outside explicit transactions; begin_transaction issues BEGIN IMMEDIATE
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level=None)
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._owner: Optional[int] = None
        self._tables: set = set()

        # Enable WAL mode for better concurrent access
        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists with proper schema"""
        if table in self._tables:
            return
        with self._lock:
            self._connection.execute(f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    seq INTEGER NOT NULL
                )
            """)
            self._connection.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{table}_seq
                ON {table}(seq)
            """)
            self._tables.add(table)

    def _next_seq(self, table: str) -> int:
        cursor = self._connection.execute(f"SELECT COALESCE(MAX(seq), 0) + 1 AS next FROM {table}")
        return cursor.fetchone()['next']

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to SQLite"""
        with self._lock:
            self._ensure_table(table)
            data_json = json.dumps(data, default=str)

            # Keep the original insertion order on replace
            self._connection.execute(f"""
                INSERT INTO {table} (id, data, seq) VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET data = excluded.data
            """, (record_id, data_json, self._next_seq(table)))

    def insert(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Insert a record, refusing to overwrite"""
        with self._lock:
            self._ensure_table(table)
            data_json = json.dumps(data, default=str)
            try:
                self._connection.execute(f"""
                    INSERT INTO {table} (id, data, seq) VALUES (?, ?, ?)
                """, (record_id, data_json, self._next_seq(table)))
            except sqlite3.IntegrityError:
                raise RecordExistsError(table, record_id)

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from SQLite"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT data FROM {table} WHERE id = ?
            """, (record_id,))
            row = cursor.fetchone()
            if row:
                return json.loads(row['data'])
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT data FROM {table} ORDER BY seq
            """)
            return [json.loads(row['data']) for row in cursor.fetchall()]

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters (simple JSON key matching)"""
        return [record for record in self.load_all(table) if _matches(record, filters)]

    def count(self, table: str) -> int:
        """Count records in table"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT COUNT(*) as count FROM {table}
            """)
            return cursor.fetchone()['count']

    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        with self._lock:
            self._ensure_table(table)
            self._connection.execute(f"DELETE FROM {table}")

    @property
    def in_transaction(self) -> bool:
        return self._owner == threading.get_ident()

    def begin_transaction(self) -> None:
        """Start a write transaction; other connections wait on the database lock"""
        self._lock.acquire()
        try:
            self._connection.execute("BEGIN IMMEDIATE")
        except Exception:
            self._lock.release()
            raise
        self._owner = threading.get_ident()

    def commit(self) -> None:
        """Commit current transaction"""
        if not self.in_transaction:
            return
        try:
            self._connection.execute("COMMIT")
        finally:
            self._owner = None
            self._lock.release()

    def rollback(self) -> None:
        """Rollback current transaction"""
        if not self.in_transaction:
            return
        try:
            self._connection.execute("ROLLBACK")
        finally:
            # Tables created inside the transaction are gone too
            self._tables.clear()
            self._owner = None
            self._lock.release()

    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_storage(database_url: str) -> StorageInterface:
    """Pick a storage backend from a database URL"""
    if database_url.startswith("memory://"):
        return InMemoryStorage()
    if database_url.startswith("sqlite:///"):
        return SQLiteStorage(database_url[len("sqlite:///"):] or ":memory:")
    raise ValueError(f"Unsupported database url '{database_url}'")
