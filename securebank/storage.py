"""
Storage Backend Module

Provides abstract storage interface and implementations for in-memory (testing)
and SQLite (persistence). Records are JSON documents keyed by an integer id
allocated from a per-table sequence. All monetary values are stored as integer
cents.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Union
from datetime import datetime, timezone
import copy
import sqlite3
import json
import logging
import threading
from dataclasses import dataclass, asdict, fields
from enum import Enum
from pathlib import Path
from contextlib import contextmanager, nullcontext

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StorageRecord:
    """Base class for all stored records"""
    id: int
    created_at: datetime

    # Subclasses list the fields needing conversion on load
    datetime_fields = ('created_at',)
    enum_fields = {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        result = asdict(self)
        for key, value in result.items():
            # Convert datetime objects to ISO strings
            if isinstance(value, datetime):
                result[key] = value.isoformat()
            elif isinstance(value, Enum):
                result[key] = value.value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StorageRecord':
        """Create instance from dictionary, ignoring unknown keys"""
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in data.items():
            if key not in known:
                continue
            # Convert ISO strings back to datetime objects
            if key in cls.datetime_fields and isinstance(value, str):
                value = datetime.fromisoformat(value)
            elif key in cls.enum_fields and value is not None:
                value = cls.enum_fields[key](value)
            values[key] = value
        return cls(**values)


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    @abstractmethod
    def insert(self, table: str, data: Dict[str, Any]) -> int:
        """Insert a new record and return its allocated id"""
        pass

    @abstractmethod
    def save(self, table: str, record_id: int, data: Dict[str, Any]) -> None:
        """Save (replace) a record in storage"""
        pass

    @abstractmethod
    def load(self, table: str, record_id: int) -> Optional[Dict[str, Any]]:
        """Load a record from storage"""
        pass

    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table in insertion order"""
        pass

    @abstractmethod
    def delete(self, table: str, record_id: int) -> bool:
        """Delete a record from storage"""
        pass

    @abstractmethod
    def delete_where(self, table: str, filters: Dict[str, Any]) -> int:
        """Delete records matching filters, returning how many were removed"""
        pass

    @abstractmethod
    def exists(self, table: str, record_id: int) -> bool:
        """Check if a record exists"""
        pass

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters, in insertion order"""
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

    def find_one(self, table: str, filters: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Return the first record matching filters, if any"""
        results = self.find(table, filters)
        return results[0] if results else None

    def begin_transaction(self) -> None:
        """Start a database transaction (default no-op)"""
        pass

    def commit(self) -> None:
        """Commit current transaction (default no-op)"""
        pass

    def rollback(self) -> None:
        """Rollback current transaction (default no-op)"""
        pass

    def _unit_lock(self):
        """Lock held for the whole of a unit of work"""
        return nullcontext()

    @contextmanager
    def atomic(self):
        """
        Context manager for atomic operations.

        Units of work nest: only the outermost one commits, and any exception
        rolls back every write made since it began. The storage lock is held
        until the unit finishes, so read-modify-write sequences inside it are
        serialized against other threads.
        """
        with self._unit_lock():
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
        self._data: Dict[str, Dict[int, Dict[str, Any]]] = {}
        self._sequences: Dict[str, int] = {}
        self._lock = threading.RLock()
        self._depth = 0
        self._snapshot = None

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists"""
        if table not in self._data:
            self._data[table] = {}
            self._sequences[table] = 0

    def _unit_lock(self):
        return self._lock

    def insert(self, table: str, data: Dict[str, Any]) -> int:
        """Insert a record, allocating the next id in the table's sequence"""
        with self._lock:
            self._ensure_table(table)
            self._sequences[table] += 1
            record_id = self._sequences[table]
            record = json.loads(json.dumps(data, default=str))
            record['id'] = record_id
            self._data[table][record_id] = record
            return record_id

    def save(self, table: str, record_id: int, data: Dict[str, Any]) -> None:
        """Save a record to memory"""
        with self._lock:
            self._ensure_table(table)
            # Deep copy to prevent external mutation
            record = json.loads(json.dumps(data, default=str))
            record['id'] = record_id
            self._data[table][record_id] = record
            self._sequences[table] = max(self._sequences[table], record_id)

    def load(self, table: str, record_id: int) -> Optional[Dict[str, Any]]:
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
            return [
                json.loads(json.dumps(self._data[table][record_id]))
                for record_id in sorted(self._data[table])
            ]

    def delete(self, table: str, record_id: int) -> bool:
        """Delete a record from memory"""
        with self._lock:
            self._ensure_table(table)
            if record_id in self._data[table]:
                del self._data[table][record_id]
                return True
            return False

    def delete_where(self, table: str, filters: Dict[str, Any]) -> int:
        """Delete all records matching filters"""
        with self._lock:
            self._ensure_table(table)
            doomed = [
                record_id for record_id, record in self._data[table].items()
                if _matches(record, filters)
            ]
            for record_id in doomed:
                del self._data[table][record_id]
            return len(doomed)

    def exists(self, table: str, record_id: int) -> bool:
        """Check if a record exists"""
        with self._lock:
            self._ensure_table(table)
            return record_id in self._data[table]

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        with self._lock:
            self._ensure_table(table)
            return [
                json.loads(json.dumps(self._data[table][record_id]))
                for record_id in sorted(self._data[table])
                if _matches(self._data[table][record_id], filters)
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
            self._sequences[table] = 0

    def begin_transaction(self) -> None:
        """Snapshot all tables at the start of the outermost unit of work"""
        with self._lock:
            if self._depth == 0:
                self._snapshot = (copy.deepcopy(self._data), dict(self._sequences))
            self._depth += 1

    def commit(self) -> None:
        """Discard the snapshot once the outermost unit completes"""
        with self._lock:
            self._depth -= 1
            if self._depth == 0:
                self._snapshot = None

    def rollback(self) -> None:
        """Restore the snapshot taken when the outermost unit began"""
        with self._lock:
            self._depth = max(self._depth - 1, 0)
            if self._depth == 0 and self._snapshot is not None:
                self._data, self._sequences = self._snapshot
                self._snapshot = None

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass


class SQLiteStorage(StorageInterface):
    """SQLite storage implementation for persistence"""

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        # Autocommit mode; units of work issue BEGIN IMMEDIATE themselves
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level=None)
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._depth = 0
        self._known_tables = set()

        # Enable WAL mode for better concurrent access
        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
                self._connection.execute("PRAGMA busy_timeout = 5000")

    def _unit_lock(self):
        return self._lock

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists with proper schema"""
        if table in self._known_tables:
            return
        with self._lock:
            self._connection.execute(f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    data TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            # Create index on timestamps for better query performance
            self._connection.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{table}_created_at
                ON {table}(created_at)
            """)
            # DDL inside an open unit of work can still be rolled back
            if self._depth == 0:
                self._known_tables.add(table)

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> Dict[str, Any]:
        record = json.loads(row['data'])
        record['id'] = row['id']
        return record

    @staticmethod
    def _where_clause(filters: Dict[str, Any]):
        conditions = []
        params = []
        for key, value in filters.items():
            conditions.append("json_extract(data, ?) = ?")
            params.extend([f"$.{key}", value])
        if not conditions:
            return "", params
        return "WHERE " + " AND ".join(conditions), params

    def insert(self, table: str, data: Dict[str, Any]) -> int:
        """Insert a record and return its AUTOINCREMENT id"""
        with self._lock:
            self._ensure_table(table)
            now = datetime.now(timezone.utc).isoformat()
            payload = {k: v for k, v in data.items() if k != 'id'}
            cursor = self._connection.execute(f"""
                INSERT INTO {table} (data, created_at, updated_at)
                VALUES (?, ?, ?)
            """, (json.dumps(payload, default=str), now, now))
            return cursor.lastrowid

    def save(self, table: str, record_id: int, data: Dict[str, Any]) -> None:
        """Save a record to SQLite"""
        with self._lock:
            self._ensure_table(table)

            now = datetime.now(timezone.utc).isoformat()
            payload = {k: v for k, v in data.items() if k != 'id'}
            data_json = json.dumps(payload, default=str)

            # Use INSERT OR REPLACE to handle updates
            self._connection.execute(f"""
                INSERT OR REPLACE INTO {table} (id, data, created_at, updated_at)
                VALUES (?, ?,
                    COALESCE((SELECT created_at FROM {table} WHERE id = ?), ?),
                    ?)
            """, (record_id, data_json, record_id, now, now))

    def load(self, table: str, record_id: int) -> Optional[Dict[str, Any]]:
        """Load a record from SQLite"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT id, data FROM {table} WHERE id = ?
            """, (record_id,))
            row = cursor.fetchone()
            if row:
                return self._row_to_record(row)
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT id, data FROM {table} ORDER BY id
            """)
            return [self._row_to_record(row) for row in cursor.fetchall()]

    def delete(self, table: str, record_id: int) -> bool:
        """Delete a record from SQLite"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                DELETE FROM {table} WHERE id = ?
            """, (record_id,))
            return cursor.rowcount > 0

    def delete_where(self, table: str, filters: Dict[str, Any]) -> int:
        """Delete records whose JSON fields match filters"""
        with self._lock:
            self._ensure_table(table)
            where, params = self._where_clause(filters)
            cursor = self._connection.execute(f"DELETE FROM {table} {where}", params)
            return cursor.rowcount

    def exists(self, table: str, record_id: int) -> bool:
        """Check if a record exists"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT 1 FROM {table} WHERE id = ? LIMIT 1
            """, (record_id,))
            return cursor.fetchone() is not None

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters using json_extract"""
        with self._lock:
            self._ensure_table(table)
            where, params = self._where_clause(filters)
            cursor = self._connection.execute(f"""
                SELECT id, data FROM {table} {where} ORDER BY id
            """, params)
            return [self._row_to_record(row) for row in cursor.fetchall()]

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

    def begin_transaction(self) -> None:
        """Start a database transaction holding SQLite's write lock"""
        with self._lock:
            if self._depth == 0:
                self._connection.execute("BEGIN IMMEDIATE")
            self._depth += 1

    def commit(self) -> None:
        """Commit current transaction"""
        with self._lock:
            # A failed COMMIT leaves the depth for rollback() to unwind
            if self._depth == 1:
                self._connection.execute("COMMIT")
            self._depth -= 1

    def rollback(self) -> None:
        """Rollback current transaction"""
        with self._lock:
            self._depth = max(self._depth - 1, 0)
            if self._depth == 0 and self._connection.in_transaction:
                self._connection.execute("ROLLBACK")

    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None
                logger.info("Closed SQLite storage at %s", self.db_path)


def create_storage(database_url: str) -> StorageInterface:
    """
    Build a storage backend from a database URL.

    Supported forms are ``memory://`` and ``sqlite:///path/to/file.db``
    (``sqlite://`` alone opens a private in-memory database).
    """
    if database_url.startswith("memory://"):
        return InMemoryStorage()
    if database_url.startswith("sqlite://"):
        path = database_url[len("sqlite://"):]
        if path.startswith("/"):
            path = path[1:]
        return SQLiteStorage(path or ":memory:")
    raise ValueError(f"Unsupported database URL: {database_url}")
