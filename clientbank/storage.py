"""
Storage Backend Module

Provides an abstract relational storage interface and implementations for
in-memory (testing), SQLite (persistence) and PostgreSQL. Tables and their
constraints come from ``schema``. All monetary values stored as Decimal strings.

SQLite and PostgreSQL support real transactions through ``atomic()``.
The in-memory backend does not: callers writing more than one row must
compensate themselves when a later step fails.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Tuple, Union
import sqlite3
import threading
import logging
from pathlib import Path
from contextlib import contextmanager

from .schema import TABLES, TableSchema, get_table, schema_statements


logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the storage backend rejects a read or write"""


class StorageInterface(ABC):
    """Abstract interface for relational storage backends"""

    supports_transactions = False
    _atomic_depth = 0

    @abstractmethod
    def create_schema(self) -> None:
        """Create all tables if they do not exist"""
        pass

    @abstractmethod
    def insert(self, table: str, row: Dict[str, Any]) -> Optional[int]:
        """Insert a row; returns the generated key for tables that have one"""
        pass

    @abstractmethod
    def find(self, table: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Find rows matching all filters (equality), ordered by primary key"""
        pass

    @abstractmethod
    def find_joined(self, parent: str, child: str, key: str,
                    filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Inner-join parent and child on key and return merged rows matching filters"""
        pass

    @abstractmethod
    def update(self, table: str, filters: Dict[str, Any], values: Dict[str, Any]) -> int:
        """Update matching rows; returns the number of rows changed"""
        pass

    @abstractmethod
    def delete(self, table: str, filters: Dict[str, Any]) -> int:
        """Delete matching rows; returns the number of rows removed"""
        pass

    @abstractmethod
    def count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> int:
        """Count rows matching filters"""
        pass

    @abstractmethod
    def clear_table(self, table: str) -> None:
        """Remove all rows from a table"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close storage connection"""
        pass

    def begin_transaction(self) -> None:
        """Start a database transaction (default no-op)"""
        pass

    def commit(self) -> None:
        """Commit current transaction (default no-op)"""
        pass

    def rollback(self) -> None:
        """Rollback current transaction (default no-op)"""
        pass

    @contextmanager
    def atomic(self):
        """
        Context manager for atomic operations. Nested scopes join the
        outermost one, which alone commits or rolls back.
        """
        outermost = self._atomic_depth == 0
        if outermost:
            self.begin_transaction()
        self._atomic_depth += 1
        try:
            yield
        except BaseException:
            self._atomic_depth -= 1
            if outermost:
                logger.debug("Rolling back %s transaction", type(self).__name__)
                self.rollback()
            raise
        else:
            self._atomic_depth -= 1
            if outermost:
                self.commit()


def _check_columns(table: TableSchema, columns) -> None:
    known = set(table.column_names)
    unknown = [c for c in columns if c not in known]
    if unknown:
        raise StorageError(f"Unknown column(s) for {table.name}: {', '.join(unknown)}")


def _matches(row: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    if not filters:
        return True
    return all(key in row and row[key] == value for key, value in filters.items())


class InMemoryStorage(StorageInterface):
    """
    In-memory storage implementation for testing.

    Enforces primary key, unique, NOT NULL and foreign-key constraints like
    the SQL backends, but has no transactions: rollback is a no-op.
    """

    def __init__(self):
        self._data: Dict[str, List[Dict[str, Any]]] = {}
        self._sequences: Dict[str, int] = {}
        self._lock = threading.RLock()

    def _rows(self, table: str) -> List[Dict[str, Any]]:
        get_table(table)
        return self._data.setdefault(table, [])

    def create_schema(self) -> None:
        with self._lock:
            for name in TABLES:
                self._data.setdefault(name, [])

    def insert(self, table: str, row: Dict[str, Any]) -> Optional[int]:
        """Insert a row into memory"""
        with self._lock:
            schema = get_table(table)
            rows = self._rows(table)
            _check_columns(schema, row)
            record = dict(row)

            generated = None
            if schema.generated_key and record.get(schema.primary_key[0]) is None:
                generated = self._sequences.get(table, 0) + 1
                record[schema.primary_key[0]] = generated

            for column in schema.columns:
                if not column.nullable and record.get(column.name) is None:
                    raise StorageError(f"NOT NULL constraint failed: {table}.{column.name}")

            self._check_unique(schema, rows, record)
            self._check_references(schema, record)

            if generated is not None:
                self._sequences[table] = generated
            elif schema.generated_key:
                key = record[schema.primary_key[0]]
                self._sequences[table] = max(self._sequences.get(table, 0), key)

            rows.append(record)
            return record[schema.primary_key[0]] if schema.generated_key else None

    def _check_unique(self, schema: TableSchema, rows: List[Dict[str, Any]],
                      record: Dict[str, Any], ignore: Optional[Dict[str, Any]] = None) -> None:
        pk = tuple(record.get(c) for c in schema.primary_key)
        for existing in rows:
            if existing is ignore:
                continue
            if tuple(existing.get(c) for c in schema.primary_key) == pk:
                raise StorageError(
                    f"UNIQUE constraint failed: {schema.name}.{', '.join(schema.primary_key)}"
                )
            for column in schema.columns:
                if column.unique and existing.get(column.name) == record.get(column.name):
                    raise StorageError(f"UNIQUE constraint failed: {schema.name}.{column.name}")

    def _check_references(self, schema: TableSchema, record: Dict[str, Any]) -> None:
        for fk in schema.foreign_keys:
            value = record.get(fk.column)
            if value is None:
                continue
            if not any(r.get(fk.ref_column) == value for r in self._rows(fk.ref_table)):
                raise StorageError(
                    f"FOREIGN KEY constraint failed: {schema.name}.{fk.column} -> "
                    f"{fk.ref_table}.{fk.ref_column} ({value})"
                )

    def _check_not_referenced(self, schema: TableSchema, record: Dict[str, Any]) -> None:
        for other in TABLES.values():
            for fk in other.foreign_keys:
                if fk.ref_table != schema.name:
                    continue
                value = record.get(fk.ref_column)
                if any(r.get(fk.column) == value for r in self._rows(other.name)):
                    raise StorageError(
                        f"FOREIGN KEY constraint failed: {other.name}.{fk.column} "
                        f"still references {schema.name} ({value})"
                    )

    def _sorted(self, schema: TableSchema, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return sorted(rows, key=lambda r: tuple(r.get(c) for c in schema.primary_key))

    def find(self, table: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Find rows in memory"""
        with self._lock:
            schema = get_table(table)
            _check_columns(schema, filters or {})
            matched = [dict(r) for r in self._rows(table) if _matches(r, filters)]
            return self._sorted(schema, matched)

    def find_joined(self, parent: str, child: str, key: str,
                    filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Join parent and child rows in memory"""
        with self._lock:
            parent_schema = get_table(parent)
            child_schema = get_table(child)
            known = set(parent_schema.column_names) | set(child_schema.column_names)
            unknown = [c for c in (filters or {}) if c not in known]
            if unknown:
                raise StorageError(f"Unknown column(s) for {parent}/{child}: {', '.join(unknown)}")

            children = {r[key]: r for r in self._rows(child)}
            results = []
            for parent_row in self._rows(parent):
                child_row = children.get(parent_row.get(key))
                if child_row is None:
                    continue
                merged = dict(parent_row)
                merged.update(child_row)
                if _matches(merged, filters):
                    results.append(merged)
            return sorted(results, key=lambda r: r[key])

    def update(self, table: str, filters: Dict[str, Any], values: Dict[str, Any]) -> int:
        """Update rows in memory"""
        with self._lock:
            schema = get_table(table)
            _check_columns(schema, filters)
            _check_columns(schema, values)
            rows = self._rows(table)
            changed = 0
            for row in rows:
                if not _matches(row, filters):
                    continue
                updated = dict(row)
                updated.update(values)
                for column in schema.columns:
                    if not column.nullable and updated.get(column.name) is None:
                        raise StorageError(f"NOT NULL constraint failed: {table}.{column.name}")
                self._check_unique(schema, rows, updated, ignore=row)
                self._check_references(schema, updated)
                row.update(values)
                changed += 1
            return changed

    def delete(self, table: str, filters: Dict[str, Any]) -> int:
        """Delete rows from memory"""
        with self._lock:
            schema = get_table(table)
            _check_columns(schema, filters)
            rows = self._rows(table)
            doomed = [r for r in rows if _matches(r, filters)]
            for row in doomed:
                self._check_not_referenced(schema, row)
            self._data[table] = [r for r in rows if not any(r is d for d in doomed)]
            return len(doomed)

    def count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> int:
        """Count rows in memory"""
        with self._lock:
            _check_columns(get_table(table), filters or {})
            return sum(1 for r in self._rows(table) if _matches(r, filters))

    def clear_table(self, table: str) -> None:
        """Clear all rows from a table"""
        with self._lock:
            get_table(table)
            self._data[table] = []

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass


class SQLStorage(StorageInterface):
    """
    Shared SQL generation for the relational backends. Subclasses provide
    the placeholder style and statement execution.
    """

    supports_transactions = True
    placeholder = "?"
    dialect = "sqlite"

    def _where(self, filters: Optional[Dict[str, Any]],
               qualify=None) -> Tuple[str, List[Any]]:
        if not filters:
            return "", []
        conditions = []
        params = []
        for column, value in filters.items():
            name = qualify(column) if qualify else column
            conditions.append(f"{name} = {self.placeholder}")
            params.append(value)
        return " WHERE " + " AND ".join(conditions), params

    @abstractmethod
    def _query(self, sql: str, params: List[Any]) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def _write(self, sql: str, params: List[Any]) -> Tuple[int, Optional[int]]:
        """Execute a write; returns (rowcount, generated key or None)"""
        pass

    def create_schema(self) -> None:
        with self.atomic():
            for statement in schema_statements(self.dialect):
                self._write(statement, [])

    def _insert_sql(self, schema: TableSchema, columns: List[str]) -> str:
        marks = ", ".join([self.placeholder] * len(columns))
        return f"INSERT INTO {schema.name} ({', '.join(columns)}) VALUES ({marks})"

    def insert(self, table: str, row: Dict[str, Any]) -> Optional[int]:
        schema = get_table(table)
        _check_columns(schema, row)
        columns = list(row)
        _, generated = self._write(self._insert_sql(schema, columns), [row[c] for c in columns])
        return generated if schema.generated_key else None

    def find(self, table: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        schema = get_table(table)
        _check_columns(schema, filters or {})
        where, params = self._where(filters)
        order = ", ".join(schema.primary_key)
        return self._query(f"SELECT * FROM {schema.name}{where} ORDER BY {order}", params)

    def find_joined(self, parent: str, child: str, key: str,
                    filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        parent_schema = get_table(parent)
        child_schema = get_table(child)
        parent_columns = set(parent_schema.column_names)
        child_columns = set(child_schema.column_names)
        unknown = [c for c in (filters or {}) if c not in parent_columns | child_columns]
        if unknown:
            raise StorageError(f"Unknown column(s) for {parent}/{child}: {', '.join(unknown)}")

        selected = [f"p.{c}" for c in parent_schema.column_names]
        selected += [f"c.{c}" for c in child_schema.column_names if c != key]
        where, params = self._where(
            filters, qualify=lambda c: f"p.{c}" if c in parent_columns else f"c.{c}"
        )
        sql = (
            f"SELECT {', '.join(selected)} FROM {parent} p "
            f"JOIN {child} c ON p.{key} = c.{key}{where} ORDER BY p.{key}"
        )
        return self._query(sql, params)

    def update(self, table: str, filters: Dict[str, Any], values: Dict[str, Any]) -> int:
        schema = get_table(table)
        _check_columns(schema, filters)
        _check_columns(schema, values)
        if not values:
            return self.count(table, filters)
        assignments = ", ".join(f"{c} = {self.placeholder}" for c in values)
        where, params = self._where(filters)
        rowcount, _ = self._write(
            f"UPDATE {schema.name} SET {assignments}{where}", list(values.values()) + params
        )
        return rowcount

    def delete(self, table: str, filters: Dict[str, Any]) -> int:
        schema = get_table(table)
        _check_columns(schema, filters)
        where, params = self._where(filters)
        rowcount, _ = self._write(f"DELETE FROM {schema.name}{where}", params)
        return rowcount

    def count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> int:
        schema = get_table(table)
        _check_columns(schema, filters or {})
        where, params = self._where(filters)
        rows = self._query(f"SELECT COUNT(*) AS count FROM {schema.name}{where}", params)
        return int(rows[0]["count"])

    def clear_table(self, table: str) -> None:
        schema = get_table(table)
        self._write(f"DELETE FROM {schema.name}", [])


class SQLiteStorage(SQLStorage):
    """SQLite storage implementation for persistence"""

    def __init__(self, db_path: Union[str, Path] = ":memory:", foreign_keys: bool = True):
        self.db_path = str(db_path)
        # Set isolation_level to 'DEFERRED' to enable manual transaction control
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level='DEFERRED')
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._in_transaction = False

        with self._lock:
            if foreign_keys:
                self._connection.execute("PRAGMA foreign_keys = ON")
            # Enable WAL mode for better concurrent access
            if self.db_path != ":memory:":
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
            self._connection.commit()

    def _query(self, sql: str, params: List[Any]) -> List[Dict[str, Any]]:
        with self._lock:
            try:
                cursor = self._connection.execute(sql, params)
                return [dict(row) for row in cursor.fetchall()]
            except sqlite3.Error as e:
                raise StorageError(str(e)) from e

    def _write(self, sql: str, params: List[Any]) -> Tuple[int, Optional[int]]:
        with self._lock:
            try:
                cursor = self._connection.execute(sql, params)
            except sqlite3.Error as e:
                # Only roll back if not in transaction; atomic() owns that otherwise
                if not self._in_transaction:
                    self._connection.rollback()
                raise StorageError(str(e)) from e

            # Only commit if not in transaction
            if not self._in_transaction:
                self._connection.commit()
            return cursor.rowcount, cursor.lastrowid

    def begin_transaction(self) -> None:
        """Start a database transaction"""
        with self._lock:
            if not self._in_transaction:
                # SQLite with isolation_level='DEFERRED' automatically starts transactions
                # We just need to track the state
                self._in_transaction = True

    def commit(self) -> None:
        """Commit current transaction"""
        with self._lock:
            if self._in_transaction:
                self._connection.commit()
                self._in_transaction = False

    def rollback(self) -> None:
        """Rollback current transaction"""
        with self._lock:
            if self._in_transaction:
                self._connection.rollback()
                self._in_transaction = False

    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


class PostgreSQLStorage(SQLStorage):
    """PostgreSQL storage backend with ACID transaction support"""

    placeholder = "%s"
    dialect = "postgresql"

    def __init__(self, connection_string: str):
        try:
            import psycopg2
            import psycopg2.extras
            self.psycopg2 = psycopg2
            self.extras = psycopg2.extras
        except ImportError:
            raise ImportError("psycopg2 is required for PostgreSQL storage. Install with: pip install psycopg2-binary")

        self.connection_string = connection_string
        self._connection = None
        self._lock = threading.RLock()
        self._in_transaction = False
        self._connect()

    def _connect(self) -> None:
        """Establish database connection"""
        with self._lock:
            self._connection = self.psycopg2.connect(
                self.connection_string,
                cursor_factory=self.extras.RealDictCursor
            )
            self._connection.autocommit = False  # We handle transactions manually

    def _insert_sql(self, schema: TableSchema, columns: List[str]) -> str:
        sql = super()._insert_sql(schema, columns)
        if schema.generated_key:
            sql += f" RETURNING {schema.primary_key[0]}"
        return sql

    def _query(self, sql: str, params: List[Any]) -> List[Dict[str, Any]]:
        with self._lock:
            cursor = self._connection.cursor()
            try:
                cursor.execute(sql, params)
                rows = [dict(row) for row in cursor.fetchall()]
                if not self._in_transaction:
                    # End the implicit read transaction
                    self._connection.commit()
                return rows
            except self.psycopg2.Error as e:
                if not self._in_transaction:
                    self._connection.rollback()
                raise StorageError(str(e)) from e
            finally:
                cursor.close()

    def _write(self, sql: str, params: List[Any]) -> Tuple[int, Optional[int]]:
        with self._lock:
            cursor = self._connection.cursor()
            try:
                cursor.execute(sql, params)
                generated = None
                if "RETURNING" in sql:
                    row = cursor.fetchone()
                    generated = list(row.values())[0] if row else None

                # Only commit if not in transaction
                if not self._in_transaction:
                    self._connection.commit()
                return cursor.rowcount, generated
            except self.psycopg2.Error as e:
                if not self._in_transaction:
                    self._connection.rollback()
                raise StorageError(str(e)) from e
            finally:
                cursor.close()

    def begin_transaction(self) -> None:
        """Start a database transaction"""
        with self._lock:
            if not self._in_transaction:
                # PostgreSQL transactions start automatically
                self._in_transaction = True

    def commit(self) -> None:
        """Commit current transaction"""
        with self._lock:
            if self._in_transaction:
                self._connection.commit()
                self._in_transaction = False

    def rollback(self) -> None:
        """Rollback current transaction"""
        with self._lock:
            if self._in_transaction:
                self._connection.rollback()
                self._in_transaction = False

    def close(self) -> None:
        """Close PostgreSQL connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_storage(database_url: str, sqlite_foreign_keys: bool = True) -> StorageInterface:
    """
    Build a storage backend from a URL:
    memory://, sqlite:///:memory:, sqlite:///path/to.db, postgresql://...
    """
    if database_url in ("memory", "memory://"):
        return InMemoryStorage()
    if database_url.startswith("sqlite:///"):
        return SQLiteStorage(database_url[len("sqlite:///"):] or ":memory:",
                             foreign_keys=sqlite_foreign_keys)
    if database_url.startswith(("postgresql://", "postgres://")):
        return PostgreSQLStorage(database_url)
    raise ValueError(f"Unsupported database URL: {database_url}")
