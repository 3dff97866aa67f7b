"""
Database backends implementing the relational data-access interface.
"""

import json
import logging
import re
import sqlite3
from abc import abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

try:
    import psycopg2
    import psycopg2.errors
    from psycopg2.extras import Json, RealDictCursor
    PSYCOPG2_AVAILABLE = True
except ImportError:
    PSYCOPG2_AVAILABLE = False

from ..core.enums import Table
from ..core.exceptions import (
    ConfigurationError, CourseClaimException, DuplicateEntityError,
    PredicateFailedError, ResourceNotFoundError, StorageError, ValidationError,
)
from ..core.interfaces import DataAccess, Row

logger = logging.getLogger(__name__)


TABLE_COLUMNS: Dict[str, Tuple[str, ...]] = {
    Table.PROFILES: ("id", "email", "role", "phone", "teacher_id", "voucher_number",
                     "username", "created_at"),
    Table.COURSES: ("id", "name", "code", "access_code", "teacher_id", "created_at",
                    "updated_at"),
    Table.ENROLLMENTS: ("id", "course_id", "student_id", "grade", "created_at"),
    Table.AUDIT_LOGS: ("id", "actor_id", "action", "entity", "entity_id", "details",
                       "created_at"),
}

JSON_COLUMNS: Dict[str, Tuple[str, ...]] = {
    Table.AUDIT_LOGS: ("details",),
}

# constraint name -> (table, columns); names match the PostgreSQL DDL below
UNIQUE_CONSTRAINTS: Dict[str, Tuple[str, Tuple[str, ...]]] = {
    "profiles_pkey": (Table.PROFILES, ("id",)),
    "profiles_email_key": (Table.PROFILES, ("email",)),
    "courses_pkey": (Table.COURSES, ("id",)),
    "courses_access_code_key": (Table.COURSES, ("access_code",)),
    "enrollments_pkey": (Table.ENROLLMENTS, ("id",)),
    "enrollments_course_student_key": (Table.ENROLLMENTS, ("course_id", "student_id")),
    "audit_logs_pkey": (Table.AUDIT_LOGS, ("id",)),
}

SQLITE_SCHEMA: Dict[str, str] = {
    Table.PROFILES: """
        CREATE TABLE IF NOT EXISTS profiles (
            id TEXT PRIMARY KEY,
            email TEXT NOT NULL,
            role TEXT NOT NULL CHECK (role IN ('student', 'teacher', 'admin')),
            phone TEXT,
            teacher_id TEXT,
            voucher_number TEXT,
            username TEXT,
            created_at TEXT NOT NULL,
            CONSTRAINT profiles_email_key UNIQUE (email)
        )
    """,
    Table.COURSES: """
        CREATE TABLE IF NOT EXISTS courses (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            code TEXT,
            access_code TEXT NOT NULL,
            teacher_id TEXT REFERENCES profiles(id),
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            CONSTRAINT courses_access_code_key UNIQUE (access_code)
        )
    """,
    Table.ENROLLMENTS: """
        CREATE TABLE IF NOT EXISTS enrollments (
            id TEXT PRIMARY KEY,
            course_id TEXT NOT NULL REFERENCES courses(id),
            student_id TEXT NOT NULL REFERENCES profiles(id),
            grade TEXT,
            created_at TEXT NOT NULL,
            CONSTRAINT enrollments_course_student_key UNIQUE (course_id, student_id)
        )
    """,
    Table.AUDIT_LOGS: """
        CREATE TABLE IF NOT EXISTS audit_logs (
            id TEXT PRIMARY KEY,
            actor_id TEXT NOT NULL,
            action TEXT NOT NULL,
            entity TEXT NOT NULL,
            entity_id TEXT,
            details TEXT NOT NULL DEFAULT '{}',
            created_at TEXT NOT NULL
        )
    """,
}

POSTGRES_SCHEMA: Dict[str, str] = {
    Table.PROFILES: """
        CREATE TABLE IF NOT EXISTS profiles (
            id VARCHAR(64) CONSTRAINT profiles_pkey PRIMARY KEY,
            email VARCHAR(255) NOT NULL,
            role VARCHAR(16) NOT NULL CHECK (role IN ('student', 'teacher', 'admin')),
            phone VARCHAR(32),
            teacher_id VARCHAR(64),
            voucher_number VARCHAR(64),
            username VARCHAR(100),
            created_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT profiles_email_key UNIQUE (email)
        )
    """,
    Table.COURSES: """
        CREATE TABLE IF NOT EXISTS courses (
            id VARCHAR(64) CONSTRAINT courses_pkey PRIMARY KEY,
            name VARCHAR(200) NOT NULL,
            code VARCHAR(50),
            access_code VARCHAR(64) NOT NULL,
            teacher_id VARCHAR(64) REFERENCES profiles(id),
            created_at TIMESTAMPTZ NOT NULL,
            updated_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT courses_access_code_key UNIQUE (access_code)
        )
    """,
    Table.ENROLLMENTS: """
        CREATE TABLE IF NOT EXISTS enrollments (
            id VARCHAR(64) CONSTRAINT enrollments_pkey PRIMARY KEY,
            course_id VARCHAR(64) NOT NULL REFERENCES courses(id),
            student_id VARCHAR(64) NOT NULL REFERENCES profiles(id),
            grade VARCHAR(16),
            created_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT enrollments_course_student_key UNIQUE (course_id, student_id)
        )
    """,
    Table.AUDIT_LOGS: """
        CREATE TABLE IF NOT EXISTS audit_logs (
            id VARCHAR(64) CONSTRAINT audit_logs_pkey PRIMARY KEY,
            actor_id VARCHAR(64) NOT NULL,
            action VARCHAR(32) NOT NULL,
            entity VARCHAR(32) NOT NULL,
            entity_id VARCHAR(64),
            details JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at TIMESTAMPTZ NOT NULL
        )
    """,
}


def constraint_for_columns(table: str, columns: Sequence[str]) -> Optional[str]:
    """Map a table and the columns of a violated unique index to its name."""
    wanted = tuple(columns)
    for name, (constraint_table, constraint_columns) in UNIQUE_CONSTRAINTS.items():
        if constraint_table == table and constraint_columns == wanted:
            return name
    return None


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped.lower()}%"


class DatabaseManager(DataAccess):
    """SQL implementation of DataAccess shared by the concrete backends.

    Subclasses supply connections, the parameter placeholder and the
    translation of driver errors into platform exceptions.
    """

    placeholder = "?"

    @abstractmethod
    def _get_connection(self) -> Any:
        """Context manager yielding an open connection."""
        pass

    @abstractmethod
    def _translate_error(self, error: Exception, table: str) -> CourseClaimException:
        """Turn a driver exception into a platform exception."""
        pass

    @abstractmethod
    def _cursor(self, conn: Any) -> Any:
        pass

    @abstractmethod
    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists."""
        pass

    # --- helpers -------------------------------------------------------

    def _check_table(self, table: str) -> Tuple[str, ...]:
        if table not in TABLE_COLUMNS:
            raise ValidationError(f"Unknown table: {table}")
        return TABLE_COLUMNS[table]

    def _check_columns(self, table: str, columns: Sequence[str]) -> None:
        known = self._check_table(table)
        unknown = [column for column in columns if column not in known]
        if unknown:
            raise ValidationError(f"Unknown columns for {table}: {', '.join(unknown)}")

    def _encode_value(self, table: str, column: str, value: Any) -> Any:
        if column in JSON_COLUMNS.get(table, ()):
            return json.dumps(value or {}, sort_keys=True, default=str)
        return value

    def _decode_row(self, table: str, row: Any) -> Row:
        result = dict(row)
        for column in JSON_COLUMNS.get(table, ()):
            value = result.get(column)
            if isinstance(value, str):
                result[column] = json.loads(value)
        return result

    def _where(self, filters: Optional[Dict[str, Any]]) -> Tuple[str, List[Any]]:
        if not filters:
            return "", []
        clauses = []
        params: List[Any] = []
        for column, value in filters.items():
            if value is None:
                clauses.append(f"{column} IS NULL")
            else:
                clauses.append(f"{column} = {self.placeholder}")
                params.append(value)
        return " WHERE " + " AND ".join(clauses), params

    def _select_by_id(self, cursor: Any, table: str, row_id: str) -> Optional[Row]:
        cursor.execute(f"SELECT * FROM {table} WHERE id = {self.placeholder}", (row_id,))
        row = cursor.fetchone()
        return self._decode_row(table, row) if row is not None else None

    @contextmanager
    def _translated(self, table: str) -> Iterator[None]:
        try:
            yield
        except CourseClaimException:
            raise
        except Exception as e:
            raise self._translate_error(e, table) from e

    # --- DataAccess ----------------------------------------------------

    def insert_row(self, table: str, values: Dict[str, Any]) -> Row:
        """Insert a row and return it as stored."""
        self._check_columns(table, list(values))
        columns = list(values)
        placeholders = ", ".join([self.placeholder] * len(columns))
        query = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
        params = tuple(self._encode_value(table, column, values[column]) for column in columns)

        with self._translated(table):
            with self._get_connection() as conn:
                try:
                    cursor = self._cursor(conn)
                    cursor.execute(query, params)
                    row = self._select_by_id(cursor, table, values["id"])
                    conn.commit()
                except Exception:
                    conn.rollback()
                    raise
        return row

    def update_row_if(self, table: str, row_id: str, predicate: Dict[str, Any],
                      values: Dict[str, Any]) -> Row:
        """Update a row in a single statement guarded by ``predicate``."""
        self._check_columns(table, list(values) + list(predicate))
        assignments = ", ".join(f"{column} = {self.placeholder}" for column in values)
        where, where_params = self._where({"id": row_id, **predicate})
        query = f"UPDATE {table} SET {assignments}{where}"
        params = tuple(
            [self._encode_value(table, column, value) for column, value in values.items()]
            + where_params
        )

        with self._translated(table):
            with self._get_connection() as conn:
                try:
                    cursor = self._cursor(conn)
                    cursor.execute(query, params)
                    if cursor.rowcount == 0:
                        exists = self._select_by_id(cursor, table, row_id) is not None
                        conn.rollback()
                        if not exists:
                            raise ResourceNotFoundError(
                                f"No row {row_id} in {table}",
                                details={"table": table, "id": row_id},
                            )
                        raise PredicateFailedError(
                            f"Row {row_id} in {table} no longer matches the expected state",
                            details={"table": table, "id": row_id,
                                     "predicate": {k: v for k, v in predicate.items()}},
                        )
                    row = self._select_by_id(cursor, table, row_id)
                    conn.commit()
                except CourseClaimException:
                    raise
                except Exception:
                    conn.rollback()
                    raise
        return row

    def find_one(self, table: str, filters: Dict[str, Any]) -> Optional[Row]:
        rows = self.find_many(table, filters, limit=1)
        return rows[0] if rows else None

    def find_many(self, table: str, filters: Optional[Dict[str, Any]] = None,
                  order_by: Optional[str] = None, descending: bool = False,
                  limit: Optional[int] = None) -> List[Row]:
        self._check_columns(table, list(filters or {}) + ([order_by] if order_by else []))
        where, params = self._where(filters)
        query = f"SELECT * FROM {table}{where}"
        if order_by:
            query += f" ORDER BY {order_by} {'DESC' if descending else 'ASC'}"
        if limit is not None:
            query += f" LIMIT {int(limit)}"
        return self._fetch(table, query, tuple(params))

    def search_rows(self, table: str, columns: Sequence[str], term: str,
                    filters: Optional[Dict[str, Any]] = None) -> List[Row]:
        self._check_columns(table, list(columns) + list(filters or {}))
        where, params = self._where(filters)
        pattern = _like_pattern(term)
        matches = " OR ".join(
            f"LOWER(COALESCE({column}, '')) LIKE {self.placeholder} ESCAPE '\\'"
            for column in columns
        )
        query = f"SELECT * FROM {table}{where}"
        query += (" AND " if where else " WHERE ") + f"({matches})"
        query += " ORDER BY created_at DESC"
        return self._fetch(table, query, tuple(params + [pattern] * len(columns)))

    def _fetch(self, table: str, query: str, params: tuple) -> List[Row]:
        with self._translated(table):
            with self._get_connection() as conn:
                cursor = self._cursor(conn)
                cursor.execute(query, params)
                return [self._decode_row(table, row) for row in cursor.fetchall()]


class SQLiteDatabase(DatabaseManager):
    """SQLite database implementation."""

    placeholder = "?"
    _UNIQUE_MESSAGE = re.compile(r"UNIQUE constraint failed: (?P<columns>.+)$")

    def __init__(self, database_path: str = "courseclaim.db", timeout: float = 5.0):
        self._database_path = str(database_path)
        self._timeout = timeout
        if self._database_path != ":memory:":
            Path(self._database_path).parent.mkdir(parents=True, exist_ok=True)
        self._initialize_database()

    @property
    def database_path(self) -> str:
        return self._database_path

    def _initialize_database(self) -> None:
        """Create the schema if it does not exist yet."""
        with self._translated("schema"):
            with self._get_connection() as conn:
                cursor = conn.cursor()
                for table_schema in SQLITE_SCHEMA.values():
                    cursor.execute(table_schema)
                conn.commit()
        logger.debug("SQLite schema ready at %s", self._database_path)

    @contextmanager
    def _get_connection(self):
        """Get database connection with proper cleanup."""
        conn = sqlite3.connect(self._database_path, timeout=self._timeout)
        try:
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
        finally:
            conn.close()

    def _cursor(self, conn: sqlite3.Connection) -> sqlite3.Cursor:
        return conn.cursor()

    def _translate_error(self, error: Exception, table: str) -> CourseClaimException:
        if isinstance(error, sqlite3.IntegrityError):
            message = str(error)
            match = self._UNIQUE_MESSAGE.search(message)
            if match:
                columns = [part.strip().split(".", 1)[-1]
                           for part in match.group("columns").split(",")]
                return DuplicateEntityError(
                    f"Unique constraint violated on {table}: {', '.join(columns)}",
                    details={"table": table, "columns": columns,
                             "constraint": constraint_for_columns(table, columns)},
                )
            if "FOREIGN KEY" in message:
                return ResourceNotFoundError(
                    f"A row referenced from {table} does not exist",
                    details={"table": table},
                )
            return ValidationError(f"Rejected by {table} constraints: {message}",
                                   details={"table": table})
        return StorageError(f"Database error on {table}: {error}", details={"table": table})

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table_name,)
            )
            return cursor.fetchone() is not None


class PostgreSQLDatabase(DatabaseManager):
    """PostgreSQL database implementation."""

    placeholder = "%s"

    def __init__(self, host: str = "localhost", port: int = 5432,
                 database: str = "courseclaim", user: str = "courseclaim", password: str = "",
                 connect_timeout: int = 5):
        if not PSYCOPG2_AVAILABLE:
            raise ConfigurationError("psycopg2 is required for PostgreSQL support")

        self._host = host
        self._port = port
        self._database = database
        self._user = user
        self._password = password
        self._connect_timeout = connect_timeout
        self._initialize_database()

    def _connection_kwargs(self) -> Dict[str, Any]:
        return {
            "host": self._host,
            "port": self._port,
            "dbname": self._database,
            "user": self._user,
            "password": self._password,
            "connect_timeout": self._connect_timeout,
        }

    def _initialize_database(self) -> None:
        """Create the schema if it does not exist yet."""
        with self._translated("schema"):
            with self._get_connection() as conn:
                cursor = conn.cursor()
                for table_schema in POSTGRES_SCHEMA.values():
                    cursor.execute(table_schema)
                conn.commit()

    @contextmanager
    def _get_connection(self):
        """Get database connection with proper cleanup."""
        conn = psycopg2.connect(**self._connection_kwargs())
        try:
            yield conn
        finally:
            conn.close()

    def _cursor(self, conn: Any) -> Any:
        return conn.cursor(cursor_factory=RealDictCursor)

    def _encode_value(self, table: str, column: str, value: Any) -> Any:
        if column in JSON_COLUMNS.get(table, ()):
            return Json(value or {})
        return value

    def _decode_row(self, table: str, row: Any) -> Row:
        result = super()._decode_row(table, row)
        for column in ("created_at", "updated_at"):
            value = result.get(column)
            if value is not None and not isinstance(value, str):
                result[column] = value.isoformat()
        return result

    def _translate_error(self, error: Exception, table: str) -> CourseClaimException:
        if isinstance(error, psycopg2.errors.UniqueViolation):
            constraint = getattr(error.diag, "constraint_name", None)
            columns = list(UNIQUE_CONSTRAINTS.get(constraint, (table, ()))[1])
            return DuplicateEntityError(
                f"Unique constraint violated on {table}: {constraint}",
                details={"table": table, "columns": columns, "constraint": constraint},
            )
        if isinstance(error, psycopg2.errors.ForeignKeyViolation):
            return ResourceNotFoundError(
                f"A row referenced from {table} does not exist",
                details={"table": table},
            )
        if isinstance(error, psycopg2.IntegrityError):
            return ValidationError(f"Rejected by {table} constraints: {error}",
                                   details={"table": table})
        return StorageError(f"Database error on {table}: {error}", details={"table": table})

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists."""
        rows = self._fetch(
            table_name,
            "SELECT table_name FROM information_schema.tables WHERE table_name = %s",
            (table_name,),
        )
        return len(rows) > 0


class DatabaseFactory:
    """Factory for creating database instances."""

    @staticmethod
    def create_database(database_type: str, **kwargs) -> DatabaseManager:
        """Create a database instance based on type."""
        if database_type.lower() == "sqlite":
            return SQLiteDatabase(**kwargs)
        elif database_type.lower() in ("postgresql", "postgres"):
            return PostgreSQLDatabase(**kwargs)
        else:
            raise ConfigurationError(f"Unsupported database type: {database_type}")
