from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
from dataclasses import dataclass, field
from typing import Any

from trivia_errors import DuplicateRecordError, StoreClosedError, UnknownTableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexSpec:
    field: str
    unique: bool = False


@dataclass(frozen=True)
class TableSchema:
    name: str
    columns: tuple[tuple[str, str], ...]
    json_columns: frozenset[str] = field(default_factory=frozenset)
    bool_columns: frozenset[str] = field(default_factory=frozenset)
    indexes: tuple[IndexSpec, ...] = ()

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.columns)

    def index_for(self, field_name: str) -> IndexSpec | None:
        for index in self.indexes:
            if index.field == field_name:
                return index
        return None


PLAYERS = "players"
QUESTIONS = "questions"
SESSIONS = "sessions"
ANSWERS = "answers"
STATISTICS = "statistics"

SCHEMAS: dict[str, TableSchema] = {
    PLAYERS: TableSchema(
        name=PLAYERS,
        columns=(
            ("name", "TEXT NOT NULL"),
            ("age", "INTEGER"),
            ("tier_min", "TEXT"),
            ("tier_max", "TEXT"),
            ("color", "TEXT"),
            ("total_score", "INTEGER NOT NULL DEFAULT 0"),
            ("created_at", "INTEGER NOT NULL DEFAULT 0"),
            ("last_played_at", "INTEGER"),
        ),
        indexes=(
            IndexSpec("name", unique=True),
            IndexSpec("age"),
            IndexSpec("tier_min"),
            IndexSpec("tier_max"),
        ),
    ),
    QUESTIONS: TableSchema(
        name=QUESTIONS,
        columns=(
            ("text", "TEXT NOT NULL"),
            ("correct_answer", "TEXT NOT NULL"),
            ("wrong_answers", "TEXT NOT NULL DEFAULT '[]'"),
            ("category", "TEXT NOT NULL DEFAULT ''"),
            ("tier", "TEXT NOT NULL"),
            ("base_points", "INTEGER NOT NULL DEFAULT 0"),
            ("created_at", "INTEGER NOT NULL DEFAULT 0"),
            ("flagged", "INTEGER NOT NULL DEFAULT 0"),
            ("source", "TEXT NOT NULL DEFAULT 'curated'"),
        ),
        json_columns=frozenset({"wrong_answers"}),
        bool_columns=frozenset({"flagged"}),
        indexes=(
            IndexSpec("category"),
            IndexSpec("tier"),
            IndexSpec("base_points"),
        ),
    ),
    SESSIONS: TableSchema(
        name=SESSIONS,
        columns=(
            ("player_id", "INTEGER NOT NULL"),
            ("started_at", "INTEGER NOT NULL"),
            ("ended_at", "INTEGER"),
            ("score", "INTEGER NOT NULL DEFAULT 0"),
            ("question_count", "INTEGER NOT NULL DEFAULT 0"),
        ),
        indexes=(
            IndexSpec("player_id"),
            IndexSpec("started_at"),
            IndexSpec("ended_at"),
        ),
    ),
    ANSWERS: TableSchema(
        name=ANSWERS,
        columns=(
            ("session_id", "INTEGER NOT NULL"),
            ("question_id", "INTEGER NOT NULL"),
            ("given_answer", "TEXT NOT NULL DEFAULT ''"),
            ("correct", "INTEGER NOT NULL DEFAULT 0"),
            ("latency_ms", "INTEGER NOT NULL DEFAULT 0"),
            ("category", "TEXT NOT NULL DEFAULT ''"),
            ("points_awarded", "INTEGER NOT NULL DEFAULT 0"),
        ),
        bool_columns=frozenset({"correct"}),
        indexes=(IndexSpec("session_id"),),
    ),
    STATISTICS: TableSchema(
        name=STATISTICS,
        columns=(
            ("player_id", "INTEGER NOT NULL"),
            ("category", "TEXT NOT NULL"),
            ("games_played", "INTEGER NOT NULL DEFAULT 0"),
            ("total_score", "INTEGER NOT NULL DEFAULT 0"),
            ("correct_count", "INTEGER NOT NULL DEFAULT 0"),
            ("wrong_count", "INTEGER NOT NULL DEFAULT 0"),
            ("average_latency_ms", "REAL NOT NULL DEFAULT 0"),
            ("updated_at", "INTEGER NOT NULL DEFAULT 0"),
        ),
        indexes=(IndexSpec("player_id"),),
    ),
}


class TriviaStore:
    """Embedded record store: one sqlite table per record type.

    Every table has an auto-incrementing integer ``id``. Records go in and come
    out as plain dicts; JSON and boolean columns are converted at the edge.
    """

    def __init__(self, db_path: str, schemas: dict[str, TableSchema] | None = None):
        self.db_path = str(db_path)
        self.schemas = dict(schemas or SCHEMAS)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    def __enter__(self) -> "TriviaStore":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------
    # Lifecycle
    # ------------------------

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> "TriviaStore":
        with self._lock:
            if self._conn is not None:
                return self
            if self.db_path != ":memory:":
                directory = os.path.dirname(os.path.abspath(self.db_path))
                os.makedirs(directory, exist_ok=True)
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            self._conn = conn
            self.ensure_schema()
            logger.info("Opened trivia store at %s", self.db_path)
        return self

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None
            logger.info("Closed trivia store at %s", self.db_path)

    def ensure_schema(self) -> None:
        with self._write() as conn:
            for schema in self.schemas.values():
                column_sql = ",\n".join(
                    f"{name} {sql_type}" for name, sql_type in schema.columns
                )
                conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {schema.name} (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        {column_sql}
                    )
                    """
                )
                for index in schema.indexes:
                    unique = "UNIQUE " if index.unique else ""
                    conn.execute(
                        f"CREATE {unique}INDEX IF NOT EXISTS "
                        f"idx_{schema.name}_{index.field} "
                        f"ON {schema.name}({index.field})"
                    )

    # ------------------------
    # Table operations
    # ------------------------

    def add(self, table: str, record: dict[str, Any]) -> int:
        schema = self._schema(table)
        values = self._encode(schema, record)
        columns = list(values)
        placeholders = ", ".join("?" for _ in columns)
        if columns:
            sql = (
                f"INSERT INTO {schema.name} ({', '.join(columns)}) "
                f"VALUES ({placeholders})"
            )
        else:
            sql = f"INSERT INTO {schema.name} DEFAULT VALUES"
        with self._write() as conn:
            cursor = conn.execute(sql, [values[name] for name in columns])
            return int(cursor.lastrowid)

    def get(self, table: str, record_id: int) -> dict[str, Any] | None:
        schema = self._schema(table)
        with self._read() as conn:
            row = conn.execute(
                f"SELECT * FROM {schema.name} WHERE id = ?", (int(record_id),)
            ).fetchone()
        return self._decode(schema, row) if row else None

    def put(self, table: str, record: dict[str, Any]) -> None:
        schema = self._schema(table)
        record_id = record.get("id")
        if record_id is None:
            raise ValueError(f"put() on {table} requires an id.")
        values = self._encode(schema, record)
        columns = ["id", *values]
        placeholders = ", ".join("?" for _ in columns)
        if values:
            updates = ", ".join(f"{name} = excluded.{name}" for name in values)
            conflict = f"ON CONFLICT(id) DO UPDATE SET {updates}"
        else:
            conflict = "ON CONFLICT(id) DO NOTHING"
        sql = (
            f"INSERT INTO {schema.name} ({', '.join(columns)}) "
            f"VALUES ({placeholders}) {conflict}"
        )
        with self._write() as conn:
            conn.execute(sql, [int(record_id), *values.values()])

    def delete(self, table: str, record_id: int) -> None:
        schema = self._schema(table)
        with self._write() as conn:
            conn.execute(f"DELETE FROM {schema.name} WHERE id = ?", (int(record_id),))

    def clear(self, table: str) -> None:
        schema = self._schema(table)
        with self._write() as conn:
            conn.execute(f"DELETE FROM {schema.name}")

    def clear_all(self) -> None:
        with self._write() as conn:
            for schema in self.schemas.values():
                conn.execute(f"DELETE FROM {schema.name}")
        logger.info("Cleared all trivia tables.")

    def scan_all(self, table: str) -> list[dict[str, Any]]:
        schema = self._schema(table)
        with self._read() as conn:
            rows = conn.execute(
                f"SELECT * FROM {schema.name} ORDER BY id ASC"
            ).fetchall()
        return [self._decode(schema, row) for row in rows]

    def lookup_by_index(self, table: str, field_name: str, value: Any):
        schema = self._schema(table)
        index = schema.index_for(field_name)
        if index is None:
            raise UnknownTableError(
                f"No index declared on {table}.{field_name}.",
                details={"table": table, "field": field_name},
            )
        with self._read() as conn:
            rows = conn.execute(
                f"SELECT * FROM {schema.name} WHERE {field_name} = ? ORDER BY id ASC",
                (value,),
            ).fetchall()
        records = [self._decode(schema, row) for row in rows]
        if index.unique:
            return records[0] if records else None
        return records

    def count(self, table: str) -> int:
        schema = self._schema(table)
        with self._read() as conn:
            row = conn.execute(f"SELECT COUNT(*) AS total FROM {schema.name}").fetchone()
        return int(row["total"] or 0)

    # ------------------------
    # Internals
    # ------------------------

    def _schema(self, table: str) -> TableSchema:
        schema = self.schemas.get(table)
        if schema is None:
            raise UnknownTableError(f"Unknown table: {table}", details={"table": table})
        return schema

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreClosedError("The trivia store is closed.")
        return self._conn

    def _read(self):
        return _Guard(self, transactional=False)

    def _write(self):
        return _Guard(self, transactional=True)

    @staticmethod
    def _encode(schema: TableSchema, record: dict[str, Any]) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for name in schema.column_names:
            if name not in record:
                continue
            value = record[name]
            if name in schema.json_columns:
                value = json.dumps(list(value or []))
            elif name in schema.bool_columns:
                value = 1 if value else 0
            values[name] = value
        return values

    @staticmethod
    def _decode(schema: TableSchema, row: sqlite3.Row) -> dict[str, Any]:
        record = dict(row)
        for name in schema.json_columns:
            raw = record.get(name)
            try:
                record[name] = json.loads(raw) if raw else []
            except (TypeError, ValueError):
                logger.warning(
                    "Malformed JSON in %s.%s for id %s", schema.name, name, record.get("id")
                )
                record[name] = []
        for name in schema.bool_columns:
            record[name] = bool(record.get(name))
        return record


class _Guard:
    """Holds the store lock; commits or rolls back when transactional."""

    def __init__(self, store: TriviaStore, *, transactional: bool):
        self.store = store
        self.transactional = transactional
        self.conn: sqlite3.Connection | None = None

    def __enter__(self) -> sqlite3.Connection:
        self.store._lock.acquire()
        try:
            self.conn = self.store._require_conn()
        except StoreClosedError:
            self.store._lock.release()
            raise
        return self.conn

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if self.transactional and self.conn is not None:
                if exc_type is None:
                    self.conn.commit()
                else:
                    self.conn.rollback()
        finally:
            self.store._lock.release()
        if (
            exc_type is not None
            and issubclass(exc_type, sqlite3.IntegrityError)
            and "UNIQUE" in str(exc).upper()
        ):
            raise DuplicateRecordError(
                str(exc) or "Record violates a unique index.",
                details={"table_error": str(exc)},
            ) from exc
        return False

