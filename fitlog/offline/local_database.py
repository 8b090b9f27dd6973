# =============================================================================
# fitlog/offline/local_database.py
# Local SQLite Database for Offline Operations
# =============================================================================
"""
LocalDatabase - SQLite-backed local cache for FitLog records.

Features:
- One table per entity (workouts, exercises, weight, bodyfat)
- Offline request queue, dead-letter table, id mappings, drain lease
- Records stored as JSON so field types survive a round trip
- Secondary indexes on date, user and parent workout
- Thread-local connections, atomic replace-all sync
"""

from __future__ import annotations
import json
import sqlite3
import threading
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union
import logging

import pandas as pd

from fitlog.errors import LocalStoreError

logger = logging.getLogger(__name__)

RecordId = Union[int, str]

# Entity type -> table name
ENTITY_TABLES = {
    "workout": "workouts",
    "exercise": "exercises",
    "weight": "weight",
    "bodyfat": "bodyfat",
}

# Alternate primary key names accepted from the wire
ID_ALIASES = {
    "workout": "workout_id",
    "exercise": "exercise_id",
    "weight": "weight_id",
    "bodyfat": "bodyfat_id",
}

# Field used as the key when a record carries no id at all
FALLBACK_KEYS = {
    "weight": "date",
    "bodyfat": "date",
}


class LocalDatabase:
    """
    Local SQLite database for offline data storage.

    One instance owns one database file. Construct it explicitly and pass it
    to the components that need it; there is no module-level singleton.
    """

    # Default database location
    DEFAULT_DB_PATH = Path("local_data") / "fitlog.db"

    # Schema definitions. Entity tables leave `id` untyped so integer server
    # ids and "temp-..." strings are stored exactly as given.
    SCHEMA = {
        "workouts": """
            CREATE TABLE IF NOT EXISTS workouts (
                id PRIMARY KEY NOT NULL,
                date TEXT,
                user_id TEXT,
                data_json TEXT NOT NULL,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """,
        "exercises": """
            CREATE TABLE IF NOT EXISTS exercises (
                id PRIMARY KEY NOT NULL,
                workout_id,
                data_json TEXT NOT NULL,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """,
        "weight": """
            CREATE TABLE IF NOT EXISTS weight (
                id PRIMARY KEY NOT NULL,
                date TEXT,
                user_id TEXT,
                data_json TEXT NOT NULL,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """,
        "bodyfat": """
            CREATE TABLE IF NOT EXISTS bodyfat (
                id PRIMARY KEY NOT NULL,
                date TEXT,
                user_id TEXT,
                data_json TEXT NOT NULL,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """,
        "offline_queue": """
            CREATE TABLE IF NOT EXISTS offline_queue (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                url TEXT NOT NULL,
                method TEXT NOT NULL,
                body_json TEXT,
                headers_json TEXT,
                type TEXT NOT NULL,
                timestamp INTEGER NOT NULL,
                retry_count INTEGER DEFAULT 0,
                client_id TEXT,
                history_json TEXT DEFAULT '[]'
            )
        """,
        "dead_letter_queue": """
            CREATE TABLE IF NOT EXISTS dead_letter_queue (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                queue_id INTEGER,
                url TEXT NOT NULL,
                method TEXT NOT NULL,
                body_json TEXT,
                headers_json TEXT,
                type TEXT NOT NULL,
                timestamp INTEGER NOT NULL,
                retry_count INTEGER,
                client_id TEXT,
                history_json TEXT,
                abandoned_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """,
        "id_mappings": """
            CREATE TABLE IF NOT EXISTS id_mappings (
                entity TEXT NOT NULL,
                client_id TEXT NOT NULL,
                server_id NOT NULL,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (entity, client_id)
            )
        """,
        "drain_lease": """
            CREATE TABLE IF NOT EXISTS drain_lease (
                name TEXT PRIMARY KEY,
                owner TEXT NOT NULL,
                acquired_at REAL NOT NULL,
                expires_at REAL NOT NULL
            )
        """,
        "app_settings": """
            CREATE TABLE IF NOT EXISTS app_settings (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """,
    }

    INDEXES = [
        "CREATE INDEX IF NOT EXISTS idx_workouts_date ON workouts(date)",
        "CREATE INDEX IF NOT EXISTS idx_workouts_user_id ON workouts(user_id)",
        "CREATE INDEX IF NOT EXISTS idx_exercises_workout_id ON exercises(workout_id)",
        "CREATE INDEX IF NOT EXISTS idx_weight_date ON weight(date)",
        "CREATE INDEX IF NOT EXISTS idx_weight_user_id ON weight(user_id)",
        "CREATE INDEX IF NOT EXISTS idx_bodyfat_date ON bodyfat(date)",
        "CREATE INDEX IF NOT EXISTS idx_bodyfat_user_id ON bodyfat(user_id)",
        "CREATE INDEX IF NOT EXISTS idx_offline_queue_timestamp ON offline_queue(timestamp)",
        "CREATE INDEX IF NOT EXISTS idx_offline_queue_type ON offline_queue(type)",
    ]

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        """
        Initialize local database.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
        self._ensure_directory()
        self._local = threading.local()
        self._stores: Dict[str, EntityStore] = {}
        self._initialized = False

    def _ensure_directory(self) -> None:
        """Ensure database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if getattr(self._local, "connection", None) is None:
            self._local.connection = sqlite3.connect(str(self.db_path), timeout=10)
            self._local.connection.row_factory = sqlite3.Row
        return self._local.connection

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def initialize(self) -> LocalDatabase:
        """Initialize database schema."""
        if self._initialized:
            return self

        try:
            with self.transaction() as conn:
                for table_name, schema in self.SCHEMA.items():
                    conn.execute(schema)
                    logger.debug(f"Created/verified table: {table_name}")
                for statement in self.INDEXES:
                    conn.execute(statement)
        except sqlite3.Error as e:
            raise LocalStoreError(
                f"Could not initialize local database: {e}",
                operation="initialize",
                details={"path": str(self.db_path)},
            ) from e

        self._initialized = True
        logger.info(f"Local database initialized at: {self.db_path}")
        return self

    # =========================================================================
    # ENTITY STORES
    # =========================================================================

    def store(self, entity: str) -> EntityStore:
        """
        Get the record store for an entity type.

        Args:
            entity: One of workout, exercise, weight, bodyfat

        Returns:
            EntityStore bound to this database
        """
        if entity not in ENTITY_TABLES:
            raise ValueError(f"Unknown entity type: {entity}")
        if entity not in self._stores:
            self.initialize()
            store_cls = ExerciseStore if entity == "exercise" else EntityStore
            self._stores[entity] = store_cls(self, entity)
        return self._stores[entity]

    @property
    def workouts(self) -> EntityStore:
        return self.store("workout")

    @property
    def exercises(self) -> ExerciseStore:
        return self.store("exercise")

    @property
    def weight(self) -> EntityStore:
        return self.store("weight")

    @property
    def bodyfat(self) -> EntityStore:
        return self.store("bodyfat")

    def clear_all_data(self) -> None:
        """Empty every record table and the offline queue (logout/reset)."""
        self.initialize()
        tables = list(ENTITY_TABLES.values()) + ["offline_queue", "id_mappings"]
        try:
            with self.transaction() as conn:
                for table in tables:
                    conn.execute(f"DELETE FROM {table}")
        except sqlite3.Error as e:
            raise LocalStoreError(f"Could not clear local data: {e}", operation="clear_all") from e
        logger.info("Cleared all local data")

    # =========================================================================
    # RAW ACCESS (queue, mappings, lease)
    # =========================================================================

    def query(self, sql: str, params: Optional[Iterable] = None) -> List[sqlite3.Row]:
        """Execute a raw SQL query."""
        self.initialize()
        try:
            conn = self._get_connection()
            return conn.execute(sql, list(params or [])).fetchall()
        except sqlite3.Error as e:
            raise LocalStoreError(f"Query failed: {e}", operation="query") from e

    def execute(self, sql: str, params: Optional[Iterable] = None) -> sqlite3.Cursor:
        """Execute a raw SQL statement in its own transaction."""
        self.initialize()
        try:
            with self.transaction() as conn:
                return conn.execute(sql, list(params or []))
        except sqlite3.Error as e:
            raise LocalStoreError(f"Statement failed: {e}", operation="execute") from e

    # =========================================================================
    # ID MAPPINGS
    # =========================================================================

    def save_id_mapping(self, entity: str, client_id: str, server_id: RecordId) -> None:
        """Remember which server id replaced a temporary client id."""
        self.execute(
            """
            INSERT OR REPLACE INTO id_mappings (entity, client_id, server_id)
            VALUES (?, ?, ?)
            """,
            [entity, client_id, server_id],
        )

    def resolve_id(self, entity: str, record_id: RecordId) -> RecordId:
        """Translate a temporary id to its server id when a mapping exists."""
        rows = self.query(
            "SELECT server_id FROM id_mappings WHERE entity = ? AND client_id = ?",
            [entity, str(record_id)],
        )
        return rows[0]["server_id"] if rows else record_id

    def get_id_mappings(self, entity: Optional[str] = None) -> Dict[str, RecordId]:
        """Return client_id -> server_id, optionally for one entity type."""
        if entity:
            rows = self.query(
                "SELECT client_id, server_id FROM id_mappings WHERE entity = ?", [entity]
            )
        else:
            rows = self.query("SELECT client_id, server_id FROM id_mappings")
        return {row["client_id"]: row["server_id"] for row in rows}

    # =========================================================================
    # LEASES
    # =========================================================================

    def acquire_lease(
        self,
        name: str,
        owner: str,
        ttl_seconds: float,
        now: Optional[float] = None,
    ) -> bool:
        """
        Take or renew a named lease.

        Fails while another owner holds an unexpired lease. The check and the
        write happen under one IMMEDIATE transaction so two processes sharing
        the file cannot both win.
        """
        self.initialize()
        now = time.time() if now is None else now
        conn = self._get_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT owner, expires_at FROM drain_lease WHERE name = ?", [name]
            ).fetchone()
            if row and row["owner"] != owner and row["expires_at"] > now:
                conn.rollback()
                return False
            conn.execute(
                """
                INSERT OR REPLACE INTO drain_lease (name, owner, acquired_at, expires_at)
                VALUES (?, ?, ?, ?)
                """,
                [name, owner, now, now + ttl_seconds],
            )
            conn.commit()
            return True
        except sqlite3.Error as e:
            conn.rollback()
            raise LocalStoreError(
                f"Could not acquire lease {name}: {e}",
                table="drain_lease",
                operation="acquire_lease",
            ) from e

    def release_lease(self, name: str, owner: str) -> None:
        self.execute("DELETE FROM drain_lease WHERE name = ? AND owner = ?", [name, owner])

    def get_lease(self, name: str) -> Optional[Dict[str, Any]]:
        rows = self.query("SELECT * FROM drain_lease WHERE name = ?", [name])
        return dict(rows[0]) if rows else None

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get an app setting."""
        result = self.query("SELECT value FROM app_settings WHERE key = ?", [key])
        if result:
            try:
                return json.loads(result[0]["value"])
            except json.JSONDecodeError:
                return result[0]["value"]
        return default

    def set_setting(self, key: str, value: Any) -> None:
        """Set an app setting."""
        self.execute(
            """
            INSERT OR REPLACE INTO app_settings (key, value, updated_at)
            VALUES (?, ?, ?)
            """,
            [key, json.dumps(value, default=str), datetime.now().isoformat()],
        )

    def close(self) -> None:
        """Close this thread's database connection."""
        if getattr(self._local, "connection", None) is not None:
            self._local.connection.close()
            self._local.connection = None


class EntityStore:
    """
    Key-value table for one entity type.

    Records are plain dicts keyed by "id". Alternate id names from the wire
    (workout_id, ...) are normalized to "id" on write.
    """

    def __init__(self, db: LocalDatabase, entity: str):
        self.db = db
        self.entity = entity
        self.table = ENTITY_TABLES[entity]
        self.id_alias = ID_ALIASES[entity]
        self.fallback_key = FALLBACK_KEYS.get(entity)

    @contextmanager
    def _errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as e:
            raise LocalStoreError(
                f"{operation} failed on {self.table}: {e}",
                table=self.table,
                operation=operation,
            ) from e

    def normalize(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Copy of the record with its alternate id field mapped onto "id"."""
        normalized = dict(record)
        if normalized.get("id") is None and normalized.get(self.id_alias) is not None:
            normalized["id"] = normalized[self.id_alias]
        return normalized

    def key_for(self, record: Dict[str, Any]) -> RecordId:
        """Primary key for a normalized record."""
        if record.get("id") is not None:
            return record["id"]
        if self.fallback_key and record.get(self.fallback_key) is not None:
            return str(record[self.fallback_key])
        raise LocalStoreError(
            f"Record for {self.table} has no id",
            table=self.table,
            operation="put",
            details={"record": record},
        )

    def _row_values(self, record: Dict[str, Any]) -> Dict[str, Any]:
        values = {
            "id": self.key_for(record),
            "data_json": json.dumps(record, default=str),
            "updated_at": datetime.now().isoformat(),
        }
        if self.table == "exercises":
            values["workout_id"] = record.get("workout_id")
        else:
            values["date"] = record.get("date")
            values["user_id"] = record.get("user_id")
        return values

    def _upsert(self, conn: sqlite3.Connection, record: Dict[str, Any]) -> None:
        values = self._row_values(record)
        columns = ", ".join(values.keys())
        placeholders = ", ".join(["?" for _ in values])
        updates = ", ".join(f"{k} = excluded.{k}" for k in values if k != "id")
        conn.execute(
            f"""
            INSERT INTO {self.table} ({columns}) VALUES ({placeholders})
            ON CONFLICT(id) DO UPDATE SET {updates}
            """,
            list(values.values()),
        )

    @staticmethod
    def _decode(rows: List[sqlite3.Row]) -> List[Dict[str, Any]]:
        return [json.loads(row["data_json"]) for row in rows]

    def get_all(self) -> List[Dict[str, Any]]:
        """All records in insertion order."""
        with self._errors("get_all"):
            rows = self.db._get_connection().execute(
                f"SELECT data_json FROM {self.table} ORDER BY rowid"
            ).fetchall()
        return self._decode(rows)

    def get(self, record_id: RecordId) -> Optional[Dict[str, Any]]:
        """Single record, or None."""
        with self._errors("get"):
            row = self.db._get_connection().execute(
                f"SELECT data_json FROM {self.table} WHERE id = ?", [record_id]
            ).fetchone()
        return json.loads(row["data_json"]) if row else None

    def get_by_date(self, date: str) -> List[Dict[str, Any]]:
        """Records whose date index equals the given value."""
        with self._errors("get_by_date"):
            rows = self.db._get_connection().execute(
                f"SELECT data_json FROM {self.table} WHERE date = ? ORDER BY rowid", [date]
            ).fetchall()
        return self._decode(rows)

    def put(self, record: Dict[str, Any]) -> RecordId:
        """Insert or replace a record; returns its key."""
        normalized = self.normalize(record)
        with self._errors("put"):
            with self.db.transaction() as conn:
                self._upsert(conn, normalized)
        return self.key_for(normalized)

    def delete(self, record_id: RecordId) -> None:
        """Remove a record; no-op if absent."""
        with self._errors("delete"):
            with self.db.transaction() as conn:
                conn.execute(f"DELETE FROM {self.table} WHERE id = ?", [record_id])

    def replace(self, old_id: RecordId, record: Dict[str, Any]) -> None:
        """Swap the record stored under old_id for a new record (new key)."""
        normalized = self.normalize(record)
        with self._errors("replace"):
            with self.db.transaction() as conn:
                conn.execute(f"DELETE FROM {self.table} WHERE id = ?", [old_id])
                self._upsert(conn, normalized)

    def sync(self, records: Iterable[Dict[str, Any]]) -> None:
        """Replace the whole table with the given records in one transaction."""
        normalized = [self.normalize(r) for r in records]
        with self._errors("sync"):
            with self.db.transaction() as conn:
                conn.execute(f"DELETE FROM {self.table}")
                for record in normalized:
                    self._upsert(conn, record)
        logger.debug(f"Synced {len(normalized)} records into {self.table}")

    def clear(self) -> None:
        with self._errors("clear"):
            with self.db.transaction() as conn:
                conn.execute(f"DELETE FROM {self.table}")

    def count(self) -> int:
        with self._errors("count"):
            row = self.db._get_connection().execute(
                f"SELECT COUNT(*) AS c FROM {self.table}"
            ).fetchone()
        return int(row["c"])

    def to_dataframe(self) -> pd.DataFrame:
        """Load the table into a pandas DataFrame."""
        return pd.DataFrame(self.get_all())


class ExerciseStore(EntityStore):
    """Exercise table with lookups by parent workout."""

    def get_by_workout_id(self, workout_id: RecordId) -> List[Dict[str, Any]]:
        with self._errors("get_by_workout_id"):
            rows = self.db._get_connection().execute(
                "SELECT data_json FROM exercises WHERE workout_id = ? ORDER BY rowid",
                [workout_id],
            ).fetchall()
        return self._decode(rows)

    def delete_by_workout_id(self, workout_id: RecordId) -> int:
        with self._errors("delete_by_workout_id"):
            with self.db.transaction() as conn:
                cursor = conn.execute(
                    "DELETE FROM exercises WHERE workout_id = ?", [workout_id]
                )
                return cursor.rowcount
