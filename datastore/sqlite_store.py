"""
SQLite-backed reading store and default store wiring.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple, Union

from datastore.base import ReadingStore, StorageUnavailable, as_utc
from datastore.memory_store import InMemoryReadingStore
from models.records import NewReading, Reading
from services.cancellation import Deadline, OperationCancelled, check_deadline
from services.outliers import is_outlier
from settings import get_settings

logger = logging.getLogger(__name__)

# Number of SQLite VM instructions between deadline checks.
_PROGRESS_STEPS = 1000

_COLUMNS = (
    "id, temperature, humidity, ac_outlet_temperature, ac_outlet_humidity, timestamp"
)

# Applied in order; each version runs at most once per database file.
MIGRATIONS: Tuple[Tuple[str, str, Tuple[str, ...]], ...] = (
    (
        "001",
        "create temp_sensor_data",
        (
            """
            CREATE TABLE IF NOT EXISTS temp_sensor_data (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                temperature REAL NOT NULL,
                humidity REAL NOT NULL,
                timestamp TEXT NOT NULL
            );
            """,
            "CREATE INDEX IF NOT EXISTS idx_temp_sensor_data_timestamp ON temp_sensor_data (timestamp);",
        ),
    ),
    (
        "002",
        "add ac outlet sensor columns",
        (
            "ALTER TABLE temp_sensor_data ADD COLUMN ac_outlet_temperature REAL;",
            "ALTER TABLE temp_sensor_data ADD COLUMN ac_outlet_humidity REAL;",
        ),
    ),
)


def _to_db_timestamp(value: datetime) -> str:
    # Fixed-width UTC text keeps lexical order equal to chronological order.
    return as_utc(value).isoformat(timespec="microseconds")


def _row_to_reading(row: sqlite3.Row) -> Reading:
    temperature = row["temperature"]
    return Reading(
        id=row["id"],
        temperature=temperature,
        humidity=row["humidity"],
        timestamp=as_utc(datetime.fromisoformat(row["timestamp"])),
        secondary_temperature=row["ac_outlet_temperature"],
        secondary_humidity=row["ac_outlet_humidity"],
        is_outlier=is_outlier(temperature),
    )


class SQLiteReadingStore:
    """Reading store over a single SQLite file, one connection per call."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.init_schema()

    @contextmanager
    def _connect(self, deadline: Optional[Deadline] = None) -> Iterator[sqlite3.Connection]:
        check_deadline(deadline)
        try:
            conn = sqlite3.connect(self.path, timeout=5.0)
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"Cannot open database {self.path}.") from exc
        conn.row_factory = sqlite3.Row
        if deadline is not None:
            conn.set_progress_handler(lambda: int(deadline.expired()), _PROGRESS_STEPS)
        try:
            conn.execute("PRAGMA busy_timeout = 5000;")
            yield conn
        except sqlite3.Error as exc:
            if deadline is not None and deadline.expired():
                raise OperationCancelled("Query interrupted by deadline.") from exc
            raise StorageUnavailable(str(exc)) from exc
        finally:
            conn.close()

    def init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_version (
                    version TEXT PRIMARY KEY,
                    description TEXT NOT NULL,
                    applied_at TEXT NOT NULL
                );
                """
            )
            applied = {
                row["version"] for row in conn.execute("SELECT version FROM schema_version;")
            }
            for version, description, statements in MIGRATIONS:
                if version in applied:
                    continue
                with conn:
                    for statement in statements:
                        conn.execute(statement)
                    conn.execute(
                        "INSERT INTO schema_version (version, description, applied_at) VALUES (?, ?, ?);",
                        (version, description, _to_db_timestamp(datetime.now(timezone.utc))),
                    )
                logger.info("Applied migration %s: %s", version, description)

    def insert(self, reading: NewReading) -> Reading:
        timestamp = as_utc(reading.timestamp)
        with self._connect() as conn:
            with conn:
                cursor = conn.execute(
                    """
                    INSERT INTO temp_sensor_data
                        (temperature, humidity, ac_outlet_temperature, ac_outlet_humidity, timestamp)
                    VALUES (?, ?, ?, ?, ?);
                    """,
                    (
                        reading.temperature,
                        reading.humidity,
                        reading.secondary_temperature,
                        reading.secondary_humidity,
                        _to_db_timestamp(timestamp),
                    ),
                )
            row_id = cursor.lastrowid
        return Reading(
            id=row_id,
            temperature=reading.temperature,
            humidity=reading.humidity,
            timestamp=timestamp,
            secondary_temperature=reading.secondary_temperature,
            secondary_humidity=reading.secondary_humidity,
            is_outlier=is_outlier(reading.temperature),
        )

    def fetch_ordered_in_range(
        self, start: datetime, end: datetime, *, deadline: Optional[Deadline] = None
    ) -> List[Reading]:
        with self._connect(deadline) as conn:
            rows = conn.execute(
                f"""
                SELECT {_COLUMNS}
                FROM temp_sensor_data
                WHERE timestamp >= ? AND timestamp <= ?
                ORDER BY timestamp ASC, id ASC;
                """,
                (_to_db_timestamp(start), _to_db_timestamp(end)),
            ).fetchall()
        return [_row_to_reading(row) for row in rows]

    def fetch_id_range(
        self, low_id: int, high_id: int, *, deadline: Optional[Deadline] = None
    ) -> List[Reading]:
        with self._connect(deadline) as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM temp_sensor_data WHERE id >= ? AND id <= ? ORDER BY id ASC;",
                (low_id, high_id),
            ).fetchall()
        return [_row_to_reading(row) for row in rows]

    def fetch_latest(self, *, deadline: Optional[Deadline] = None) -> Optional[Reading]:
        with self._connect(deadline) as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM temp_sensor_data ORDER BY timestamp DESC, id DESC LIMIT 1;"
            ).fetchone()
        return _row_to_reading(row) if row is not None else None

    def count_in_range(
        self, start: datetime, end: datetime, *, deadline: Optional[Deadline] = None
    ) -> int:
        with self._connect(deadline) as conn:
            (count,) = conn.execute(
                "SELECT COUNT(*) FROM temp_sensor_data WHERE timestamp >= ? AND timestamp <= ?;",
                (_to_db_timestamp(start), _to_db_timestamp(end)),
            ).fetchone()
        return int(count)

    def fetch_page(
        self, limit: int, offset: int, *, deadline: Optional[Deadline] = None
    ) -> List[Reading]:
        with self._connect(deadline) as conn:
            rows = conn.execute(
                f"""
                SELECT {_COLUMNS}
                FROM temp_sensor_data
                ORDER BY timestamp DESC, id DESC
                LIMIT ? OFFSET ?;
                """,
                (limit, offset),
            ).fetchall()
        return [_row_to_reading(row) for row in rows]

    def fetch_ids(
        self, ids: Sequence[int], *, deadline: Optional[Deadline] = None
    ) -> List[Reading]:
        if not ids:
            check_deadline(deadline)
            return []
        placeholders = ", ".join("?" for _ in ids)
        with self._connect(deadline) as conn:
            rows = conn.execute(
                f"""
                SELECT {_COLUMNS}
                FROM temp_sensor_data
                WHERE id IN ({placeholders})
                ORDER BY timestamp DESC, id DESC;
                """,
                tuple(ids),
            ).fetchall()
        return [_row_to_reading(row) for row in rows]


@lru_cache
def build_default_store(path: Optional[str] = None) -> ReadingStore:
    """Return the configured store; a blank database path means in-memory."""
    settings = get_settings()
    db_path = settings.database_path if path is None else path
    if not db_path:
        return InMemoryReadingStore()
    return SQLiteReadingStore(db_path)
