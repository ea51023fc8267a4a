from __future__ import annotations
import json
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import List, Optional, Sequence

from datastore.base import StorageUnavailable, as_utc
from models.records import NewReading, Reading
from services.cancellation import Deadline, check_deadline
from services.outliers import is_outlier


class InMemoryReadingStore:
    """Lock-guarded reading log with optional JSON persistence."""

    def __init__(self, persistence_path: Optional[Path] = None) -> None:
        self._rows: List[Reading] = []
        self._next_id = 1
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def insert(self, reading: NewReading) -> Reading:
        with self._lock:
            stored = Reading(
                id=self._next_id,
                temperature=reading.temperature,
                humidity=reading.humidity,
                timestamp=as_utc(reading.timestamp),
                secondary_temperature=reading.secondary_temperature,
                secondary_humidity=reading.secondary_humidity,
                is_outlier=is_outlier(reading.temperature),
            )
            self._persist([*self._rows, stored])
            self._rows.append(stored)
            self._next_id += 1
        return stored

    def fetch_ordered_in_range(
        self, start: datetime, end: datetime, *, deadline: Optional[Deadline] = None
    ) -> List[Reading]:
        check_deadline(deadline)
        low, high = as_utc(start), as_utc(end)
        with self._lock:
            rows = [row for row in self._rows if low <= row.timestamp <= high]
        return sorted(rows, key=lambda row: (row.timestamp, row.id))

    def fetch_id_range(
        self, low_id: int, high_id: int, *, deadline: Optional[Deadline] = None
    ) -> List[Reading]:
        check_deadline(deadline)
        with self._lock:
            return [row for row in self._rows if low_id <= row.id <= high_id]

    def fetch_latest(self, *, deadline: Optional[Deadline] = None) -> Optional[Reading]:
        check_deadline(deadline)
        with self._lock:
            if not self._rows:
                return None
            return max(self._rows, key=lambda row: (row.timestamp, row.id))

    def count_in_range(
        self, start: datetime, end: datetime, *, deadline: Optional[Deadline] = None
    ) -> int:
        check_deadline(deadline)
        low, high = as_utc(start), as_utc(end)
        with self._lock:
            return sum(1 for row in self._rows if low <= row.timestamp <= high)

    def fetch_page(
        self, limit: int, offset: int, *, deadline: Optional[Deadline] = None
    ) -> List[Reading]:
        check_deadline(deadline)
        with self._lock:
            newest_first = sorted(
                self._rows, key=lambda row: (row.timestamp, row.id), reverse=True
            )
        return newest_first[offset : offset + limit]

    def fetch_ids(
        self, ids: Sequence[int], *, deadline: Optional[Deadline] = None
    ) -> List[Reading]:
        check_deadline(deadline)
        wanted = set(ids)
        with self._lock:
            rows = [row for row in self._rows if row.id in wanted]
        return sorted(rows, key=lambda row: (row.timestamp, row.id), reverse=True)

    def _persist(self, rows: Sequence[Reading]) -> None:
        if not self.persistence_path:
            return
        payload = []
        for row in rows:
            item = asdict(row)
            item.pop("is_outlier")
            item["timestamp"] = row.timestamp.isoformat()
            payload.append(item)
        try:
            self.persistence_path.write_text(json.dumps(payload, indent=2))
        except OSError as exc:
            raise StorageUnavailable(f"Could not write {self.persistence_path}.") from exc

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "[]"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = []

        for item in data:
            timestamp = as_utc(datetime.fromisoformat(item.pop("timestamp")))
            self._rows.append(
                Reading(
                    timestamp=timestamp,
                    is_outlier=is_outlier(item["temperature"]),
                    **item,
                )
            )
        if self._rows:
            self._next_id = max(row.id for row in self._rows) + 1
