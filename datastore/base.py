"""Storage contract shared by the reading stores."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Protocol, Sequence

from models.records import NewReading, Reading
from services.cancellation import Deadline


class StorageUnavailable(Exception):
    """The backing store could not serve a request."""


class ReadingStore(Protocol):
    """Read-mostly access to logged readings.

    Every read accepts an optional ``deadline`` which implementations must
    check before issuing work so abandoned requests stop early.
    """

    def insert(self, reading: NewReading) -> Reading:
        ...

    def fetch_ordered_in_range(
        self, start: datetime, end: datetime, *, deadline: Optional[Deadline] = None
    ) -> List[Reading]:
        ...

    def fetch_id_range(
        self, low_id: int, high_id: int, *, deadline: Optional[Deadline] = None
    ) -> List[Reading]:
        ...

    def fetch_latest(self, *, deadline: Optional[Deadline] = None) -> Optional[Reading]:
        ...

    def count_in_range(
        self, start: datetime, end: datetime, *, deadline: Optional[Deadline] = None
    ) -> int:
        ...

    def fetch_page(
        self, limit: int, offset: int, *, deadline: Optional[Deadline] = None
    ) -> List[Reading]:
        ...

    def fetch_ids(
        self, ids: Sequence[int], *, deadline: Optional[Deadline] = None
    ) -> List[Reading]:
        ...


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
