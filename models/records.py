"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union


@dataclass(frozen=True, slots=True)
class NewReading:
    """Measurements from one polling cycle, before the store assigns an id."""

    temperature: float
    humidity: float
    timestamp: datetime
    secondary_temperature: Optional[float] = None
    secondary_humidity: Optional[float] = None


@dataclass(frozen=True, slots=True)
class Reading:
    """A stored sensor observation.

    ``id`` reflects insertion order and is only used to find neighbouring
    readings; ordering by time always goes through ``timestamp``.
    ``is_outlier`` is never persisted and is recomputed whenever a reading is
    read back.
    """

    id: int
    temperature: float
    humidity: float
    timestamp: datetime
    secondary_temperature: Optional[float] = None
    secondary_humidity: Optional[float] = None
    is_outlier: bool = False


@dataclass(frozen=True, slots=True)
class Gap:
    """An empty time slot: no reading was close enough to ``timestamp``."""

    timestamp: datetime


SampledPoint = Union[Reading, Gap]


@dataclass(frozen=True, slots=True)
class StatsSummary:
    average: float = 0.0
    minimum: float = 0.0
    maximum: float = 0.0
    count: int = 0


@dataclass(frozen=True, slots=True)
class WindowStats:
    """Full statistics for both channels around an anchor reading."""

    temperature: StatsSummary
    humidity: StatsSummary


@dataclass(frozen=True, slots=True)
class WindowAverages:
    temperature: float
    humidity: float


@dataclass(frozen=True, slots=True)
class EnrichedPoint:
    """A sampled point with the neighbourhood statistics attached for display."""

    point: SampledPoint
    small_window: Optional[WindowAverages] = None
    window: Optional[WindowStats] = None

    @property
    def is_gap(self) -> bool:
        return isinstance(self.point, Gap)
