"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from models.records import EnrichedPoint, Gap, Reading, StatsSummary, WindowStats


class TimePeriod(str, Enum):
    """Preset history ranges offered by the dashboard."""

    day = "1d"
    week = "1w"
    month = "1m"
    year = "1y"

    @property
    def span(self) -> timedelta:
        return _PERIOD_SPANS[self]


_PERIOD_SPANS = {
    TimePeriod.day: timedelta(days=1),
    TimePeriod.week: timedelta(weeks=1),
    TimePeriod.month: timedelta(days=30),
    TimePeriod.year: timedelta(days=365),
}


class ChannelStats(BaseModel):
    average: float
    maximum: float
    minimum: float
    count: int = Field(..., ge=0, description="Non-outlier readings used for the stats.")

    @classmethod
    def from_summary(cls, summary: StatsSummary) -> "ChannelStats":
        return cls(
            average=summary.average,
            maximum=summary.maximum,
            minimum=summary.minimum,
            count=summary.count,
        )


class AggregatedValues(BaseModel):
    """Full statistics over the requested +/- window."""

    temperature: ChannelStats
    humidity: ChannelStats

    @classmethod
    def from_stats(cls, stats: WindowStats) -> "AggregatedValues":
        return cls(
            temperature=ChannelStats.from_summary(stats.temperature),
            humidity=ChannelStats.from_summary(stats.humidity),
        )


class DefaultAggregatedValues(BaseModel):
    """Averages over the fixed +/-3 window used for the main chart line."""

    temperature: float
    humidity: float


class ReadingOut(BaseModel):
    """A reading or an empty slot.

    Gaps have ``kind == "gap"`` and null measurements; a real reading of 0.0
    is never reported as missing.
    """

    kind: Literal["reading", "gap"] = "reading"
    id: Optional[int] = None
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    ac_outlet_temperature: Optional[float] = None
    ac_outlet_humidity: Optional[float] = None
    timestamp: datetime
    is_outlier: bool = False
    default_aggregated: Optional[DefaultAggregatedValues] = None
    aggregated: Optional[AggregatedValues] = None

    @classmethod
    def from_reading(cls, reading: Reading) -> "ReadingOut":
        return cls(
            id=reading.id,
            temperature=reading.temperature,
            humidity=reading.humidity,
            ac_outlet_temperature=reading.secondary_temperature,
            ac_outlet_humidity=reading.secondary_humidity,
            timestamp=reading.timestamp,
            is_outlier=reading.is_outlier,
        )

    @classmethod
    def from_point(cls, enriched: EnrichedPoint) -> "ReadingOut":
        point = enriched.point
        if isinstance(point, Gap):
            return cls(kind="gap", timestamp=point.timestamp)
        out = cls.from_reading(point)
        if enriched.small_window is not None:
            out.default_aggregated = DefaultAggregatedValues(
                temperature=enriched.small_window.temperature,
                humidity=enriched.small_window.humidity,
            )
        if enriched.window is not None:
            out.aggregated = AggregatedValues.from_stats(enriched.window)
        return out


class AggregationMetadata(BaseModel):
    enabled: bool
    window_size: int


class HistoryResponse(BaseModel):
    """Payload for ``/api/temp/history`` in both time and paging modes."""

    data: List[ReadingOut] = Field(default_factory=list)
    limit: int
    offset: int = 0
    term: int = 0
    time_period: Optional[TimePeriod] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    total_count: Optional[int] = None
    returned_count: Optional[int] = None
    aggregation: Optional[AggregationMetadata] = None
