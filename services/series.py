"""Assembly of display-ready reading series."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache
from typing import List, Optional

from datastore.base import ReadingStore
from datastore.sqlite_store import build_default_store
from models.records import EnrichedPoint, Gap, Reading, SampledPoint
from services.cancellation import Deadline
from services.outliers import mark_outlier, mark_outliers
from services.sampler import TimeSeriesSampler
from services.windows import MAX_WINDOW_RADIUS, MIN_WINDOW_RADIUS, WindowAggregator

logger = logging.getLogger(__name__)


@dataclass
class SeriesResult:
    points: List[EnrichedPoint] = field(default_factory=list)
    total_count: int = 0

    @property
    def returned_count(self) -> int:
        return len(self.points)


class SeriesService:
    """Coordinates the store, the sampler and window aggregation.

    Holds no per-request state, so one instance is shared by every request.
    """

    def __init__(
        self,
        store: ReadingStore,
        sampler: Optional[TimeSeriesSampler] = None,
        windows: Optional[WindowAggregator] = None,
    ) -> None:
        self.store = store
        self.sampler = sampler or TimeSeriesSampler()
        self.windows = windows or WindowAggregator(store)

    def build_series(
        self,
        start: datetime,
        end: datetime,
        point_count: int,
        include_window_stats: bool,
        window_radius: int,
        *,
        deadline: Optional[Deadline] = None,
    ) -> SeriesResult:
        """Sample ``point_count`` points over ``[start, end]`` and enrich them.

        Every real point gets the small-window averages; the configurable
        window is only computed when ``include_window_stats`` is set. Gaps
        carry no aggregates.
        """
        if include_window_stats and not MIN_WINDOW_RADIUS <= window_radius <= MAX_WINDOW_RADIUS:
            raise ValueError(
                f"Window radius must be between {MIN_WINDOW_RADIUS} and {MAX_WINDOW_RADIUS}."
            )
        started = time.perf_counter()
        readings = self.store.fetch_ordered_in_range(start, end, deadline=deadline)
        total_count = self.store.count_in_range(start, end, deadline=deadline)
        sampled = self.sampler.sample(readings, start, end, point_count)

        points = [
            self._enrich(point, include_window_stats, window_radius, deadline)
            for point in sampled
        ]
        result = SeriesResult(points=points, total_count=total_count)

        logger.info(
            "Built reading series",
            extra={
                "point_count": result.returned_count,
                "total_count": total_count,
                "gap_count": sum(1 for point in points if point.is_gap),
                "window_radius": window_radius if include_window_stats else None,
                "elapsed_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return result

    def latest(self, *, deadline: Optional[Deadline] = None) -> Optional[Reading]:
        reading = self.store.fetch_latest(deadline=deadline)
        return mark_outlier(reading) if reading is not None else None

    def page(
        self, limit: int, offset: int, *, deadline: Optional[Deadline] = None
    ) -> List[Reading]:
        """Newest-first page of raw readings."""
        return mark_outliers(self.store.fetch_page(limit, offset, deadline=deadline))

    def stride(
        self, limit: int, term: int, *, deadline: Optional[Deadline] = None
    ) -> List[Reading]:
        """Every ``term``-th reading by id, walking back from the latest one."""
        latest = self.store.fetch_latest(deadline=deadline)
        if latest is None:
            return []
        target_ids = [latest.id - i * term for i in range(limit)]
        target_ids = [target_id for target_id in target_ids if target_id > 0]
        if not target_ids:
            return []
        return mark_outliers(self.store.fetch_ids(target_ids, deadline=deadline))

    def _enrich(
        self,
        point: SampledPoint,
        include_window_stats: bool,
        window_radius: int,
        deadline: Optional[Deadline],
    ) -> EnrichedPoint:
        if isinstance(point, Gap):
            return EnrichedPoint(point=point)
        small_window = self.windows.small_window_averages(point, deadline=deadline)
        window = None
        if include_window_stats:
            window = self.windows.configurable_window_stats(
                point, window_radius, deadline=deadline
            )
        return EnrichedPoint(point=point, small_window=small_window, window=window)


@lru_cache
def build_default_service() -> SeriesService:
    """Factory that wires the series service to the configured store."""
    return SeriesService(store=build_default_store())
