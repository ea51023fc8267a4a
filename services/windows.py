"""Neighbourhood statistics around a sampled reading."""

from __future__ import annotations

from typing import Optional

from datastore.base import ReadingStore
from models.records import Reading, WindowAverages, WindowStats
from services.aggregator import StatsCalculator
from services.cancellation import Deadline
from services.outliers import is_outlier

SMALL_WINDOW_RADIUS = 3
DEFAULT_WINDOW_RADIUS = 100
MIN_WINDOW_RADIUS = 1
MAX_WINDOW_RADIUS = 500


def window_bounds(anchor_id: int, radius: int) -> tuple[int, int]:
    """Identifier range ``anchor_id +/- radius`` with the lower end clamped to 1."""
    return max(1, anchor_id - radius), anchor_id + radius


class WindowAggregator:
    """Computes statistics over the readings stored next to an anchor.

    Neighbourhoods are taken by identifier, not by time: ids are assigned in
    insertion order, so ``+/- radius`` ids approximates ``+/- radius`` polling
    cycles.
    """

    def __init__(self, store: ReadingStore, calculator: Optional[StatsCalculator] = None) -> None:
        self.store = store
        self.calculator = calculator or StatsCalculator()

    def aggregate(
        self,
        anchor: Reading,
        radius: int,
        *,
        deadline: Optional[Deadline] = None,
    ) -> Optional[WindowStats]:
        """Return stats for the window, or ``None`` when it holds no readings.

        Outliers are dropped from both channels using the temperature test, so
        a window of nothing but outliers yields zero-count stats, not ``None``.
        """
        low_id, high_id = window_bounds(anchor.id, radius)
        neighbours = self.store.fetch_id_range(low_id, high_id, deadline=deadline)
        if not neighbours:
            return None

        kept = [reading for reading in neighbours if not is_outlier(reading.temperature)]
        return WindowStats(
            temperature=self.calculator.reduce(reading.temperature for reading in kept),
            humidity=self.calculator.reduce(reading.humidity for reading in kept),
        )

    def small_window_averages(
        self, anchor: Reading, *, deadline: Optional[Deadline] = None
    ) -> Optional[WindowAverages]:
        stats = self.aggregate(anchor, SMALL_WINDOW_RADIUS, deadline=deadline)
        if stats is None:
            return None
        return WindowAverages(
            temperature=stats.temperature.average,
            humidity=stats.humidity.average,
        )

    def configurable_window_stats(
        self, anchor: Reading, radius: int, *, deadline: Optional[Deadline] = None
    ) -> Optional[WindowStats]:
        if not MIN_WINDOW_RADIUS <= radius <= MAX_WINDOW_RADIUS:
            raise ValueError(
                f"Window radius must be between {MIN_WINDOW_RADIUS} and {MAX_WINDOW_RADIUS}."
            )
        return self.aggregate(anchor, radius, deadline=deadline)
