"""Even-in-time down-sampling of an irregular reading log."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from models.records import Gap, Reading, SampledPoint
from services.outliers import mark_outlier


class TimeSeriesSampler:
    """Picks ``count`` representative points spread evenly over a time range.

    The last slot always holds the most recent reading so the "now" value is
    never stale. The other slots take the reading nearest their target time,
    but only within two slot widths; otherwise the slot becomes a :class:`Gap`.
    """

    tolerance_slots = 2

    def sample(
        self,
        readings: Sequence[Reading],
        start: datetime,
        end: datetime,
        count: int,
    ) -> List[SampledPoint]:
        """Select exactly ``count`` points from ``readings`` (ascending by time)."""
        if count < 1:
            raise ValueError("count must be at least 1.")

        if readings and count == 1:
            return [mark_outlier(readings[-1])]

        if end < start:
            raise ValueError("end must not be before start.")

        if not readings:
            step = (end - start) / count
            return [Gap(timestamp=start + i * step) for i in range(count)]

        most_recent = readings[-1]

        slots = count - 1
        step = (end - start) / slots
        tolerance = step * self.tolerance_slots

        result: List[SampledPoint] = []
        for i in range(slots):
            target = start + i * step
            closest = self._closest(readings, target, tolerance, most_recent.timestamp)
            if closest is None:
                result.append(Gap(timestamp=target))
            else:
                result.append(mark_outlier(closest))

        result.append(mark_outlier(most_recent))
        return result

    @staticmethod
    def _closest(
        readings: Sequence[Reading],
        target: datetime,
        tolerance: timedelta,
        reserved_timestamp: datetime,
    ) -> Optional[Reading]:
        best: Optional[Reading] = None
        best_diff = None
        for reading in readings:
            # Anything sharing the reserved timestamp belongs to the final slot.
            if reading.timestamp == reserved_timestamp:
                continue
            diff = abs(target - reading.timestamp)
            if diff > tolerance:
                continue
            if best_diff is None or diff < best_diff:
                best = reading
                best_diff = diff
        return best
