"""Reduction of raw measurement values into summary statistics."""

from __future__ import annotations

from typing import Iterable

from models.records import StatsSummary


class StatsCalculator:
    """Pure reduction component that can be unit tested in isolation."""

    def reduce(self, values: Iterable[float]) -> StatsSummary:
        """Return average/minimum/maximum/count of ``values``.

        An empty input yields the zero record rather than ``None``; callers
        that need to tell "nothing fetched" apart from "everything filtered
        out" must do so before reducing.
        """
        count = 0
        total = 0.0
        minimum: float | None = None
        maximum: float | None = None

        for value in values:
            count += 1
            total += value
            if minimum is None or value < minimum:
                minimum = value
            if maximum is None or value > maximum:
                maximum = value

        if not count:
            return StatsSummary()

        return StatsSummary(
            average=total / count,
            minimum=minimum,
            maximum=maximum,
            count=count,
        )
