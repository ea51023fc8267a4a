"""Sensor-fault heuristic applied to every reading on read."""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List

from models.records import Reading

# The DHT22 reports implausibly low temperatures when it glitches; anything at
# or below this bound is treated as a faulty sample, not a real cold spell.
OUTLIER_TEMPERATURE_THRESHOLD = 3.0


def is_outlier(temperature: float) -> bool:
    return temperature <= OUTLIER_TEMPERATURE_THRESHOLD


def mark_outlier(reading: Reading) -> Reading:
    flagged = is_outlier(reading.temperature)
    if flagged == reading.is_outlier:
        return reading
    return replace(reading, is_outlier=flagged)


def mark_outliers(readings: Iterable[Reading]) -> List[Reading]:
    """Return the readings with ``is_outlier`` recomputed."""
    return [mark_outlier(reading) for reading in readings]
