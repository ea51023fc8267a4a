"""Periodic polling of the sensor HTTP endpoints."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional, Tuple

import httpx

from datastore.base import ReadingStore
from datastore.sqlite_store import build_default_store
from models.records import NewReading, Reading
from settings import get_settings

logger = logging.getLogger(__name__)


class CollectionError(Exception):
    """A polling cycle could not produce a reading."""


class SensorCollector:
    """Polls the main and secondary sensors and stores one reading per cycle.

    The main sensor is mandatory; when the secondary sensor fails the cycle
    still stores a reading with the secondary values left empty.
    """

    def __init__(
        self,
        store: ReadingStore,
        main_url: str,
        secondary_url: Optional[str] = None,
        interval: float = 30.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.store = store
        self.main_url = main_url
        self.secondary_url = secondary_url
        self.interval = interval
        self._client = client or httpx.Client(timeout=10.0)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def collect_once(self) -> Reading:
        """Run a single polling cycle and return the stored reading."""
        temperature, humidity = self._fetch(self.main_url, "main")

        secondary_temperature: Optional[float] = None
        secondary_humidity: Optional[float] = None
        if self.secondary_url:
            try:
                secondary_temperature, secondary_humidity = self._fetch(
                    self.secondary_url, "secondary"
                )
            except CollectionError as exc:
                logger.warning(
                    "Secondary sensor unavailable, storing main values only",
                    extra={"sensor": "secondary", "reason": str(exc)},
                )

        reading = self.store.insert(
            NewReading(
                temperature=temperature,
                humidity=humidity,
                timestamp=datetime.now(timezone.utc),
                secondary_temperature=secondary_temperature,
                secondary_humidity=secondary_humidity,
            )
        )
        logger.info(
            "Collected sensor data: T=%.2f H=%.2f",
            reading.temperature,
            reading.humidity,
            extra={"reading_id": reading.id},
        )
        return reading

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="sensor-collector", daemon=True
        )
        self._thread.start()
        logger.info(
            "Started periodic collection every %ss from %s", self.interval, self.main_url
        )

    def shutdown(self, timeout: float = 5.0) -> None:
        """Stop the polling thread and release the HTTP client."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        self._client.close()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.collect_once()
            except Exception as exc:  # noqa: BLE001 - a failed cycle must not stop polling
                logger.error(
                    "Error collecting sensor data",
                    extra={"status": "failed", "reason": str(exc)},
                )
            self._stop.wait(self.interval)

    def _fetch(self, url: str, sensor: str) -> Tuple[float, float]:
        try:
            response = self._client.get(url)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise CollectionError(
                f"{sensor} sensor returned status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise CollectionError(f"failed to fetch data from {sensor} sensor: {exc}") from exc
        except ValueError as exc:
            raise CollectionError(f"failed to decode {sensor} sensor response") from exc

        try:
            return float(payload["temperature"]), float(payload["humidity"])
        except (KeyError, TypeError, ValueError) as exc:
            raise CollectionError(f"{sensor} sensor response missing measurements") from exc


@lru_cache
def build_default_collector() -> Optional[SensorCollector]:
    """Collector for the configured sensors, or ``None`` when none is set."""
    settings = get_settings()
    if not settings.main_sensor_url:
        return None
    return SensorCollector(
        store=build_default_store(),
        main_url=settings.main_sensor_url,
        secondary_url=settings.secondary_sensor_url,
        interval=settings.collection_interval,
    )
