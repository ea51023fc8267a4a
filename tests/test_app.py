from datetime import datetime, timedelta, timezone
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from datastore.base import StorageUnavailable
from datastore.memory_store import InMemoryReadingStore
from datastore.sqlite_store import build_default_store
from models.records import NewReading
from services.cancellation import OperationCancelled
from services.collector import build_default_collector
from services.series import SeriesService, build_default_service
from settings import get_settings

T0 = datetime(2024, 4, 1, tzinfo=timezone.utc)


class BrokenStore(InMemoryReadingStore):
    def fetch_latest(self, *, deadline=None):
        raise StorageUnavailable("database is down")


class TimedOutStore(InMemoryReadingStore):
    def fetch_latest(self, *, deadline=None):
        raise OperationCancelled("Query interrupted by deadline.")

    def fetch_ordered_in_range(self, start, end, *, deadline=None):
        raise OperationCancelled("Query interrupted by deadline.")


@pytest.fixture
def store() -> InMemoryReadingStore:
    store = InMemoryReadingStore()
    for index in range(10):
        store.insert(
            NewReading(
                temperature=0.5 if index == 4 else 20.0 + index,
                humidity=40.0,
                timestamp=T0 + timedelta(minutes=index),
            )
        )
    return store


def _client_for(store, monkeypatch) -> TestClient:
    service = SeriesService(store)
    monkeypatch.setattr("app.api.build_default_service", lambda: service)
    monkeypatch.setenv("SENSOR_MAIN_URL", "")
    return TestClient(create_app())


@pytest.fixture
def api_client(store, monkeypatch) -> Iterator[TestClient]:
    with _client_for(store, monkeypatch) as client:
        yield client


def test_lifespan_clears_cached_factories(monkeypatch) -> None:
    monkeypatch.setenv("SENSOR_DB_PATH", "")
    monkeypatch.setenv("SENSOR_MAIN_URL", "")
    get_settings.cache_clear()
    build_default_store.cache_clear()
    try:
        with TestClient(create_app()):
            service_during = build_default_service()
            assert build_default_collector() is None

        assert build_default_service() is not service_during
    finally:
        build_default_service.cache_clear()
        build_default_collector.cache_clear()
        build_default_store.cache_clear()
        get_settings.cache_clear()


def test_health(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "healthy"}
    assert api_client.get("/").status_code == 200


def test_latest_returns_newest_reading(api_client: TestClient) -> None:
    response = api_client.get("/api/temp/latest")

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == 10
    assert body["kind"] == "reading"
    assert body["temperature"] == 29.0
    assert body["is_outlier"] is False
    assert body["ac_outlet_temperature"] is None


def test_latest_on_empty_store_is_not_found(monkeypatch) -> None:
    with _client_for(InMemoryReadingStore(), monkeypatch) as client:
        response = client.get("/api/temp/latest")

    assert response.status_code == 404


def test_storage_failure_maps_to_service_unavailable(monkeypatch) -> None:
    with _client_for(BrokenStore(), monkeypatch) as client:
        response = client.get("/api/temp/latest")

    assert response.status_code == 503


def test_expired_deadline_maps_to_gateway_timeout(monkeypatch) -> None:
    with _client_for(TimedOutStore(), monkeypatch) as client:
        latest = client.get("/api/temp/latest")
        history = client.get("/api/temp/history", params={"time_period": "1d"})

    assert latest.status_code == 504
    assert history.status_code == 504


def test_history_time_mode_samples_range(api_client: TestClient) -> None:
    response = api_client.get(
        "/api/temp/history",
        params={
            "start_time": T0.isoformat(),
            "end_time": (T0 + timedelta(minutes=9)).isoformat(),
            "limit": 5,
            "include_aggregates": "true",
            "aggregate_window": 2,
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["returned_count"] == 5
    assert body["total_count"] == 10
    assert body["aggregation"] == {"enabled": True, "window_size": 2}
    assert [point["id"] for point in body["data"]] == [1, 3, 5, 8, 10]
    assert body["data"][2]["is_outlier"] is True
    third = body["data"][2]["aggregated"]["temperature"]
    # ids 3..7 around id 5, whose own reading is a fault.
    assert third["count"] == 4
    assert body["data"][0]["default_aggregated"] is not None


def test_history_gaps_are_explicit(api_client: TestClient) -> None:
    response = api_client.get(
        "/api/temp/history",
        params={
            "start_time": (T0 - timedelta(days=1)).isoformat(),
            "end_time": (T0 - timedelta(hours=1)).isoformat(),
            "limit": 3,
        },
    )

    body = response.json()
    assert body["returned_count"] == 3
    assert body["total_count"] == 0
    assert [point["kind"] for point in body["data"]] == ["gap", "gap", "gap"]
    assert all(point["temperature"] is None and point["id"] is None for point in body["data"])


def test_history_time_period_defaults_end_to_now(api_client: TestClient) -> None:
    response = api_client.get("/api/temp/history", params={"time_period": "1w", "limit": 4})

    body = response.json()
    assert response.status_code == 200
    assert body["time_period"] == "1w"
    start = datetime.fromisoformat(body["start_time"].replace("Z", "+00:00"))
    end = datetime.fromisoformat(body["end_time"].replace("Z", "+00:00"))
    assert end - start == timedelta(weeks=1)
    assert len(body["data"]) == 4
    assert body["aggregation"]["enabled"] is False


def test_history_end_time_alone_selects_time_mode(api_client: TestClient) -> None:
    end = T0 + timedelta(minutes=9)

    body = api_client.get(
        "/api/temp/history", params={"end_time": end.isoformat(), "limit": 2}
    ).json()

    start = datetime.fromisoformat(body["start_time"].replace("Z", "+00:00"))
    assert end - start == timedelta(days=1)
    assert body["total_count"] == 10
    assert [point["id"] for point in body["data"]] == [1, 10]


def test_history_rejects_reversed_range(api_client: TestClient) -> None:
    response = api_client.get(
        "/api/temp/history",
        params={
            "start_time": (T0 + timedelta(hours=1)).isoformat(),
            "end_time": T0.isoformat(),
        },
    )

    assert response.status_code == 400


def test_history_rejects_out_of_range_window(api_client: TestClient) -> None:
    response = api_client.get(
        "/api/temp/history",
        params={"time_period": "1d", "include_aggregates": "true", "aggregate_window": 501},
    )

    assert response.status_code == 422


def test_history_paging_and_stride_modes(api_client: TestClient) -> None:
    paged = api_client.get("/api/temp/history", params={"limit": 3, "offset": 2}).json()
    assert [point["id"] for point in paged["data"]] == [8, 7, 6]
    assert paged["total_count"] is None

    strided = api_client.get("/api/temp/history", params={"limit": 3, "term": 4}).json()
    assert [point["id"] for point in strided["data"]] == [10, 6, 2]
    assert strided["term"] == 4


def test_history_limit_is_clamped(api_client: TestClient) -> None:
    body = api_client.get("/api/temp/history", params={"limit": 5000}).json()

    assert body["limit"] == 1000
    assert len(body["data"]) == 10
