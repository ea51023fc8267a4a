from __future__ import annotations

import httpx
import pytest
import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config


def _client_with(handler) -> ApiClient:
    client = ApiClient(CLIConfig(base_url="http://sensors.test"))
    client._client = httpx.Client(
        base_url="http://sensors.test", transport=httpx.MockTransport(handler)
    )
    return client


def test_get_history_sends_aggregation_params() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.url.params)
        seen["path"] = request.url.path
        return httpx.Response(200, json={"data": []})

    client = _client_with(handler)
    try:
        payload = client.get_history("1w", 25, aggregate_window=100)
    finally:
        client.close()

    assert payload == {"data": []}
    assert seen == {
        "path": "/api/temp/history",
        "time_period": "1w",
        "limit": "25",
        "include_aggregates": "true",
        "aggregate_window": "100",
    }


def test_http_error_detail_is_reported(capsys) -> None:
    client = _client_with(
        lambda request: httpx.Response(503, json={"detail": "Sensor data storage is unavailable."})
    )

    with pytest.raises(typer.Exit) as excinfo:
        client.get_latest()
    client.close()

    assert excinfo.value.exit_code == 1
    assert "Sensor data storage is unavailable." in capsys.readouterr().err


def test_load_config_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("API_BASE_URL", "http://example.test:9000/")
    monkeypatch.setenv("CLI_REQUEST_TIMEOUT", "not-a-number")

    config = load_config()

    assert config.base_url == "http://example.test:9000"
    assert config.timeout == 10.0
