from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest
import typer
from typer.testing import CliRunner

from cli.app import app


class StubClient:
    def __init__(self, config) -> None:
        self.config = config
        self.history_calls: List[tuple[str, int, Optional[int]]] = []
        self.latest_payload: Dict[str, Any] = {
            "kind": "reading",
            "id": 42,
            "temperature": 23.25,
            "humidity": 41.0,
            "ac_outlet_temperature": None,
            "ac_outlet_humidity": None,
            "timestamp": "2024-01-01T00:00:00Z",
            "is_outlier": False,
        }
        self.history_payload: Dict[str, Any] = {
            "time_period": "1d",
            "start_time": "2023-12-31T00:00:00Z",
            "end_time": "2024-01-01T00:00:00Z",
            "total_count": 2880,
            "returned_count": 2,
            "data": [
                {"kind": "gap", "timestamp": "2023-12-31T00:00:00Z"},
                {
                    "kind": "reading",
                    "id": 42,
                    "temperature": 2.5,
                    "humidity": 41.0,
                    "timestamp": "2024-01-01T00:00:00Z",
                    "is_outlier": True,
                    "aggregated": {
                        "temperature": {"average": 22.0, "minimum": 21.0, "maximum": 23.0, "count": 6},
                        "humidity": {"average": 40.0, "minimum": 39.0, "maximum": 41.0, "count": 6},
                    },
                },
            ],
        }
        self.closed = False

    def health(self) -> Dict[str, Any]:
        return {"status": "healthy"}

    def get_latest(self) -> Dict[str, Any]:
        return self.latest_payload

    def get_history(self, period: str, points: int, aggregate_window: Optional[int] = None) -> Dict[str, Any]:
        self.history_calls.append((period, points, aggregate_window))
        return self.history_payload

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


def _install_stub(monkeypatch) -> StubClient:
    stub = StubClient(config=None)

    def factory(config):
        stub.config = config
        return stub

    monkeypatch.setattr("cli.app.ApiClient", factory)
    return stub


def test_health_uses_configured_base_url(monkeypatch, runner: CliRunner) -> None:
    stub = _install_stub(monkeypatch)

    result = runner.invoke(app, ["--base-url", "http://pi.local:38333/", "health"])

    assert result.exit_code == 0
    assert "http://pi.local:38333: healthy" in result.stdout
    assert stub.config.base_url == "http://pi.local:38333"
    assert stub.closed is True


def test_latest_command(monkeypatch, runner: CliRunner) -> None:
    stub = _install_stub(monkeypatch)

    result = runner.invoke(app, ["latest"])

    assert result.exit_code == 0
    assert "Latest Reading" in result.stdout
    assert "temperature: 23.25" in result.stdout
    assert "ac_outlet_temperature: -" in result.stdout
    assert stub.closed is True


def test_history_command_renders_gaps_and_window_stats(monkeypatch, runner: CliRunner) -> None:
    stub = _install_stub(monkeypatch)

    result = runner.invoke(app, ["history", "--period", "1d", "--points", "2", "-w", "3"])

    assert result.exit_code == 0
    assert stub.history_calls == [("1d", 2, 3)]
    assert "(no data)" in result.stdout
    assert "T avg=22.00" in result.stdout
    assert "outlier" in result.stdout
    assert "total_count: 2880" in result.stdout


def test_history_rejects_unknown_period(monkeypatch, runner: CliRunner) -> None:
    stub = _install_stub(monkeypatch)

    result = runner.invoke(app, ["history", "--period", "2d"])

    assert result.exit_code != 0
    assert stub.history_calls == []


def test_http_errors_exit_with_code_one(monkeypatch, runner: CliRunner) -> None:
    stub = _install_stub(monkeypatch)

    def failing_latest() -> Dict[str, Any]:
        raise typer.Exit(code=1)

    stub.get_latest = failing_latest  # type: ignore[method-assign]

    result = runner.invoke(app, ["latest"])

    assert result.exit_code == 1
    assert stub.closed is True
