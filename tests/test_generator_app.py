from __future__ import annotations

from typing import Iterator, List

import pytest
from fastapi.testclient import TestClient

from app.main import create_generator_app
from models.records import SensorReading
from services.generator import GeneratorService


class NullClient:
    def __init__(self) -> None:
        self.sent: List[SensorReading] = []

    def send_one(self, reading: SensorReading) -> None:
        self.sent.append(reading)


def _install_generator(monkeypatch) -> List[GeneratorService]:
    built: List[GeneratorService] = []

    def build_test_generator() -> GeneratorService:
        if not built:
            built.append(
                GeneratorService(client=NullClient(), sensor_type="humidity", frequency="1h")
            )
        return built[0]

    def cache_clear() -> None:
        built.clear()

    build_test_generator.cache_clear = cache_clear  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_generator", build_test_generator)
    monkeypatch.setattr("app.generator_api.build_default_generator", build_test_generator)
    return built


@pytest.fixture
def api_client(monkeypatch) -> Iterator[TestClient]:
    _install_generator(monkeypatch)
    app = create_generator_app(autostart=False)
    with TestClient(app) as client:
        yield client


def test_health(api_client: TestClient) -> None:
    response = api_client.get("/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "success"
    assert payload["data"]["service"] == "sensor-generator"
    assert response.headers["X-Request-ID"]
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_status_reports_stopped_generator(api_client: TestClient) -> None:
    payload = api_client.get("/status").json()

    assert payload["status"] == "success"
    data = payload["data"]
    assert data["is_running"] is False
    assert data["sensor_type"] == "humidity"
    assert data["frequency"] == "1h0m0s"
    assert data["frequency_seconds"] == 3600
    assert data["total_sent"] == 0
    assert data["last_generated"] is None


def test_start_and_stop_lifecycle(api_client: TestClient) -> None:
    started = api_client.post("/start")
    assert started.status_code == 200
    assert started.json() == {"status": "success", "message": "Generator started"}
    assert api_client.get("/status").json()["data"]["is_running"] is True

    again = api_client.post("/start")
    assert again.status_code == 409
    assert again.json()["status"] == "error"
    assert again.json()["message"] == "Generator is already running"

    stopped = api_client.post("/stop")
    assert stopped.status_code == 200
    assert api_client.get("/status").json()["data"]["is_running"] is False

    stopped_again = api_client.post("/stop")
    assert stopped_again.status_code == 409
    assert stopped_again.json()["message"] == "Generator is not running"


def test_update_and_read_frequency(api_client: TestClient) -> None:
    response = api_client.post("/frequency", json={"frequency": "90s"})

    assert response.status_code == 200
    assert response.json()["data"] == {"frequency": "90s", "duration": "1m30s"}

    current = api_client.get("/frequency").json()["data"]
    assert current["duration"] == "1m30s"


def test_frequency_change_while_running_keeps_generator_running(api_client: TestClient) -> None:
    api_client.post("/start")
    try:
        response = api_client.post("/frequency", json={"frequency": "2h"})
        assert response.status_code == 200
        assert api_client.get("/status").json()["data"]["is_running"] is True
    finally:
        api_client.post("/stop")


@pytest.mark.parametrize("value", ["fast", "0s", "-5s", "10"])
def test_invalid_frequency_is_rejected(api_client: TestClient, value: str) -> None:
    response = api_client.post("/frequency", json={"frequency": value})

    assert response.status_code == 400
    payload = response.json()
    assert payload["status"] == "error"
    assert payload["message"] == "Invalid frequency format"
    assert api_client.get("/frequency").json()["data"]["duration"] == "1h0m0s"


def test_malformed_body_is_bad_request(api_client: TestClient) -> None:
    response = api_client.post("/frequency", json={"cadence": "1s"})

    assert response.status_code == 400
    assert response.json()["status"] == "error"
    assert "frequency" in response.json()["error"]


def test_autostart_runs_generator_and_shutdown_stops_it(monkeypatch) -> None:
    built = _install_generator(monkeypatch)
    app = create_generator_app(autostart=True)

    with TestClient(app) as client:
        assert client.get("/status").json()["data"]["is_running"] is True
        generator = built[0]

    assert generator.is_running() is False
    assert generator.active_loops == 0
    assert built == []
