from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from models.records import SensorReading
from services.errors import (
    AlreadyRunningError,
    InvalidCadenceError,
    NotRunningError,
    TransportError,
)
from services.generator import GeneratorService

FIXED_NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


class RecordingClient:
    def __init__(self, fail: bool = False, wait_for: int = 3) -> None:
        self.fail = fail
        self.sent: List[SensorReading] = []
        self.loops_seen: List[int] = []
        self.generator: Optional[GeneratorService] = None
        self.reached = threading.Event()
        self.wait_for = wait_for
        self.closed = False

    def send_one(self, reading: SensorReading) -> None:
        if self.generator is not None:
            self.loops_seen.append(self.generator.active_loops)
        self.sent.append(reading)
        if len(self.sent) >= self.wait_for:
            self.reached.set()
        if self.fail:
            raise TransportError("storage unavailable")

    def close(self) -> None:
        self.closed = True


def _generator(client: RecordingClient, frequency: str = "10ms") -> GeneratorService:
    generator = GeneratorService(
        client=client,
        sensor_type="temperature",
        frequency=frequency,
        clock=lambda: FIXED_NOW,
    )
    client.generator = generator
    return generator


def test_start_twice_is_rejected() -> None:
    generator = _generator(RecordingClient(), frequency="1h")
    generator.start()
    try:
        with pytest.raises(AlreadyRunningError):
            generator.start()
        assert generator.is_running() is True
    finally:
        generator.stop()


def test_stop_when_stopped_is_rejected() -> None:
    generator = _generator(RecordingClient(), frequency="1h")

    with pytest.raises(NotRunningError):
        generator.stop()

    generator.start()
    generator.stop()
    assert generator.is_running() is False
    with pytest.raises(NotRunningError):
        generator.stop()


def test_tick_counts_successful_sends() -> None:
    client = RecordingClient()
    generator = _generator(client)

    assert generator.tick() is True
    assert generator.tick() is True

    status = generator.status()
    assert status.total_sent == 2
    assert status.errors == 0
    assert status.last_generated == FIXED_NOW
    assert all(reading.sensor_type == "temperature" for reading in client.sent)


def test_tick_counts_transport_failures() -> None:
    generator = _generator(RecordingClient(fail=True))

    assert generator.tick() is False

    status = generator.status()
    assert status.total_sent == 0
    assert status.errors == 1
    assert status.last_generated is None


def test_running_loop_sends_readings_until_stopped() -> None:
    client = RecordingClient(wait_for=3)
    generator = _generator(client)

    generator.start()
    assert client.reached.wait(timeout=5.0)
    generator.stop()

    sent_at_stop = len(client.sent)
    assert generator.status().total_sent == sent_at_stop
    assert generator.active_loops == 0
    # No further ticks after stop returns.
    time.sleep(0.05)
    assert len(client.sent) == sent_at_stop


def test_failing_transport_keeps_loop_alive() -> None:
    client = RecordingClient(fail=True, wait_for=3)
    generator = _generator(client)

    generator.start()
    assert client.reached.wait(timeout=5.0)
    generator.stop()

    assert generator.status().errors >= 3
    assert generator.status().total_sent == 0


def test_set_cadence_while_running_keeps_one_loop() -> None:
    client = RecordingClient(wait_for=1_000_000)
    generator = _generator(client)

    generator.start()
    try:
        for frequency in ("5ms", "15ms", "10ms", "20ms"):
            generator.set_cadence(frequency)
            assert generator.is_running() is True
            assert generator.active_loops <= 1
    finally:
        generator.stop()

    assert generator.get_cadence() == timedelta(milliseconds=20)
    assert generator.active_loops == 0
    assert all(count == 1 for count in client.loops_seen)


def test_set_cadence_when_stopped_does_not_start() -> None:
    generator = _generator(RecordingClient(), frequency="1h")

    result = generator.set_cadence("2s")

    assert result == timedelta(seconds=2)
    assert generator.get_cadence() == timedelta(seconds=2)
    assert generator.is_running() is False


def test_invalid_cadence_leaves_state_unchanged() -> None:
    generator = _generator(RecordingClient(), frequency="3s")

    with pytest.raises(InvalidCadenceError):
        generator.set_cadence("fast")
    with pytest.raises(InvalidCadenceError):
        generator.set_cadence("0s")

    assert generator.get_cadence() == timedelta(seconds=3)


def test_invalid_initial_frequency_falls_back_to_one_second() -> None:
    generator = _generator(RecordingClient(), frequency="whenever")

    assert generator.get_cadence() == timedelta(seconds=1)


def test_status_snapshot_reports_configuration() -> None:
    generator = _generator(RecordingClient(), frequency="1m30s")

    status = generator.status()

    assert status.is_running is False
    assert status.sensor_type == "temperature"
    assert status.frequency == timedelta(seconds=90)
    assert status.total_sent == 0


def test_shutdown_stops_loop_and_closes_client() -> None:
    client = RecordingClient()
    generator = _generator(client, frequency="1h")
    generator.start()

    generator.shutdown()

    assert generator.is_running() is False
    assert generator.active_loops == 0
    assert client.closed is True


def test_concurrent_starts_allow_exactly_one() -> None:
    generator = _generator(RecordingClient(), frequency="1h")
    outcomes: List[str] = []
    lock = threading.Lock()

    def attempt() -> None:
        try:
            generator.start()
        except AlreadyRunningError:
            result = "rejected"
        else:
            result = "started"
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=attempt) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    try:
        assert outcomes.count("started") == 1
        assert outcomes.count("rejected") == 7
        assert generator.active_loops <= 1
    finally:
        generator.stop()
