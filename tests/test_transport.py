from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List

import pytest
from sqlalchemy.exc import SQLAlchemyError

from datastore.database import build_engine, build_session_factory, create_tables
from datastore.sensor_repository import SensorRepository
from models.records import SensorReading
from services.errors import ApplicationRejectedError, TransportError
from transport.client import SensorClient
from transport.codec import batch_from_wire, batch_to_wire, from_wire, to_wire
from transport.messages import SensorData, SensorDataBatch
from transport.server import SensorServicer, TransportServer

TIMESTAMP = datetime(2024, 3, 1, 9, 15, 30, tzinfo=timezone.utc)


def _reading(index: int = 0) -> SensorReading:
    return SensorReading(
        sensor_value=20.5 + index,
        sensor_type="temperature",
        id1="DEADBEEF",
        id2=42 + index,
        timestamp=TIMESTAMP,
    )


class FailingRepository:
    def create(self, reading: SensorReading):
        raise SQLAlchemyError("disk full")

    def create_batch(self, readings: List[SensorReading]) -> int:
        raise SQLAlchemyError("disk full")


@pytest.fixture
def repository(tmp_path: Path) -> SensorRepository:
    engine = build_engine(f"sqlite:///{tmp_path / 'grpc.db'}")
    create_tables(engine)
    return SensorRepository(build_session_factory(engine))


def _serve(repository) -> Iterator[SensorClient]:
    server = TransportServer(repository, address="localhost:0", workers=2)
    port = server.start()
    client = SensorClient(f"localhost:{port}")
    try:
        yield client
    finally:
        client.close()
        server.stop(grace=None)


@pytest.fixture
def client(repository: SensorRepository) -> Iterator[SensorClient]:
    yield from _serve(repository)


@pytest.fixture
def failing_client() -> Iterator[SensorClient]:
    yield from _serve(FailingRepository())


def test_send_one_persists_reading(client: SensorClient, repository: SensorRepository) -> None:
    client.send_one(_reading())

    page = repository.list()
    assert page.total == 1
    stored = page.data[0]
    assert stored.to_reading() == _reading()


def test_send_batch_persists_all_readings(client: SensorClient, repository: SensorRepository) -> None:
    client.send_batch([_reading(i) for i in range(3)])

    assert repository.list().total == 3
    assert [item.id2 for item in repository.get_by_time_window(TIMESTAMP, TIMESTAMP)] == [42, 43, 44]


def test_health_check_reports_serving(client: SensorClient) -> None:
    client.health_check()


def test_storage_failure_is_reported_as_rejection(failing_client: SensorClient) -> None:
    with pytest.raises(ApplicationRejectedError) as excinfo:
        failing_client.send_one(_reading())

    assert "disk full" in excinfo.value.reason
    assert str(excinfo.value).startswith("server error:")

    with pytest.raises(ApplicationRejectedError):
        failing_client.send_batch([_reading(1)])


def test_unreachable_server_raises_transport_error() -> None:
    client = SensorClient("localhost:1", single_timeout=0.5, health_timeout=0.5)
    try:
        with pytest.raises(TransportError) as excinfo:
            client.send_one(_reading())
        assert not isinstance(excinfo.value, ApplicationRejectedError)

        with pytest.raises(TransportError):
            client.health_check()
    finally:
        client.close()


def test_wire_conversion_normalizes_timestamps_to_utc() -> None:
    naive = SensorReading(
        sensor_value=1.0,
        sensor_type="light",
        id1="ABC",
        id2=3,
        timestamp=datetime(2024, 3, 1, 9, 15, 30),
    )

    message = to_wire(naive)

    assert message.timestamp.ToDatetime(tzinfo=timezone.utc) == TIMESTAMP
    assert batch_from_wire(batch_to_wire([naive]))[0].timestamp == TIMESTAMP


def test_messages_use_protobuf_binary_encoding() -> None:
    reading = SensorReading(
        sensor_value=1.5,
        sensor_type="temperature",
        id1="AB",
        id2=-2,
        timestamp=datetime(2024, 3, 1, 9, 15, 30, 250000, tzinfo=timezone.utc),
    )

    payload = to_wire(reading).SerializeToString()

    assert not payload.lstrip().startswith(b"{")
    # Field 1, wire type 1 (64-bit double).
    assert payload[0] == 0x09
    assert from_wire(SensorData.FromString(payload)) == reading


def test_invalid_reading_raises_transport_error_before_sending() -> None:
    client = SensorClient("localhost:1", single_timeout=0.5, batch_timeout=0.5)
    too_long = replace(_reading(), sensor_type="x" * 60)
    try:
        with pytest.raises(TransportError) as excinfo:
            client.send_one(too_long)
        assert not isinstance(excinfo.value, ApplicationRejectedError)
        assert "sensor_type" in str(excinfo.value)

        with pytest.raises(TransportError) as batch_excinfo:
            client.send_batch([_reading(), replace(_reading(1), id1="")])
        assert "id1" in str(batch_excinfo.value)
    finally:
        client.close()


def test_servicer_rejects_invalid_messages(repository: SensorRepository) -> None:
    servicer = SensorServicer(repository)
    valid = to_wire(_reading())
    empty_id1 = SensorData()
    empty_id1.CopyFrom(valid)
    empty_id1.id1 = ""

    single = servicer.send_sensor_data(empty_id1, None)
    batch = servicer.send_sensor_data_batch(SensorDataBatch(data=[valid, empty_id1]), None)

    assert single.success is False
    assert "id1" in single.error
    assert batch.success is False
    assert batch.message == "Invalid sensor data batch"
    assert repository.list().total == 0


class NullingRepository(SensorRepository):
    """Clears ``id2`` on the last reading so the store rejects it."""

    def create_batch(self, readings) -> int:
        pending = list(readings)
        pending[-1] = replace(pending[-1], id2=None)
        return super().create_batch(pending)


def test_store_failure_in_later_chunk_rejects_whole_batch(tmp_path: Path) -> None:
    engine = build_engine(f"sqlite:///{tmp_path / 'chunks.db'}")
    create_tables(engine)
    repository = NullingRepository(build_session_factory(engine), batch_size=2)

    for client in _serve(repository):
        with pytest.raises(ApplicationRejectedError) as excinfo:
            client.send_batch([_reading(i) for i in range(4)])
        assert "NOT NULL constraint failed: sensor_data.id2" in excinfo.value.reason

    assert repository.list().total == 0
