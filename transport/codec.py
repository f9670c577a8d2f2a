"""Conversions between domain readings and RPC messages.

Both directions validate through ``ReadingFields`` and raise
``pydantic.ValidationError`` for readings the storage schema cannot hold.
"""

from __future__ import annotations

from datetime import timezone
from typing import Iterable, List

from google.protobuf.timestamp_pb2 import Timestamp
from pydantic import ValidationError

from models.records import SensorReading, ensure_utc
from transport.messages import ReadingFields, SensorData, SensorDataBatch


def to_wire(reading: SensorReading):
    fields = ReadingFields(
        sensor_value=reading.sensor_value,
        sensor_type=reading.sensor_type,
        id1=reading.id1,
        id2=reading.id2,
        timestamp=ensure_utc(reading.timestamp),
    )
    timestamp = Timestamp()
    timestamp.FromDatetime(fields.timestamp)
    return SensorData(
        sensor_value=fields.sensor_value,
        sensor_type=fields.sensor_type,
        id1=fields.id1,
        id2=fields.id2,
        timestamp=timestamp,
    )


def from_wire(message) -> SensorReading:
    fields = ReadingFields(
        sensor_value=message.sensor_value,
        sensor_type=message.sensor_type,
        id1=message.id1,
        id2=message.id2,
        timestamp=message.timestamp.ToDatetime(tzinfo=timezone.utc),
    )
    return SensorReading(
        sensor_value=fields.sensor_value,
        sensor_type=fields.sensor_type,
        id1=fields.id1,
        id2=fields.id2,
        timestamp=ensure_utc(fields.timestamp),
    )


def batch_to_wire(readings: Iterable[SensorReading]):
    return SensorDataBatch(data=[to_wire(reading) for reading in readings])


def batch_from_wire(batch) -> List[SensorReading]:
    return [from_wire(message) for message in batch.data]


def describe_invalid(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
