"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional


@dataclass(frozen=True, slots=True)
class SensorReading:
    """A single synthesized sensor observation."""

    sensor_value: float
    sensor_type: str
    id1: str
    id2: int
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class StoredReading:
    """A persisted reading with its surrogate key and bookkeeping instants."""

    id: int
    sensor_value: float
    sensor_type: str
    id1: str
    id2: int
    timestamp: datetime
    created_at: datetime
    updated_at: datetime

    def to_reading(self) -> SensorReading:
        return SensorReading(
            sensor_value=self.sensor_value,
            sensor_type=self.sensor_type,
            id1=self.id1,
            id2=self.id2,
            timestamp=self.timestamp,
        )


@dataclass(frozen=True, slots=True)
class GeneratorStatus:
    """Point-in-time snapshot of a generator's lifecycle and counters."""

    is_running: bool
    sensor_type: str
    frequency: timedelta
    last_generated: Optional[datetime]
    total_sent: int
    errors: int


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
