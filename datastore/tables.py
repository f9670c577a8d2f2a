"""Mapped tables for readings and users."""

from __future__ import annotations

from sqlalchemy import Column, Float, Index, Integer, String

from datastore.database import Base, UTCDateTime, utcnow
from models.records import StoredReading


class SensorDataRow(Base):
    __tablename__ = "sensor_data"
    __table_args__ = (Index("idx_id_combination", "id1", "id2"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    sensor_value = Column(Float, nullable=False)
    sensor_type = Column(String(50), nullable=False, index=True)
    id1 = Column(String(50), nullable=False)
    id2 = Column(Integer, nullable=False)
    timestamp = Column(UTCDateTime, nullable=False, index=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)
    deleted_at = Column(UTCDateTime, nullable=True, index=True)

    def to_domain(self) -> StoredReading:
        return StoredReading(
            id=self.id,
            sensor_value=self.sensor_value,
            sensor_type=self.sensor_type,
            id1=self.id1,
            id2=self.id2,
            timestamp=self.timestamp,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class UserRow(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), unique=True, index=True, nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False, default="user")
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)
