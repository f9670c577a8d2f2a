"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

from models.queries import Page
from models.records import GeneratorStatus, StoredReading
from services.auth import TokenGrant
from services.cadence import format_duration

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    """Envelope shared by every endpoint."""

    status: str = Field(..., description="Either 'success' or 'error'.")
    message: str
    data: Optional[T] = None
    error: Optional[str] = None


class HealthData(BaseModel):
    service: str
    status: str = "healthy"
    timestamp: datetime


class FrequencyRequest(BaseModel):
    frequency: str = Field(..., description="Duration such as '2s', '500ms' or '1m30s'.")


class FrequencyData(BaseModel):
    frequency: str
    duration: str


class GeneratorStatusData(BaseModel):
    is_running: bool
    sensor_type: str
    frequency: str
    frequency_seconds: float
    last_generated: Optional[datetime] = None
    total_sent: int
    errors: int

    @classmethod
    def from_status(cls, status: GeneratorStatus) -> "GeneratorStatusData":
        return cls(
            is_running=status.is_running,
            sensor_type=status.sensor_type,
            frequency=format_duration(status.frequency),
            frequency_seconds=status.frequency.total_seconds(),
            last_generated=status.last_generated,
            total_sent=status.total_sent,
            errors=status.errors,
        )


class SensorReadingData(BaseModel):
    id: int
    sensor_value: float
    sensor_type: str
    id1: str
    id2: int
    timestamp: datetime
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_stored(cls, reading: StoredReading) -> "SensorReadingData":
        return cls(
            id=reading.id,
            sensor_value=reading.sensor_value,
            sensor_type=reading.sensor_type,
            id1=reading.id1,
            id2=reading.id2,
            timestamp=reading.timestamp,
            created_at=reading.created_at,
            updated_at=reading.updated_at,
        )


class ReadingPageData(BaseModel):
    data: List[SensorReadingData] = Field(default_factory=list)
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    total: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)

    @classmethod
    def from_page(cls, page: Page[StoredReading]) -> "ReadingPageData":
        return cls(
            data=[SensorReadingData.from_stored(item) for item in page.data],
            page=page.page,
            page_size=page.page_size,
            total=page.total,
            total_pages=page.total_pages,
        )


class UpdateReadingRequest(BaseModel):
    """Partial update; omitted fields keep their stored values."""

    sensor_value: Optional[float] = None
    sensor_type: Optional[str] = Field(default=None, min_length=1, max_length=50)
    timestamp: Optional[datetime] = None


class DeletedData(BaseModel):
    id: int


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1, description="Email address or username.")
    password: str = Field(..., min_length=1)


class UserData(BaseModel):
    id: int
    username: str
    email: str
    role: str
    created_at: datetime
    updated_at: datetime


class LoginData(BaseModel):
    token: str
    expires_at: datetime
    user: UserData

    @classmethod
    def from_grant(cls, grant: TokenGrant) -> "LoginData":
        user = grant.user
        return cls(
            token=grant.token,
            expires_at=grant.expires_at,
            user=UserData(
                id=user.id,
                username=user.username,
                email=user.email,
                role=user.role,
                created_at=user.created_at,
                updated_at=user.updated_at,
            ),
        )
