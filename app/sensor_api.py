"""Authenticated query and maintenance routes over stored readings."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from app.auth_api import require_user
from app.responses import ERR_INVALID_REQUEST, STATUS_SUCCESS, api_error
from app.schemas import (
    APIResponse,
    DeletedData,
    HealthData,
    ReadingPageData,
    SensorReadingData,
    UpdateReadingRequest,
)
from datastore.sensor_repository import SensorRepository, build_default_repository
from models.queries import DEFAULT_PAGE_SIZE, PaginationParams, ReadingFilter, ReadingUpdate
from services.errors import NotFoundError
from transport.messages import INT32_MAX, INT32_MIN

SERVICE_NAME = "sensor-storage"

health_router = APIRouter()
router = APIRouter(prefix="/sensors", tags=["sensors"], dependencies=[Depends(require_user)])


def get_repository() -> SensorRepository:
    return build_default_repository()


def _parse_timestamp(value: str) -> datetime:
    candidate = value.strip()
    if not candidate:
        raise ValueError("Timestamp is empty.")

    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise ValueError("Invalid timestamp format") from exc

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _optional_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return _parse_timestamp(value)
    except ValueError:
        return None


def _optional_int(value: Optional[str], default: Optional[int] = None) -> Optional[int]:
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def _optional_int32(value: Optional[str]) -> Optional[int]:
    parsed = _optional_int(value)
    if parsed is None or not INT32_MIN <= parsed <= INT32_MAX:
        return None
    return parsed


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or not value.strip():
        return None
    try:
        return float(value.strip())
    except ValueError:
        return None


def _parse_reading_id(raw: str) -> int:
    reading_id = _optional_int(raw)
    if reading_id is None or reading_id < 1:
        raise api_error(status.HTTP_400_BAD_REQUEST, ERR_INVALID_REQUEST, "Invalid ID format")
    return reading_id


@health_router.get(
    "/health",
    response_model=APIResponse[HealthData],
    summary="Health check endpoint.",
)
async def healthcheck() -> APIResponse[HealthData]:
    return APIResponse[HealthData](
        status=STATUS_SUCCESS,
        message="Service is healthy",
        data=HealthData(service=SERVICE_NAME, timestamp=datetime.now(timezone.utc)),
    )


@router.get(
    "",
    response_model=APIResponse[ReadingPageData],
    summary="List readings with optional filters, sorting and pagination.",
)
def list_readings(
    page: Optional[str] = Query(None),
    page_size: Optional[str] = Query(None),
    sort: Optional[str] = Query(None),
    order: Optional[str] = Query(None),
    sensor_type: Optional[str] = Query(None),
    id1: Optional[str] = Query(None),
    id2: Optional[str] = Query(None),
    from_time: Optional[str] = Query(None),
    to_time: Optional[str] = Query(None),
    min_value: Optional[str] = Query(None),
    max_value: Optional[str] = Query(None),
    repository: SensorRepository = Depends(get_repository),
) -> APIResponse[ReadingPageData]:
    # Unparsable filters are ignored; pagination values are clamped downstream.
    reading_filter = ReadingFilter(
        sensor_type=sensor_type or None,
        id1=id1 or None,
        id2=_optional_int32(id2),
        from_time=_optional_timestamp(from_time),
        to_time=_optional_timestamp(to_time),
        min_value=_optional_float(min_value),
        max_value=_optional_float(max_value),
    )
    pagination = PaginationParams(
        page=_optional_int(page, 1),
        page_size=_optional_int(page_size, DEFAULT_PAGE_SIZE),
        sort=sort or "",
        order=order or "",
    )
    result = repository.list(reading_filter, pagination)
    return APIResponse[ReadingPageData](
        status=STATUS_SUCCESS,
        message="Sensor data retrieved successfully",
        data=ReadingPageData.from_page(result),
    )


@router.get(
    "/duration",
    response_model=APIResponse[List[SensorReadingData]],
    summary="Readings whose timestamp falls inside an inclusive window.",
)
def readings_in_window(
    from_time: Optional[str] = Query(None),
    to_time: Optional[str] = Query(None),
    repository: SensorRepository = Depends(get_repository),
) -> APIResponse[List[SensorReadingData]]:
    if not from_time or not to_time:
        raise api_error(
            status.HTTP_400_BAD_REQUEST,
            ERR_INVALID_REQUEST,
            "Both 'from_time' and 'to_time' parameters are required",
        )
    try:
        start = _parse_timestamp(from_time)
    except ValueError as exc:
        raise api_error(
            status.HTTP_400_BAD_REQUEST,
            ERR_INVALID_REQUEST,
            "Invalid 'from_time' format. Use RFC3339",
        ) from exc
    try:
        end = _parse_timestamp(to_time)
    except ValueError as exc:
        raise api_error(
            status.HTTP_400_BAD_REQUEST,
            ERR_INVALID_REQUEST,
            "Invalid 'to_time' format. Use RFC3339",
        ) from exc

    readings = repository.get_by_time_window(start, end)
    return APIResponse[List[SensorReadingData]](
        status=STATUS_SUCCESS,
        message="Sensor data retrieved successfully",
        data=[SensorReadingData.from_stored(item) for item in readings],
    )


@router.get(
    "/{reading_id}",
    response_model=APIResponse[SensorReadingData],
    summary="Fetch a single live reading.",
)
def get_reading(
    reading_id: str,
    repository: SensorRepository = Depends(get_repository),
) -> APIResponse[SensorReadingData]:
    identifier = _parse_reading_id(reading_id)
    try:
        reading = repository.get_by_id(identifier)
    except NotFoundError as exc:
        raise api_error(status.HTTP_404_NOT_FOUND, "Sensor data not found", str(exc)) from exc
    return APIResponse[SensorReadingData](
        status=STATUS_SUCCESS,
        message="Sensor data retrieved successfully",
        data=SensorReadingData.from_stored(reading),
    )


@router.get(
    "/{id1}/{id2}",
    response_model=APIResponse[List[SensorReadingData]],
    summary="Readings sharing an identifier pair.",
)
def readings_for_pair(
    id1: str,
    id2: str,
    repository: SensorRepository = Depends(get_repository),
) -> APIResponse[List[SensorReadingData]]:
    second = _optional_int32(id2)
    if second is None:
        raise api_error(status.HTTP_400_BAD_REQUEST, ERR_INVALID_REQUEST, "Invalid ID2 format")
    readings = repository.get_by_identifier_pair(id1, second)
    return APIResponse[List[SensorReadingData]](
        status=STATUS_SUCCESS,
        message="Sensor data retrieved successfully",
        data=[SensorReadingData.from_stored(item) for item in readings],
    )


@router.patch(
    "/{reading_id}",
    response_model=APIResponse[SensorReadingData],
    summary="Partially update a live reading.",
)
def update_reading(
    reading_id: str,
    payload: UpdateReadingRequest,
    repository: SensorRepository = Depends(get_repository),
) -> APIResponse[SensorReadingData]:
    identifier = _parse_reading_id(reading_id)
    changes = ReadingUpdate(
        sensor_value=payload.sensor_value,
        sensor_type=payload.sensor_type,
        timestamp=payload.timestamp,
    )
    try:
        reading = repository.update(identifier, changes)
    except NotFoundError as exc:
        raise api_error(status.HTTP_404_NOT_FOUND, "Sensor data not found", str(exc)) from exc
    return APIResponse[SensorReadingData](
        status=STATUS_SUCCESS,
        message="Sensor data updated successfully",
        data=SensorReadingData.from_stored(reading),
    )


@router.delete(
    "/{reading_id}",
    response_model=APIResponse[DeletedData],
    summary="Soft-delete a reading.",
)
def delete_reading(
    reading_id: str,
    repository: SensorRepository = Depends(get_repository),
) -> APIResponse[DeletedData]:
    identifier = _parse_reading_id(reading_id)
    try:
        repository.delete(identifier)
    except NotFoundError as exc:
        raise api_error(status.HTTP_404_NOT_FOUND, "Sensor data not found", str(exc)) from exc
    return APIResponse[DeletedData](
        status=STATUS_SUCCESS,
        message="Sensor data deleted successfully",
        data=DeletedData(id=identifier),
    )
