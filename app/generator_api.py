"""HTTP control surface for the reading generator."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status

from app.responses import STATUS_SUCCESS, api_error
from app.schemas import (
    APIResponse,
    FrequencyData,
    FrequencyRequest,
    GeneratorStatusData,
    HealthData,
)
from services.cadence import format_duration
from services.errors import AlreadyRunningError, InvalidCadenceError, NotRunningError
from services.generator import GeneratorService, build_default_generator

router = APIRouter()

SERVICE_NAME = "sensor-generator"


def get_generator() -> GeneratorService:
    return build_default_generator()


@router.get(
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
    "/status",
    response_model=APIResponse[GeneratorStatusData],
    summary="Snapshot of the generator state and counters.",
)
async def get_status(
    generator: GeneratorService = Depends(get_generator),
) -> APIResponse[GeneratorStatusData]:
    return APIResponse[GeneratorStatusData](
        status=STATUS_SUCCESS,
        message="Generator status retrieved",
        data=GeneratorStatusData.from_status(generator.status()),
    )


@router.get(
    "/frequency",
    response_model=APIResponse[FrequencyData],
    summary="Current generation cadence.",
)
async def get_frequency(
    generator: GeneratorService = Depends(get_generator),
) -> APIResponse[FrequencyData]:
    cadence = generator.get_cadence()
    text = format_duration(cadence)
    return APIResponse[FrequencyData](
        status=STATUS_SUCCESS,
        message="Current frequency retrieved",
        data=FrequencyData(frequency=text, duration=text),
    )


@router.post(
    "/frequency",
    response_model=APIResponse[FrequencyData],
    summary="Change the generation cadence, restarting the loop if it runs.",
)
def update_frequency(
    payload: FrequencyRequest,
    generator: GeneratorService = Depends(get_generator),
) -> APIResponse[FrequencyData]:
    try:
        cadence = generator.set_cadence(payload.frequency)
    except InvalidCadenceError as exc:
        raise api_error(
            status.HTTP_400_BAD_REQUEST,
            "Invalid frequency format",
            str(exc),
        ) from exc
    return APIResponse[FrequencyData](
        status=STATUS_SUCCESS,
        message="Frequency updated successfully",
        data=FrequencyData(frequency=payload.frequency, duration=format_duration(cadence)),
    )


@router.post(
    "/start",
    response_model=APIResponse,
    response_model_exclude_none=True,
    summary="Start periodic generation.",
)
def start_generation(
    generator: GeneratorService = Depends(get_generator),
) -> APIResponse:
    try:
        generator.start()
    except AlreadyRunningError as exc:
        raise api_error(status.HTTP_409_CONFLICT, "Generator is already running") from exc
    return APIResponse(status=STATUS_SUCCESS, message="Generator started")


@router.post(
    "/stop",
    response_model=APIResponse,
    response_model_exclude_none=True,
    summary="Stop periodic generation.",
)
def stop_generation(
    generator: GeneratorService = Depends(get_generator),
) -> APIResponse:
    try:
        generator.stop()
    except NotRunningError as exc:
        raise api_error(status.HTTP_409_CONFLICT, "Generator is not running") from exc
    return APIResponse(status=STATUS_SUCCESS, message="Generator stopped")
