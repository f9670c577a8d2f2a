"""gRPC client used by the generator to ship readings to the storage service."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional, Sequence

import grpc
from pydantic import ValidationError

from models.records import SensorReading
from services.errors import ApplicationRejectedError, TransportError
from settings import get_settings
from transport.codec import batch_to_wire, describe_invalid, to_wire
from transport.messages import (
    SERVING,
    STATUS_NAMES,
    HealthCheckRequest,
    HealthCheckResponse,
    SensorData,
    SensorDataBatch,
    SensorResponse,
    method_path,
)

logger = logging.getLogger(__name__)

SINGLE_TIMEOUT_SECONDS = 5.0
BATCH_TIMEOUT_SECONDS = 10.0
HEALTH_TIMEOUT_SECONDS = 5.0


def _describe(exc: grpc.RpcError) -> str:
    code = exc.code() if hasattr(exc, "code") else None
    details = exc.details() if hasattr(exc, "details") else None
    name = code.name if code is not None else "UNKNOWN"
    return f"{name}: {details or 'no details'}"


class SensorClient:
    """Thin wrapper over a gRPC channel with a timeout per operation."""

    def __init__(
        self,
        address: str,
        single_timeout: float = SINGLE_TIMEOUT_SECONDS,
        batch_timeout: float = BATCH_TIMEOUT_SECONDS,
        health_timeout: float = HEALTH_TIMEOUT_SECONDS,
        channel: Optional[grpc.Channel] = None,
    ) -> None:
        self.address = address
        self.single_timeout = single_timeout
        self.batch_timeout = batch_timeout
        self.health_timeout = health_timeout
        self._channel = channel or grpc.insecure_channel(address)
        self._send_one = self._channel.unary_unary(
            method_path("SendSensorData"),
            request_serializer=SensorData.SerializeToString,
            response_deserializer=SensorResponse.FromString,
        )
        self._send_batch = self._channel.unary_unary(
            method_path("SendSensorDataBatch"),
            request_serializer=SensorDataBatch.SerializeToString,
            response_deserializer=SensorResponse.FromString,
        )
        self._health = self._channel.unary_unary(
            method_path("HealthCheck"),
            request_serializer=HealthCheckRequest.SerializeToString,
            response_deserializer=HealthCheckResponse.FromString,
        )

    def close(self) -> None:
        self._channel.close()

    def send_one(self, reading: SensorReading) -> None:
        try:
            response = self._send_one(to_wire(reading), timeout=self.single_timeout)
        except ValidationError as exc:
            raise TransportError(f"invalid sensor data: {describe_invalid(exc)}") from exc
        except grpc.RpcError as exc:
            raise TransportError(f"failed to send sensor data: {_describe(exc)}") from exc
        self._raise_for_response(response)

    def send_batch(self, readings: Sequence[SensorReading]) -> None:
        try:
            response = self._send_batch(batch_to_wire(readings), timeout=self.batch_timeout)
        except ValidationError as exc:
            raise TransportError(f"invalid sensor data batch: {describe_invalid(exc)}") from exc
        except grpc.RpcError as exc:
            raise TransportError(
                f"failed to send sensor data batch: {_describe(exc)}"
            ) from exc
        self._raise_for_response(response)
        logger.debug("Sent sensor data batch", extra={"batch_size": len(readings)})

    def health_check(self, service: str = "telemetry-generator") -> None:
        try:
            response = self._health(
                HealthCheckRequest(service=service), timeout=self.health_timeout
            )
        except grpc.RpcError as exc:
            raise TransportError(f"health check failed: {_describe(exc)}") from exc
        if response.status != SERVING:
            name = STATUS_NAMES.get(response.status, str(response.status))
            raise TransportError(f"server not serving (status={name})")

    @staticmethod
    def _raise_for_response(response) -> None:
        if response.success:
            return
        raise ApplicationRejectedError(response.error or response.message or "request rejected")


@lru_cache
def build_default_client(address: Optional[str] = None) -> SensorClient:
    target = address or get_settings().grpc_address
    return SensorClient(target)
