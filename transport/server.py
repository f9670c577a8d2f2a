"""gRPC server relaying readings from generators into the repository."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import grpc
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from datastore.sensor_repository import SensorRepository
from transport.codec import batch_from_wire, describe_invalid, from_wire
from transport.messages import (
    SERVICE_NAME,
    SERVING,
    HealthCheckRequest,
    HealthCheckResponse,
    SensorData,
    SensorDataBatch,
    SensorResponse,
)

logger = logging.getLogger(__name__)


class SensorServicer:
    """Stateless relay: decode, persist, answer with an application-level result."""

    def __init__(self, repository: SensorRepository) -> None:
        self.repository = repository

    def send_sensor_data(self, request, context: grpc.ServicerContext):
        try:
            reading = from_wire(request)
        except ValidationError as exc:
            reason = describe_invalid(exc)
            logger.warning("Rejected invalid sensor data", extra={"reason": reason})
            return SensorResponse(success=False, message="Invalid sensor data", error=reason)
        try:
            stored = self.repository.create(reading)
        except SQLAlchemyError as exc:
            logger.error(
                "Failed to save sensor data",
                extra={"sensor_type": reading.sensor_type, "reason": str(exc)},
            )
            return SensorResponse(
                success=False, message="Failed to save sensor data", error=str(exc)
            )
        logger.debug(
            "Saved sensor data",
            extra={"sensor_type": stored.sensor_type, "reading_id": stored.id},
        )
        return SensorResponse(success=True, message="Sensor data saved successfully")

    def send_sensor_data_batch(self, request, context: grpc.ServicerContext):
        try:
            readings = batch_from_wire(request)
        except ValidationError as exc:
            reason = describe_invalid(exc)
            logger.warning("Rejected invalid sensor data batch", extra={"reason": reason})
            return SensorResponse(
                success=False, message="Invalid sensor data batch", error=reason
            )
        start_time = time.perf_counter()
        try:
            self.repository.create_batch(readings)
        except SQLAlchemyError as exc:
            logger.error(
                "Failed to save sensor data batch",
                extra={"batch_size": len(readings), "reason": str(exc)},
            )
            return SensorResponse(
                success=False, message="Failed to save sensor data batch", error=str(exc)
            )
        logger.info(
            "Saved sensor data batch",
            extra={
                "batch_size": len(readings),
                "processing_ms": int((time.perf_counter() - start_time) * 1000),
            },
        )
        return SensorResponse(success=True, message="Sensor data batch saved successfully")

    def health_check(self, request, context: grpc.ServicerContext):
        return HealthCheckResponse(status=SERVING)


def build_handler(servicer: SensorServicer) -> grpc.GenericRpcHandler:
    return grpc.method_handlers_generic_handler(
        SERVICE_NAME,
        {
            "SendSensorData": grpc.unary_unary_rpc_method_handler(
                servicer.send_sensor_data,
                request_deserializer=SensorData.FromString,
                response_serializer=SensorResponse.SerializeToString,
            ),
            "SendSensorDataBatch": grpc.unary_unary_rpc_method_handler(
                servicer.send_sensor_data_batch,
                request_deserializer=SensorDataBatch.FromString,
                response_serializer=SensorResponse.SerializeToString,
            ),
            "HealthCheck": grpc.unary_unary_rpc_method_handler(
                servicer.health_check,
                request_deserializer=HealthCheckRequest.FromString,
                response_serializer=HealthCheckResponse.SerializeToString,
            ),
        },
    )


class TransportServer:
    """Owns the gRPC server lifecycle for the storage service."""

    def __init__(
        self,
        repository: SensorRepository,
        address: str = "[::]:50051",
        workers: int = 10,
    ) -> None:
        self.address = address
        self.servicer = SensorServicer(repository)
        self._server = grpc.server(ThreadPoolExecutor(max_workers=workers))
        self._server.add_generic_rpc_handlers((build_handler(self.servicer),))
        self.port: Optional[int] = None

    def start(self) -> int:
        self.port = self._server.add_insecure_port(self.address)
        if self.port == 0:
            raise RuntimeError(f"Unable to bind gRPC server to {self.address}")
        self._server.start()
        logger.info("gRPC server listening on %s (port %s)", self.address, self.port)
        return self.port

    def stop(self, grace: Optional[float] = 5.0) -> None:
        self._server.stop(grace).wait()
        logger.info("gRPC server stopped")
