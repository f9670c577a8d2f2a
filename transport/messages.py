"""Protobuf wire schema for the sensor RPC service."""

from __future__ import annotations

from datetime import datetime
from typing import Dict

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory, timestamp_pb2
from pydantic import BaseModel, Field

PACKAGE = "telemetry"
SERVICE_NAME = f"{PACKAGE}.SensorService"

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1

_FIELD = descriptor_pb2.FieldDescriptorProto


def _add_field(
    message: descriptor_pb2.DescriptorProto,
    name: str,
    number: int,
    field_type: int,
    type_name: str = "",
    label: int = _FIELD.LABEL_OPTIONAL,
) -> None:
    field = message.field.add(name=name, number=number, type=field_type, label=label)
    if type_name:
        field.type_name = type_name


def _file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    proto = descriptor_pb2.FileDescriptorProto(
        name=f"{PACKAGE}/sensor.proto",
        package=PACKAGE,
        syntax="proto3",
        dependency=[timestamp_pb2.DESCRIPTOR.name],
    )

    sensor = proto.message_type.add(name="SensorData")
    _add_field(sensor, "sensor_value", 1, _FIELD.TYPE_DOUBLE)
    _add_field(sensor, "sensor_type", 2, _FIELD.TYPE_STRING)
    _add_field(sensor, "id1", 3, _FIELD.TYPE_STRING)
    _add_field(sensor, "id2", 4, _FIELD.TYPE_INT32)
    _add_field(sensor, "timestamp", 5, _FIELD.TYPE_MESSAGE, ".google.protobuf.Timestamp")

    batch = proto.message_type.add(name="SensorDataBatch")
    _add_field(
        batch,
        "data",
        1,
        _FIELD.TYPE_MESSAGE,
        f".{PACKAGE}.SensorData",
        label=_FIELD.LABEL_REPEATED,
    )

    response = proto.message_type.add(name="SensorResponse")
    _add_field(response, "success", 1, _FIELD.TYPE_BOOL)
    _add_field(response, "message", 2, _FIELD.TYPE_STRING)
    _add_field(response, "error", 3, _FIELD.TYPE_STRING)

    health_request = proto.message_type.add(name="HealthCheckRequest")
    _add_field(health_request, "service", 1, _FIELD.TYPE_STRING)

    health_response = proto.message_type.add(name="HealthCheckResponse")
    serving = health_response.enum_type.add(name="ServingStatus")
    for number, name in enumerate(("UNKNOWN", "SERVING", "NOT_SERVING")):
        serving.value.add(name=name, number=number)
    _add_field(
        health_response,
        "status",
        1,
        _FIELD.TYPE_ENUM,
        f".{PACKAGE}.HealthCheckResponse.ServingStatus",
    )

    service = proto.service.add(name="SensorService")
    for method, request, reply in (
        ("SendSensorData", "SensorData", "SensorResponse"),
        ("SendSensorDataBatch", "SensorDataBatch", "SensorResponse"),
        ("HealthCheck", "HealthCheckRequest", "HealthCheckResponse"),
    ):
        service.method.add(
            name=method,
            input_type=f".{PACKAGE}.{request}",
            output_type=f".{PACKAGE}.{reply}",
        )
    return proto


_pool = descriptor_pool.Default()
_pool.AddSerializedFile(_file_descriptor().SerializeToString())


def _message_class(name: str):
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{PACKAGE}.{name}"))


SensorData = _message_class("SensorData")
SensorDataBatch = _message_class("SensorDataBatch")
SensorResponse = _message_class("SensorResponse")
HealthCheckRequest = _message_class("HealthCheckRequest")
HealthCheckResponse = _message_class("HealthCheckResponse")

_SERVING_STATUS = HealthCheckResponse.DESCRIPTOR.enum_types_by_name["ServingStatus"]
SERVING: int = _SERVING_STATUS.values_by_name["SERVING"].number
NOT_SERVING: int = _SERVING_STATUS.values_by_name["NOT_SERVING"].number
STATUS_NAMES: Dict[int, str] = {value.number: value.name for value in _SERVING_STATUS.values}


class ReadingFields(BaseModel):
    """Constraints a reading must satisfy before it is sent or stored."""

    sensor_value: float
    sensor_type: str = Field(..., min_length=1, max_length=50)
    id1: str = Field(..., min_length=1, max_length=50)
    id2: int = Field(..., ge=INT32_MIN, le=INT32_MAX)
    timestamp: datetime


def method_path(method: str) -> str:
    return f"/{SERVICE_NAME}/{method}"
