from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple


_SENSOR_TYPE_ENV = "SENSOR_TYPE"
_FREQUENCY_ENV = "GENERATION_FREQUENCY"
_AUTOSTART_ENV = "GENERATOR_AUTOSTART"
_GENERATOR_PORT_ENV = "GENERATOR_PORT"
_STORAGE_PORT_ENV = "STORAGE_PORT"
_GRPC_HOST_ENV = "GRPC_HOST"
_GRPC_PORT_ENV = "GRPC_PORT"
_GRPC_WORKERS_ENV = "GRPC_SERVER_WORKERS"
_DATABASE_URL_ENV = "DATABASE_URL"
_JWT_SECRET_ENV = "JWT_SECRET"
_JWT_ISSUER_ENV = "JWT_ISSUER"
_JWT_EXPIRATION_ENV = "JWT_EXPIRATION_SECONDS"
_RATE_LIMIT_ENV = "RATE_LIMIT"
_CORS_ORIGINS_ENV = "CORS_ORIGINS"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_DEFAULT_CORS_ORIGINS = (
    "http://localhost:3000",
    "http://localhost:8080",
    "http://localhost:8081",
)


@dataclass(frozen=True)
class Settings:
    sensor_type: str
    generation_frequency: str
    generator_autostart: bool
    generator_port: int
    storage_port: int
    grpc_host: str
    grpc_port: int
    grpc_server_workers: int
    database_url: str
    jwt_secret: str
    jwt_issuer: str
    jwt_expiration_seconds: int
    rate_limit_per_minute: int
    cors_origins: Tuple[str, ...]
    log_level: str

    @property
    def grpc_address(self) -> str:
        return f"{self.grpc_host}:{self.grpc_port}"


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_int_env(name: str, default: int, minimum: int = 1) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed >= minimum else default


def _read_bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in {"1", "true", "yes", "on"}:
        return True
    if candidate in {"0", "false", "no", "off"}:
        return False
    return default


def _read_list_env(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    value: Optional[str] = os.getenv(name)
    if value is None:
        return default
    items = tuple(part.strip() for part in value.split(",") if part.strip())
    return items or default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        sensor_type=_read_str_env(_SENSOR_TYPE_ENV, "temperature").lower(),
        generation_frequency=_read_str_env(_FREQUENCY_ENV, "300s"),
        generator_autostart=_read_bool_env(_AUTOSTART_ENV, True),
        generator_port=_read_int_env(_GENERATOR_PORT_ENV, 8081),
        storage_port=_read_int_env(_STORAGE_PORT_ENV, 8080),
        grpc_host=_read_str_env(_GRPC_HOST_ENV, "localhost"),
        grpc_port=_read_int_env(_GRPC_PORT_ENV, 50051),
        grpc_server_workers=_read_int_env(_GRPC_WORKERS_ENV, 10),
        database_url=_read_str_env(_DATABASE_URL_ENV, "sqlite:///./tmp/sensor_data.db"),
        jwt_secret=_read_str_env(_JWT_SECRET_ENV, "change-me-in-production"),
        jwt_issuer=_read_str_env(_JWT_ISSUER_ENV, "telemetry-storage"),
        jwt_expiration_seconds=_read_int_env(_JWT_EXPIRATION_ENV, 86400),
        rate_limit_per_minute=_read_int_env(_RATE_LIMIT_ENV, 100, minimum=0),
        cors_origins=_read_list_env(_CORS_ORIGINS_ENV, _DEFAULT_CORS_ORIGINS),
        log_level=_read_log_level("INFO"),
    )
