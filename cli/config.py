from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_GENERATOR_URL = "http://localhost:8081"
DEFAULT_STORAGE_URL = "http://localhost:8080"
DEFAULT_EMAIL = "admin@example.com"
DEFAULT_PASSWORD = "password"
DEFAULT_TIMEOUT = 10.0

_GENERATOR_URL_ENV = "GENERATOR_API_URL"
_STORAGE_URL_ENV = "STORAGE_API_URL"
_EMAIL_ENV = "CLI_EMAIL"
_PASSWORD_ENV = "CLI_PASSWORD"
_TIMEOUT_ENV = "CLI_TIMEOUT"


@dataclass(frozen=True)
class CLIConfig:
    generator_url: str = DEFAULT_GENERATOR_URL
    storage_url: str = DEFAULT_STORAGE_URL
    email: str = DEFAULT_EMAIL
    password: str = DEFAULT_PASSWORD
    timeout: float = DEFAULT_TIMEOUT


def _read_float(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def load_config(
    generator_url: Optional[str] = None,
    storage_url: Optional[str] = None,
    email: Optional[str] = None,
    password: Optional[str] = None,
    timeout: Optional[float] = None,
) -> CLIConfig:
    generator = generator_url or os.getenv(_GENERATOR_URL_ENV) or DEFAULT_GENERATOR_URL
    storage = storage_url or os.getenv(_STORAGE_URL_ENV) or DEFAULT_STORAGE_URL
    if timeout is None:
        timeout = _read_float(os.getenv(_TIMEOUT_ENV), DEFAULT_TIMEOUT)
    return CLIConfig(
        generator_url=generator.rstrip("/"),
        storage_url=storage.rstrip("/"),
        email=email or os.getenv(_EMAIL_ENV) or DEFAULT_EMAIL,
        password=password or os.getenv(_PASSWORD_ENV) or DEFAULT_PASSWORD,
        timeout=timeout,
    )
