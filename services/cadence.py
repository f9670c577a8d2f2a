"""Parsing and rendering of generation cadences such as ``"2s"`` or ``"1m30s"``."""

from __future__ import annotations

import re
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from services.errors import InvalidCadenceError

DEFAULT_CADENCE = timedelta(seconds=1)

_NANOS_PER_UNIT = {
    "ns": Decimal(1),
    "us": Decimal(1_000),
    "µs": Decimal(1_000),
    "μs": Decimal(1_000),
    "ms": Decimal(1_000_000),
    "s": Decimal(1_000_000_000),
    "m": Decimal(60_000_000_000),
    "h": Decimal(3_600_000_000_000),
}

_COMPONENT = r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)"
_COMPONENT_RE = re.compile(_COMPONENT)
_DURATION_RE = re.compile(rf"([+-]?)((?:{_COMPONENT})+)")


def parse_duration(text: str) -> timedelta:
    """Parse a duration string into a strictly positive ``timedelta``.

    An empty string means the default one-second cadence. Sub-microsecond
    results cannot be represented and are rejected along with zero and
    negative values.
    """
    candidate = (text or "").strip()
    if not candidate:
        return DEFAULT_CADENCE

    match = _DURATION_RE.fullmatch(candidate)
    if match is None:
        raise InvalidCadenceError(f"invalid duration {text!r}")

    sign, body = match.group(1), match.group(2)
    total_ns = Decimal(0)
    for number, unit in _COMPONENT_RE.findall(body):
        try:
            total_ns += Decimal(number) * _NANOS_PER_UNIT[unit]
        except InvalidOperation as exc:
            raise InvalidCadenceError(f"invalid duration {text!r}") from exc

    if sign == "-":
        total_ns = -total_ns

    microseconds = int(total_ns / 1000)
    if microseconds <= 0:
        raise InvalidCadenceError(f"duration must be positive, got {text!r}")
    return timedelta(microseconds=microseconds)


def _trim(value: Decimal) -> str:
    return format(value.normalize(), "f")


def format_duration(value: timedelta) -> str:
    """Render ``value`` in the canonical short form (``1h0m0s``, ``1.5s``, ``250ms``)."""
    total_us = value // timedelta(microseconds=1)
    if total_us == 0:
        return "0s"

    sign = "-" if total_us < 0 else ""
    total_us = abs(total_us)

    if total_us < 1_000:
        return f"{sign}{total_us}µs"
    if total_us < 1_000_000:
        return f"{sign}{_trim(Decimal(total_us) / 1_000)}ms"

    whole_seconds, micros = divmod(total_us, 1_000_000)
    hours, remainder = divmod(whole_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    seconds_text = _trim(Decimal(seconds) + Decimal(micros) / 1_000_000)

    if hours:
        return f"{sign}{hours}h{minutes}m{seconds_text}s"
    if minutes:
        return f"{sign}{minutes}m{seconds_text}s"
    return f"{sign}{seconds_text}s"
