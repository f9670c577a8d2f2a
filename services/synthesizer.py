"""Plausible value generation for each supported sensor type."""

from __future__ import annotations

import random
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol, Sequence

from models.records import SensorReading

MAX_ID2 = 10_000


class ValueRule(Protocol):
    def sample(self, rng: random.Random) -> float: ...


@dataclass(frozen=True)
class RangeRule:
    """Uniform value in ``[low, high]``."""

    low: float
    high: float

    def sample(self, rng: random.Random) -> float:
        return rng.uniform(self.low, self.high)


@dataclass(frozen=True)
class DiscreteRule:
    """One of a fixed set of values, e.g. a binary motion flag."""

    choices: Sequence[float]

    def sample(self, rng: random.Random) -> float:
        return float(rng.choice(self.choices))


DEFAULT_RULE: ValueRule = RangeRule(0.0, 100.0)

_RULES: Dict[str, ValueRule] = {
    "temperature": RangeRule(-10.0, 50.0),
    "humidity": RangeRule(0.0, 100.0),
    "pressure": RangeRule(980.0, 1030.0),
    "light": RangeRule(0.0, 1000.0),
    "motion": DiscreteRule((0.0, 1.0)),
}

_rng = random.Random()


def register_rule(sensor_type: str, rule: ValueRule) -> None:
    _RULES[sensor_type.lower()] = rule


def rule_for(sensor_type: str) -> ValueRule:
    return _RULES.get(sensor_type.lower(), DEFAULT_RULE)


def known_sensor_types() -> list[str]:
    return sorted(_RULES)


def synthesize_value(sensor_type: str, rng: Optional[random.Random] = None) -> float:
    return rule_for(sensor_type).sample(rng or _rng)


def synthesize_reading(
    sensor_type: str,
    timestamp: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> SensorReading:
    """Build one reading with random identifiers and a type-appropriate value."""
    generator = rng or _rng
    return SensorReading(
        sensor_value=synthesize_value(sensor_type, generator),
        sensor_type=sensor_type,
        id1=secrets.token_hex(4).upper(),
        id2=generator.randrange(MAX_ID2),
        timestamp=timestamp or datetime.now(timezone.utc),
    )
