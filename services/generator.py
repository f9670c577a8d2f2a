"""Lifecycle management for the periodic reading generator."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from threading import Event, Lock, Thread, current_thread
from typing import Callable, Optional, Protocol

from models.records import GeneratorStatus, SensorReading
from services.cadence import DEFAULT_CADENCE, format_duration, parse_duration
from services.errors import AlreadyRunningError, InvalidCadenceError, NotRunningError, TransportError
from services.synthesizer import synthesize_reading
from settings import get_settings
from transport.client import build_default_client

logger = logging.getLogger(__name__)


class ReadingSender(Protocol):
    def send_one(self, reading: SensorReading) -> None: ...


Synthesizer = Callable[[str, datetime], SensorReading]
Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _synthesize(sensor_type: str, timestamp: datetime) -> SensorReading:
    return synthesize_reading(sensor_type, timestamp=timestamp)


class GeneratorService:
    """Owns the cadence, the running flag and the send counters.

    ``start``/``stop``/``set_cadence`` are serialized by a transition lock.
    Counters and flags live behind a separate state lock so status reads never
    wait on a loop restart. At most one worker thread runs the loop; a halted
    worker is joined before another is spawned.
    """

    def __init__(
        self,
        client: ReadingSender,
        sensor_type: str,
        frequency: str = "1s",
        synthesizer: Optional[Synthesizer] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        try:
            cadence = parse_duration(frequency)
        except InvalidCadenceError:
            logger.warning(
                "Invalid generation frequency %r, falling back to %s",
                frequency,
                format_duration(DEFAULT_CADENCE),
            )
            cadence = DEFAULT_CADENCE

        self.client = client
        self.sensor_type = sensor_type
        self._synthesize = synthesizer or _synthesize
        self._clock = clock or _utcnow

        self._transition_lock = Lock()
        self._state_lock = Lock()
        self._cadence = cadence
        self._running = False
        self._stop_event: Optional[Event] = None
        self._worker: Optional[Thread] = None
        self._last_generated: Optional[datetime] = None
        self._total_sent = 0
        self._errors = 0
        self._active_loops = 0

    def start(self) -> None:
        with self._transition_lock:
            with self._state_lock:
                if self._running:
                    raise AlreadyRunningError("generator is already running")
            self._spawn_loop()
        logger.info("Generator started", extra={"sensor_type": self.sensor_type})

    def stop(self) -> None:
        with self._transition_lock:
            with self._state_lock:
                if not self._running:
                    raise NotRunningError("generator is not running")
            self._halt()
        logger.info("Generator stopped", extra={"sensor_type": self.sensor_type})

    def set_cadence(self, frequency: str) -> timedelta:
        """Store a new cadence, restarting the loop if it is running."""
        cadence = parse_duration(frequency)
        with self._transition_lock:
            with self._state_lock:
                self._cadence = cadence
                was_running = self._running
            if was_running:
                self._halt()
                self._spawn_loop()
        logger.info(
            "Generation frequency updated",
            extra={"frequency": format_duration(cadence), "sensor_type": self.sensor_type},
        )
        return cadence

    def get_cadence(self) -> timedelta:
        with self._state_lock:
            return self._cadence

    def is_running(self) -> bool:
        with self._state_lock:
            return self._running

    @property
    def active_loops(self) -> int:
        with self._state_lock:
            return self._active_loops

    def status(self) -> GeneratorStatus:
        with self._state_lock:
            return GeneratorStatus(
                is_running=self._running,
                sensor_type=self.sensor_type,
                frequency=self._cadence,
                last_generated=self._last_generated,
                total_sent=self._total_sent,
                errors=self._errors,
            )

    def tick(self) -> bool:
        """Synthesize one reading and send it; transport failures are only counted."""
        reading = self._synthesize(self.sensor_type, self._clock())
        try:
            self.client.send_one(reading)
        except TransportError as exc:
            with self._state_lock:
                self._errors += 1
            logger.warning(
                "Error sending sensor data",
                extra={"sensor_type": self.sensor_type, "reason": str(exc)},
            )
            return False

        sent_at = self._clock()
        with self._state_lock:
            self._total_sent += 1
            self._last_generated = sent_at
        return True

    def shutdown(self) -> None:
        """Stop the loop if needed and release the transport."""
        with self._transition_lock:
            self._halt()
        close = getattr(self.client, "close", None)
        if callable(close):
            close()

    def _spawn_loop(self) -> None:
        # Caller holds the transition lock.
        stop_event = Event()
        with self._state_lock:
            cadence = self._cadence
            self._running = True
            self._stop_event = stop_event
        worker = Thread(
            target=self._run_loop,
            args=(cadence, stop_event),
            name=f"generator-{self.sensor_type}",
            daemon=True,
        )
        with self._state_lock:
            self._worker = worker
        worker.start()

    def _halt(self) -> None:
        # Caller holds the transition lock. Returns once the worker has exited.
        with self._state_lock:
            stop_event, worker = self._stop_event, self._worker
            self._running = False
            self._stop_event = None
            self._worker = None
        if stop_event is not None:
            stop_event.set()
        if worker is not None and worker is not current_thread():
            worker.join()

    def _run_loop(self, cadence: timedelta, stop_event: Event) -> None:
        period = cadence.total_seconds()
        with self._state_lock:
            self._active_loops += 1
        try:
            while not stop_event.wait(period):
                try:
                    self.tick()
                except Exception:
                    with self._state_lock:
                        self._errors += 1
                    logger.exception(
                        "Unexpected failure during generation tick",
                        extra={"sensor_type": self.sensor_type},
                    )
        finally:
            with self._state_lock:
                self._active_loops -= 1


@lru_cache
def build_default_generator() -> GeneratorService:
    """Factory that wires the generator to the configured storage service."""
    settings = get_settings()
    return GeneratorService(
        client=build_default_client(),
        sensor_type=settings.sensor_type,
        frequency=settings.generation_frequency,
    )
