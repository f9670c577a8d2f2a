"""Persistence and query engine for sensor readings."""

from __future__ import annotations

import logging
from datetime import datetime
from functools import lru_cache
from typing import Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy import update as sql_update
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.sql.elements import ColumnElement

from datastore.database import build_engine, build_session_factory, create_tables, utcnow
from datastore.tables import SensorDataRow
from models.queries import Page, PaginationParams, ReadingFilter, ReadingUpdate
from models.records import SensorReading, StoredReading, ensure_utc
from services.errors import NotFoundError
from settings import get_settings

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100

_LIVE = SensorDataRow.deleted_at.is_(None)


def _row_from_reading(reading: SensorReading) -> SensorDataRow:
    return SensorDataRow(
        sensor_value=reading.sensor_value,
        sensor_type=reading.sensor_type,
        id1=reading.id1,
        id2=reading.id2,
        timestamp=ensure_utc(reading.timestamp),
    )


def _filter_conditions(reading_filter: Optional[ReadingFilter]) -> List[ColumnElement[bool]]:
    if reading_filter is None:
        return []
    conditions: List[ColumnElement[bool]] = []
    if reading_filter.sensor_type is not None:
        conditions.append(SensorDataRow.sensor_type == reading_filter.sensor_type)
    if reading_filter.id1 is not None:
        conditions.append(SensorDataRow.id1 == reading_filter.id1)
    if reading_filter.id2 is not None:
        conditions.append(SensorDataRow.id2 == reading_filter.id2)
    if reading_filter.from_time is not None:
        conditions.append(SensorDataRow.timestamp >= ensure_utc(reading_filter.from_time))
    if reading_filter.to_time is not None:
        conditions.append(SensorDataRow.timestamp <= ensure_utc(reading_filter.to_time))
    if reading_filter.min_value is not None:
        conditions.append(SensorDataRow.sensor_value >= reading_filter.min_value)
    if reading_filter.max_value is not None:
        conditions.append(SensorDataRow.sensor_value <= reading_filter.max_value)
    return conditions


class SensorRepository:
    """Stores readings and answers filtered, paginated reads.

    Every call runs in its own short transaction; consistency across
    concurrent writers is left to the database.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self._session_factory = session_factory
        self.batch_size = batch_size

    def create(self, reading: SensorReading) -> StoredReading:
        row = _row_from_reading(reading)
        with self._session_factory.begin() as session:
            session.add(row)
            session.flush()
            return row.to_domain()

    def create_batch(self, readings: Iterable[SensorReading]) -> int:
        """Insert all readings or none of them, flushing in bounded chunks."""
        pending = list(readings)
        if not pending:
            return 0
        with self._session_factory.begin() as session:
            for start in range(0, len(pending), self.batch_size):
                chunk = pending[start : start + self.batch_size]
                session.add_all([_row_from_reading(reading) for reading in chunk])
                session.flush()
        logger.debug("Inserted reading batch", extra={"batch_size": len(pending)})
        return len(pending)

    def get_by_id(self, reading_id: int) -> StoredReading:
        with self._session_factory() as session:
            return self._load_live(session, reading_id).to_domain()

    def get_by_identifier_pair(self, id1: str, id2: int) -> List[StoredReading]:
        statement = (
            select(SensorDataRow)
            .where(_LIVE, SensorDataRow.id1 == id1, SensorDataRow.id2 == id2)
            .order_by(SensorDataRow.id.asc())
        )
        with self._session_factory() as session:
            return [row.to_domain() for row in session.scalars(statement)]

    def get_by_time_window(self, from_time: datetime, to_time: datetime) -> List[StoredReading]:
        start, end = ensure_utc(from_time), ensure_utc(to_time)
        if start > end:
            return []
        statement = (
            select(SensorDataRow)
            .where(_LIVE, SensorDataRow.timestamp >= start, SensorDataRow.timestamp <= end)
            .order_by(SensorDataRow.timestamp.asc(), SensorDataRow.id.asc())
        )
        with self._session_factory() as session:
            return [row.to_domain() for row in session.scalars(statement)]

    def list(
        self,
        reading_filter: Optional[ReadingFilter] = None,
        pagination: Optional[PaginationParams] = None,
    ) -> Page[StoredReading]:
        params = (pagination or PaginationParams()).normalized()
        conditions = [_LIVE, *_filter_conditions(reading_filter)]

        sort_column = getattr(SensorDataRow, params.sort)
        if params.order == "asc":
            ordering = (sort_column.asc(), SensorDataRow.id.asc())
        else:
            ordering = (sort_column.desc(), SensorDataRow.id.desc())

        count_statement = select(func.count()).select_from(SensorDataRow).where(*conditions)
        page_statement = (
            select(SensorDataRow)
            .where(*conditions)
            .order_by(*ordering)
            .offset(params.offset)
            .limit(params.page_size)
        )
        with self._session_factory() as session:
            total = session.scalar(count_statement) or 0
            rows = session.scalars(page_statement).all()

        return Page(
            page=params.page,
            page_size=params.page_size,
            total=total,
            data=[row.to_domain() for row in rows],
        )

    def update(self, reading_id: int, changes: ReadingUpdate) -> StoredReading:
        """Apply only the supplied fields on top of the stored record."""
        values = changes.changes()
        if "timestamp" in values:
            values["timestamp"] = ensure_utc(values["timestamp"])
        with self._session_factory.begin() as session:
            row = self._load_live(session, reading_id)
            for name, value in values.items():
                setattr(row, name, value)
            if values:
                row.updated_at = utcnow()
            session.flush()
            return row.to_domain()

    def delete(self, reading_id: int) -> None:
        now = utcnow()
        statement = (
            sql_update(SensorDataRow)
            .where(SensorDataRow.id == reading_id, _LIVE)
            .values(deleted_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        with self._session_factory.begin() as session:
            result = session.execute(statement)
            if result.rowcount == 0:
                raise NotFoundError(f"sensor data {reading_id} not found")
        logger.info("Soft deleted sensor data", extra={"reading_id": reading_id})

    def delete_by_filter(self, reading_filter: Optional[ReadingFilter] = None) -> int:
        now = utcnow()
        statement = (
            sql_update(SensorDataRow)
            .where(_LIVE, *_filter_conditions(reading_filter))
            .values(deleted_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        with self._session_factory.begin() as session:
            affected = session.execute(statement).rowcount or 0
        logger.info("Soft deleted sensor data by filter", extra={"batch_size": affected})
        return affected

    @staticmethod
    def _load_live(session: Session, reading_id: int) -> SensorDataRow:
        row = session.scalar(
            select(SensorDataRow).where(SensorDataRow.id == reading_id, _LIVE)
        )
        if row is None:
            raise NotFoundError(f"sensor data {reading_id} not found")
        return row


@lru_cache
def build_default_session_factory(database_url: Optional[str] = None) -> sessionmaker:
    url = database_url or get_settings().database_url
    engine = build_engine(url)
    create_tables(engine)
    return build_session_factory(engine)


@lru_cache
def build_default_repository() -> SensorRepository:
    """Factory that wires the repository to the configured database."""
    return SensorRepository(build_default_session_factory())
