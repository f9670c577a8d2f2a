"""Filter, pagination and update parameters for reading queries."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Generic, List, Optional, TypeVar

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
DEFAULT_SORT = "created_at"
DEFAULT_ORDER = "desc"

SORTABLE_FIELDS = frozenset(
    {
        "id",
        "sensor_value",
        "sensor_type",
        "id1",
        "id2",
        "timestamp",
        "created_at",
        "updated_at",
    }
)

T = TypeVar("T")


@dataclass(frozen=True)
class ReadingFilter:
    """Optional predicates combined with AND; an empty filter matches everything."""

    sensor_type: Optional[str] = None
    id1: Optional[str] = None
    id2: Optional[int] = None
    from_time: Optional[datetime] = None
    to_time: Optional[datetime] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None


@dataclass(frozen=True)
class PaginationParams:
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    sort: str = DEFAULT_SORT
    order: str = DEFAULT_ORDER

    def normalized(self) -> "PaginationParams":
        """Clamp out-of-range values to defaults instead of rejecting them."""
        page = self.page if self.page >= 1 else 1
        page_size = self.page_size
        if page_size < 1 or page_size > MAX_PAGE_SIZE:
            page_size = DEFAULT_PAGE_SIZE
        sort = (self.sort or "").strip().lower()
        if sort not in SORTABLE_FIELDS:
            sort = DEFAULT_SORT
        order = (self.order or "").strip().lower()
        if order not in {"asc", "desc"}:
            order = DEFAULT_ORDER
        return replace(self, page=page, page_size=page_size, sort=sort, order=order)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass(frozen=True)
class Page(Generic[T]):
    page: int
    page_size: int
    total: int
    data: List[T] = field(default_factory=list)

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total / self.page_size)


@dataclass(frozen=True)
class ReadingUpdate:
    """Fields a partial update may change; ``None`` leaves the stored value."""

    sensor_value: Optional[float] = None
    sensor_type: Optional[str] = None
    timestamp: Optional[datetime] = None

    def changes(self) -> dict:
        return {
            item.name: getattr(self, item.name)
            for item in fields(self)
            if getattr(self, item.name) is not None
        }
