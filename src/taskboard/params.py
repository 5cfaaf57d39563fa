"""
Parsing of raw query/path/body parameters into typed filter and paging values.

Everything here raises InvalidFilterParameterError naming the offending field,
so the API reports all filter input problems the same way.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Tuple
from uuid import UUID

from .entities import TaskPriority, TaskStatus
from .errors import InvalidFilterParameterError
from .filters import FilterCriteria, TaskField
from .models import SearchTaskRequest

# Accepted sort keys, camelCase as used by clients plus the column names
SORT_FIELDS: Dict[str, TaskField] = {
    "createdAt": TaskField.CREATED_AT,
    "updatedAt": TaskField.UPDATED_AT,
    "dueDate": TaskField.DUE_DATE,
    "title": TaskField.TITLE,
    "status": TaskField.STATUS,
    "priority": TaskField.PRIORITY,
}
SORT_FIELDS.update({field.value: field for field in list(SORT_FIELDS.values())})

DEFAULT_SORT = "createdAt,desc"

# Largest row offset SQLite accepts as an INTEGER bind parameter
MAX_OFFSET = 2 ** 63 - 1


def parse_status(value: Optional[str], field: str = "status") -> Optional[TaskStatus]:
    if value is None or not value.strip():
        return None
    try:
        return TaskStatus[value.strip().upper()]
    except KeyError:
        valid = ", ".join(s.name for s in TaskStatus)
        raise InvalidFilterParameterError(field, value, f"expected one of {valid}")


def parse_priority(value: Optional[str], field: str = "priority") -> Optional[TaskPriority]:
    if value is None or not value.strip():
        return None
    try:
        return TaskPriority[value.strip().upper()]
    except KeyError:
        valid = ", ".join(p.name for p in TaskPriority)
        raise InvalidFilterParameterError(field, value, f"expected one of {valid}")


def parse_uuid(value: Optional[str], field: str) -> Optional[UUID]:
    if value is None or not value.strip():
        return None
    try:
        return UUID(value.strip())
    except ValueError:
        raise InvalidFilterParameterError(field, value, "expected a UUID")


def parse_timestamp(value: Optional[str], field: str) -> Optional[datetime]:
    """Parse an ISO-8601 date or datetime; a trailing 'Z' is accepted as UTC."""
    if value is None or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise InvalidFilterParameterError(field, value, "expected an ISO-8601 timestamp")


def criteria_from_request(request: SearchTaskRequest) -> FilterCriteria:
    """Turn a raw search request into FilterCriteria, validating every field."""
    return FilterCriteria(
        search_query=request.search_query,
        status=parse_status(request.status),
        priority=parse_priority(request.priority),
        owner_id=parse_uuid(request.user_id, "user_id"),
        is_active=request.is_active,
        due_date_from=parse_timestamp(request.due_date_from, "due_date_from"),
        due_date_to=parse_timestamp(request.due_date_to, "due_date_to"),
        created_at_from=parse_timestamp(request.created_at_from, "created_at_from"),
        created_at_to=parse_timestamp(request.created_at_to, "created_at_to"),
    )


def parse_sort(sort: Optional[str]) -> Tuple[TaskField, bool]:
    """
    Parse a ``field,direction`` sort expression.

    Returns:
        (sort field, descending flag); direction defaults to ascending when
        only a field is given
    """
    text = (sort or DEFAULT_SORT).strip()
    name, _, direction = text.partition(",")
    name = name.strip()
    direction = direction.strip().lower() or "asc"
    if name not in SORT_FIELDS:
        raise InvalidFilterParameterError(
            "sort", sort, f"unknown field '{name}', expected one of {', '.join(sorted(SORT_FIELDS))}"
        )
    if direction not in ("asc", "desc"):
        raise InvalidFilterParameterError("sort", sort, "direction must be 'asc' or 'desc'")
    return SORT_FIELDS[name], direction == "desc"


@dataclass(frozen=True)
class PageRequest:
    page: int = 0
    size: int = 10
    sort_field: TaskField = TaskField.CREATED_AT
    descending: bool = True

    @property
    def offset(self) -> int:
        return self.page * self.size

    @classmethod
    def parse(cls, page: Optional[int], size: Optional[int], sort: Optional[str],
              default_size: int = 10, max_size: int = 100) -> "PageRequest":
        page = 0 if page is None else page
        size = default_size if size is None else size
        if page < 0:
            raise InvalidFilterParameterError("page", page, "must be zero or greater")
        if size < 1 or size > max_size:
            raise InvalidFilterParameterError("size", size, f"must be between 1 and {max_size}")
        if page * size > MAX_OFFSET:
            raise InvalidFilterParameterError("page", page, "is too large")
        sort_field, descending = parse_sort(sort)
        return cls(page=page, size=size, sort_field=sort_field, descending=descending)


def total_pages(total: int, size: int) -> int:
    return math.ceil(total / size) if size else 0
