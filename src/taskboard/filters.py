"""
Composable Task Filter Predicates

Translates a FilterCriteria value into one predicate over Task fields. A
predicate is a small immutable expression tree that can be rendered two ways:

- ``to_sql()`` produces a parameterized SQLite WHERE fragment
- ``matches(task)`` evaluates the same condition against a Task record

Every criterion that is absent from FilterCriteria becomes the tautology TRUE,
which is the identity element of ``&``. Adding criteria therefore only ever
narrows the result set.
"""

import string
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Tuple
from uuid import UUID

from .entities import Task, TaskPriority, TaskStatus
from .timeutil import normalize_timestamp, to_db_timestamp

# SQLite's LOWER() only folds ASCII letters, so the in-memory path does the same
_ASCII_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)


def ascii_lower(text: str) -> str:
    return text.translate(_ASCII_LOWER)


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class TaskField(str, Enum):
    """Field selectors; each value is both the column and the Task attribute name."""
    TITLE = "title"
    DESCRIPTION = "description"
    STATUS = "status"
    PRIORITY = "priority"
    OWNER_ID = "owner_id"
    IS_ACTIVE = "is_active"
    DUE_DATE = "due_date"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"

    def column(self, alias: Optional[str] = None) -> str:
        return f"{alias}.{self.value}" if alias else self.value


def _sql_value(value: Any) -> Any:
    """Convert a Python value to the representation stored in the tasks table."""
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        return to_db_timestamp(value)
    return value


def _task_value(task: Task, field: TaskField) -> Any:
    value = getattr(task, field.value)
    if isinstance(value, datetime):
        return normalize_timestamp(value)
    return value


class Predicate:
    """Base class for predicate nodes. Subclasses are frozen dataclasses."""

    def to_sql(self, alias: Optional[str] = None) -> Tuple[str, List[Any]]:
        raise NotImplementedError

    def matches(self, task: Task) -> bool:
        raise NotImplementedError

    def __and__(self, other: "Predicate") -> "Predicate":
        return all_of(self, other)

    def __or__(self, other: "Predicate") -> "Predicate":
        return any_of(self, other)

    def __call__(self, task: Task) -> bool:
        return self.matches(task)


@dataclass(frozen=True)
class Always(Predicate):
    """The always-true predicate."""

    def to_sql(self, alias: Optional[str] = None) -> Tuple[str, List[Any]]:
        return "1=1", []

    def matches(self, task: Task) -> bool:
        return True


TRUE = Always()


@dataclass(frozen=True)
class Equals(Predicate):
    field: TaskField
    value: Any

    def to_sql(self, alias: Optional[str] = None) -> Tuple[str, List[Any]]:
        return f"{self.field.column(alias)} = ?", [_sql_value(self.value)]

    def matches(self, task: Task) -> bool:
        return _task_value(task, self.field) == self.value


@dataclass(frozen=True)
class ContainsText(Predicate):
    """Case-insensitive substring match. ``text`` is stored already folded."""
    field: TaskField
    text: str

    def to_sql(self, alias: Optional[str] = None) -> Tuple[str, List[Any]]:
        clause = f"LOWER({self.field.column(alias)}) LIKE ? ESCAPE '\\'"
        return clause, [f"%{_escape_like(self.text)}%"]

    def matches(self, task: Task) -> bool:
        value = _task_value(task, self.field)
        if value is None:
            return False
        return self.text in ascii_lower(value)


@dataclass(frozen=True)
class AtLeast(Predicate):
    field: TaskField
    bound: datetime

    def to_sql(self, alias: Optional[str] = None) -> Tuple[str, List[Any]]:
        return f"{self.field.column(alias)} >= ?", [_sql_value(self.bound)]

    def matches(self, task: Task) -> bool:
        value = _task_value(task, self.field)
        return value is not None and value >= normalize_timestamp(self.bound)


@dataclass(frozen=True)
class AtMost(Predicate):
    field: TaskField
    bound: datetime

    def to_sql(self, alias: Optional[str] = None) -> Tuple[str, List[Any]]:
        return f"{self.field.column(alias)} <= ?", [_sql_value(self.bound)]

    def matches(self, task: Task) -> bool:
        value = _task_value(task, self.field)
        return value is not None and value <= normalize_timestamp(self.bound)


def _render_group(parts: Tuple[Predicate, ...], joiner: str, alias: Optional[str]) -> Tuple[str, List[Any]]:
    clauses: List[str] = []
    params: List[Any] = []
    for part in parts:
        clause, part_params = part.to_sql(alias)
        clauses.append(f"({clause})")
        params.extend(part_params)
    return f" {joiner} ".join(clauses), params


@dataclass(frozen=True)
class AllOf(Predicate):
    parts: Tuple[Predicate, ...]

    def to_sql(self, alias: Optional[str] = None) -> Tuple[str, List[Any]]:
        return _render_group(self.parts, "AND", alias)

    def matches(self, task: Task) -> bool:
        return all(part.matches(task) for part in self.parts)


@dataclass(frozen=True)
class AnyOf(Predicate):
    parts: Tuple[Predicate, ...]

    def to_sql(self, alias: Optional[str] = None) -> Tuple[str, List[Any]]:
        return _render_group(self.parts, "OR", alias)

    def matches(self, task: Task) -> bool:
        return any(part.matches(task) for part in self.parts)


def _unique(parts: List[Predicate]) -> Tuple[Predicate, ...]:
    seen: List[Predicate] = []
    for part in parts:
        if part not in seen:
            seen.append(part)
    return tuple(seen)


def all_of(*predicates: Predicate) -> Predicate:
    """
    Conjoin predicates.

    Nested conjunctions are flattened, tautologies are dropped and repeated
    operands collapse, so ``TRUE & p == p`` and ``p & p == p`` hold structurally.
    """
    parts: List[Predicate] = []
    for predicate in predicates:
        if isinstance(predicate, Always):
            continue
        if isinstance(predicate, AllOf):
            parts.extend(predicate.parts)
        else:
            parts.append(predicate)
    unique = _unique(parts)
    if not unique:
        return TRUE
    if len(unique) == 1:
        return unique[0]
    return AllOf(unique)


def any_of(*predicates: Predicate) -> Predicate:
    """Disjoin predicates. Any tautology operand makes the result TRUE."""
    parts: List[Predicate] = []
    for predicate in predicates:
        if isinstance(predicate, Always):
            return TRUE
        if isinstance(predicate, AnyOf):
            parts.extend(predicate.parts)
        else:
            parts.append(predicate)
    unique = _unique(parts)
    if len(unique) == 1:
        return unique[0]
    return AnyOf(unique)


@dataclass(frozen=True)
class FilterCriteria:
    """
    Optional filter dimensions for a task search.

    ``None`` means "absent" for every field; ``is_active=False`` is a real
    value and filters to inactive tasks. ``search_query`` is trimmed and a
    blank string is normalized to None.
    """
    search_query: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    owner_id: Optional[UUID] = None
    is_active: Optional[bool] = None
    due_date_from: Optional[datetime] = None
    due_date_to: Optional[datetime] = None
    created_at_from: Optional[datetime] = None
    created_at_to: Optional[datetime] = None

    def __post_init__(self):
        query = self.search_query
        if query is not None:
            query = query.strip() or None
            object.__setattr__(self, "search_query", query)


def by_text_search(query: Optional[str]) -> Predicate:
    """Match tasks whose title or description contains ``query``, ignoring ASCII case."""
    if query is None or not query.strip():
        return TRUE
    text = ascii_lower(query.strip())
    return any_of(
        ContainsText(TaskField.TITLE, text),
        ContainsText(TaskField.DESCRIPTION, text),
    )


def _equals(field: TaskField, value: Any) -> Predicate:
    if value is None:
        return TRUE
    return Equals(field, value)


def by_status(status: Optional[TaskStatus]) -> Predicate:
    return _equals(TaskField.STATUS, status)


def by_priority(priority: Optional[TaskPriority]) -> Predicate:
    return _equals(TaskField.PRIORITY, priority)


def by_owner(owner_id: Optional[UUID]) -> Predicate:
    return _equals(TaskField.OWNER_ID, owner_id)


def by_active(is_active: Optional[bool]) -> Predicate:
    return _equals(TaskField.IS_ACTIVE, is_active)


def by_date_range(field: TaskField, date_from: Optional[datetime],
                  date_to: Optional[datetime]) -> Predicate:
    """
    Inclusive range on a timestamp field.

    Either bound may be omitted. A task whose field is NULL never satisfies a
    present bound.
    """
    lower = AtLeast(field, date_from) if date_from is not None else TRUE
    upper = AtMost(field, date_to) if date_to is not None else TRUE
    return lower & upper


def combine(criteria: FilterCriteria) -> Predicate:
    """Conjunction of every criterion in ``criteria``; absent ones contribute TRUE."""
    return all_of(
        by_text_search(criteria.search_query),
        by_status(criteria.status),
        by_priority(criteria.priority),
        by_owner(criteria.owner_id),
        by_active(criteria.is_active),
        by_date_range(TaskField.DUE_DATE, criteria.due_date_from, criteria.due_date_to),
        by_date_range(TaskField.CREATED_AT, criteria.created_at_from, criteria.created_at_to),
    )
