"""
Domain records for users and tasks.

These are the plain values the database layer hands out and the predicate
builder evaluates against. Request/response validation lives in models.py.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID


class TaskStatus(str, Enum):
    """Task lifecycle states, stored by name."""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


@dataclass(frozen=True)
class User:
    id: UUID
    username: str
    email: str
    first_name: str
    last_name: str
    password_hash: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Task:
    """
    A persisted task.

    ``owner_username`` is filled in by queries that join the owning user and is
    not part of the task row itself.
    """
    id: UUID
    title: str
    description: Optional[str]
    status: TaskStatus
    priority: TaskPriority
    owner_id: UUID
    is_active: bool
    due_date: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    owner_username: Optional[str] = None
