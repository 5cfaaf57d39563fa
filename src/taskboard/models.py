"""
Pydantic models for Taskboard API request/response validation.

Provides request bodies for task and user operations, the paginated task
response, and the uniform error response rendered by the exception handlers.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Type
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .entities import Task, TaskPriority, TaskStatus, User

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class RequestModel(BaseModel):
    """Request body base: fields accept camelCase keys as well as snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _coerce_enum(enum_cls: Type[Enum], value):
    """Accept enum members or their names in any case, surrounding whitespace ignored."""
    if value is None or isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        name = value.strip().upper()
        try:
            return enum_cls[name]
        except KeyError:
            valid = ", ".join(member.name for member in enum_cls)
            raise ValueError(f"must be one of: {valid}")
    return value


def _check_email(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Email should be valid")
    return value


class CreateTaskRequest(RequestModel):
    """Request model for creating a task."""

    title: str = Field(min_length=1, max_length=100, description="Task title")
    description: Optional[str] = Field(None, max_length=500, description="Task description")
    priority: TaskPriority = Field(TaskPriority.MEDIUM, description="LOW, MEDIUM or HIGH")
    status: TaskStatus = Field(TaskStatus.PENDING, description="Initial lifecycle status")
    user_id: UUID = Field(description="Owning user ID")
    due_date: Optional[datetime] = Field(None, description="Due date (ISO-8601)")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        if not v.strip():
            raise ValueError("Title cannot be blank")
        return v.strip()

    @field_validator("priority", mode="before")
    @classmethod
    def parse_priority(cls, v):
        return _coerce_enum(TaskPriority, v)

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v):
        return _coerce_enum(TaskStatus, v)


class UpdateTaskRequest(RequestModel):
    """
    Partial task update.

    Omitted fields are left unchanged. ``description`` and ``due_date`` may be
    sent as an explicit null to clear them.
    """

    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None
    is_active: Optional[bool] = None
    due_date: Optional[datetime] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Title cannot be blank")
        return v.strip() if v is not None else v

    @field_validator("priority", mode="before")
    @classmethod
    def parse_priority(cls, v):
        return _coerce_enum(TaskPriority, v)

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v):
        return _coerce_enum(TaskStatus, v)


class SearchTaskRequest(RequestModel):
    """
    Raw search criteria as sent by the client.

    Enum, identifier and timestamp fields stay as strings here; they are parsed
    by params.criteria_from_request so that a bad value is reported as an
    invalid filter parameter naming the field.
    """

    search_query: Optional[str] = Field(None, description="Text matched against title and description")
    status: Optional[str] = Field(None, description="Status filter, e.g. IN_PROGRESS")
    priority: Optional[str] = Field(None, description="Priority filter, e.g. HIGH")
    user_id: Optional[str] = Field(None, description="Owner user ID")
    is_active: Optional[bool] = Field(None, description="Active flag filter")
    due_date_from: Optional[str] = Field(None, description="Inclusive lower due date bound")
    due_date_to: Optional[str] = Field(None, description="Inclusive upper due date bound")
    created_at_from: Optional[str] = Field(None, description="Inclusive lower creation bound")
    created_at_to: Optional[str] = Field(None, description="Inclusive upper creation bound")


class TaskResponse(BaseModel):
    id: UUID
    title: str
    description: Optional[str] = None
    priority: TaskPriority
    status: TaskStatus
    user_id: UUID
    username: Optional[str] = None
    is_active: bool
    due_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            priority=task.priority,
            status=task.status,
            user_id=task.owner_id,
            username=task.owner_username,
            is_active=task.is_active,
            due_date=task.due_date,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


class TaskPageResponse(BaseModel):
    """One page of tasks plus paging metadata."""

    content: List[TaskResponse]
    page_number: int
    page_size: int
    total_elements: int
    total_pages: int
    first: bool
    last: bool
    empty: bool


class CreateUserRequest(RequestModel):
    username: str = Field(min_length=3, max_length=50)
    email: str = Field(max_length=100)
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=6, description="Plain-text password, stored hashed")

    @field_validator("username", "first_name", "last_name")
    @classmethod
    def validate_not_blank(cls, v):
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return _check_email(v)


class UpdateUserRequest(RequestModel):
    """User update; a blank or missing password keeps the current one."""

    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    email: Optional[str] = Field(None, max_length=100)
    password: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_not_blank(cls, v):
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return _check_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        if v is None or v == "":
            return None
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters long")
        return v


class UserResponse(BaseModel):
    id: UUID
    username: str
    email: str
    first_name: str
    last_name: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            is_active=user.is_active,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class ErrorResponse(BaseModel):
    """Uniform error body returned by every exception handler."""

    timestamp: datetime
    status: int
    error_code: str
    message: str
    error: str
    path: str
    errors: Dict[str, str] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    status: str
    database_connected: bool
    timestamp: str
