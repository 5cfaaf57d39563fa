"""
Task and User Services

Business rules between the REST layer and TaskDatabase: existence checks,
uniqueness rules, partial updates, soft deletes and filtered task listing.
Every task listing, including the REST shortcuts, is expressed as a
FilterCriteria and executed through the same predicate path.
"""

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from uuid import UUID

from .database import TaskDatabase
from .entities import Task, TaskPriority, TaskStatus, User
from .errors import InvalidRequestError, ResourceNotFoundError, UserAlreadyExistsError
from .filters import FilterCriteria, Predicate, by_text_search, combine
from .models import CreateTaskRequest, CreateUserRequest, UpdateTaskRequest, UpdateUserRequest
from .params import PageRequest, total_pages

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("taskboard.audit")

PBKDF2_ITERATIONS = 120_000


def hash_password(password: str, salt: Optional[str] = None,
                  iterations: int = PBKDF2_ITERATIONS) -> str:
    """Return ``pbkdf2_sha256$iterations$salt$digest`` for ``password``."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations)
    return f"pbkdf2_sha256${iterations}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iterations, salt, _ = encoded.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    return hmac.compare_digest(hash_password(password, salt, int(iterations)), encoded)


@dataclass(frozen=True)
class Page:
    content: List[Task]
    page_number: int
    page_size: int
    total_elements: int

    @property
    def total_pages(self) -> int:
        return total_pages(self.total_elements, self.page_size)

    @property
    def first(self) -> bool:
        return self.page_number == 0

    @property
    def last(self) -> bool:
        return self.page_number + 1 >= self.total_pages

    @property
    def empty(self) -> bool:
        return not self.content


class UserService:
    def __init__(self, db: TaskDatabase):
        self.db = db

    def _require(self, user: Optional[User], description: str) -> User:
        if user is None:
            raise ResourceNotFoundError(f"User not found with {description}")
        return user

    def create_user(self, request: CreateUserRequest) -> User:
        if self.db.username_exists(request.username):
            raise UserAlreadyExistsError(f"Username already exists: {request.username}")
        if self.db.email_exists(request.email):
            raise UserAlreadyExistsError(f"Email already exists: {request.email}")
        user = self.db.create_user(
            username=request.username,
            email=request.email,
            first_name=request.first_name,
            last_name=request.last_name,
            password_hash=hash_password(request.password),
        )
        audit_logger.info(f"User created | id={user.id} | username={user.username}")
        return user

    def get_user(self, user_id: UUID) -> User:
        return self._require(self.db.get_user(user_id), f"id: {user_id}")

    def get_user_by_username(self, username: str) -> User:
        return self._require(self.db.get_user_by_username(username), f"username: {username}")

    def get_user_by_email(self, email: str) -> User:
        return self._require(self.db.get_user_by_email(email), f"email: {email}")

    def list_users(self, active_only: bool = False) -> List[User]:
        return self.db.list_users(active_only=active_only)

    def update_user(self, user_id: UUID, request: UpdateUserRequest) -> User:
        user = self.get_user(user_id)
        changes: Dict[str, Any] = {
            "first_name": request.first_name,
            "last_name": request.last_name,
        }
        if request.email is not None and request.email != user.email:
            if self.db.email_exists(request.email):
                raise UserAlreadyExistsError(f"Email already exists: {request.email}")
            changes["email"] = request.email
        # Same password: keep the stored hash and salt
        if request.password and not verify_password(request.password, user.password_hash):
            changes["password_hash"] = hash_password(request.password)
        if request.is_active is not None:
            changes["is_active"] = request.is_active

        updated = self.db.update_user(user_id, changes)
        audit_logger.info(
            f"User updated | id={user_id} | changes={sorted(k for k in changes if k != 'password_hash')}"
        )
        return updated

    def delete_user(self, user_id: UUID) -> None:
        """Soft delete: mark the user inactive."""
        self.get_user(user_id)
        self.db.update_user(user_id, {"is_active": False})
        audit_logger.info(f"User deactivated | id={user_id}")

    def hard_delete_user(self, user_id: UUID) -> None:
        if not self.db.delete_user(user_id):
            raise ResourceNotFoundError(f"User not found with id: {user_id}")
        audit_logger.info(f"User deleted | id={user_id}")

    def username_exists(self, username: str) -> bool:
        return self.db.username_exists(username)

    def email_exists(self, email: str) -> bool:
        return self.db.email_exists(email)


class TaskService:
    def __init__(self, db: TaskDatabase):
        self.db = db

    def _ensure_user(self, user_id: UUID) -> None:
        if not self.db.user_exists(user_id):
            raise ResourceNotFoundError(f"User not found with id: {user_id}")

    def create_task(self, request: CreateTaskRequest) -> Task:
        self._ensure_user(request.user_id)
        task = self.db.create_task(
            title=request.title,
            owner_id=request.user_id,
            description=request.description,
            status=request.status,
            priority=request.priority,
            due_date=request.due_date,
        )
        audit_logger.info(f"Task created | id={task.id} | title={task.title} | owner={task.owner_id}")
        return task

    def get_task(self, task_id: UUID) -> Task:
        task = self.db.get_task(task_id)
        if task is None:
            raise ResourceNotFoundError(f"Task not found with id: {task_id}")
        return task

    def update_task(self, task_id: UUID, request: UpdateTaskRequest) -> Task:
        self.get_task(task_id)
        provided = request.model_dump(exclude_unset=True)
        changes = {
            key: value for key, value in provided.items()
            if value is not None or key in ("description", "due_date")
        }
        if not changes:
            raise InvalidRequestError("Update request contains no changes")
        task = self.db.update_task(task_id, changes)
        audit_logger.info(f"Task updated | id={task_id} | changes={sorted(changes)}")
        return task

    def delete_task(self, task_id: UUID) -> None:
        """Soft delete: mark the task inactive."""
        self.get_task(task_id)
        self.db.update_task(task_id, {"is_active": False})
        audit_logger.info(f"Task deactivated | id={task_id}")

    def hard_delete_task(self, task_id: UUID) -> None:
        if not self.db.delete_task(task_id):
            raise ResourceNotFoundError(f"Task not found with id: {task_id}")
        audit_logger.info(f"Task deleted | id={task_id}")

    def title_exists(self, title: str) -> bool:
        return self.db.task_title_exists(title)

    def find(self, predicate: Predicate, page: PageRequest) -> Page:
        tasks, total = self.db.find_tasks(
            predicate,
            offset=page.offset,
            limit=page.size,
            sort_field=page.sort_field,
            descending=page.descending,
        )
        return Page(content=tasks, page_number=page.page, page_size=page.size, total_elements=total)

    def search(self, criteria: FilterCriteria, page: PageRequest) -> Page:
        """List tasks matching every present criterion."""
        if criteria.owner_id is not None:
            self._ensure_user(criteria.owner_id)
        result = self.find(combine(criteria), page)
        logger.info(f"Task search {criteria} matched {result.total_elements} tasks")
        return result

    def search_by_query(self, query: str, page: PageRequest) -> Page:
        return self.find(by_text_search(query), page)

    def list_tasks(self, page: PageRequest, is_active: Optional[bool] = None,
                   status: Optional[TaskStatus] = None,
                   priority: Optional[TaskPriority] = None,
                   owner_id: Optional[UUID] = None) -> Page:
        """Shortcut listing used by the fixed REST routes."""
        criteria = FilterCriteria(
            is_active=is_active,
            status=status,
            priority=priority,
            owner_id=owner_id,
        )
        return self.search(criteria, page)
