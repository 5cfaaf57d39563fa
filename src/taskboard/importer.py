"""
YAML Seed Importer with UPSERT Logic

Loads users and their tasks from a YAML document inside a single transaction.
Users are matched by username and tasks by (owner, title); existing rows are
updated only for the fields the document specifies.

Expected layout::

    users:
      - username: alice
        email: alice@example.com
        first_name: Alice
        last_name: Smith
        password: secret123
        tasks:
          - title: Buy milk
            status: in_progress
            priority: high
            due_date: 2024-01-15T09:00:00
"""

import logging
import sqlite3
import uuid
from datetime import date, datetime
from typing import Any, Dict, Optional

import yaml

from .database import TaskDatabase
from .entities import TaskPriority, TaskStatus
from .errors import InvalidFilterParameterError
from .params import parse_priority, parse_status, parse_timestamp
from .service import hash_password
from .timeutil import to_db_timestamp, utc_now

logger = logging.getLogger(__name__)


def import_seed(db: TaskDatabase, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Import users and tasks with UPSERT semantics.

    Args:
        db: TaskDatabase instance
        data: Parsed YAML document

    Returns:
        Dict with import statistics and per-item error messages

    Raises:
        ValueError: For a malformed top-level structure
    """
    users = data.get("users", [])
    if not isinstance(users, list):
        raise ValueError("YAML 'users' must be a list")

    now = to_db_timestamp(utc_now())
    stats = {
        "users_created": 0,
        "users_updated": 0,
        "tasks_created": 0,
        "tasks_updated": 0,
        "errors": [],
    }

    with db._transaction() as cursor:
        for index, user_data in enumerate(users):
            username = user_data.get("username") if isinstance(user_data, dict) else None
            label = username or f"#{index}"
            cursor.execute("SAVEPOINT seed_user")
            try:
                user_id, created = _upsert_user(cursor, user_data, now)
                cursor.execute("RELEASE SAVEPOINT seed_user")
            except (ValueError, InvalidFilterParameterError, sqlite3.Error) as e:
                cursor.execute("ROLLBACK TO SAVEPOINT seed_user")
                cursor.execute("RELEASE SAVEPOINT seed_user")
                stats["errors"].append(f"Failed to import user '{label}': {e}")
                continue
            stats["users_created" if created else "users_updated"] += 1

            tasks = user_data.get("tasks", [])
            if not isinstance(tasks, list):
                stats["errors"].append(f"Tasks for user '{label}' must be a list")
                continue
            for task_data in tasks:
                title = task_data.get("title") if isinstance(task_data, dict) else None
                cursor.execute("SAVEPOINT seed_task")
                try:
                    created = _upsert_task(cursor, task_data, user_id, now)
                    cursor.execute("RELEASE SAVEPOINT seed_task")
                except (ValueError, InvalidFilterParameterError, sqlite3.Error) as e:
                    cursor.execute("ROLLBACK TO SAVEPOINT seed_task")
                    cursor.execute("RELEASE SAVEPOINT seed_task")
                    stats["errors"].append(f"Failed to import task '{title or 'unnamed'}': {e}")
                    continue
                stats["tasks_created" if created else "tasks_updated"] += 1

    logger.info(
        f"Seed import: {stats['users_created']} users created, {stats['users_updated']} updated, "
        f"{stats['tasks_created']} tasks created, {stats['tasks_updated']} updated, "
        f"{len(stats['errors'])} errors"
    )
    return stats


def _as_timestamp(value: Any, field: str) -> Optional[str]:
    # PyYAML already turns unquoted ISO dates into date/datetime objects
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_db_timestamp(value)
    if isinstance(value, date):
        return to_db_timestamp(datetime.combine(value, datetime.min.time()))
    return to_db_timestamp(parse_timestamp(str(value), field))


def _upsert_user(cursor: sqlite3.Cursor, user_data: Any, now: str):
    if not isinstance(user_data, dict):
        raise ValueError("User data must be a dictionary")
    username = user_data.get("username")
    if not username:
        raise ValueError("User must have 'username' field")

    cursor.execute("SELECT id FROM users WHERE username = ?", (username,))
    row = cursor.fetchone()
    if row is None:
        missing = [f for f in ("email", "first_name", "last_name", "password") if not user_data.get(f)]
        if missing:
            raise ValueError(f"New user is missing fields: {', '.join(missing)}")
        user_id = str(uuid.uuid4())
        cursor.execute("""
            INSERT INTO users (id, username, email, first_name, last_name, password_hash,
                               is_active, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            user_id, username, user_data["email"], user_data["first_name"], user_data["last_name"],
            hash_password(str(user_data["password"])), int(user_data.get("is_active", True)), now, now,
        ))
        return user_id, True

    user_id = row[0]
    update_parts = ["updated_at = ?"]
    update_values = [now]
    for field in ("email", "first_name", "last_name"):
        if user_data.get(field) is not None:
            update_parts.append(f"{field} = ?")
            update_values.append(user_data[field])
    if user_data.get("password"):
        update_parts.append("password_hash = ?")
        update_values.append(hash_password(str(user_data["password"])))
    if user_data.get("is_active") is not None:
        update_parts.append("is_active = ?")
        update_values.append(int(bool(user_data["is_active"])))
    update_values.append(user_id)
    cursor.execute(f"UPDATE users SET {', '.join(update_parts)} WHERE id = ?", update_values)
    return user_id, False


def _upsert_task(cursor: sqlite3.Cursor, task_data: Any, owner_id: str, now: str) -> bool:
    if not isinstance(task_data, dict):
        raise ValueError("Task data must be a dictionary")
    title = task_data.get("title")
    if not title:
        raise ValueError("Task must have 'title' field")

    status = parse_status(_optional_str(task_data.get("status")))
    priority = parse_priority(_optional_str(task_data.get("priority")))
    due_date = _as_timestamp(task_data.get("due_date"), "due_date")

    cursor.execute("SELECT id FROM tasks WHERE owner_id = ? AND title = ?", (owner_id, title))
    row = cursor.fetchone()
    if row is None:
        created_at = _as_timestamp(task_data.get("created_at"), "created_at") or now
        cursor.execute("""
            INSERT INTO tasks (id, title, description, priority, status, owner_id,
                               is_active, due_date, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            str(uuid.uuid4()), title, task_data.get("description"),
            (priority or TaskPriority.MEDIUM).name, (status or TaskStatus.PENDING).name,
            owner_id, int(task_data.get("is_active", True)), due_date, created_at, created_at,
        ))
        return True

    update_parts = ["updated_at = ?"]
    update_values = [now]
    if task_data.get("description") is not None:
        update_parts.append("description = ?")
        update_values.append(task_data["description"])
    if status is not None:
        update_parts.append("status = ?")
        update_values.append(status.name)
    if priority is not None:
        update_parts.append("priority = ?")
        update_values.append(priority.name)
    if due_date is not None:
        update_parts.append("due_date = ?")
        update_values.append(due_date)
    if task_data.get("is_active") is not None:
        update_parts.append("is_active = ?")
        update_values.append(int(bool(task_data["is_active"])))
    update_values.append(row[0])
    cursor.execute(f"UPDATE tasks SET {', '.join(update_parts)} WHERE id = ?", update_values)
    return False


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def import_seed_from_file(db: TaskDatabase, yaml_file_path: str) -> Dict[str, Any]:
    """
    Import a seed document from a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: For invalid YAML or a non-mapping root
    """
    try:
        with open(yaml_file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"YAML file not found: {yaml_file_path}")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML format: {e}")

    if not isinstance(data, dict):
        raise ValueError("YAML file must contain a dictionary at root level")
    return import_seed(db, data)
