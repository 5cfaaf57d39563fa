"""
Task Database Layer

Provides SQLite-based storage for users and tasks with WAL mode for concurrent
access. Task listing goes through filter predicates (see filters.py), which
render themselves into the WHERE clause of a single paginated query.
"""

import logging
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from .entities import Task, TaskPriority, TaskStatus, User
from .filters import TRUE, Predicate, TaskField
from .timeutil import from_db_timestamp, to_db_timestamp, utc_now

logger = logging.getLogger(__name__)

# Legacy spellings found in older data, keyed by canonical enum name.
STATUS_ALIASES: Dict[str, Tuple[str, ...]] = {
    "PENDING": ("TODO", "NEW", "OPEN", "CREATED", "PENDING"),
    "IN_PROGRESS": ("IN_PROGRESS", "INPROGRESS", "IN-PROGRESS", "ACTIVE", "STARTED", "DOING", "WIP"),
    "COMPLETED": ("COMPLETED", "DONE", "FINISHED", "CLOSED", "RESOLVED"),
    "CANCELLED": ("CANCELLED", "CANCELED", "CANCEL", "DELETED", "REMOVED", "REJECTED"),
}
PRIORITY_ALIASES: Dict[str, Tuple[str, ...]] = {
    "LOW": ("LOW", "LO", "LOWEST", "MINOR", "L"),
    "MEDIUM": ("MEDIUM", "MEDIM", "MED", "MEDUM", "MEDIUN", "MID", "NORMAL", "MIDDLE", "M", "DEFAULT"),
    "HIGH": ("HIGH", "HIHH", "HIH", "HIGHT", "HEIGH", "HI", "CRITICAL", "URGENT", "HIGHEST", "MAJOR", "H"),
}

_TASK_COLUMNS = (
    "t.id, t.title, t.description, t.status, t.priority, t.owner_id, t.is_active, "
    "t.due_date, t.created_at, t.updated_at, u.username"
)
_TASK_UPDATABLE = ("title", "description", "status", "priority", "is_active", "due_date")
_USER_UPDATABLE = ("email", "first_name", "last_name", "password_hash", "is_active")


class TaskDatabase:
    """
    SQLite database holding users and their tasks.

    Features:
    - WAL mode for concurrent read/write access
    - One shared connection guarded by a re-entrant lock
    - Predicate-driven, paginated task queries
    """

    def __init__(self, db_path: str):
        """
        Initialize TaskDatabase with SQLite WAL mode configuration.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self._connection_lock = threading.RLock()
        self._connection: Optional[sqlite3.Connection] = None

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_database()

    def _initialize_database(self) -> None:
        """Open the connection, apply pragmas and create the schema if needed."""
        try:
            self._connection = sqlite3.connect(
                str(self.db_path),
                isolation_level=None,  # autocommit; transactions are explicit
                check_same_thread=False,
            )
            cursor = self._connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.execute("PRAGMA foreign_keys=ON")
            self._create_schema()
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to initialize database at {self.db_path}: {e}")

    def _create_schema(self) -> None:
        cursor = self._connection.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                username TEXT NOT NULL UNIQUE,
                email TEXT NOT NULL UNIQUE,
                first_name TEXT NOT NULL,
                last_name TEXT NOT NULL,
                password_hash TEXT NOT NULL,
                is_active INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        # status/priority are free text so that legacy values survive until
        # repair_enum_values() runs
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS tasks (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                description TEXT,
                priority TEXT NOT NULL,
                status TEXT NOT NULL,
                owner_id TEXT NOT NULL,
                is_active INTEGER NOT NULL DEFAULT 1,
                due_date TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY (owner_id) REFERENCES users (id) ON DELETE CASCADE
            )
        """)
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_tasks_owner_id ON tasks(owner_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_tasks_priority ON tasks(priority)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_tasks_is_active ON tasks(is_active)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_users_is_active ON users(is_active)")

    @contextmanager
    def _transaction(self):
        """Context manager for explicit transaction control."""
        with self._connection_lock:
            cursor = self._connection.cursor()
            try:
                cursor.execute("BEGIN")
                yield cursor
                cursor.execute("COMMIT")
            except Exception:
                cursor.execute("ROLLBACK")
                raise

    def ping(self) -> bool:
        """Return True when the connection can execute a trivial query."""
        try:
            with self._connection_lock:
                self._connection.execute("SELECT 1").fetchone()
            return True
        except (sqlite3.Error, AttributeError):
            return False

    def close(self):
        if self._connection:
            self._connection.close()
            self._connection = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_user(row) -> User:
        return User(
            id=UUID(row[0]),
            username=row[1],
            email=row[2],
            first_name=row[3],
            last_name=row[4],
            password_hash=row[5],
            is_active=bool(row[6]),
            created_at=from_db_timestamp(row[7]),
            updated_at=from_db_timestamp(row[8]),
        )

    @staticmethod
    def _row_to_task(row) -> Task:
        return Task(
            id=UUID(row[0]),
            title=row[1],
            description=row[2],
            status=TaskStatus(row[3]),
            priority=TaskPriority(row[4]),
            owner_id=UUID(row[5]),
            is_active=bool(row[6]),
            due_date=from_db_timestamp(row[7]),
            created_at=from_db_timestamp(row[8]),
            updated_at=from_db_timestamp(row[9]),
            owner_username=row[10],
        )

    @staticmethod
    def _to_column_value(value: Any) -> Any:
        if isinstance(value, (TaskStatus, TaskPriority)):
            return value.name
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, UUID):
            return str(value)
        if isinstance(value, datetime):
            return to_db_timestamp(value)
        return value

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    _USER_SELECT = (
        "SELECT id, username, email, first_name, last_name, password_hash, "
        "is_active, created_at, updated_at FROM users"
    )

    def create_user(self, username: str, email: str, first_name: str,
                    last_name: str, password_hash: str) -> User:
        user_id = uuid.uuid4()
        now = to_db_timestamp(utc_now())
        with self._transaction() as cursor:
            cursor.execute("""
                INSERT INTO users (id, username, email, first_name, last_name,
                                   password_hash, is_active, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, 1, ?, ?)
            """, (str(user_id), username, email, first_name, last_name, password_hash, now, now))
        return self.get_user(user_id)

    def _fetch_user(self, where: str, params: Tuple) -> Optional[User]:
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute(f"{self._USER_SELECT} WHERE {where}", params)
            row = cursor.fetchone()
            return self._row_to_user(row) if row else None

    def get_user(self, user_id: UUID) -> Optional[User]:
        return self._fetch_user("id = ?", (str(user_id),))

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self._fetch_user("username = ?", (username,))

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self._fetch_user("email = ?", (email,))

    def list_users(self, active_only: bool = False) -> List[User]:
        query = self._USER_SELECT
        if active_only:
            query += " WHERE is_active = 1"
        query += " ORDER BY created_at ASC, id ASC"
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute(query)
            return [self._row_to_user(row) for row in cursor.fetchall()]

    def update_user(self, user_id: UUID, changes: Dict[str, Any]) -> Optional[User]:
        """
        Apply a partial update to a user.

        Args:
            user_id: User to update
            changes: Column -> new value; only updatable columns are accepted

        Returns:
            Updated user, or None if the user does not exist
        """
        unknown = set(changes) - set(_USER_UPDATABLE)
        if unknown:
            raise ValueError(f"Cannot update user columns: {sorted(unknown)}")
        if changes:
            assignments = ", ".join(f"{column} = ?" for column in changes)
            params = [self._to_column_value(v) for v in changes.values()]
            params.extend([to_db_timestamp(utc_now()), str(user_id)])
            with self._transaction() as cursor:
                cursor.execute(
                    f"UPDATE users SET {assignments}, updated_at = ? WHERE id = ?", params
                )
        return self.get_user(user_id)

    def _exists(self, query: str, params: Tuple) -> bool:
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute(f"SELECT EXISTS({query})", params)
            return bool(cursor.fetchone()[0])

    def user_exists(self, user_id: UUID) -> bool:
        return self._exists("SELECT 1 FROM users WHERE id = ?", (str(user_id),))

    def username_exists(self, username: str) -> bool:
        return self._exists("SELECT 1 FROM users WHERE username = ?", (username,))

    def email_exists(self, email: str) -> bool:
        return self._exists("SELECT 1 FROM users WHERE email = ?", (email,))

    def delete_user(self, user_id: UUID) -> bool:
        """Remove a user row; their tasks go with it via ON DELETE CASCADE."""
        with self._transaction() as cursor:
            cursor.execute("DELETE FROM users WHERE id = ?", (str(user_id),))
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def create_task(self, title: str, owner_id: UUID, description: Optional[str] = None,
                    status: TaskStatus = TaskStatus.PENDING,
                    priority: TaskPriority = TaskPriority.MEDIUM,
                    due_date=None, is_active: bool = True,
                    created_at=None) -> Task:
        """
        Insert a task for an existing owner.

        ``created_at`` defaults to now; it is accepted explicitly so that seed
        imports can carry historical timestamps.
        """
        task_id = uuid.uuid4()
        created = to_db_timestamp(created_at or utc_now())
        with self._transaction() as cursor:
            cursor.execute("""
                INSERT INTO tasks (id, title, description, priority, status, owner_id,
                                   is_active, due_date, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                str(task_id), title, description, priority.name, status.name,
                str(owner_id), int(is_active), to_db_timestamp(due_date), created, created,
            ))
        return self.get_task(task_id)

    def get_task(self, task_id: UUID) -> Optional[Task]:
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute(f"""
                SELECT {_TASK_COLUMNS}
                FROM tasks t
                JOIN users u ON u.id = t.owner_id
                WHERE t.id = ?
            """, (str(task_id),))
            row = cursor.fetchone()
            return self._row_to_task(row) if row else None

    def update_task(self, task_id: UUID, changes: Dict[str, Any]) -> Optional[Task]:
        """
        Apply a partial update to a task and refresh updated_at.

        Returns:
            Updated task, or None if the task does not exist
        """
        unknown = set(changes) - set(_TASK_UPDATABLE)
        if unknown:
            raise ValueError(f"Cannot update task columns: {sorted(unknown)}")
        if changes:
            assignments = ", ".join(f"{column} = ?" for column in changes)
            params = [self._to_column_value(v) for v in changes.values()]
            params.extend([to_db_timestamp(utc_now()), str(task_id)])
            with self._transaction() as cursor:
                cursor.execute(
                    f"UPDATE tasks SET {assignments}, updated_at = ? WHERE id = ?", params
                )
        return self.get_task(task_id)

    def delete_task(self, task_id: UUID) -> bool:
        with self._transaction() as cursor:
            cursor.execute("DELETE FROM tasks WHERE id = ?", (str(task_id),))
            return cursor.rowcount > 0

    def task_title_exists(self, title: str) -> bool:
        return self._exists("SELECT 1 FROM tasks WHERE title = ?", (title,))

    def find_tasks(self, predicate: Predicate = TRUE, offset: int = 0,
                   limit: Optional[int] = None,
                   sort_field: TaskField = TaskField.CREATED_AT,
                   descending: bool = True) -> Tuple[List[Task], int]:
        """
        Run a predicate against the tasks table.

        Args:
            predicate: Filter predicate; rendered into the WHERE clause
            offset: Number of matching rows to skip
            limit: Maximum rows to return, None for all
            sort_field: Column to order by; id breaks ties
            descending: Sort direction

        Returns:
            (page of tasks, total number of matching tasks)
        """
        where, params = predicate.to_sql(alias="t")
        direction = "DESC" if descending else "ASC"
        order = f"{sort_field.column('t')} {direction}, t.id {direction}"

        query = f"""
            SELECT {_TASK_COLUMNS}
            FROM tasks t
            JOIN users u ON u.id = t.owner_id
            WHERE {where}
            ORDER BY {order}
        """
        page_params = list(params)
        if limit is not None:
            query += " LIMIT ? OFFSET ?"
            page_params.extend([limit, offset])

        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute(f"SELECT COUNT(*) FROM tasks t WHERE {where}", params)
            total = cursor.fetchone()[0]
            cursor.execute(query, page_params)
            tasks = [self._row_to_task(row) for row in cursor.fetchall()]

        logger.debug(f"find_tasks: where={where!r} params={params} -> {len(tasks)}/{total}")
        return tasks, total

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def repair_enum_values(self) -> Dict[str, int]:
        """
        Normalize legacy status and priority strings onto the enum names.

        Known alternative spellings are mapped to their canonical value; anything
        still unrecognized falls back to PENDING / MEDIUM.

        Returns:
            Number of rows changed per column
        """
        counts = {"status": 0, "priority": 0}
        plan = (
            ("status", STATUS_ALIASES, TaskStatus.PENDING.name),
            ("priority", PRIORITY_ALIASES, TaskPriority.MEDIUM.name),
        )
        with self._transaction() as cursor:
            for column, aliases, fallback in plan:
                for canonical, spellings in aliases.items():
                    placeholders = ", ".join("?" for _ in spellings)
                    cursor.execute(
                        f"UPDATE tasks SET {column} = ? "
                        f"WHERE UPPER(TRIM({column})) IN ({placeholders}) AND {column} != ?",
                        (canonical, *spellings, canonical),
                    )
                    counts[column] += cursor.rowcount
                valid = tuple(aliases)
                placeholders = ", ".join("?" for _ in valid)
                cursor.execute(
                    f"UPDATE tasks SET {column} = ? WHERE {column} NOT IN ({placeholders})",
                    (fallback, *valid),
                )
                counts[column] += cursor.rowcount

        logger.info(f"Enum repair changed {counts['status']} status and {counts['priority']} priority values")
        return counts
