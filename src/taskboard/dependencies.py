"""
FastAPI dependencies shared by the application and its routers.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException

from .config import Settings
from .database import TaskDatabase
from .service import TaskService, UserService

# Set by the application lifespan; one database instance per process
db_instance: Optional[TaskDatabase] = None


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()


def get_database() -> TaskDatabase:
    """
    FastAPI dependency to provide the database instance.

    Raises:
        HTTPException: 503 if the database has not been initialized
    """
    if db_instance is None:
        raise HTTPException(status_code=503, detail="Database not available")
    return db_instance


def get_task_service(db: TaskDatabase = Depends(get_database)) -> TaskService:
    return TaskService(db)


def get_user_service(db: TaskDatabase = Depends(get_database)) -> UserService:
    return UserService(db)
