"""
Runtime configuration read from environment variables.
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    database_path: str = "taskboard.db"
    log_level: str = "INFO"
    default_page_size: int = 10
    max_page_size: int = 100
    host: str = "127.0.0.1"
    port: int = 8080

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``env`` (defaults to os.environ)."""
        env = os.environ if env is None else env
        settings = cls(
            database_path=env.get("DATABASE_PATH", cls.database_path),
            log_level=env.get("LOG_LEVEL", cls.log_level).upper(),
            default_page_size=_int_env(env, "DEFAULT_PAGE_SIZE", cls.default_page_size),
            max_page_size=_int_env(env, "MAX_PAGE_SIZE", cls.max_page_size),
            host=env.get("DEFAULT_HOST", cls.host),
            port=_int_env(env, "DEFAULT_PORT", cls.port),
        )
        if settings.default_page_size < 1 or settings.max_page_size < settings.default_page_size:
            raise ValueError(
                f"Invalid page size settings: default={settings.default_page_size}, "
                f"max={settings.max_page_size}"
            )
        return settings


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the service and CLI."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
