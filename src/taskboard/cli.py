"""
Command line entry point for the Taskboard service.

    taskboard serve --port 8080 --db-path tasks.db
    taskboard import seed.yaml --db-path tasks.db
    taskboard repair-enums --db-path tasks.db
"""

import logging
import os
import socket
from typing import Any, Dict, Optional

import click
import uvicorn
import yaml

from .config import Settings, configure_logging
from .database import TaskDatabase
from .importer import import_seed

logger = logging.getLogger(__name__)


def check_port_available(host: str, port: int) -> bool:
    """Return True if ``port`` can be bound on ``host``."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
            return True
        except OSError:
            return False


def validate_seed_yaml(path: str) -> Dict[str, Any]:
    """
    Load and validate a seed YAML file.

    Raises:
        click.ClickException: If the file is missing, unparsable, or not a mapping
    """
    if not os.path.exists(path):
        raise click.ClickException(f"Seed file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise click.ClickException(f"Invalid YAML in seed file: {e}")
    if not isinstance(data, dict):
        raise click.ClickException("Seed file must contain a YAML dictionary")
    return data


def open_database(db_path: Optional[str]) -> TaskDatabase:
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"))
    path = db_path or os.environ.get("DATABASE_PATH", Settings.database_path)
    try:
        return TaskDatabase(path)
    except Exception as e:
        raise click.ClickException(f"Failed to initialize database: {e}")


@click.group()
def main():
    """Taskboard task management service."""


@main.command()
@click.option("--host", default=None, help="Interface to bind (defaults to DEFAULT_HOST)")
@click.option("--port", type=int, default=None, help="Port to bind (defaults to DEFAULT_PORT)")
@click.option("--db-path", default=None, help="SQLite database file (defaults to DATABASE_PATH)")
@click.option("--log-level", default=None, help="Logging level (defaults to LOG_LEVEL)")
def serve(host: Optional[str], port: Optional[int], db_path: Optional[str],
          log_level: Optional[str]):
    """Run the REST API server."""
    try:
        settings = Settings.from_env()
    except ValueError as e:
        raise click.ClickException(str(e))
    log_level = (log_level or settings.log_level).upper()
    configure_logging(log_level)
    host = host or settings.host
    port = port or settings.port

    if not check_port_available(host, port):
        raise click.ClickException(f"Port conflict: {host}:{port} is already in use")

    # The application reads its database location at startup
    if db_path:
        os.environ["DATABASE_PATH"] = db_path
    os.environ["LOG_LEVEL"] = log_level
    logger.info(f"Starting server on {host}:{port}")

    click.echo(f"Taskboard API listening on http://{host}:{port}")
    uvicorn.run(
        "taskboard.api:app",
        host=host,
        port=port,
        log_level=log_level.lower(),
    )


@main.command(name="import")
@click.argument("seed_file", type=click.Path())
@click.option("--db-path", default=None, help="SQLite database file (defaults to DATABASE_PATH)")
def import_command(seed_file: str, db_path: Optional[str]):
    """Import users and tasks from a YAML seed file."""
    data = validate_seed_yaml(seed_file)
    db = open_database(db_path)
    try:
        try:
            stats = import_seed(db, data)
        except ValueError as e:
            raise click.ClickException(str(e))
    finally:
        db.close()

    click.echo(
        f"Users: {stats['users_created']} created, {stats['users_updated']} updated"
    )
    click.echo(
        f"Tasks: {stats['tasks_created']} created, {stats['tasks_updated']} updated"
    )
    for error in stats["errors"]:
        click.echo(f"  error: {error}", err=True)
    if stats["errors"]:
        raise click.exceptions.Exit(1)


@main.command(name="repair-enums")
@click.option("--db-path", default=None, help="SQLite database file (defaults to DATABASE_PATH)")
def repair_enums(db_path: Optional[str]):
    """Rewrite legacy status and priority values to their canonical names."""
    db = open_database(db_path)
    try:
        repaired = db.repair_enum_values()
    finally:
        db.close()
    click.echo(f"Repaired {repaired['status']} status and {repaired['priority']} priority values")


if __name__ == "__main__":
    main()
