"""Database management commands.

Example:bash
    # Check connectivity and create tables (SQLite development database)
    storefront-events db init --create-tables

    # Apply migrations
    storefront-events db upgrade
"""

import sys
from pathlib import Path

import click

from storefront_events.cli.utils import coro, error, info, success
from storefront_events.core.settings import get_db_settings


@click.group(name="db")
def db() -> None:
    """Database management commands."""


@db.command()
@click.option(
    "--create-tables/--no-create-tables",
    default=False,
    help="Create missing tables from the models (development only)",
)
@coro
async def init(create_tables: bool) -> None:
    """Verify database connectivity."""
    from sqlalchemy.engine import make_url

    from storefront_events.infra.database import init_database

    url = make_url(get_db_settings().url)
    info(f"Connecting to: {url.render_as_string(hide_password=True)}")

    try:
        await init_database(create_tables=create_tables)
    except Exception as e:
        error(f"Failed to connect to database: {e}")
        sys.exit(1)

    success("Database connected successfully!")
    if create_tables:
        success("Tables created")


@db.command()
@click.option(
    "--revision",
    default="head",
    help="Target revision (default: head)",
)
@click.option(
    "--config",
    "config_path",
    default="alembic.ini",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path to alembic.ini",
)
def upgrade(revision: str, config_path: Path) -> None:
    """Apply database migrations."""
    from alembic import command
    from alembic.config import Config

    if not config_path.exists():
        error(f"Alembic config not found: {config_path}")
        sys.exit(1)

    info(f"Upgrading database to: {revision}")
    try:
        command.upgrade(Config(str(config_path)), revision)
    except Exception as e:
        error(f"Failed to upgrade database: {e}")
        sys.exit(1)

    success("Database upgraded successfully!")
