"""ABOUTME: CLI commands for database management operations
ABOUTME: Creates the tables for a fresh installation"""

import click
from sqlalchemy.exc import SQLAlchemyError

from v2backoffice.adapters import database as db
from v2backoffice.adapters.orm import metadata
from v2backoffice.config import FlaskBaseConfig


@click.group()
def database() -> None:
    """Database management commands."""
    pass


@database.command("init")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create any tables that do not exist yet."""
    session_factory = ctx.obj.get("session_factory") if ctx.obj else None
    if session_factory is None:
        config = ctx.obj["config"]
        assert isinstance(config, FlaskBaseConfig)
        session_factory = db.create_session_factory(config.SQLALCHEMY_DATABASE_URI)

    try:
        metadata.create_all(session_factory.kw["bind"])
    except SQLAlchemyError as e:
        click.echo(click.style(f"✗ Error creating tables: {e}", "red"))
        raise click.Abort() from e

    click.echo(click.style("✓ Database tables created", "green"))
