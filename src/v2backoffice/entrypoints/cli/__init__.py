"""ABOUTME: Main CLI entry point using Click for back office administration
ABOUTME: Provides subcommands for users, workflows, invoice jobs and database operations"""

import click

from v2backoffice.adapters.database import start_mappers
from v2backoffice.bootstrap import bootstrap
from v2backoffice.config import get_config, get_log_level
from v2backoffice.logging import logging_setup
from v2backoffice.service_layer.unit_of_work import AbstractUnitOfWork


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """V2 back office administration CLI."""
    # Ensure context object exists
    ctx.ensure_object(dict)

    ctx.obj.setdefault("config", get_config())
    logging_setup(get_log_level(), component="cli")
    start_mappers()


def uow_from_context(ctx: click.Context) -> AbstractUnitOfWork:
    """A unit of work using the session factory in the context, when tests put one there."""
    session_factory = ctx.obj.get("session_factory") if ctx.obj else None
    return bootstrap(session_factory=session_factory)


# Import subcommands to register them
from .database import database  # noqa: E402
from .invoices import invoices  # noqa: E402
from .users import users  # noqa: E402
from .workflows import workflows  # noqa: E402

cli.add_command(database)
cli.add_command(invoices)
cli.add_command(users)
cli.add_command(workflows)


if __name__ == "__main__":
    cli()
