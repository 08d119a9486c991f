"""ABOUTME: Database engines, sessions and the imperative mapping of the back office domain
ABOUTME: PostgreSQL in production, SQLite for local runs and tests, with foreign keys enforced on both"""

from typing import Any

from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.orm import clear_mappers as sqla_clear_mappers
from sqlalchemy.orm import sessionmaker

from v2backoffice.adapters import orm
from v2backoffice.config import bool_environ_get, get_db_uri
from v2backoffice.domain import invoice_jobs, invoice_templates, users, workflows


class DatabaseError(Exception):
    """Base exception for database-related errors."""


def _engine_args(database_url: str) -> dict[str, Any]:
    if database_url.startswith("postgresql"):
        # the API and each worker process hold their own pool
        return {"pool_pre_ping": True, "pool_recycle": 3600, "pool_size": 10, "max_overflow": 20}
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {}


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """SQLite ignores ON DELETE SET NULL unless foreign keys are switched on for each connection."""

    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection: Any, connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_session_factory(database_url: str = "", echo: bool = False) -> sessionmaker:
    """Create an engine for the URL and a session factory bound to it.

    Sessions keep their objects loaded after commit, so services can return
    domain objects from a closed unit of work.
    """
    database_url = database_url or get_db_uri()
    echo = bool_environ_get("DB_ECHO") or echo
    engine = create_engine(database_url, echo=echo, **_engine_args(database_url))
    if engine.dialect.name == "sqlite":
        enable_sqlite_foreign_keys(engine)

    return sessionmaker(bind=engine, expire_on_commit=False)


def ping(session_factory: sessionmaker) -> None:
    """Round trip to the database. Raises the driver error when it cannot be reached."""
    with session_factory() as session:
        session.execute(text("SELECT 1"))


# Track if mappers have been started
_mappers_started = False


def start_mappers() -> None:
    """Map users, templates, invoice jobs and workflows onto their tables.

    Invoice jobs carry a version column, so a stale write from the worker or
    an admin action raises StaleDataError instead of overwriting a newer state.
    """
    global _mappers_started

    if _mappers_started:
        return

    try:
        # backup codes are single use, so concurrent logins must not both consume one
        orm.mapper_registry.map_imperatively(users.User, orm.users, version_id_col=orm.users.c.version)
        orm.mapper_registry.map_imperatively(invoice_templates.InvoiceTemplate, orm.invoice_templates)
        orm.mapper_registry.map_imperatively(
            invoice_jobs.InvoiceJob,
            orm.invoice_jobs,
            version_id_col=orm.invoice_jobs.c.version,
        )
        orm.mapper_registry.map_imperatively(workflows.Workflow, orm.workflows)

        _mappers_started = True

    except Exception as e:  # pragma: no cover
        raise DatabaseError(f"Failed to start mappers: {e}") from e


def clear_mappers() -> None:
    sqla_clear_mappers()

    global _mappers_started
    _mappers_started = False
