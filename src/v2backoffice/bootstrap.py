"""ABOUTME: Builds units of work for the worker tasks and CLI commands
ABOUTME: Keeps one session factory, and so one connection pool, per database URI in each process"""

from sqlalchemy.orm import sessionmaker

from v2backoffice.adapters import database
from v2backoffice.config import get_db_uri
from v2backoffice.service_layer import unit_of_work

_session_factories: dict[str, sessionmaker] = {}


def default_session_factory(db_uri: str = "") -> sessionmaker:
    """The process wide session factory for a database, created on first use."""
    db_uri = db_uri or get_db_uri()
    if db_uri not in _session_factories:
        _session_factories[db_uri] = database.create_session_factory(db_uri)
    return _session_factories[db_uri]


def dispose_session_factories(close: bool = True) -> None:
    """Drop every pooled connection. A forked worker child passes close=False so the parent's connections stay open."""
    for factory in _session_factories.values():
        engine = factory.kw.get("bind")
        if engine is not None:
            engine.dispose(close=close)
    _session_factories.clear()


def bootstrap(
    session_factory: sessionmaker | None = None,
    start_orm: bool = True,
) -> unit_of_work.SqlAlchemyUnitOfWork:
    """A unit of work on the given session factory, or on the shared one for the configured database."""
    if start_orm:
        database.start_mappers()
    return unit_of_work.SqlAlchemyUnitOfWork(session_factory or default_session_factory())
