"""ABOUTME: Pytest configuration and fixtures for back office tests
ABOUTME: Provides env var helpers, SQLite session factories, the Flask test app and the click runner"""

import base64
import os

import pytest
from click.testing import CliRunner
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tests.fakes import FakeEmailAdapter, FakePdfRenderer, RecordingDispatch
from tests.helpers import three_row_sheet
from v2backoffice.adapters import database, orm

# 32 zero bytes, fine for tests only
TEST_TOTP_ENCRYPTION_KEY = base64.b64encode(bytes(32)).decode("ascii")


@pytest.fixture(autouse=True)
def set_test_env():
    """Automatically set test environment for all tests."""
    overrides = {
        "FLASK_ENV": "testing",
        "TOTP_ENCRYPTION_KEY": TEST_TOTP_ENCRYPTION_KEY,
        "EMAIL_BACKEND": "console",
        "INVOICE_PDF_ENABLED": "false",
    }
    original_env = {key: os.environ.get(key) for key in overrides}
    os.environ.update(overrides)
    yield
    for key, value in original_env.items():
        if value is not None:
            os.environ[key] = value
        else:
            os.environ.pop(key, None)


@pytest.fixture
def clear_env_vars():
    """Fixture to temporarily remove environment variables for testing."""
    original_vars = {}

    def _clear_env_vars(*args):
        for key in args:
            original_vars[key] = os.environ.get(key)
            os.environ.pop(key, None)

    yield _clear_env_vars

    # Restore original environment variables
    for key, value in original_vars.items():
        if value is not None:
            os.environ[key] = value


@pytest.fixture
def temp_env_vars():
    """Fixture to temporarily set environment variables for testing."""
    original_vars = {}

    def _set_env_vars(**kwargs):
        for key, value in kwargs.items():
            original_vars[key] = os.environ.get(key)
            os.environ[key] = value

    yield _set_env_vars

    # Restore original environment variables
    for key, value in original_vars.items():
        if value is not None:
            os.environ[key] = value
        else:
            os.environ.pop(key, None)


@pytest.fixture
def in_memory_sqlite_db():
    # one shared connection so every session sees the same in-memory database
    engine = create_engine(
        "sqlite:///:memory:", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    return engine


@pytest.fixture
def sqlite_session_factory(in_memory_sqlite_db):
    orm.metadata.create_all(in_memory_sqlite_db)
    database.start_mappers()

    yield sessionmaker(bind=in_memory_sqlite_db, expire_on_commit=False)

    database.clear_mappers()
    orm.metadata.drop_all(in_memory_sqlite_db)


@pytest.fixture
def cli_with_session_factory(sqlite_session_factory):
    """Fixture that provides a Click runner with test session factory in context."""

    def _invoke_cli_with_context(cli_command, args, input=None):
        runner = CliRunner()
        ctx_obj = {"session_factory": sqlite_session_factory}
        return runner.invoke(cli_command, args, obj=ctx_obj, input=input)

    return _invoke_cli_with_context


@pytest.fixture
def upload_dir(tmp_path, temp_env_vars):
    directory = tmp_path / "uploads"
    temp_env_vars(UPLOAD_DIR=str(directory), INVOICE_ENTITY_DELAY_SECONDS="0")
    return directory


@pytest.fixture
def email_adapter():
    return FakeEmailAdapter()


@pytest.fixture
def dispatch():
    return RecordingDispatch()


@pytest.fixture
def pdf_renderer():
    return FakePdfRenderer()


@pytest.fixture
def app(sqlite_session_factory, email_adapter, dispatch, upload_dir):
    from v2backoffice.entrypoints.flask_app import create_app

    sleeps: list[float] = []
    flask_app = create_app(
        "testing",
        session_factory=sqlite_session_factory,
        email_adapter=email_adapter,
        invoice_dispatch=dispatch,
        sleep=sleeps.append,
    )
    flask_app.config["RECORDED_SLEEPS"] = sleeps
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def input_sheet(tmp_path):
    return three_row_sheet(tmp_path / "input.xlsx")
