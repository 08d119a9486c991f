"""ABOUTME: SQLAlchemy table definitions for the back office
ABOUTME: Defines database schema with custom column types, indexes and JSON columns"""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from sqlalchemy import (
    JSON,
    TIMESTAMP,
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
)
from sqlalchemy.dialects.postgresql import UUID as PostgresUUID
from sqlalchemy.engine.interfaces import Dialect
from sqlalchemy.orm import registry
from sqlalchemy.sql.sqltypes import String as SQLString

from v2backoffice.domain.value_objects import GlobalRole, InvoiceJobStatus, WorkflowAccess


def aware_utcnow() -> datetime:  # pragma: no cover
    return datetime.now(UTC)


class EnumAsString(TypeDecorator):
    """Custom type for storing Python Enums as strings."""

    impl = String
    cache_ok = True

    def __init__(self, enum_class: type[Enum], *args: Any, **kwargs: Any) -> None:
        self.enum_class = enum_class
        super().__init__(*args, **kwargs)

    def process_bind_param(self, value: Any, dialect: Dialect) -> str | None:
        if value is None:  # pragma: no cover
            return value
        return value.value if hasattr(value, "value") else str(value)

    def process_result_value(self, value: Any, dialect: Dialect) -> Any:
        if value is None:  # pragma: no cover
            return value
        return self.enum_class(value)


class TZAwareDatetime(TypeDecorator):
    """Custom type for timezone-aware datetime objects."""

    impl = TIMESTAMP
    cache_ok = True

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        # Ensure timezone=True for PostgreSQL
        kwargs.setdefault("timezone", True)
        super().__init__(*args, **kwargs)

    def process_result_value(self, value: Any, dialect: Dialect) -> datetime | None:
        if value is None:
            return value

        # SQLite hands back naive datetimes, they were stored as UTC
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=UTC)

        return value


class CrossDatabaseUUID(TypeDecorator):
    """Cross-database UUID type that works with both PostgreSQL and SQLite."""

    impl = SQLString
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect) -> Any:
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PostgresUUID(as_uuid=True))
        # For SQLite and other databases, use CHAR(36) to store UUID as string
        return dialect.type_descriptor(SQLString(36))

    def process_bind_param(self, value: Any, dialect: Dialect) -> str | None:
        if value is None:
            return value

        if isinstance(value, uuid.UUID):
            return str(value)
        if isinstance(value, str):
            try:
                uuid.UUID(value)
            except ValueError as e:
                raise ValueError(f"Invalid UUID string: {value}") from e
            return value
        raise TypeError(f"Expected UUID or string, got {type(value)}")

    def process_result_value(self, value: Any, dialect: Dialect) -> uuid.UUID | None:
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))


# Create a registry for imperative mapping
mapper_registry = registry()
metadata = mapper_registry.metadata

users = Table(
    "users",
    metadata,
    Column("id", CrossDatabaseUUID(), primary_key=True, default=uuid.uuid4),
    Column("email", String(255), nullable=False, unique=True),
    Column("full_name", String(200), nullable=False, default=""),
    Column("phone_number", String(50), nullable=False, default=""),
    Column("password_hash", String(255), nullable=False),
    Column("role", EnumAsString(GlobalRole, 50), nullable=False),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_by", CrossDatabaseUUID(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    Column("created_at", TZAwareDatetime(), nullable=False, default=aware_utcnow),
    Column("updated_at", TZAwareDatetime(), nullable=False, default=aware_utcnow),
    Column("reset_token", String(100), nullable=True),
    Column("reset_token_expires_at", TZAwareDatetime(), nullable=True),
    # two-factor credential, the secret is Fernet encrypted
    Column("totp_secret_encrypted", Text, nullable=True),
    Column("backup_codes", JSON, nullable=False, default=list),
    Column("two_factor_setup_completed", Boolean, nullable=False, default=False),
    Column("version", Integer, nullable=False),
)

invoice_templates = Table(
    "invoice_templates",
    metadata,
    Column("id", CrossDatabaseUUID(), primary_key=True, default=uuid.uuid4),
    Column("name", String(255), nullable=False, unique=True),
    Column("description", Text, nullable=False, default=""),
    Column("file_path", String(1000), nullable=False),
    Column("file_name", String(255), nullable=False),
    Column("is_default", Boolean, nullable=False, default=False),
    Column("created_by", CrossDatabaseUUID(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    Column("created_at", TZAwareDatetime(), nullable=False, default=aware_utcnow),
    Column("updated_at", TZAwareDatetime(), nullable=False, default=aware_utcnow),
)

invoice_jobs = Table(
    "invoice_jobs",
    metadata,
    Column("id", CrossDatabaseUUID(), primary_key=True, default=uuid.uuid4),
    # a deleted template leaves its jobs behind, resume then fails
    Column(
        "template_id", CrossDatabaseUUID(), ForeignKey("invoice_templates.id", ondelete="SET NULL"), nullable=True
    ),
    Column("created_by", CrossDatabaseUUID(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    Column("status", EnumAsString(InvoiceJobStatus, 50), nullable=False),
    Column("input_file_name", String(255), nullable=False),
    Column("input_file_path", String(1000), nullable=False),
    Column("invoice_year", String(10), nullable=False),
    Column("total_entities", Integer, nullable=False, default=0),
    Column("processed_entities", Integer, nullable=False, default=0),
    Column("next_row_index", Integer, nullable=False, default=0),
    Column("output_directory", String(1000), nullable=False),
    Column("generated_files", JSON, nullable=False, default=list),
    Column("error_message", Text, nullable=False, default=""),
    Column("celery_task_id", String(100), nullable=False, default=""),
    Column("created_at", TZAwareDatetime(), nullable=False, default=aware_utcnow),
    Column("updated_at", TZAwareDatetime(), nullable=False, default=aware_utcnow),
    Column("started_at", TZAwareDatetime(), nullable=True),
    Column("completed_at", TZAwareDatetime(), nullable=True),
    # optimistic concurrency, bumped by SQLAlchemy on every UPDATE
    Column("version", Integer, nullable=False),
)

workflows = Table(
    "workflows",
    metadata,
    Column("id", CrossDatabaseUUID(), primary_key=True, default=uuid.uuid4),
    Column("label", String(255), nullable=False),
    Column("frontend_route", String(255), nullable=False, unique=True),
    Column("img_path", String(500), nullable=False, default=""),
    Column("accessible_to", EnumAsString(WorkflowAccess, 20), nullable=False),
    Column("is_available", Boolean, nullable=False, default=True),
    Column("description", Text, nullable=False, default=""),
    Column("created_at", TZAwareDatetime(), nullable=False, default=aware_utcnow),
)

Index("ix_invoice_jobs_status_started_at", invoice_jobs.c.status, invoice_jobs.c.started_at)
Index("ix_invoice_jobs_created_at", invoice_jobs.c.created_at)
Index("ix_workflows_accessible_to", workflows.c.accessible_to)
