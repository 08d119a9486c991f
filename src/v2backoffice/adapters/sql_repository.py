"""ABOUTME: SQLAlchemy implementations of repository interfaces
ABOUTME: Provides concrete database operations using SQLAlchemy sessions"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from v2backoffice.adapters import orm
from v2backoffice.domain.invoice_jobs import InvoiceJob
from v2backoffice.domain.invoice_templates import InvoiceTemplate
from v2backoffice.domain.users import User
from v2backoffice.domain.value_objects import GlobalRole, InvoiceJobStatus, WorkflowAccess
from v2backoffice.domain.workflows import Workflow
from v2backoffice.service_layer.exceptions import TransientInfrastructureError
from v2backoffice.service_layer.repositories import (
    InvoiceJobRepository,
    InvoiceTemplateRepository,
    UserRepository,
    WorkflowRepository,
)


class SqlAlchemyRepository:
    """Base SQLAlchemy repository with common functionality."""

    def __init__(self, session: Session) -> None:
        self.session = session


class SqlAlchemyUserRepository(SqlAlchemyRepository, UserRepository):
    """SQLAlchemy implementation of UserRepository."""

    def add(self, item: User) -> None:
        self.session.add(item)

    def get(self, item_id: uuid.UUID) -> User | None:
        return self.session.query(User).filter_by(id=item_id).first()

    def all(self) -> Iterable[User]:
        return self.session.query(User).all()

    def get_by_email(self, email: str) -> User | None:
        try:
            return self.session.query(User).filter(func.lower(orm.users.c.email) == email.strip().lower()).first()
        except OperationalError as error:
            raise TransientInfrastructureError(str(error.orig)) from error

    def list_paginated(self, limit: int, offset: int) -> tuple[list[User], int]:
        user_query = self.session.query(User)
        total_count = user_query.count()
        users = user_query.order_by(orm.users.c.created_at.desc()).limit(limit).offset(offset).all()
        return list(users), total_count

    def delete(self, user: User) -> None:
        self.session.delete(user)


class SqlAlchemyInvoiceTemplateRepository(SqlAlchemyRepository, InvoiceTemplateRepository):
    """SQLAlchemy implementation of InvoiceTemplateRepository."""

    def add(self, item: InvoiceTemplate) -> None:
        self.session.add(item)

    def get(self, item_id: uuid.UUID) -> InvoiceTemplate | None:
        return self.session.query(InvoiceTemplate).filter_by(id=item_id).first()

    def all(self) -> Iterable[InvoiceTemplate]:
        return (
            self.session.query(InvoiceTemplate)
            .order_by(orm.invoice_templates.c.is_default.desc(), orm.invoice_templates.c.created_at.desc())
            .all()
        )

    def get_by_name(self, name: str) -> InvoiceTemplate | None:
        return self.session.query(InvoiceTemplate).filter_by(name=name.strip()).first()

    def delete(self, template: InvoiceTemplate) -> None:
        self.session.delete(template)


class SqlAlchemyInvoiceJobRepository(SqlAlchemyRepository, InvoiceJobRepository):
    """SQLAlchemy implementation of InvoiceJobRepository."""

    def add(self, item: InvoiceJob) -> None:
        self.session.add(item)

    def get(self, item_id: uuid.UUID) -> InvoiceJob | None:
        return self.session.query(InvoiceJob).filter_by(id=item_id).first()

    def all(self) -> Iterable[InvoiceJob]:
        return self.session.query(InvoiceJob).order_by(orm.invoice_jobs.c.created_at.desc()).all()

    def list_paginated(self, limit: int, offset: int) -> tuple[list[InvoiceJob], int]:
        job_query = self.session.query(InvoiceJob)
        total_count = job_query.count()
        jobs = job_query.order_by(orm.invoice_jobs.c.created_at.desc()).limit(limit).offset(offset).all()
        return list(jobs), total_count

    def get_processing_started_before(self, cutoff: datetime) -> Iterable[InvoiceJob]:
        return (
            self.session.query(InvoiceJob)
            .filter(
                orm.invoice_jobs.c.status == InvoiceJobStatus.PROCESSING,
                orm.invoice_jobs.c.started_at < cutoff,
            )
            .all()
        )


class SqlAlchemyWorkflowRepository(SqlAlchemyRepository, WorkflowRepository):
    """SQLAlchemy implementation of WorkflowRepository."""

    def add(self, item: Workflow) -> None:
        self.session.add(item)

    def get(self, item_id: uuid.UUID) -> Workflow | None:
        return self.session.query(Workflow).filter_by(id=item_id).first()

    def all(self) -> Iterable[Workflow]:
        return self.session.query(Workflow).order_by(orm.workflows.c.created_at).all()

    def get_available_for_role(self, role: GlobalRole) -> Iterable[Workflow]:
        workflow_query = self.session.query(Workflow).filter(
            orm.workflows.c.is_available.is_(True),
            orm.workflows.c.accessible_to.in_(list(WorkflowAccess.visible_to(role))),
        )
        return workflow_query.order_by(orm.workflows.c.created_at).all()

    def get_by_route(self, frontend_route: str) -> Workflow | None:
        return self.session.query(Workflow).filter_by(frontend_route=frontend_route).first()
