"""ABOUTME: Unit of Work pattern implementation for transaction management
ABOUTME: Coordinates repository operations within database transactions"""

from __future__ import annotations

import abc
from types import TracebackType

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from v2backoffice.adapters.sql_repository import (
    SqlAlchemyInvoiceJobRepository,
    SqlAlchemyInvoiceTemplateRepository,
    SqlAlchemyUserRepository,
    SqlAlchemyWorkflowRepository,
)
from v2backoffice.service_layer.exceptions import ConcurrentUpdateError, TransientInfrastructureError
from v2backoffice.service_layer.repositories import (
    InvoiceJobRepository,
    InvoiceTemplateRepository,
    UserRepository,
    WorkflowRepository,
)


class AbstractUnitOfWork(abc.ABC):
    """Abstract Unit of Work interface."""

    users: UserRepository
    invoice_templates: InvoiceTemplateRepository
    invoice_jobs: InvoiceJobRepository
    workflows: WorkflowRepository

    def __enter__(self) -> AbstractUnitOfWork:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            self.rollback()
        else:
            self.commit()

    @abc.abstractmethod
    def commit(self) -> None:
        """Commit the current transaction.

        Raises ConcurrentUpdateError when a versioned record was changed by
        another writer after it was read.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def rollback(self) -> None:
        """Rollback the current transaction."""
        raise NotImplementedError


class SqlAlchemyUnitOfWork(AbstractUnitOfWork):
    """SQLAlchemy implementation of Unit of Work pattern."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self.session_factory = session_factory
        self._session: Session | None = None

    @property
    def session(self) -> Session:
        if self._session is None:
            self._session = self.session_factory()
        assert isinstance(self._session, Session)
        return self._session

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        # a fresh session per block so a unit of work can be re-entered
        self._session = None
        self.users = SqlAlchemyUserRepository(self.session)
        self.invoice_templates = SqlAlchemyInvoiceTemplateRepository(self.session)
        self.invoice_jobs = SqlAlchemyInvoiceJobRepository(self.session)
        self.workflows = SqlAlchemyWorkflowRepository(self.session)

        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        try:
            if exc_type is not None:
                self.rollback()
            else:
                self.commit()
        finally:
            self.session.close()

    def commit(self) -> None:
        """Commit the current transaction."""
        try:
            self.session.commit()
        except StaleDataError as error:
            self.session.rollback()
            raise ConcurrentUpdateError() from error
        except OperationalError as error:
            self.session.rollback()
            raise TransientInfrastructureError(str(error.orig)) from error

    def rollback(self) -> None:
        """Rollback the current transaction."""
        self.session.rollback()
