"""ABOUTME: Abstract repository interfaces for domain objects
ABOUTME: Defines repository contracts to abstract database operations from business logic"""

from __future__ import annotations

import abc
import uuid
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from v2backoffice.domain.invoice_jobs import InvoiceJob
from v2backoffice.domain.invoice_templates import InvoiceTemplate
from v2backoffice.domain.users import User
from v2backoffice.domain.value_objects import GlobalRole
from v2backoffice.domain.workflows import Workflow


class AbstractRepository(abc.ABC):
    """Base repository interface providing common operations."""

    @abc.abstractmethod
    def add(self, item: Any) -> None:
        """Add an item to the repository."""
        raise NotImplementedError

    @abc.abstractmethod
    def get(self, item_id: uuid.UUID) -> Any | None:
        """Get an item by its ID."""
        raise NotImplementedError

    @abc.abstractmethod
    def all(self) -> Iterable[Any]:
        """List all items in the repository."""
        raise NotImplementedError


class UserRepository(AbstractRepository):
    """Repository interface for User domain objects."""

    @abc.abstractmethod
    def get_by_email(self, email: str) -> User | None:
        """Get a user by their email address (case-insensitive)."""
        raise NotImplementedError

    @abc.abstractmethod
    def list_paginated(self, limit: int, offset: int) -> tuple[list[User], int]:
        """Newest users first, with the total count."""
        raise NotImplementedError

    @abc.abstractmethod
    def delete(self, user: User) -> None:
        raise NotImplementedError


class InvoiceTemplateRepository(AbstractRepository):
    """Repository interface for InvoiceTemplate domain objects."""

    @abc.abstractmethod
    def get_by_name(self, name: str) -> InvoiceTemplate | None:
        raise NotImplementedError

    @abc.abstractmethod
    def delete(self, template: InvoiceTemplate) -> None:
        raise NotImplementedError


class InvoiceJobRepository(AbstractRepository):
    """Repository interface for InvoiceJob domain objects."""

    @abc.abstractmethod
    def list_paginated(self, limit: int, offset: int) -> tuple[list[InvoiceJob], int]:
        """Newest jobs first, with the total count."""
        raise NotImplementedError

    @abc.abstractmethod
    def get_processing_started_before(self, cutoff: datetime) -> Iterable[InvoiceJob]:
        """Jobs still processing whose started_at is older than the cutoff."""
        raise NotImplementedError


class WorkflowRepository(AbstractRepository):
    """Repository interface for Workflow domain objects."""

    @abc.abstractmethod
    def get_available_for_role(self, role: GlobalRole) -> Iterable[Workflow]:
        """Available workflows the role may see, oldest first."""
        raise NotImplementedError

    @abc.abstractmethod
    def get_by_route(self, frontend_route: str) -> Workflow | None:
        raise NotImplementedError
