"""ABOUTME: Fake repository implementations and collaborators for testing
ABOUTME: In-memory repositories, unit of work, email adapter, PDF renderer and job dispatcher"""

import uuid
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from v2backoffice.adapters.email import Address, EmailAdapter
from v2backoffice.adapters.pdf_renderer import PdfRenderer
from v2backoffice.domain.invoice_jobs import InvoiceJob
from v2backoffice.domain.invoice_templates import InvoiceTemplate
from v2backoffice.domain.users import User
from v2backoffice.domain.value_objects import GlobalRole, InvoiceJobStatus
from v2backoffice.domain.workflows import Workflow
from v2backoffice.service_layer.repositories import (
    AbstractRepository,
    InvoiceJobRepository,
    InvoiceTemplateRepository,
    UserRepository,
    WorkflowRepository,
)
from v2backoffice.service_layer.unit_of_work import AbstractUnitOfWork


class FakeRepository(AbstractRepository):
    """Base fake repository with in-memory storage."""

    def __init__(self, items: list[Any] | None = None):
        self._items = list(items) if items else []

    def add(self, item: Any) -> None:
        """Add an item to the repository."""
        self._items.append(item)

    def get(self, item_id: uuid.UUID) -> Any | None:
        """Get an item by its ID."""
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def all(self) -> Iterable[Any]:
        """Get all items in the repository."""
        return list(self._items)

    def delete(self, item: Any) -> None:
        self._items.remove(item)


class FakeUserRepository(FakeRepository, UserRepository):
    """Fake implementation of UserRepository."""

    def get_by_email(self, email: str) -> User | None:
        for user in self._items:
            if user.email == email.strip().lower():
                return user
        return None

    def list_paginated(self, limit: int, offset: int) -> tuple[list[User], int]:
        newest_first = sorted(self._items, key=lambda u: u.created_at, reverse=True)
        return newest_first[offset : offset + limit], len(newest_first)


class FakeInvoiceTemplateRepository(FakeRepository, InvoiceTemplateRepository):
    """Fake implementation of InvoiceTemplateRepository."""

    def all(self) -> Iterable[InvoiceTemplate]:
        newest_first = sorted(self._items, key=lambda t: t.created_at, reverse=True)
        return sorted(newest_first, key=lambda t: not t.is_default)

    def get_by_name(self, name: str) -> InvoiceTemplate | None:
        for template in self._items:
            if template.name == name.strip():
                return template
        return None


class FakeInvoiceJobRepository(FakeRepository, InvoiceJobRepository):
    """Fake implementation of InvoiceJobRepository."""

    def list_paginated(self, limit: int, offset: int) -> tuple[list[InvoiceJob], int]:
        newest_first = sorted(self._items, key=lambda j: j.created_at, reverse=True)
        return newest_first[offset : offset + limit], len(newest_first)

    def get_processing_started_before(self, cutoff: datetime) -> Iterable[InvoiceJob]:
        return [
            job
            for job in self._items
            if job.status == InvoiceJobStatus.PROCESSING and job.started_at is not None and job.started_at < cutoff
        ]


class FakeWorkflowRepository(FakeRepository, WorkflowRepository):
    """Fake implementation of WorkflowRepository."""

    def all(self) -> Iterable[Workflow]:
        return sorted(self._items, key=lambda w: w.created_at)

    def get_available_for_role(self, role: GlobalRole) -> Iterable[Workflow]:
        return [w for w in self.all() if w.is_visible_to(role)]

    def get_by_route(self, frontend_route: str) -> Workflow | None:
        for workflow in self._items:
            if workflow.frontend_route == frontend_route:
                return workflow
        return None


class FakeUnitOfWork(AbstractUnitOfWork):
    """Fake Unit of Work implementation for testing.

    Objects are shared between blocks, so it can be entered many times like the
    real one. Nothing is rolled back: the fakes hold whatever was last set.
    """

    def __init__(self) -> None:
        self.users = self.fake_users = FakeUserRepository()
        self.invoice_templates = self.fake_invoice_templates = FakeInvoiceTemplateRepository()
        self.invoice_jobs = self.fake_invoice_jobs = FakeInvoiceJobRepository()
        self.workflows = self.fake_workflows = FakeWorkflowRepository()
        self.committed = False
        self.commit_count = 0

    def __enter__(self) -> AbstractUnitOfWork:
        return self

    def __exit__(self, *args: Any) -> None:
        pass

    def commit(self) -> None:
        """Mark as committed."""
        self.committed = True
        self.commit_count += 1

    def rollback(self) -> None:
        self.committed = False


class FakeEmailAdapter(EmailAdapter):
    """Remembers every email instead of sending it."""

    def __init__(self, succeed: bool = True) -> None:
        super().__init__(default_from_email="noreply@example.com", default_from_name="Test")
        self.sent_emails: list[dict[str, Any]] = []
        self.succeed = succeed

    def send_email(
        self,
        to: list[Address],
        subject: str,
        text_body: str,
        html_body: str | None = None,
        from_email: Address | None = None,
    ) -> bool:
        self.sent_emails.append({"to": to, "subject": subject, "text_body": text_body, "html_body": html_body})
        return self.succeed


class FakePdfRenderer(PdfRenderer):
    """Writes the HTML it was given instead of a PDF, or fails on request."""

    def __init__(self, fail: bool = False) -> None:
        self.rendered: list[Path] = []
        self.fail = fail

    def render_html_to_pdf(self, html: str, output_path: Path) -> None:
        if self.fail:
            raise RuntimeError("browser crashed")
        output_path.write_text(html, encoding="utf-8")
        self.rendered.append(output_path)


class RecordingDispatch:
    """Stands in for the Celery queue: remembers which jobs were handed over."""

    def __init__(self) -> None:
        self.job_ids: list[uuid.UUID] = []

    def __call__(self, job_id: uuid.UUID) -> str:
        self.job_ids.append(job_id)
        return f"task-{len(self.job_ids)}"
