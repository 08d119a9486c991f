"""ABOUTME: Invoice generation job domain model and its state machine
ABOUTME: Tracks status, progress, produced files and timestamps for one batch of invoices"""

import uuid
from datetime import UTC, datetime, timedelta
from pathlib import Path

from .value_objects import TERMINAL_JOB_STATUSES, InvoiceJobStatus

CANCELLED_BY_ADMIN_MESSAGE = "Job cancelled by admin."
STALE_JOB_MESSAGE = "Job marked as failed due to timeout (stuck for more than %(minutes)s minutes)"


class InvalidJobTransition(ValueError):
    """A state change was requested that the job's current status does not allow."""

    def __init__(self, action: str, status: InvoiceJobStatus) -> None:
        super().__init__(f"Cannot {action} job with status: {status.value}")
        self.action = action
        self.status = status


def output_directory_for(invoices_dir: Path, invoice_year: str, job_id: uuid.UUID) -> Path:
    return invoices_dir / f"{invoice_year}-invoices-{job_id}"


class InvoiceJob:
    """One batch of invoice generation.

    Lifecycle: pending -> processing -> completed | failed | cancelled, with
    processing <-> paused. `next_row_index` is the position in the validated rows
    of the next row to look at, so a resumed job carries on where it stopped.
    """

    def __init__(
        self,
        template_id: uuid.UUID | None,
        input_file_name: str,
        input_file_path: str,
        invoice_year: str,
        total_entities: int,
        output_directory: str,
        created_by: uuid.UUID | None = None,
        job_id: uuid.UUID | None = None,
        status: InvoiceJobStatus = InvoiceJobStatus.PENDING,
        processed_entities: int = 0,
        next_row_index: int = 0,
        generated_files: list[str] | None = None,
        error_message: str = "",
        celery_task_id: str = "",
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
        started_at: datetime | None = None,
        completed_at: datetime | None = None,
        version: int = 1,
    ):
        if total_entities < 0:
            raise ValueError("total_entities cannot be negative")
        self.id = job_id or uuid.uuid4()
        self.template_id = template_id
        self.created_by = created_by
        self.input_file_name = input_file_name
        self.input_file_path = input_file_path
        self.invoice_year = invoice_year
        self.total_entities = total_entities
        self.output_directory = output_directory
        self.status = status
        self.processed_entities = processed_entities
        self.next_row_index = next_row_index
        self.generated_files: list[str] = list(generated_files) if generated_files else []
        self.error_message = error_message
        self.celery_task_id = celery_task_id
        self.created_at = created_at or datetime.now(UTC)
        self.updated_at = updated_at or self.created_at
        self.started_at = started_at
        self.completed_at = completed_at
        self.version = version

    @property
    def job_id(self) -> uuid.UUID:
        return self.id

    @property
    def progress(self) -> float:
        """Percentage of entities processed, 0 when there is nothing to process."""
        if self.total_entities == 0:
            return 0.0
        return self.processed_entities / self.total_entities * 100

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES

    @property
    def is_processing(self) -> bool:
        return self.status == InvoiceJobStatus.PROCESSING

    def _set_status(self, status: InvoiceJobStatus, now: datetime | None = None) -> None:
        self.status = status
        self.updated_at = now or datetime.now(UTC)

    def begin_processing(self, now: datetime | None = None) -> None:
        """Called by the worker when it picks the job up.

        A resumed job is already `processing` when its new task starts.
        """
        if self.status not in (InvoiceJobStatus.PENDING, InvoiceJobStatus.PROCESSING):
            raise InvalidJobTransition("start", self.status)
        now = now or datetime.now(UTC)
        self.started_at = now
        self._set_status(InvoiceJobStatus.PROCESSING, now)

    def pause(self, now: datetime | None = None) -> None:
        if self.status != InvoiceJobStatus.PROCESSING:
            raise InvalidJobTransition("pause", self.status)
        self._set_status(InvoiceJobStatus.PAUSED, now)

    def resume(self, now: datetime | None = None) -> None:
        if self.status != InvoiceJobStatus.PAUSED:
            raise InvalidJobTransition("resume", self.status)
        now = now or datetime.now(UTC)
        # the staleness clock restarts with the new task
        self.started_at = now
        self.celery_task_id = ""
        self._set_status(InvoiceJobStatus.PROCESSING, now)

    def cancel(self, now: datetime | None = None) -> None:
        if self.is_terminal:
            raise InvalidJobTransition("cancel", self.status)
        now = now or datetime.now(UTC)
        self.error_message = CANCELLED_BY_ADMIN_MESSAGE
        self.completed_at = now
        self._set_status(InvoiceJobStatus.CANCELLED, now)

    def complete(self, now: datetime | None = None) -> None:
        if self.status != InvoiceJobStatus.PROCESSING:
            raise InvalidJobTransition("complete", self.status)
        now = now or datetime.now(UTC)
        self.completed_at = now
        self._set_status(InvoiceJobStatus.COMPLETED, now)

    def fail(self, error_message: str, now: datetime | None = None) -> None:
        if self.is_terminal:
            raise InvalidJobTransition("fail", self.status)
        now = now or datetime.now(UTC)
        self.error_message = error_message
        self.completed_at = now
        self._set_status(InvoiceJobStatus.FAILED, now)

    def is_stale(self, max_age: timedelta, now: datetime | None = None) -> bool:
        if not self.is_processing or self.started_at is None:
            return False
        now = now or datetime.now(UTC)
        return now - self.started_at > max_age

    def record_entity(self, files: list[str], now: datetime | None = None) -> None:
        """Record a successfully produced entity and move on to the next row.

        An entity that was in flight when the job was paused is still recorded.
        """
        if self.status not in (InvoiceJobStatus.PROCESSING, InvoiceJobStatus.PAUSED):
            raise InvalidJobTransition("record progress on", self.status)
        if self.processed_entities >= self.total_entities:
            raise ValueError("processed_entities cannot exceed total_entities")
        # reassign rather than append so the ORM notices the change
        self.generated_files = [*self.generated_files, *files]
        self.processed_entities += 1
        self.next_row_index += 1
        self.updated_at = now or datetime.now(UTC)

    def skip_row(self, now: datetime | None = None) -> None:
        """Move past a row that produced nothing (no entity path, or it failed)."""
        self.next_row_index += 1
        self.updated_at = now or datetime.now(UTC)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InvoiceJob):  # pragma: no cover
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def create_detached_copy(self) -> "InvoiceJob":
        return InvoiceJob(
            template_id=self.template_id,
            input_file_name=self.input_file_name,
            input_file_path=self.input_file_path,
            invoice_year=self.invoice_year,
            total_entities=self.total_entities,
            output_directory=self.output_directory,
            created_by=self.created_by,
            job_id=self.id,
            status=self.status,
            processed_entities=self.processed_entities,
            next_row_index=self.next_row_index,
            generated_files=self.generated_files,
            error_message=self.error_message,
            celery_task_id=self.celery_task_id,
            created_at=self.created_at,
            updated_at=self.updated_at,
            started_at=self.started_at,
            completed_at=self.completed_at,
            version=self.version,
        )
