"""ABOUTME: Invoice job service for submitting, running and steering background invoice batches
ABOUTME: Covers submission, status, pause/resume/cancel, the stale job sweep, zip download and the worker loop"""

import io
import logging
import time
import uuid
import zipfile
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt

from v2backoffice.adapters.pdf_renderer import PdfRenderer
from v2backoffice.adapters.template_renderer import TemplateRenderer
from v2backoffice.domain.invoice_jobs import STALE_JOB_MESSAGE, InvalidJobTransition, InvoiceJob, output_directory_for
from v2backoffice.domain.value_objects import InvoiceJobStatus
from v2backoffice.translations import gettext as _

from .exceptions import (
    ConcurrentUpdateError,
    InvoiceJobNotFoundError,
    InvoiceTemplateNotFoundError,
    JobNotCompleted,
    SpreadsheetValidationError,
    StateConflictError,
    ValidationError,
)
from .invoice_service import generate_invoice_for_entity, validate_spreadsheet
from .pagination import PageRequest, Pagination
from .unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)

# hands a job to the worker pool and returns the Celery task id
Dispatch = Callable[[uuid.UUID], str]

TEMPLATE_MISSING_ON_RESUME = "Template not found during resume"
INPUT_INVALID_ON_RESUME = "Failed to re-validate Excel file during resume"
# how often a job update is retried after losing a race with another writer
UPDATE_ATTEMPTS = 3


class _CursorMoved(Exception):
    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"row cursor moved from {expected} to {actual}")


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _template_name(uow: AbstractUnitOfWork, job: InvoiceJob) -> str | None:
    if job.template_id is None:
        return None
    template = uow.invoice_templates.get(job.template_id)
    return template.name if template else None


def job_summary_dict(job: InvoiceJob, template_name: str | None) -> dict[str, Any]:
    return {
        "jobId": str(job.id),
        "status": job.status.value,
        "templateName": template_name,
        "inputFileName": job.input_file_name,
        "invoiceYear": job.invoice_year,
        "totalEntities": job.total_entities,
        "processedEntities": job.processed_entities,
        "progress": job.progress,
        "createdAt": _iso(job.created_at),
        "completedAt": _iso(job.completed_at),
    }


def job_status_dict(job: InvoiceJob, template_name: str | None) -> dict[str, Any]:
    return job_summary_dict(job, template_name) | {
        "generatedFiles": list(job.generated_files),
        "errorMessage": job.error_message,
        "startedAt": _iso(job.started_at),
    }


def _get_job(uow: AbstractUnitOfWork, job_id: uuid.UUID) -> InvoiceJob:
    job = uow.invoice_jobs.get(job_id)
    if job is None:
        raise InvoiceJobNotFoundError(_("Job not found"))
    return job


def _update_job(uow: AbstractUnitOfWork, job_id: uuid.UUID, change: Callable[[InvoiceJob], None]) -> InvoiceJob:
    """Apply `change` to a freshly read job and commit.

    A lost race with another writer is retried against the newer state, so
    `change` must decide from the job it is given, not from earlier reads.
    """
    for attempt in Retrying(
        stop=stop_after_attempt(UPDATE_ATTEMPTS),
        retry=retry_if_exception_type(ConcurrentUpdateError),
        reraise=True,
    ):
        with attempt, uow:
            job = _get_job(uow, job_id)
            change(job)
            detached = job.create_detached_copy()
            uow.commit()
    return detached


def _transition(job: InvoiceJob, action: Callable[[], None]) -> None:
    try:
        action()
    except InvalidJobTransition as error:
        raise StateConflictError(str(error), current_status=job.status.value) from error


def submit_invoice_job(
    uow: AbstractUnitOfWork,
    template_id: uuid.UUID | None,
    invoice_year: str,
    input_file_name: str,
    input_file_path: Path,
    invoices_dir: Path,
    dispatch: Dispatch,
    created_by: uuid.UUID | None = None,
) -> uuid.UUID:
    """
    Record a new invoice job and hand it to the worker pool.

    Returns:
        The job id, for polling the job status

    Raises:
        ValidationError: template or year missing
        InvoiceTemplateNotFoundError: the template does not exist
        SpreadsheetValidationError: the input sheet cannot be used
    """
    invoice_year = invoice_year.strip()
    if template_id is None or not invoice_year:
        raise ValidationError(_("Template ID and invoice year are required"))

    with uow:
        if uow.invoice_templates.get(template_id) is None:
            raise InvoiceTemplateNotFoundError(_("Template not found"))

    rows = validate_spreadsheet(input_file_path)
    job_id = uuid.uuid4()
    job = InvoiceJob(
        job_id=job_id,
        template_id=template_id,
        created_by=created_by,
        input_file_name=input_file_name,
        input_file_path=str(input_file_path),
        invoice_year=invoice_year,
        # only rows with an entity path produce invoices
        total_entities=sum(1 for row in rows if row.is_billable),
        output_directory=str(output_directory_for(invoices_dir, invoice_year, job_id)),
    )
    with uow:
        uow.invoice_jobs.add(job)
        uow.commit()

    _dispatch_and_record(uow, job_id, dispatch)
    logger.info("Submitted invoice job %s with %s entities", job_id, job.total_entities)
    return job_id


def _dispatch_and_record(uow: AbstractUnitOfWork, job_id: uuid.UUID, dispatch: Dispatch) -> None:
    celery_task_id = dispatch(job_id)

    def store_task_id(job: InvoiceJob) -> None:
        job.celery_task_id = celery_task_id

    try:
        _update_job(uow, job_id, store_task_id)
    except ConcurrentUpdateError:
        # the task id is informational, the worker owns the record from here
        logger.warning("Could not store celery task id %s for invoice job %s", celery_task_id, job_id)


def get_job(uow: AbstractUnitOfWork, job_id: uuid.UUID) -> InvoiceJob:
    with uow:
        return _get_job(uow, job_id).create_detached_copy()


def get_job_status(uow: AbstractUnitOfWork, job_id: uuid.UUID) -> dict[str, Any]:
    with uow:
        job = _get_job(uow, job_id)
        return job_status_dict(job, _template_name(uow, job))


def list_jobs(uow: AbstractUnitOfWork, page_request: PageRequest) -> tuple[list[dict[str, Any]], Pagination]:
    """Newest jobs first."""
    with uow:
        jobs, total = uow.invoice_jobs.list_paginated(limit=page_request.limit, offset=page_request.offset)
        summaries = [job_summary_dict(job, _template_name(uow, job)) for job in jobs]
        return summaries, Pagination.build(page_request, total)


def cancel_job(uow: AbstractUnitOfWork, job_id: uuid.UUID, now: datetime | None = None) -> InvoiceJob:
    """Cancel a job that has not finished. The worker stops before its next entity."""
    return _update_job(uow, job_id, lambda job: _transition(job, lambda: job.cancel(now)))


def pause_job(uow: AbstractUnitOfWork, job_id: uuid.UUID, now: datetime | None = None) -> InvoiceJob:
    """Pause a processing job. The entity being rendered right now still completes."""
    return _update_job(uow, job_id, lambda job: _transition(job, lambda: job.pause(now)))


def resume_job(
    uow: AbstractUnitOfWork, job_id: uuid.UUID, dispatch: Dispatch, now: datetime | None = None
) -> InvoiceJob:
    """
    Resume a paused job from the row it stopped at.

    The template and the input file are checked again first. When either is
    gone the job fails instead of resuming and is returned in that state.

    Raises:
        InvoiceJobNotFoundError: no such job
        StateConflictError: the job is not paused
    """
    with uow:
        job = _get_job(uow, job_id)
        _transition(job, lambda: job.resume(now))
        template = uow.invoice_templates.get(job.template_id) if job.template_id else None
        input_file_path = Path(job.input_file_path)
        if template is None:
            job.fail(TEMPLATE_MISSING_ON_RESUME, now)
        else:
            try:
                validate_spreadsheet(input_file_path)
            except SpreadsheetValidationError as error:
                logger.warning("Invoice job %s input is no longer usable: %s", job_id, error)
                job.fail(INPUT_INVALID_ON_RESUME, now)
        resumed = job.create_detached_copy()
        uow.commit()

    if resumed.status == InvoiceJobStatus.FAILED:
        return resumed

    _dispatch_and_record(uow, job_id, dispatch)
    logger.info("Resumed invoice job %s at row %s", job_id, resumed.next_row_index)
    return resumed


def sweep_stale_jobs(uow: AbstractUnitOfWork, max_age: timedelta, now: datetime | None = None) -> int:
    """Fail every job that has been processing for longer than `max_age`.

    Returns the number of jobs marked as failed. A job that another writer
    changed in the meantime is left to that writer.
    """
    now = now or datetime.now(UTC)
    with uow:
        stale_ids = [job.id for job in uow.invoice_jobs.get_processing_started_before(now - max_age)]

    message = STALE_JOB_MESSAGE % {"minutes": int(max_age.total_seconds() // 60)}
    swept = 0
    for job_id in stale_ids:
        with uow:
            job = uow.invoice_jobs.get(job_id)
            if job is None or not job.is_stale(max_age, now):
                continue
            job.fail(message, now)
            try:
                uow.commit()
            except ConcurrentUpdateError:
                logger.info("Invoice job %s changed while sweeping, skipping it", job_id)
                continue
        swept += 1
        logger.warning("Marked stuck invoice job %s as failed", job_id)
    return swept


def build_download_zip(uow: AbstractUnitOfWork, job_id: uuid.UUID) -> tuple[str, bytes]:
    """Zip the files of a completed job. Files no longer on disk are left out.

    Returns:
        (download file name, zip archive bytes)
    """
    with uow:
        job = _get_job(uow, job_id)
        if job.status != InvoiceJobStatus.COMPLETED:
            raise JobNotCompleted(current_status=job.status.value)
        file_paths = [Path(p) for p in job.generated_files]
        filename = f"invoices-{job.invoice_year}-{job.id}.zip"

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
        for file_path in file_paths:
            if file_path.is_file():
                archive.write(file_path, arcname=file_path.name)
            else:
                logger.info("Skipping missing invoice file %s", file_path)
    return filename, buffer.getvalue()


def _fail_job(uow: AbstractUnitOfWork, job_id: uuid.UUID, error_message: str) -> None:
    def fail(job: InvoiceJob) -> None:
        if not job.is_terminal:
            job.fail(error_message)

    _update_job(uow, job_id, fail)


def _discard_files(files: list[str]) -> None:
    for file in files:
        Path(file).unlink(missing_ok=True)


def run_invoice_job(
    uow: AbstractUnitOfWork,
    job_id: uuid.UUID,
    renderer: TemplateRenderer,
    pdf_renderer: PdfRenderer | None = None,
    entity_delay_seconds: float = 0,
    sleep: Callable[[float], None] = time.sleep,
) -> InvoiceJobStatus:
    """
    The worker side of a job: render every remaining entity, one at a time.

    The job status is read again before each entity, so a cancel or pause
    takes effect between entities. Progress is committed after every entity.
    Rows without an entity path, and entities whose rendering fails, are
    skipped. A batch level failure (unreadable input, no output directory)
    fails the job.

    Returns:
        The job status when the loop stopped
    """
    try:
        job = _update_job(uow, job_id, lambda job: job.begin_processing())
    except InvalidJobTransition as error:
        logger.info("Invoice job %s not started: %s", job_id, error)
        return error.status
    invoice_year = job.invoice_year
    output_dir = Path(job.output_directory)

    try:
        rows = validate_spreadsheet(Path(job.input_file_path))
        output_dir.mkdir(parents=True, exist_ok=True)
    except (SpreadsheetValidationError, OSError) as error:
        logger.error("Invoice job %s failed before any entity: %s", job_id, error)
        _fail_job(uow, job_id, str(error))
        return InvoiceJobStatus.FAILED

    while True:
        with uow:
            job = _get_job(uow, job_id)
            status, row_index = job.status, job.next_row_index
        if status != InvoiceJobStatus.PROCESSING:
            logger.info("Invoice job %s stopped at row %s, status %s", job_id, row_index, status.value)
            return status
        if row_index >= len(rows):
            break

        row = rows[row_index]
        files: list[str] = []
        if row.is_billable:
            try:
                files = generate_invoice_for_entity(row, invoice_year, output_dir, renderer, pdf_renderer)
            except Exception:  # one bad entity does not stop the batch
                logger.exception("Invoice generation failed for entity %s in job %s", row.entity_id, job_id)

        def advance(job: InvoiceJob, row_index: int = row_index, files: list[str] = files) -> None:
            if job.next_row_index != row_index:
                raise _CursorMoved(row_index, job.next_row_index)
            if files:
                job.record_entity(files)
            else:
                job.skip_row()

        try:
            _update_job(uow, job_id, advance)
        except _CursorMoved as error:
            # a resume started another task for this job, which now owns it
            logger.warning("Invoice job %s: %s, leaving it to the newer task", job_id, error)
            _discard_files(files)
            return get_job(uow, job_id).status
        except InvalidJobTransition as error:
            # cancelled while the entity was rendering
            logger.info("Invoice job %s: %s", job_id, error)
            return get_job(uow, job_id).status
        except ValueError as error:
            logger.error("Invoice job %s: %s", job_id, error)
            _fail_job(uow, job_id, str(error))
            return InvoiceJobStatus.FAILED

        if files and entity_delay_seconds:
            sleep(entity_delay_seconds)

    def complete(job: InvoiceJob) -> None:
        if job.status == InvoiceJobStatus.PROCESSING:
            job.complete()

    job = _update_job(uow, job_id, complete)
    logger.info("Invoice job %s finished as %s with %s files", job_id, job.status.value, len(job.generated_files))
    return job.status
