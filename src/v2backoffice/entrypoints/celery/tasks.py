import logging
import uuid
from datetime import timedelta
from typing import Any

from celery import Task
from celery.signals import setup_logging, worker_process_init
from sqlalchemy.orm import sessionmaker

import v2backoffice.logging
from v2backoffice import config
from v2backoffice.adapters.pdf_renderer import PdfRenderer, PlaywrightPdfRenderer
from v2backoffice.adapters.template_renderer import JinjaTemplateRenderer
from v2backoffice.bootstrap import bootstrap, dispose_session_factories
from v2backoffice.entrypoints.celery.app import app
from v2backoffice.service_layer import invoice_job_service
from v2backoffice.service_layer.exceptions import ServiceLayerError
from v2backoffice.translations import gettext as _

logger = logging.getLogger(__name__)


@setup_logging.connect
def config_loggers(*args: Any, **kwargs: Any) -> None:
    v2backoffice.logging.logging_setup(config.get_log_level(), component="worker")


@worker_process_init.connect
def reset_db_connections(*args: Any, **kwargs: Any) -> None:
    # pooled connections must not be shared with the parent process after the fork
    dispose_session_factories(close=False)


def _on_task_failure(self: Task | None, exc: Exception, task_id: str, args: tuple, kwargs: dict, einfo: Any) -> None:
    """
    Callback executed when an invoice task fails.

    Note: This only fires if the worker process is alive when the exception occurs.
    Hard crashes (SIGKILL, OOM) are left to the stale job sweep.

    Args:
        self: Task instance (can be None in tests)
        exc: The exception that caused the failure
        task_id: Celery task ID (not our job id)
        args: Task positional arguments
        kwargs: Task keyword arguments
        einfo: Exception info object
    """
    job_id = kwargs.get("job_id")
    if not job_id:
        logger.error(f"Task {task_id} failed but no job_id in kwargs")
        return

    session_factory = kwargs.get("session_factory")
    error_msg = _("Invoice generation failed: %(error)s", error=f"{type(exc).__name__}: {exc}")
    logger.error(f"Celery task failure callback: job_id={job_id}, celery_task_id={task_id}, exception={exc!r}")

    try:
        with bootstrap(session_factory=session_factory) as uow:
            job = uow.invoice_jobs.get(uuid.UUID(str(job_id)))
            if job and not job.is_terminal:
                job.fail(error_msg)
                uow.commit()
    except (ServiceLayerError, ValueError) as update_exc:
        logger.error(f"Failed to update invoice job in failure callback: {update_exc}")


def _pdf_renderer(invoice_cfg: config.InvoiceCfg) -> PdfRenderer | None:
    return PlaywrightPdfRenderer() if invoice_cfg.pdf_enabled else None


def _internal_generate_invoices(
    job_id: uuid.UUID,
    session_factory: sessionmaker | None = None,
    pdf_renderer: PdfRenderer | None = None,
    entity_delay_seconds: float | None = None,
) -> str:
    invoice_cfg = config.InvoiceCfg.from_env()
    if entity_delay_seconds is None:
        entity_delay_seconds = invoice_cfg.entity_delay_seconds
    uow = bootstrap(session_factory=session_factory)
    with v2backoffice.logging.invoice_job_context(job_id):
        status = invoice_job_service.run_invoice_job(
            uow,
            job_id,
            renderer=JinjaTemplateRenderer(),
            pdf_renderer=pdf_renderer,
            entity_delay_seconds=entity_delay_seconds,
        )
    return status.value


@app.task(bind=True, on_failure=_on_task_failure)
def generate_invoices(self: Task, job_id: str, session_factory: sessionmaker | None = None) -> str:
    """
    Render every remaining entity of an invoice job.

    Args:
        self: Celery task instance (auto-injected when bind=True)
        job_id: id of the InvoiceJob, as a string
        session_factory: Optional session factory for database operations

    Returns:
        The job status when the task stopped
    """
    return _internal_generate_invoices(
        uuid.UUID(job_id),
        session_factory=session_factory,
        pdf_renderer=_pdf_renderer(config.InvoiceCfg.from_env()),
    )


@app.task
def sweep_stale_invoice_jobs(session_factory: sessionmaker | None = None) -> int:
    """
    Mark invoice jobs stuck in processing as failed.

    Runs periodically from celery beat.

    Returns:
        Number of jobs marked as failed
    """
    max_age = timedelta(minutes=config.InvoiceCfg.from_env().stale_after_minutes)
    uow = bootstrap(session_factory=session_factory)
    count = invoice_job_service.sweep_stale_jobs(uow, max_age)
    if count:
        logger.info(f"Marked {count} stuck invoice jobs as failed")
    return count


def dispatch_invoice_job(job_id: uuid.UUID) -> str:
    """Queue a job on the invoice worker pool and return the celery task id."""
    result = generate_invoices.delay(job_id=str(job_id))
    return str(result.id)
