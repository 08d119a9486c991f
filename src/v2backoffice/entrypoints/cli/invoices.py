"""ABOUTME: CLI commands for invoice generation jobs
ABOUTME: Lists jobs and fails the ones stuck in processing"""

from datetime import timedelta

import click

from v2backoffice.config import InvoiceCfg
from v2backoffice.service_layer import invoice_job_service
from v2backoffice.service_layer.pagination import PageRequest

from . import uow_from_context


@click.group()
def invoices() -> None:
    """Invoice job commands."""
    pass


@invoices.command("sweep-stale")
@click.option(
    "--minutes",
    type=int,
    default=None,
    help="Age after which a processing job counts as stuck (defaults to INVOICE_STALE_AFTER_MINUTES)",
)
@click.pass_context
def sweep_stale(ctx: click.Context, minutes: int | None) -> None:
    """Mark invoice jobs stuck in processing as failed."""
    if minutes is None:
        minutes = InvoiceCfg.from_env().stale_after_minutes
    count = invoice_job_service.sweep_stale_jobs(uow_from_context(ctx), timedelta(minutes=minutes))
    click.echo(click.style(f"✓ Marked {count} stuck jobs as failed", "green"))


@invoices.command("list-jobs")
@click.option("--page", default=1, help="Page number")
@click.option("--limit", default=20, help="Jobs per page")
@click.pass_context
def list_jobs(ctx: click.Context, page: int, limit: int) -> None:
    """List invoice jobs, newest first."""
    jobs, pagination = invoice_job_service.list_jobs(uow_from_context(ctx), PageRequest.from_args(page, limit))
    if not jobs:
        click.echo("No invoice jobs found.")
        return

    click.echo(f"Invoice jobs (page {pagination.current_page} of {pagination.total_pages}, {pagination.total} total):")
    for job in jobs:
        click.echo(
            f"  {job['jobId']} {job['status']} {job['invoiceYear']} "
            f"{job['processedEntities']}/{job['totalEntities']} {job['inputFileName']}"
        )
