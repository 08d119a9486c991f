"""ABOUTME: CLI commands for the workflow menu
ABOUTME: Seeds the default workflows and lists what is configured"""

import click

from v2backoffice.service_layer.workflow_service import list_all_workflows, seed_default_workflows

from . import uow_from_context


@click.group()
def workflows() -> None:
    """Workflow menu commands."""
    pass


@workflows.command("seed")
@click.pass_context
def seed(ctx: click.Context) -> None:
    """Add the default workflows when none exist yet."""
    added = seed_default_workflows(uow_from_context(ctx))
    if added:
        click.echo(click.style(f"✓ Added {added} workflows", "green"))
    else:
        click.echo(click.style("Workflows already exist. Skipping seed.", "yellow"))


@workflows.command("list")
@click.pass_context
def list_workflows(ctx: click.Context) -> None:
    workflow_list = list_all_workflows(uow_from_context(ctx))
    if not workflow_list:
        click.echo("No workflows found.")
        return

    for workflow in workflow_list:
        availability = "" if workflow.is_available else click.style(" (unavailable)", "yellow")
        click.echo(f"  {workflow.label} {workflow.frontend_route} [{workflow.accessible_to.value}]{availability}")
