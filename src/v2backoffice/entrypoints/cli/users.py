"""ABOUTME: CLI commands for user management operations
ABOUTME: Provides commands to add, list and deactivate back office users"""

import click

from v2backoffice.domain.value_objects import GlobalRole
from v2backoffice.service_layer import user_service
from v2backoffice.service_layer.exceptions import UserAlreadyExists, UserNotFoundError, ValidationError
from v2backoffice.service_layer.pagination import MAX_PAGE_SIZE, PageRequest
from v2backoffice.service_layer.security import password_validators_help_texts

from . import uow_from_context


@click.group()
def users() -> None:
    """User management commands."""
    pass


@users.command("add")
@click.option("--email", required=True, help="User email address")
@click.option("--full-name", default="", help="User full name")
@click.option("--phone-number", default="", help="User phone number")
@click.option(
    "--role",
    type=click.Choice([r.value for r in GlobalRole], case_sensitive=False),
    default=GlobalRole.USER.value,
    help="Role for the user",
)
@click.option("--password", help="Password (will prompt if not provided)")
@click.pass_context
def add_user(
    ctx: click.Context,
    email: str,
    full_name: str,
    phone_number: str,
    role: str,
    password: str | None,
) -> None:
    """Add a new user. The first admin is created this way."""
    if not password:
        click.echo("Password requirements:")
        for help_text in password_validators_help_texts():
            click.echo(f"  - {help_text}")
        password = click.prompt("Password", hide_input=True, confirmation_prompt=True)
    assert password is not None

    try:
        user = user_service.create_user(
            uow_from_context(ctx),
            email=email,
            password=password,
            full_name=full_name,
            phone_number=phone_number,
            role=GlobalRole.from_name(role),
        )
    except (UserAlreadyExists, ValidationError) as e:
        click.echo(click.style(f"✗ Error: {e}", "red"))
        raise click.Abort() from e

    click.echo(click.style("✓ User created successfully:", "green"))
    click.echo(f"  ID: {user.id}")
    click.echo(f"  Email: {user.email}")
    click.echo(f"  Name: {user.display_name}")
    click.echo(f"  Role: {user.role.value}")
    click.echo("  The user sets up two-factor authentication at first login.")


@users.command("list")
@click.option("--page", default=1, help="Page number")
@click.option("--limit", default=MAX_PAGE_SIZE, help="Users per page")
@click.pass_context
def list_users(ctx: click.Context, page: int, limit: int) -> None:
    """List users, newest first."""
    user_list, pagination = user_service.list_users(uow_from_context(ctx), PageRequest.from_args(page, limit))

    if not user_list:
        click.echo("No users found.")
        return

    click.echo(f"Users (page {pagination.current_page} of {pagination.total_pages}, {pagination.total} total):")
    for user in user_list:
        status = click.style("active", "green") if user.is_active else click.style("inactive", "red")
        two_factor = "2FA ready" if user.two_factor_setup_completed else "2FA pending"
        click.echo(f"  {user.email} [{user.role.value}] {status} {two_factor}")


@users.command("deactivate")
@click.argument("email")
@click.option("--confirm", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def deactivate_user(ctx: click.Context, email: str, confirm: bool) -> None:
    """Deactivate a user so they can no longer log in."""
    if not confirm and not click.confirm(f"Deactivate {email}?"):
        click.echo("Operation cancelled.")
        return

    try:
        user = user_service.deactivate_user(uow_from_context(ctx), email)
    except UserNotFoundError as e:
        click.echo(click.style(f"✗ Error: {e}", "red"))
        raise click.Abort() from e

    click.echo(click.style(f"✓ User {user.email} deactivated", "green"))
