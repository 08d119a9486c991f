"""ABOUTME: Outbound account emails: welcome, password reset and the admin notice after a reset
ABOUTME: Renders the packaged templates and hands them to an EmailAdapter, never failing the caller"""

import logging
from datetime import UTC, datetime
from urllib.parse import quote

from jinja2 import TemplateError

from v2backoffice.adapters.email import EmailAdapter
from v2backoffice.adapters.template_renderer import TemplateRenderer
from v2backoffice.domain.users import RESET_TOKEN_LIFETIME, User

logger = logging.getLogger(__name__)


def _send(
    email_adapter: EmailAdapter,
    renderer: TemplateRenderer,
    to: str,
    subject: str,
    template: str,
    **context: object,
) -> bool:
    try:
        text_body = renderer.render_template(f"emails/{template}.txt", **context)
        html_body = renderer.render_template(f"emails/{template}.html", **context)
    except TemplateError as e:
        logger.error(f"Could not render {template} email for {to}: {e}")
        return False

    success = email_adapter.send_email(to=[to], subject=subject, text_body=text_body, html_body=html_body)
    if success:
        logger.info(f"{template} email sent to {to}")
    else:
        logger.error(f"Failed to send {template} email to {to}")
    return success


def send_welcome_email(email_adapter: EmailAdapter, renderer: TemplateRenderer, user: User, frontend_url: str) -> bool:
    return _send(
        email_adapter,
        renderer,
        to=user.email,
        subject="Welcome to V2 Financial Group - Your Account is Ready!",
        template="welcome",
        full_name=user.display_name,
        email=user.email,
        role=user.role.value,
        login_url=f"{frontend_url}/login",
        year=datetime.now(UTC).year,
    )


def send_password_reset_email(
    email_adapter: EmailAdapter,
    renderer: TemplateRenderer,
    email: str,
    reset_token: str,
    frontend_url: str,
) -> bool:
    """Send the reset link. The frontend page posts token, email and new password back to us."""
    reset_url = f"{frontend_url}/reset-password?token={reset_token}&email={quote(email, safe='')}"
    return _send(
        email_adapter,
        renderer,
        to=email,
        subject="V2 Financial Group - Password Reset Request",
        template="password_reset",
        email=email,
        reset_url=reset_url,
        expiry_minutes=int(RESET_TOKEN_LIFETIME.total_seconds() // 60),
    )


def send_password_updated_notification(
    email_adapter: EmailAdapter,
    renderer: TemplateRenderer,
    admin_email: str,
    user: User,
) -> bool:
    now = datetime.now(UTC)
    return _send(
        email_adapter,
        renderer,
        to=admin_email,
        subject="V2 Financial Group - User Password Updated",
        template="password_updated",
        user_name=user.display_name,
        user_email=user.email,
        updated_at=now.strftime("%Y-%m-%d %H:%M UTC"),
        year=now.year,
    )
