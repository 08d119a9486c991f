"""ABOUTME: Flask extensions initialization and per-app service wiring
ABOUTME: Sets up Flask-Login, Flask-Session, security headers, Babel and the injected session factory"""

import uuid
from collections.abc import Callable

from flask import Flask, current_app, request
from flask_babel import Babel
from flask_login import LoginManager
from flask_session import Session
from flask_talisman import Talisman
from sqlalchemy.orm import sessionmaker

from v2backoffice import bootstrap
from v2backoffice.adapters.email import EmailAdapter
from v2backoffice.adapters.template_renderer import TemplateRenderer
from v2backoffice.domain.users import User
from v2backoffice.service_layer.invoice_job_service import Dispatch
from v2backoffice.service_layer.unit_of_work import AbstractUnitOfWork

# Initialize extensions
login_manager = LoginManager()
session_store = Session()
talisman = Talisman()
babel = Babel()

SERVICES_KEY = "v2backoffice"


class AppServices:
    """Collaborators the request handlers need, built once per app."""

    def __init__(
        self,
        session_factory: sessionmaker,
        email_adapter: EmailAdapter,
        template_renderer: TemplateRenderer,
        invoice_dispatch: Dispatch,
        sleep: Callable[[float], None],
    ) -> None:
        self.session_factory = session_factory
        self.email_adapter = email_adapter
        self.template_renderer = template_renderer
        self.invoice_dispatch = invoice_dispatch
        self.sleep = sleep


def init_extensions(app: Flask, services: AppServices) -> None:
    """Initialize Flask extensions with app instance."""
    app.extensions[SERVICES_KEY] = services

    login_manager.init_app(app)

    # Initialize Flask-Session (Redis, or cachelib in tests)
    session_store.init_app(app)

    # JSON API only, so no scripts or styles are ever served
    talisman.init_app(
        app,
        force_https=app.config.get("FORCE_HTTPS", False),
        strict_transport_security=True,
        session_cookie_secure=app.config.get("FORCE_HTTPS", False),
        content_security_policy={"default-src": "'none'", "frame-ancestors": "'none'"},
    )

    babel.init_app(app, locale_selector=get_locale)


def get_locale() -> str:
    supported_languages = current_app.config.get("LANGUAGES", ["en"])
    return request.accept_languages.best_match(supported_languages) or supported_languages[0]


def services() -> AppServices:
    app_services = current_app.extensions[SERVICES_KEY]
    assert isinstance(app_services, AppServices)
    return app_services


def get_uow() -> AbstractUnitOfWork:
    return bootstrap.bootstrap(session_factory=services().session_factory)


@login_manager.user_loader
def load_user(user_id: str) -> User | None:
    """Load user from database for Flask-Login."""
    try:
        user_uuid = uuid.UUID(user_id)
    except (ValueError, TypeError):
        return None
    with get_uow() as uow:
        db_user = uow.users.get(user_uuid)
        if db_user and db_user.is_active:
            return db_user.create_detached_copy()
        return None
