"""ABOUTME: Flask application factory with configuration, blueprints, and error handling
ABOUTME: Creates the JSON API app with its extensions and explicitly injected collaborators"""

import time
import uuid
from collections.abc import Callable

from flask import Flask, Response
from flask.typing import ResponseReturnValue
from flask_login import current_user
from sqlalchemy.orm import sessionmaker
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

import v2backoffice.logging
from v2backoffice import config
from v2backoffice.adapters import database
from v2backoffice.adapters.email import EmailAdapter, get_email_adapter
from v2backoffice.adapters.template_renderer import JinjaTemplateRenderer
from v2backoffice.bootstrap import default_session_factory
from v2backoffice.entrypoints.extensions import AppServices, init_extensions
from v2backoffice.service_layer.exceptions import BackOfficeError, StateConflictError, TransientInfrastructureError
from v2backoffice.service_layer.invoice_job_service import Dispatch
from v2backoffice.translations import _

from .responses import error_response, status_code_for


def _celery_dispatch(job_id: uuid.UUID) -> str:
    # imported late so the API can start without the worker modules configured
    from v2backoffice.entrypoints.celery.tasks import dispatch_invoice_job

    return dispatch_invoice_job(job_id)


def create_app(
    config_name: str = "",
    session_factory: sessionmaker | None = None,
    email_adapter: EmailAdapter | None = None,
    invoice_dispatch: Dispatch | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Flask:
    """
    Flask application factory.

    Args:
        config_name: Configuration name (development, testing, production)
        session_factory: database sessions for this app, built from the config when not given
        email_adapter: outgoing email, built from EmailCfg when not given
        invoice_dispatch: hands invoice jobs to the worker pool, Celery when not given
        sleep: used between login retries

    Returns:
        Configured Flask application instance
    """
    v2backoffice.logging.logging_setup(config.get_log_level())

    app = Flask(__name__)

    # Load configuration
    flask_config = config.get_config(config_name)
    app.config.from_object(flask_config)

    # Trust 1 layer of proxy (the reverse proxy in front of the app)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)  # type: ignore[method-assign]

    if session_factory is None:
        database.start_mappers()
        session_factory = default_session_factory(flask_config.SQLALCHEMY_DATABASE_URI)

    services = AppServices(
        session_factory=session_factory,
        email_adapter=email_adapter or get_email_adapter(flask_config.EMAIL_CFG),
        template_renderer=JinjaTemplateRenderer(),
        invoice_dispatch=invoice_dispatch or _celery_dispatch,
        sleep=sleep,
    )
    init_extensions(app, services)

    register_blueprints(app)
    register_error_handlers(app)
    register_after_request_handlers(app)

    app.logger.info("V2 back office API startup")

    return app


def register_blueprints(app: Flask) -> None:
    """Register application blueprints."""
    from .blueprints.auth import auth_bp
    from .blueprints.health import health_bp
    from .blueprints.invoices import invoices_bp
    from .blueprints.two_factor import two_factor_bp
    from .blueprints.users import users_bp
    from .blueprints.workflows import workflows_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(two_factor_bp, url_prefix="/api/2fa")
    app.register_blueprint(users_bp, url_prefix="/api/users")
    app.register_blueprint(workflows_bp, url_prefix="/api/workflows")
    app.register_blueprint(invoices_bp, url_prefix="/api/invoices")


def register_error_handlers(app: Flask) -> None:
    """Turn service errors and HTTP errors into JSON responses."""

    @app.errorhandler(TransientInfrastructureError)
    def database_unavailable(error: TransientInfrastructureError) -> ResponseReturnValue:
        app.logger.error(f"Database unavailable: {error}")
        return error_response(_("Database connection issue. Please try again."), 503)

    @app.errorhandler(StateConflictError)
    def state_conflict(error: StateConflictError) -> ResponseReturnValue:
        extra = {"currentStatus": error.current_status} if error.current_status else {}
        return error_response(str(error), 409, **extra)

    @app.errorhandler(BackOfficeError)
    def service_error(error: BackOfficeError) -> ResponseReturnValue:
        status = status_code_for(error)
        if status == 500:
            app.logger.error(f"Unhandled service error: {error!r}")
            return error_response(_("Internal server error"), 500)
        return error_response(str(error), status)

    @app.errorhandler(HTTPException)
    def http_error(error: HTTPException) -> ResponseReturnValue:
        return error_response(error.description or error.name, error.code or 500)

    @app.errorhandler(500)
    def internal_error(error: Exception) -> ResponseReturnValue:
        app.logger.error(f"Server Error: {error}")
        return error_response(_("Internal server error"), 500)


def register_after_request_handlers(app: Flask) -> None:
    """Register after request handlers."""

    @app.after_request
    def add_cache_headers_for_authenticated_users(response: Response) -> Response:
        """Responses for a logged in user carry personal data, so browsers must not cache them."""
        if current_user.is_authenticated:
            response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
            response.headers["Pragma"] = "no-cache"
            response.headers["Expires"] = "0"

        return response
