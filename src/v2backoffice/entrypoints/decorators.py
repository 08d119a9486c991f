"""ABOUTME: Authentication and authorization decorators for the JSON API
ABOUTME: Answers 401/403 with JSON bodies instead of redirecting to a login page"""

from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from flask import current_app, request
from flask_login import current_user

from v2backoffice.domain.value_objects import GlobalRole
from v2backoffice.translations import _

from .responses import error_response

F = TypeVar("F", bound=Callable[..., Any])


def api_login_required(f: F) -> F:
    """Only fully authenticated users, i.e. after the two-factor step."""

    @wraps(f)
    def decorated_function(*args: Any, **kwargs: Any) -> Any:
        if not current_user.is_authenticated:
            return error_response(_("Authentication required"), 401)
        return f(*args, **kwargs)

    return decorated_function  # type: ignore[return-value]


def require_role(required_role: GlobalRole) -> Callable[[F], F]:
    def decorator(f: F) -> F:
        @wraps(f)
        def decorated_function(*args: Any, **kwargs: Any) -> Any:
            if not current_user.is_authenticated:
                return error_response(_("Authentication required"), 401)

            if current_user.role != required_role:
                current_app.logger.warning(
                    f"User {current_user.id} attempted to access {request.endpoint} "
                    f"with role {current_user.role.value} (required: {required_role.value})"
                )
                return error_response(_("Insufficient permissions"), 403)

            return f(*args, **kwargs)

        return decorated_function  # type: ignore[return-value]

    return decorator


def require_admin(f: F) -> F:
    """Decorator that requires admin role."""
    return require_role(GlobalRole.ADMIN)(f)
