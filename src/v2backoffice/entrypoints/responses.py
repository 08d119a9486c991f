"""ABOUTME: JSON response envelope shared by every API endpoint
ABOUTME: Builds {"success", "message", "data"} bodies and maps service errors to HTTP status codes"""

from typing import Any

from flask import jsonify, request
from flask.typing import ResponseReturnValue

from v2backoffice.service_layer.exceptions import (
    AuthenticationError,
    BackOfficeError,
    InsufficientPermissions,
    NotFoundError,
    StateConflictError,
    TemplateAlreadyExists,
    TransientInfrastructureError,
    UserAlreadyExists,
    ValidationError,
)

# most specific first
ERROR_STATUS_CODES: tuple[tuple[type[BackOfficeError], int], ...] = (
    (ValidationError, 400),
    (UserAlreadyExists, 400),
    (TemplateAlreadyExists, 400),
    (AuthenticationError, 401),
    (InsufficientPermissions, 403),
    (NotFoundError, 404),
    (StateConflictError, 409),
    (TransientInfrastructureError, 503),
)


def success_response(message: str, data: Any = None, status: int = 200, **extra: Any) -> ResponseReturnValue:
    body: dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return jsonify(body), status


def error_response(message: str, status: int, **extra: Any) -> ResponseReturnValue:
    return jsonify({"success": False, "message": message, **extra}), status


def status_code_for(error: BackOfficeError) -> int:
    for error_class, status in ERROR_STATUS_CODES:
        if isinstance(error, error_class):
            return status
    return 500


def json_body() -> dict[str, Any]:
    """The request's JSON object, or an empty dict when the body is missing or not an object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
