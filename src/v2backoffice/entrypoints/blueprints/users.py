"""ABOUTME: JSON API endpoints for user administration
ABOUTME: Admin-only create, list, get, update and delete of back office accounts"""

import uuid

from flask import Blueprint, current_app, request
from flask.typing import ResponseReturnValue
from flask_login import current_user

from v2backoffice.config import EmailCfg
from v2backoffice.domain.value_objects import GlobalRole
from v2backoffice.entrypoints.decorators import require_admin
from v2backoffice.entrypoints.extensions import get_uow, services
from v2backoffice.entrypoints.responses import error_response, json_body, success_response
from v2backoffice.service_layer import notifications, user_service
from v2backoffice.service_layer.pagination import PageRequest
from v2backoffice.service_layer.user_service import user_to_dict
from v2backoffice.translations import _

users_bp = Blueprint("users", __name__)


def _parse_role(value: object) -> GlobalRole | None:
    try:
        return GlobalRole.from_name(value)
    except ValueError:
        return None


@users_bp.route("/", methods=["POST"], strict_slashes=False)
@require_admin
def create_user() -> ResponseReturnValue:
    data = json_body()
    email = str(data.get("email", "")).strip()
    password = str(data.get("password", ""))
    if not email or not password:
        return error_response(_("Email and password are required"), 400)

    role = GlobalRole.USER
    if data.get("role"):
        parsed_role = _parse_role(data["role"])
        if parsed_role is None:
            return error_response(_("Invalid role"), 400)
        role = parsed_role

    user = user_service.create_user(
        get_uow(),
        email=email,
        password=password,
        full_name=str(data.get("fullName", "")),
        phone_number=str(data.get("phoneNumber", "")),
        role=role,
        created_by=current_user.id,
    )
    current_app.logger.info(f"Admin {current_user.id} created user {user.id}")

    email_cfg = current_app.config["EMAIL_CFG"]
    assert isinstance(email_cfg, EmailCfg)
    app_services = services()
    notifications.send_welcome_email(
        app_services.email_adapter, app_services.template_renderer, user, email_cfg.frontend_url
    )
    return success_response(_("User created successfully"), data=user_to_dict(user), status=201)


@users_bp.route("/", methods=["GET"], strict_slashes=False)
@require_admin
def list_users() -> ResponseReturnValue:
    page_request = PageRequest.from_args(request.args.get("page"), request.args.get("limit"))
    users, pagination = user_service.list_users(get_uow(), page_request)
    return success_response(
        _("Users retrieved successfully"),
        data={"users": [user_to_dict(u) for u in users], "pagination": pagination.to_dict("totalUsers")},
    )


@users_bp.route("/<uuid:user_id>", methods=["GET"])
@require_admin
def get_user(user_id: uuid.UUID) -> ResponseReturnValue:
    user = user_service.get_user(get_uow(), user_id)
    return success_response(_("User retrieved successfully"), data=user_to_dict(user))


@users_bp.route("/<uuid:user_id>", methods=["PUT"])
@require_admin
def update_user(user_id: uuid.UUID) -> ResponseReturnValue:
    data = json_body()
    role = None
    if data.get("role"):
        role = _parse_role(data["role"])
        if role is None:
            return error_response(_("Invalid role"), 400)
    is_active = data.get("isActive")

    user = user_service.update_user(
        get_uow(),
        user_id,
        full_name=data.get("fullName") or None,
        phone_number=data.get("phoneNumber") or None,
        role=role,
        is_active=is_active if isinstance(is_active, bool) else None,
    )
    current_app.logger.info(f"Admin {current_user.id} updated user {user.id}")
    return success_response(_("User updated successfully"), data=user_to_dict(user))


@users_bp.route("/<uuid:user_id>", methods=["DELETE"])
@require_admin
def delete_user(user_id: uuid.UUID) -> ResponseReturnValue:
    user_service.delete_user(get_uow(), user_id, acting_user_id=current_user.id)
    current_app.logger.info(f"Admin {current_user.id} deleted user {user_id}")
    return success_response(_("User deleted successfully"))
