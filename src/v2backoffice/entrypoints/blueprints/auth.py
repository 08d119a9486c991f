"""ABOUTME: JSON API endpoints for the login handshake and account recovery
ABOUTME: Password step, two-factor step, logout, profile and password reset"""

from flask import Blueprint, current_app
from flask.typing import ResponseReturnValue
from flask_login import current_user, login_user, logout_user

from v2backoffice.config import EmailCfg, TwoFactorCfg
from v2backoffice.entrypoints.decorators import api_login_required
from v2backoffice.entrypoints.extensions import get_uow, services
from v2backoffice.entrypoints.responses import error_response, json_body, success_response
from v2backoffice.service_layer import auth_service, notifications
from v2backoffice.service_layer.password_reset_service import request_password_reset, reset_password_with_token
from v2backoffice.service_layer.user_service import user_to_dict
from v2backoffice.translations import _

auth_bp = Blueprint("auth", __name__)

PASSWORD_RESET_REQUESTED = "If an account with that email exists, a password reset link has been sent."


def _two_factor_cfg() -> TwoFactorCfg:
    cfg = current_app.config["TWO_FACTOR_CFG"]
    assert isinstance(cfg, TwoFactorCfg)
    return cfg


def _frontend_url() -> str:
    cfg = current_app.config["EMAIL_CFG"]
    assert isinstance(cfg, EmailCfg)
    return cfg.frontend_url


@auth_bp.route("/login", methods=["POST"])
def login() -> ResponseReturnValue:
    """First step: check the password and hand out a pending two-factor token."""
    data = json_body()
    email = str(data.get("email", "")).strip()
    password = str(data.get("password", ""))
    if not email or not password:
        return error_response(_("Email and password are required"), 400)

    challenge = auth_service.begin_login(
        get_uow(),
        email,
        password,
        secret_key=current_app.config["SECRET_KEY"],
        sleep=services().sleep,
    )
    return success_response(
        _("Two-factor authentication required"),
        requiresTwoFactor=True,
        twoFactorToken=challenge.pending_token,
        needsSetup=challenge.needs_setup,
    )


@auth_bp.route("/verify-2fa", methods=["POST"])
def verify_two_factor() -> ResponseReturnValue:
    """Second step: a TOTP or backup code plus the pending token establishes the session."""
    data = json_body()
    code = str(data.get("token", "")).strip()
    pending_token = str(data.get("twoFactorToken", "")).strip()
    if not code or not pending_token:
        return error_response(_("Token and two-factor token are required"), 400)

    cfg = _two_factor_cfg()
    user = auth_service.complete_login(
        get_uow(),
        pending_token,
        code,
        secret_key=current_app.config["SECRET_KEY"],
        max_age_minutes=cfg.pending_token_minutes,
        valid_window=cfg.valid_window,
    )
    login_user(user)
    current_app.logger.info(f"User {user.id} logged in")
    return success_response(
        _("Two-factor authentication verified successfully"),
        user={"_id": str(user.id), "email": user.email, "fullName": user.full_name, "role": user.role.value},
    )


@auth_bp.route("/logout", methods=["POST"])
@api_login_required
def logout() -> ResponseReturnValue:
    current_app.logger.info(f"User {current_user.id} logged out")
    logout_user()
    return success_response(_("Logout successful"))


@auth_bp.route("/profile", methods=["GET"])
@api_login_required
def profile() -> ResponseReturnValue:
    return success_response(_("Profile retrieved successfully"), data=user_to_dict(current_user))


@auth_bp.route("/request-password-reset", methods=["POST"])
def forgot_password() -> ResponseReturnValue:
    """Always answers the same way so the response never reveals which emails have accounts."""
    email = str(json_body().get("email", "")).strip()
    if not email:
        return error_response(_("Email is required"), 400)

    reset_request = request_password_reset(get_uow(), email)
    if reset_request is not None:
        app_services = services()
        notifications.send_password_reset_email(
            app_services.email_adapter,
            app_services.template_renderer,
            reset_request.email,
            reset_request.token,
            _frontend_url(),
        )
    return success_response(_(PASSWORD_RESET_REQUESTED))


@auth_bp.route("/reset-password", methods=["POST"])
def reset_password() -> ResponseReturnValue:
    data = json_body()
    token = str(data.get("token", "")).strip()
    email = str(data.get("email", "")).strip()
    new_password = str(data.get("newPassword", ""))
    if not token or not email or not new_password:
        return error_response(_("Token, email and new password are required"), 400)

    result = reset_password_with_token(get_uow(), email, token, new_password)
    if result.creator_email:
        app_services = services()
        notifications.send_password_updated_notification(
            app_services.email_adapter, app_services.template_renderer, result.creator_email, result.user
        )

    user = result.user
    return success_response(
        _("Password updated successfully"),
        user={"_id": str(user.id), "email": user.email, "fullName": user.full_name, "role": user.role.value},
    )
