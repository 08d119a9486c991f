"""ABOUTME: JSON API endpoints for two-factor authentication management
ABOUTME: Setup during login or when logged in, setup verification, status and backup code regeneration"""

from flask import Blueprint, current_app
from flask.typing import ResponseReturnValue
from flask_login import current_user

from v2backoffice.config import TwoFactorCfg
from v2backoffice.entrypoints.decorators import api_login_required
from v2backoffice.entrypoints.extensions import get_uow
from v2backoffice.entrypoints.responses import error_response, json_body, success_response
from v2backoffice.service_layer import two_factor_service
from v2backoffice.service_layer.two_factor_service import TwoFactorSetup
from v2backoffice.translations import _

two_factor_bp = Blueprint("two_factor", __name__)


def _cfg() -> TwoFactorCfg:
    cfg = current_app.config["TWO_FACTOR_CFG"]
    assert isinstance(cfg, TwoFactorCfg)
    return cfg


def _setup_response(setup: TwoFactorSetup, message: str) -> ResponseReturnValue:
    return success_response(
        message,
        qrCodeUrl=setup.qr_code_data_url,
        otpauthUrl=setup.provisioning_uri,
        secret=setup.secret,
        backupCodes=setup.backup_codes,
    )


@two_factor_bp.route("/setup-during-login", methods=["POST"])
def setup_during_login() -> ResponseReturnValue:
    """For a user who passed the password step but has no authenticator yet."""
    pending_token = str(json_body().get("twoFactorToken", "")).strip()
    if not pending_token:
        return error_response(_("Two-factor token is required"), 400)

    cfg = _cfg()
    setup = two_factor_service.setup_during_login(
        get_uow(),
        pending_token,
        secret_key=current_app.config["SECRET_KEY"],
        issuer=cfg.issuer,
        max_age_minutes=cfg.pending_token_minutes,
        backup_code_count=cfg.backup_code_count,
    )
    message = _("2FA setup initiated successfully") if setup.newly_created else _("2FA setup retrieved successfully")
    return _setup_response(setup, message)


@two_factor_bp.route("/setup", methods=["POST"])
@two_factor_bp.route("/setup-authenticated", methods=["POST"])
@api_login_required
def setup() -> ResponseReturnValue:
    cfg = _cfg()
    setup = two_factor_service.setup_for_user(
        get_uow(), current_user.id, issuer=cfg.issuer, backup_code_count=cfg.backup_code_count
    )
    if setup.newly_created:
        message = _(
            "Two-factor authentication setup initiated. Please scan the QR code and verify with a token."
        )
    else:
        message = _(
            "Two-factor authentication setup retrieved. Please scan the QR code and verify with a token."
        )
    return _setup_response(setup, message)


@two_factor_bp.route("/verify-authenticated", methods=["POST"])
@api_login_required
def verify_authenticated() -> ResponseReturnValue:
    code = str(json_body().get("token", "")).strip()
    if not code:
        return error_response(_("Token is required"), 400)

    two_factor_service.verify_setup(get_uow(), current_user.id, code, valid_window=_cfg().valid_window)
    current_app.logger.info(f"User {current_user.id} completed two-factor setup")
    return success_response(_("Two-factor authentication enabled successfully"))


@two_factor_bp.route("/status", methods=["GET"])
@api_login_required
def status() -> ResponseReturnValue:
    return success_response(
        _("Two-factor status retrieved successfully"), data=two_factor_service.get_status(get_uow(), current_user.id)
    )


@two_factor_bp.route("/regenerate-backup-codes", methods=["POST"])
@api_login_required
def regenerate_backup_codes() -> ResponseReturnValue:
    backup_codes = two_factor_service.regenerate_backup_codes(
        get_uow(), current_user.id, count=_cfg().backup_code_count
    )
    current_app.logger.info(f"User {current_user.id} regenerated backup codes")
    return success_response(_("Backup codes regenerated successfully"), data={"backupCodes": backup_codes})
