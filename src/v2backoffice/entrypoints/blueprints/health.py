"""ABOUTME: Health check endpoint for the load balancer and monitoring
ABOUTME: Reports the database, the invoice worker pool and the upload directory as JSON"""

import os
from pathlib import Path

from flask import Blueprint, current_app, jsonify
from flask.typing import ResponseReturnValue
from sqlalchemy.exc import SQLAlchemyError

from v2backoffice.adapters import database
from v2backoffice.entrypoints.celery.app import INVOICE_QUEUE
from v2backoffice.entrypoints.celery.app import app as celery_app
from v2backoffice.entrypoints.extensions import get_uow, services

health_bp = Blueprint("health", __name__)


def check_database() -> tuple[bool, int | str]:
    """
    Check database connectivity and return user count.

    Returns:
        Tuple of (success: bool, user_count: int | "UNKNOWN")
    """
    try:
        database.ping(services().session_factory)
        with get_uow() as uow:
            user_count = len(list(uow.users.all()))
        return True, user_count
    except SQLAlchemyError as error:
        current_app.logger.warning(f"Health check could not reach the database: {error}")
        return False, "UNKNOWN"


def check_celery_worker() -> bool:
    """True when at least one worker is consuming the invoice queue."""
    try:
        queues = celery_app.control.inspect(timeout=1.0).active_queues()
    except Exception as error:  # broker down or unreachable
        current_app.logger.warning(f"Health check could not reach celery: {error}")
        return False
    # None when no worker answers
    if not queues:
        return False
    return any(queue["name"] == INVOICE_QUEUE for worker_queues in queues.values() for queue in worker_queues)


def check_upload_dir(upload_dir: Path) -> bool:
    """Templates, temporary uploads and generated invoices all live under the upload directory."""
    try:
        upload_dir.mkdir(parents=True, exist_ok=True)
    except OSError as error:
        current_app.logger.warning(f"Health check could not create {upload_dir}: {error}")
        return False
    return os.access(upload_dir, os.W_OK)


@health_bp.route("/health")
def health_check() -> ResponseReturnValue:
    """HTTP status 200 if everything is healthy, 500 if any check fails."""
    db_ok, user_count = check_database()
    celery_ok = check_celery_worker()
    upload_dir_ok = check_upload_dir(current_app.config["INVOICE_CFG"].upload_dir)

    response_data = {
        "database_ok": db_ok,
        "user_count": user_count,
        "celery_worker_running": celery_ok,
        "upload_dir_ok": upload_dir_ok,
    }
    status_code = 200 if db_ok and celery_ok and upload_dir_ok else 500
    return jsonify(response_data), status_code
