"""ABOUTME: JSON API endpoints for invoice templates and invoice generation jobs
ABOUTME: Admin-only template management, spreadsheet validation, job submission, control and download"""

import io
import uuid
from datetime import timedelta
from pathlib import Path

from flask import Blueprint, current_app, request, send_file
from flask.typing import ResponseReturnValue
from flask_login import current_user
from werkzeug.datastructures import FileStorage

from v2backoffice.adapters.spreadsheet import is_excel_filename
from v2backoffice.config import InvoiceCfg
from v2backoffice.entrypoints.decorators import require_admin
from v2backoffice.entrypoints.extensions import get_uow, services
from v2backoffice.entrypoints.responses import error_response, success_response
from v2backoffice.service_layer import invoice_job_service, template_service
from v2backoffice.service_layer.exceptions import BackOfficeError
from v2backoffice.service_layer.invoice_service import summarise_rows, validate_spreadsheet
from v2backoffice.service_layer.pagination import PageRequest
from v2backoffice.translations import _

invoices_bp = Blueprint("invoices", __name__)


def _cfg() -> InvoiceCfg:
    cfg = current_app.config["INVOICE_CFG"]
    assert isinstance(cfg, InvoiceCfg)
    return cfg


def _uploaded_excel(field: str) -> FileStorage | None:
    upload = request.files.get(field)
    if upload is None or not upload.filename:
        return None
    return upload


def _save_upload(upload: FileStorage) -> Path:
    """Store an upload under a generated name in the temp directory."""
    temp_dir = _cfg().temp_dir
    temp_dir.mkdir(parents=True, exist_ok=True)
    stored_path = temp_dir / f"{uuid.uuid4()}{Path(upload.filename or '').suffix.lower()}"
    upload.save(stored_path)
    return stored_path


def _parse_template_id(value: str | None) -> uuid.UUID | None:
    if not value:
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        # unknown ids and malformed ids both end up as "Template not found"
        return uuid.UUID(int=0)


# templates


@invoices_bp.route("/templates", methods=["GET"])
@require_admin
def list_templates() -> ResponseReturnValue:
    templates = template_service.list_templates(get_uow())
    return success_response(
        _("Templates retrieved successfully"), data=[template_service.template_to_dict(t) for t in templates]
    )


@invoices_bp.route("/templates", methods=["POST"])
@require_admin
def upload_template() -> ResponseReturnValue:
    upload = request.files.get("template")
    template = template_service.upload_template(
        get_uow(),
        name=request.form.get("name", ""),
        file_name=(upload.filename or "") if upload else "",
        stream=upload.stream if upload else None,
        templates_dir=_cfg().templates_dir,
        description=request.form.get("description", ""),
        created_by=current_user.id,
    )
    current_app.logger.info(f"Admin {current_user.id} uploaded invoice template {template.id}")
    return success_response(
        _("Template uploaded successfully"), data=template_service.template_to_dict(template), status=201
    )


@invoices_bp.route("/templates/<uuid:template_id>", methods=["DELETE"])
@require_admin
def delete_template(template_id: uuid.UUID) -> ResponseReturnValue:
    template_service.delete_template(get_uow(), template_id)
    current_app.logger.info(f"Admin {current_user.id} deleted invoice template {template_id}")
    return success_response(_("Template deleted successfully"))


# spreadsheets and jobs


@invoices_bp.route("/validate", methods=["POST"])
@require_admin
def validate_excel_file() -> ResponseReturnValue:
    upload = _uploaded_excel("file")
    if upload is None:
        return error_response(_("Excel file is required"), 400)
    if not is_excel_filename(upload.filename or ""):
        return error_response(_("File must be an Excel file (.xlsx or .xls)"), 400)

    stored_path = _save_upload(upload)
    try:
        rows = validate_spreadsheet(stored_path)
    finally:
        stored_path.unlink(missing_ok=True)
    return success_response(_("Excel file validated successfully"), data=summarise_rows(rows).to_dict())


@invoices_bp.route("/generate", methods=["POST"])
@require_admin
def generate_invoices() -> ResponseReturnValue:
    upload = _uploaded_excel("file")
    if upload is None:
        return error_response(_("Excel file is required"), 400)
    if not is_excel_filename(upload.filename or ""):
        return error_response(_("File must be an Excel file (.xlsx or .xls)"), 400)

    stored_path = _save_upload(upload)
    try:
        job_id = invoice_job_service.submit_invoice_job(
            get_uow(),
            template_id=_parse_template_id(request.form.get("templateId")),
            invoice_year=request.form.get("invoiceYear", ""),
            input_file_name=Path(upload.filename or "").name,
            input_file_path=stored_path,
            invoices_dir=_cfg().invoices_dir,
            dispatch=services().invoice_dispatch,
            created_by=current_user.id,
        )
    except BackOfficeError:
        # rejected before a job existed, so nothing will ever read the file
        stored_path.unlink(missing_ok=True)
        raise

    current_app.logger.info(f"Admin {current_user.id} started invoice job {job_id}")
    return success_response(
        _("Invoice generation started"),
        data={
            "jobId": str(job_id),
            "status": "processing",
            "message": _("Invoice generation is processing in the background"),
        },
        status=202,
    )


@invoices_bp.route("/jobs", methods=["GET"])
@require_admin
def list_jobs() -> ResponseReturnValue:
    page_request = PageRequest.from_args(request.args.get("page"), request.args.get("limit"))
    jobs, pagination = invoice_job_service.list_jobs(get_uow(), page_request)
    return success_response(
        _("Jobs retrieved successfully"), data={"jobs": jobs, "pagination": pagination.to_dict("totalJobs")}
    )


@invoices_bp.route("/jobs/<uuid:job_id>", methods=["GET"])
@require_admin
def job_status(job_id: uuid.UUID) -> ResponseReturnValue:
    return success_response(
        _("Job status retrieved successfully"), data=invoice_job_service.get_job_status(get_uow(), job_id)
    )


@invoices_bp.route("/jobs/<uuid:job_id>/cancel", methods=["POST"])
@require_admin
def cancel_job(job_id: uuid.UUID) -> ResponseReturnValue:
    invoice_job_service.cancel_job(get_uow(), job_id)
    current_app.logger.info(f"Admin {current_user.id} cancelled invoice job {job_id}")
    return success_response(_("Job cancelled successfully"))


@invoices_bp.route("/jobs/<uuid:job_id>/pause", methods=["POST"])
@require_admin
def pause_job(job_id: uuid.UUID) -> ResponseReturnValue:
    invoice_job_service.pause_job(get_uow(), job_id)
    current_app.logger.info(f"Admin {current_user.id} paused invoice job {job_id}")
    return success_response(_("Job paused successfully"))


@invoices_bp.route("/jobs/<uuid:job_id>/resume", methods=["POST"])
@require_admin
def resume_job(job_id: uuid.UUID) -> ResponseReturnValue:
    job = invoice_job_service.resume_job(get_uow(), job_id, dispatch=services().invoice_dispatch)
    current_app.logger.info(f"Admin {current_user.id} resumed invoice job {job_id}: {job.status.value}")
    return success_response(
        _("Job resumed successfully"),
        data={"jobId": str(job.id), "status": job.status.value, "errorMessage": job.error_message},
    )


@invoices_bp.route("/jobs/<uuid:job_id>/download", methods=["GET"])
@require_admin
def download_files(job_id: uuid.UUID) -> ResponseReturnValue:
    filename, archive = invoice_job_service.build_download_zip(get_uow(), job_id)
    return send_file(io.BytesIO(archive), mimetype="application/zip", as_attachment=True, download_name=filename)


@invoices_bp.route("/jobs/mark-stuck-as-failed", methods=["POST"])
@require_admin
def mark_stuck_jobs_as_failed() -> ResponseReturnValue:
    max_age = timedelta(minutes=_cfg().stale_after_minutes)
    updated_count = invoice_job_service.sweep_stale_jobs(get_uow(), max_age)
    current_app.logger.info(f"Admin {current_user.id} marked {updated_count} stuck invoice jobs as failed")
    return success_response(
        _("Marked %(count)s stuck jobs as failed", count=updated_count), data={"updatedCount": updated_count}
    )
