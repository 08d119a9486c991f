"""ABOUTME: Invoice template service layer for admins managing uploaded templates
ABOUTME: Lists, stores, fetches and deletes templates together with their files on disk"""

import logging
import shutil
import uuid
from pathlib import Path
from typing import Any, BinaryIO

from v2backoffice.adapters.spreadsheet import is_excel_filename
from v2backoffice.domain.invoice_templates import InvoiceTemplate
from v2backoffice.translations import gettext as _

from .exceptions import InvoiceTemplateNotFoundError, TemplateAlreadyExists, ValidationError
from .unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)


def template_to_dict(template: InvoiceTemplate) -> dict[str, Any]:
    return {
        "_id": str(template.id),
        "name": template.name,
        "description": template.description,
        "fileName": template.file_name,
        "isDefault": template.is_default,
        "createdAt": template.created_at.isoformat(),
    }


def list_templates(uow: AbstractUnitOfWork) -> list[InvoiceTemplate]:
    """Default template first, then newest first."""
    with uow:
        return [t.create_detached_copy() for t in uow.invoice_templates.all()]


def get_template(uow: AbstractUnitOfWork, template_id: uuid.UUID) -> InvoiceTemplate:
    with uow:
        template = uow.invoice_templates.get(template_id)
        if template is None:
            raise InvoiceTemplateNotFoundError(_("Template not found"))
        return template.create_detached_copy()


def upload_template(
    uow: AbstractUnitOfWork,
    name: str,
    file_name: str,
    stream: BinaryIO | None,
    templates_dir: Path,
    description: str = "",
    created_by: uuid.UUID | None = None,
    is_default: bool = False,
) -> InvoiceTemplate:
    """
    Store an uploaded template file and record it.

    Raises:
        ValidationError: no file, no name or not an Excel file
        TemplateAlreadyExists: a template with the same name exists
    """
    if stream is None or not file_name:
        raise ValidationError(_("Template file is required"))
    name = name.strip()
    if not name:
        raise ValidationError(_("Template name is required"))
    if not is_excel_filename(file_name):
        raise ValidationError(_("File must be an Excel file (.xlsx or .xls)"))

    with uow:
        if uow.invoice_templates.get_by_name(name):
            raise TemplateAlreadyExists(name=name)

        templates_dir.mkdir(parents=True, exist_ok=True)
        # never trust the client's file name for the path on disk
        stored_path = templates_dir / f"{uuid.uuid4()}{Path(file_name).suffix.lower()}"
        with stored_path.open("wb") as destination:
            shutil.copyfileobj(stream, destination)

        template = InvoiceTemplate(
            name=name,
            description=description,
            file_path=str(stored_path),
            file_name=Path(file_name).name,
            is_default=is_default,
            created_by=created_by,
        )
        uow.invoice_templates.add(template)
        detached = template.create_detached_copy()
        uow.commit()
        logger.info("Stored invoice template %s at %s", name, stored_path)
        return detached


def delete_template(uow: AbstractUnitOfWork, template_id: uuid.UUID) -> None:
    """Delete a template record and its file. The default template cannot be deleted."""
    with uow:
        template = uow.invoice_templates.get(template_id)
        if template is None:
            raise InvoiceTemplateNotFoundError(_("Template not found"))
        if template.is_default:
            raise ValidationError(_("Cannot delete default template"))

        file_path = Path(template.file_path)
        uow.invoice_templates.delete(template)
        uow.commit()

    file_path.unlink(missing_ok=True)
