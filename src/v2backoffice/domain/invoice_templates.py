"""ABOUTME: Invoice template domain model
ABOUTME: A named spreadsheet template uploaded by an admin, one of which may be the default"""

import uuid
from datetime import UTC, datetime


class InvoiceTemplate:
    """Invoice template uploaded by an admin."""

    def __init__(
        self,
        name: str,
        file_path: str,
        file_name: str,
        description: str = "",
        is_default: bool = False,
        created_by: uuid.UUID | None = None,
        template_id: uuid.UUID | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        name = name.strip()
        if not name:
            raise ValueError("Template name is required")
        self.id = template_id or uuid.uuid4()
        self.name = name
        self.description = description.strip()
        self.file_path = file_path
        self.file_name = file_name
        self.is_default = is_default
        self.created_by = created_by
        self.created_at = created_at or datetime.now(UTC)
        self.updated_at = updated_at or self.created_at

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InvoiceTemplate):  # pragma: no cover
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def create_detached_copy(self) -> "InvoiceTemplate":
        return InvoiceTemplate(
            name=self.name,
            file_path=self.file_path,
            file_name=self.file_name,
            description=self.description,
            is_default=self.is_default,
            created_by=self.created_by,
            template_id=self.id,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
