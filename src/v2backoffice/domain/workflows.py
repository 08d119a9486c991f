"""ABOUTME: Workflow domain model for the back office menu
ABOUTME: Each workflow is a menu entry visible to admins, users or both"""

import uuid
from datetime import UTC, datetime

from .value_objects import GlobalRole, WorkflowAccess


class Workflow:
    def __init__(
        self,
        label: str,
        frontend_route: str,
        img_path: str = "",
        accessible_to: WorkflowAccess = WorkflowAccess.ADMIN,
        is_available: bool = True,
        description: str = "",
        workflow_id: uuid.UUID | None = None,
        created_at: datetime | None = None,
    ):
        if not label.strip():
            raise ValueError("Workflow label is required")
        if not frontend_route.startswith("/"):
            raise ValueError("Workflow frontend route must start with /")
        self.id = workflow_id or uuid.uuid4()
        self.label = label.strip()
        self.frontend_route = frontend_route
        self.img_path = img_path
        self.accessible_to = accessible_to
        self.is_available = is_available
        self.description = description
        self.created_at = created_at or datetime.now(UTC)

    def is_visible_to(self, role: GlobalRole) -> bool:
        if not self.is_available:
            return False
        return self.accessible_to in WorkflowAccess.visible_to(role)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Workflow):  # pragma: no cover
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def create_detached_copy(self) -> "Workflow":
        return Workflow(
            label=self.label,
            frontend_route=self.frontend_route,
            img_path=self.img_path,
            accessible_to=self.accessible_to,
            is_available=self.is_available,
            description=self.description,
            workflow_id=self.id,
            created_at=self.created_at,
        )
