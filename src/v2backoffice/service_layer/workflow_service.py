"""ABOUTME: Workflow menu service: which back office features a role can open
ABOUTME: Lists available workflows per role and seeds the default menu"""

from datetime import UTC, datetime, timedelta
from typing import Any

from v2backoffice.domain.value_objects import GlobalRole, WorkflowAccess
from v2backoffice.domain.workflows import Workflow

from .unit_of_work import AbstractUnitOfWork

DEFAULT_WORKFLOWS: tuple[dict[str, str | WorkflowAccess], ...] = (
    {
        "img_path": "/icons/dashboard.svg",
        "label": "Dashboard",
        "frontend_route": "/dashboard",
        "accessible_to": WorkflowAccess.BOTH,
        "description": "View dashboard overview",
    },
    {
        "img_path": "/icons/users.svg",
        "label": "User Management",
        "frontend_route": "/users",
        "accessible_to": WorkflowAccess.ADMIN,
        "description": "Manage user accounts, roles, and permissions",
    },
    {
        "img_path": "/icons/invoice.svg",
        "label": "Invoice Generation",
        "frontend_route": "/invoice",
        "accessible_to": WorkflowAccess.ADMIN,
        "description": "Create and manage client invoices",
    },
    {
        "img_path": "/icons/crm.svg",
        "label": "CRM System",
        "frontend_route": "/crm",
        "accessible_to": WorkflowAccess.ADMIN,
        "description": "Customer relationship management",
    },
    {
        "img_path": "/icons/reports.svg",
        "label": "Report Generation",
        "frontend_route": "/reports",
        "accessible_to": WorkflowAccess.ADMIN,
        "description": "Generate financial and business reports",
    },
    {
        "img_path": "/icons/settings.svg",
        "label": "System Settings",
        "frontend_route": "/settings",
        "accessible_to": WorkflowAccess.ADMIN,
        "description": "Configure system settings and preferences",
    },
    {
        "img_path": "/icons/analytics.svg",
        "label": "Analytics Dashboard",
        "frontend_route": "/analytics",
        "accessible_to": WorkflowAccess.ADMIN,
        "description": "View business analytics and insights",
    },
    {
        "img_path": "/icons/portfolio.svg",
        "label": "My Portfolio",
        "frontend_route": "/portfolio",
        "accessible_to": WorkflowAccess.USER,
        "description": "View your investment portfolio",
    },
    {
        "img_path": "/icons/transactions.svg",
        "label": "Transaction History",
        "frontend_route": "/transactions",
        "accessible_to": WorkflowAccess.USER,
        "description": "View your transaction history",
    },
    {
        "img_path": "/icons/investments.svg",
        "label": "Investment Tools",
        "frontend_route": "/investments",
        "accessible_to": WorkflowAccess.USER,
        "description": "Access investment tools and calculators",
    },
    {
        "img_path": "/icons/profile.svg",
        "label": "View Profile",
        "frontend_route": "/profile",
        "accessible_to": WorkflowAccess.BOTH,
        "description": "View and edit your profile information",
    },
)


def list_workflows_for_role(uow: AbstractUnitOfWork, role: GlobalRole) -> list[Workflow]:
    """Available workflows in creation order. Admins see everything, users see user and both."""
    with uow:
        return [w.create_detached_copy() for w in uow.workflows.get_available_for_role(role)]


def list_all_workflows(uow: AbstractUnitOfWork) -> list[Workflow]:
    with uow:
        return [w.create_detached_copy() for w in uow.workflows.all()]


def seed_default_workflows(uow: AbstractUnitOfWork) -> int:
    """Insert the default menu if there are no workflows at all. Returns how many were added."""
    with uow:
        if list(uow.workflows.all()):
            return 0
        base_time = datetime.now(UTC)
        for position, fields in enumerate(DEFAULT_WORKFLOWS):
            # one second apart so the menu order survives sorting by created_at
            workflow = Workflow(created_at=base_time + timedelta(seconds=position), **fields)  # type: ignore[arg-type]
            uow.workflows.add(workflow)
        uow.commit()
        return len(DEFAULT_WORKFLOWS)


def workflow_to_dict(workflow: Workflow) -> dict[str, Any]:
    return {
        "_id": str(workflow.id),
        "imgPath": workflow.img_path,
        "label": workflow.label,
        "frontendRoute": workflow.frontend_route,
        "accessibleTo": workflow.accessible_to.value,
        "isAvailable": workflow.is_available,
        "description": workflow.description,
        "createdAt": workflow.created_at.isoformat(),
    }
