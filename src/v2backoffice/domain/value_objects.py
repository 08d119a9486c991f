"""ABOUTME: Value objects and enums for the back office domain models
ABOUTME: Roles, workflow menu access, invoice job states and email validation"""

from enum import Enum

from django.core.exceptions import ValidationError
from django.core.validators import EmailValidator


class GlobalRole(Enum):
    ADMIN = "admin"
    USER = "user"

    @classmethod
    def from_name(cls, name: object) -> "GlobalRole":
        """Parse a role from API or CLI input, ignoring case. Raises ValueError for anything else."""
        return cls(str(name).strip().lower())


class WorkflowAccess(Enum):
    ADMIN = "admin"
    USER = "user"
    BOTH = "both"

    @classmethod
    def visible_to(cls, role: GlobalRole) -> frozenset["WorkflowAccess"]:
        """The menu entries a role may see. Admins see everything."""
        if role == GlobalRole.ADMIN:
            return frozenset(cls)
        return frozenset({cls.USER, cls.BOTH})


class InvoiceJobStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    PAUSED = "paused"


# no transition leaves these
TERMINAL_JOB_STATUSES = frozenset({InvoiceJobStatus.COMPLETED, InvoiceJobStatus.FAILED, InvoiceJobStatus.CANCELLED})


def validate_email(email: str) -> None:
    """Raise ValueError unless `email` is a plausible address."""
    # the message must be passed in, the default one goes through Django's translation machinery
    validator = EmailValidator(message="Invalid email address")
    try:
        validator(email)
    except ValidationError as error:
        raise ValueError("Invalid email address") from error
