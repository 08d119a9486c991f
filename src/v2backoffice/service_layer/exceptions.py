"""ABOUTME: Custom exceptions for service layer operations
ABOUTME: Defines business logic exceptions with proper error messages and codes"""

from v2backoffice.translations import gettext as _


class BackOfficeError(Exception):
    """Base exception for all our custom errors."""


class ServiceLayerError(BackOfficeError):
    """Base exception for all service layer errors."""


class ValidationError(ServiceLayerError):
    """Input was missing or malformed. Maps to HTTP 400."""


class SpreadsheetValidationError(ValidationError):
    """An uploaded spreadsheet cannot be used to generate invoices."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors


class PasswordTooWeak(ValidationError):
    """Exception if the password is too weak."""


class UserAlreadyExists(ServiceLayerError):
    """Raised when attempting to create a user that already exists."""

    def __init__(self, email: str = "") -> None:
        message = _("User with email '%(email)s' already exists", email=email) if email else _("User already exists")
        super().__init__(message)
        self.email = email


class TemplateAlreadyExists(ServiceLayerError):
    def __init__(self, name: str = "") -> None:
        super().__init__(_("Template with this name already exists"))
        self.name = name


class AuthenticationError(ServiceLayerError):
    """Base for failures that mean the caller is not who they claim to be. Maps to HTTP 401."""


class InvalidCredentials(AuthenticationError):
    """Raised when authentication fails due to invalid credentials."""

    def __init__(self, message: str = "") -> None:
        if not message:
            message = _("Invalid email or password")
        super().__init__(message)


class InvalidPendingToken(AuthenticationError):
    """The pending two-factor token is malformed, tampered with or expired."""

    def __init__(self) -> None:
        super().__init__(_("Invalid or expired two-factor token"))


class InvalidTwoFactorCode(AuthenticationError):
    def __init__(self, message: str = "") -> None:
        super().__init__(message or _("Invalid token or backup code"))


class TwoFactorNotConfigured(ValidationError):
    def __init__(self) -> None:
        super().__init__(_("Two-factor authentication has not been set up"))


class InvalidResetToken(ValidationError):
    """Raised when a password reset token is invalid, expired, or already used."""

    def __init__(self, reason: str = "") -> None:
        if reason:
            message = _("Invalid password reset token: %(reason)s", reason=reason)
        else:
            message = _("Invalid or expired reset token")
        super().__init__(message)
        self.reason = reason


class InsufficientPermissions(ServiceLayerError):
    """Raised when a user lacks permissions for an operation."""

    def __init__(self, action: str = "", required_role: str = "") -> None:
        if action and required_role:
            message = _(
                "Insufficient permissions for action: %(action)s (requires role: %(required_role)s)",
                action=action,
                required_role=required_role,
            )
        elif action:
            message = _("Insufficient permissions for action: %(action)s", action=action)
        elif required_role:
            message = _("Insufficient permissions (requires role: %(required_role)s)", required_role=required_role)
        else:
            message = _("Insufficient permissions")
        super().__init__(message)
        self.action = action
        self.required_role = required_role


class StateConflictError(ServiceLayerError):
    """The operation is not allowed in the record's current state. Maps to HTTP 409."""

    def __init__(self, message: str = "", current_status: str = "") -> None:
        super().__init__(message)
        self.current_status = current_status


class JobNotCompleted(StateConflictError):
    def __init__(self, current_status: str = "") -> None:
        super().__init__(_("Job is not completed yet"), current_status=current_status)


class ConcurrentUpdateError(StateConflictError):
    """Another writer changed the record since it was read."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message or _("The record was changed by someone else. Please try again."))


class TransientInfrastructureError(ServiceLayerError):
    """The database or another backing service is temporarily unreachable. Maps to HTTP 503."""


class NotFoundError(ServiceLayerError):
    """General error to indicate something cannot be found in a repository"""


class UserNotFoundError(NotFoundError):
    """A user could not be found in the database"""


class InvoiceTemplateNotFoundError(NotFoundError):
    """An invoice template could not be found in the database"""


class InvoiceJobNotFoundError(NotFoundError):
    """An invoice job could not be found in the database"""
