"""ABOUTME: User management service layer with business logic for user operations
ABOUTME: Handles user creation, listing, updates and deletion by administrators"""

import uuid
from typing import Any

from v2backoffice.domain.users import User
from v2backoffice.domain.value_objects import GlobalRole
from v2backoffice.translations import gettext as _

from .exceptions import PasswordTooWeak, UserAlreadyExists, UserNotFoundError, ValidationError
from .pagination import PageRequest, Pagination
from .security import hash_password, validate_password_strength
from .unit_of_work import AbstractUnitOfWork


def create_user(
    uow: AbstractUnitOfWork,
    email: str,
    password: str,
    full_name: str = "",
    phone_number: str = "",
    role: GlobalRole = GlobalRole.USER,
    created_by: uuid.UUID | None = None,
    is_active: bool = True,
) -> User:
    """
    Create a new user with proper validation.

    Raises:
        UserAlreadyExists: If email already exists
        PasswordTooWeak: If the password fails the strength checks
        ValidationError: If the email address is not valid
    """
    with uow:
        if uow.users.get_by_email(email):
            raise UserAlreadyExists(email=email)

        is_valid, error_msg = validate_password_strength(password)
        if not is_valid:
            raise PasswordTooWeak(error_msg)

        try:
            user = User(
                email=email,
                password_hash=hash_password(password),
                full_name=full_name.strip(),
                phone_number=phone_number.strip(),
                role=role,
                created_by=created_by,
                is_active=is_active,
            )
        except ValueError as error:
            raise ValidationError(str(error)) from error

        uow.users.add(user)
        detached_user = user.create_detached_copy()
        uow.commit()
        return detached_user


def get_user(uow: AbstractUnitOfWork, user_id: uuid.UUID) -> User:
    with uow:
        user = uow.users.get(user_id)
        if user is None:
            raise UserNotFoundError(_("User not found"))
        return user.create_detached_copy()


def list_users(uow: AbstractUnitOfWork, page_request: PageRequest) -> tuple[list[User], Pagination]:
    """Newest users first, one page at a time."""
    with uow:
        users, total = uow.users.list_paginated(limit=page_request.limit, offset=page_request.offset)
        return [u.create_detached_copy() for u in users], Pagination.build(page_request, total)


def update_user(
    uow: AbstractUnitOfWork,
    user_id: uuid.UUID,
    full_name: str | None = None,
    phone_number: str | None = None,
    role: GlobalRole | None = None,
    is_active: bool | None = None,
) -> User:
    with uow:
        user = uow.users.get(user_id)
        if user is None:
            raise UserNotFoundError(_("User not found"))
        user.update_details(full_name=full_name, phone_number=phone_number, role=role, is_active=is_active)
        detached_user = user.create_detached_copy()
        uow.commit()
        return detached_user


def delete_user(uow: AbstractUnitOfWork, user_id: uuid.UUID, acting_user_id: uuid.UUID) -> None:
    if user_id == acting_user_id:
        raise ValidationError(_("You cannot delete your own account"))
    with uow:
        user = uow.users.get(user_id)
        if user is None:
            raise UserNotFoundError(_("User not found"))
        uow.users.delete(user)
        uow.commit()


def deactivate_user(uow: AbstractUnitOfWork, email: str) -> User:
    with uow:
        user = uow.users.get_by_email(email)
        if user is None:
            raise UserNotFoundError(_("User not found"))
        user.update_details(is_active=False)
        detached_user = user.create_detached_copy()
        uow.commit()
        return detached_user


def user_to_dict(user: User) -> dict[str, Any]:
    """Public view of a user. Never includes the password hash, reset token or two-factor secrets."""
    return {
        "_id": str(user.id),
        "email": user.email,
        "fullName": user.full_name,
        "phoneNumber": user.phone_number,
        "role": user.role.value,
        "isActive": user.is_active,
        "twoFactorSetupCompleted": user.two_factor_setup_completed,
        "createdBy": str(user.created_by) if user.created_by else None,
        "createdAt": user.created_at.isoformat(),
        "updatedAt": user.updated_at.isoformat(),
    }
