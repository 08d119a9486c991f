"""ABOUTME: Unit tests for user management service operations
ABOUTME: Tests creation rules, listing, updates, deletion and the public user view"""

import uuid
from datetime import UTC, datetime, timedelta

import pytest

from tests.fakes import FakeUnitOfWork
from v2backoffice.domain.value_objects import GlobalRole
from v2backoffice.service_layer import user_service
from v2backoffice.service_layer.exceptions import (
    PasswordTooWeak,
    UserAlreadyExists,
    UserNotFoundError,
    ValidationError,
)
from v2backoffice.service_layer.pagination import PageRequest
from v2backoffice.service_layer.security import verify_password

PASSWORD = "Sup3rSecretPass"  # pragma: allowlist secret


@pytest.fixture
def uow():
    return FakeUnitOfWork()


class TestCreateUser:
    def test_create_user(self, uow):
        creator = uuid.uuid4()

        user = user_service.create_user(
            uow,
            email=" New@Example.com",
            password=PASSWORD,
            full_name=" New Person ",
            role=GlobalRole.ADMIN,
            created_by=creator,
        )

        assert user.email == "new@example.com"
        assert user.full_name == "New Person"
        assert user.role == GlobalRole.ADMIN
        assert user.created_by == creator
        assert verify_password(PASSWORD, user.password_hash)
        assert uow.committed
        assert uow.users.get(user.id) is not None

    def test_duplicate_email(self, uow):
        user_service.create_user(uow, email="dup@example.com", password=PASSWORD)

        with pytest.raises(UserAlreadyExists, match="dup@example.com"):
            user_service.create_user(uow, email="DUP@example.com", password=PASSWORD)

    @pytest.mark.parametrize(
        "password,message",
        [
            ("Sh0rt", "too short"),
            ("12345678901", "entirely numeric"),
            ("alllowercase1", "one uppercase letter"),
        ],
    )
    def test_weak_passwords(self, uow, password, message):
        with pytest.raises(PasswordTooWeak, match=message):
            user_service.create_user(uow, email="weak@example.com", password=password)

        assert list(uow.users.all()) == []

    def test_invalid_email(self, uow):
        with pytest.raises(ValidationError, match="Invalid email address"):
            user_service.create_user(uow, email="not-an-email", password=PASSWORD)


class TestListUsers:
    def test_newest_first_with_pagination(self, uow):
        base = datetime(2026, 1, 1, tzinfo=UTC)
        for day in range(3):
            user = user_service.create_user(uow, email=f"user{day}@example.com", password=PASSWORD)
            uow.users.get(user.id).created_at = base + timedelta(days=day)

        users, pagination = user_service.list_users(uow, PageRequest(page=1, limit=2))

        assert [u.email for u in users] == ["user2@example.com", "user1@example.com"]
        assert pagination.to_dict("totalUsers") == {
            "currentPage": 1,
            "totalPages": 2,
            "totalUsers": 3,
            "hasNext": True,
            "hasPrev": False,
        }


class TestUpdateAndDelete:
    def test_update_user(self, uow):
        user = user_service.create_user(uow, email="u@example.com", password=PASSWORD, full_name="Old")

        updated = user_service.update_user(uow, user.id, full_name="New", role=GlobalRole.ADMIN, is_active=False)

        assert updated.full_name == "New"
        assert updated.role == GlobalRole.ADMIN
        assert updated.is_active is False

    def test_update_unknown_user(self, uow):
        with pytest.raises(UserNotFoundError, match="User not found"):
            user_service.update_user(uow, uuid.uuid4(), full_name="New")

    def test_delete_user(self, uow):
        user = user_service.create_user(uow, email="u@example.com", password=PASSWORD)

        user_service.delete_user(uow, user.id, acting_user_id=uuid.uuid4())

        assert uow.users.get(user.id) is None

    def test_cannot_delete_yourself(self, uow):
        user = user_service.create_user(uow, email="u@example.com", password=PASSWORD)

        with pytest.raises(ValidationError, match="cannot delete your own account"):
            user_service.delete_user(uow, user.id, acting_user_id=user.id)

    def test_deactivate_by_email(self, uow):
        user_service.create_user(uow, email="u@example.com", password=PASSWORD)

        assert user_service.deactivate_user(uow, "U@example.com").is_active is False


def test_user_to_dict_hides_secrets(uow):
    user = user_service.create_user(uow, email="u@example.com", password=PASSWORD, phone_number="555-0100")

    data = user_service.user_to_dict(user)

    assert data["_id"] == str(user.id)
    assert data["phoneNumber"] == "555-0100"
    assert data["role"] == "user"
    assert data["createdBy"] is None
    assert not {"password_hash", "passwordHash", "backupCodes", "totpSecret"} & set(data)
