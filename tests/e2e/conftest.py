"""ABOUTME: Fixtures for the end-to-end API tests
ABOUTME: Enrolled admin and regular users, and test clients already logged in as them"""

import pytest

from tests.helpers import EnrolledUser, create_enrolled_user, log_in
from v2backoffice.domain.value_objects import GlobalRole


@pytest.fixture
def admin(sqlite_session_factory) -> EnrolledUser:
    return create_enrolled_user(sqlite_session_factory, email="admin@example.com", role=GlobalRole.ADMIN)


@pytest.fixture
def regular_user(sqlite_session_factory, admin) -> EnrolledUser:
    return create_enrolled_user(
        sqlite_session_factory, email="user@example.com", role=GlobalRole.USER, created_by=admin.user_id
    )


@pytest.fixture
def admin_client(app, admin):
    client = app.test_client()
    log_in(client, admin)
    return client


@pytest.fixture
def user_client(app, regular_user):
    client = app.test_client()
    log_in(client, regular_user)
    return client
