"""ABOUTME: Builders for invoice input sheets and enrolled users shared by the test suites
ABOUTME: Writes real xlsx files with openpyxl and runs the two step login through the API"""

import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pyotp
from flask.testing import FlaskClient
from openpyxl import Workbook
from sqlalchemy.orm import sessionmaker

from v2backoffice.domain.invoice_rows import OPTIONAL_COLUMNS, REQUIRED_COLUMNS
from v2backoffice.domain.value_objects import GlobalRole
from v2backoffice.service_layer import two_factor_service, user_service
from v2backoffice.service_layer.unit_of_work import SqlAlchemyUnitOfWork

INVOICE_HEADERS = (*REQUIRED_COLUMNS, *OPTIONAL_COLUMNS)


def invoice_row(**overrides: Any) -> dict[str, Any]:
    """One input sheet row as a dict of column name to cell value."""
    row: dict[str, Any] = {
        "Entity ID": "1001",
        "Entity Name": "Smith Family Trust",
        "Group Name": "Smith",
        "Entity Path": "Clients/Smith/Trust",
        "Inception Date": "2020-01-15",
        "Inception Benchmark": 5,
        "Year Benchmark": 6,
        "Performance Fee Rate": 10,
        "Fee Cap": 2,
        "Inception Performance": 8,
        "Period Ending Market Value": 2_000_000,
        "Period Performance": 9,
        "Period Beginning Market Value": 1_800_000,
        "Q1 Fees": 1250,
        "Q2 Fees": 1300,
        "Q3 Fees": 1275,
        "Q4 Fees": 1310,
        "AccountsPayingFees": "ACC-1",
    }
    row.update(overrides)
    return row


def write_input_sheet(path: Path, rows: list[dict[str, Any]], headers: tuple[str, ...] = INVOICE_HEADERS) -> Path:
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.append(list(headers))
    for row in rows:
        worksheet.append([row.get(header) for header in headers])
    workbook.save(path)
    return path


def three_row_sheet(path: Path) -> Path:
    """Two billable entities around a row without an entity path."""
    return write_input_sheet(
        path,
        [
            invoice_row(),
            invoice_row(**{"Entity ID": "1002", "Entity Name": "Jones LLC", "Entity Path": ""}),
            invoice_row(**{"Entity ID": "1003", "Entity Name": "Brown IRA", "Inception Performance": 4}),
        ],
    )


TEST_PASSWORD = "Sup3rSecretPass"  # pragma: allowlist secret
TEST_ISSUER = "V2 Test"


@dataclass(frozen=True)
class EnrolledUser:
    user_id: uuid.UUID
    email: str
    totp_secret: str
    backup_codes: list[str]

    def current_code(self) -> str:
        return pyotp.TOTP(self.totp_secret).now()


def create_enrolled_user(
    session_factory: sessionmaker,
    email: str = "admin@example.com",
    role: GlobalRole = GlobalRole.ADMIN,
    password: str = TEST_PASSWORD,
    created_by: uuid.UUID | None = None,
) -> EnrolledUser:
    """A user who has finished two-factor setup, like anyone who has logged in before."""
    user = user_service.create_user(
        SqlAlchemyUnitOfWork(session_factory), email=email, password=password, role=role, created_by=created_by
    )
    setup = two_factor_service.setup_for_user(SqlAlchemyUnitOfWork(session_factory), user.id, issuer=TEST_ISSUER)
    two_factor_service.verify_setup(
        SqlAlchemyUnitOfWork(session_factory), user.id, pyotp.TOTP(setup.secret).now()
    )
    return EnrolledUser(user_id=user.id, email=user.email, totp_secret=setup.secret, backup_codes=setup.backup_codes)


def log_in(client: FlaskClient, user: EnrolledUser, password: str = TEST_PASSWORD) -> None:
    """Run the full two step login through the API."""
    response = client.post("/api/auth/login", json={"email": user.email, "password": password})
    assert response.status_code == 200, response.get_json()
    pending_token = response.get_json()["twoFactorToken"]
    response = client.post(
        "/api/auth/verify-2fa", json={"token": user.current_code(), "twoFactorToken": pending_token}
    )
    assert response.status_code == 200, response.get_json()
