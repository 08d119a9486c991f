"""ABOUTME: Integration tests for the back office CLI against a SQLite database
ABOUTME: Invokes the click commands with the test session factory in the context object"""

from datetime import UTC, datetime, timedelta

from v2backoffice.domain.invoice_jobs import InvoiceJob
from v2backoffice.domain.value_objects import GlobalRole, InvoiceJobStatus
from v2backoffice.entrypoints.cli import cli
from v2backoffice.service_layer.security import verify_password
from v2backoffice.service_layer.unit_of_work import SqlAlchemyUnitOfWork

PASSWORD = "Sup3rSecretPass"  # pragma: allowlist secret


def add_admin(cli_with_session_factory, email="admin@example.com"):
    return cli_with_session_factory(
        cli,
        ["users", "add", "--email", email, "--full-name", "Ada Admin", "--role", "admin", "--password", PASSWORD],
    )


class TestUsersCommands:
    def test_add_user(self, cli_with_session_factory, sqlite_session_factory):
        result = add_admin(cli_with_session_factory)

        assert result.exit_code == 0, result.output
        assert "✓ User created successfully:" in result.output
        assert "  Email: admin@example.com" in result.output
        with SqlAlchemyUnitOfWork(sqlite_session_factory) as uow:
            user = uow.users.get_by_email("admin@example.com")
            assert user.role == GlobalRole.ADMIN
            assert user.full_name == "Ada Admin"
            assert verify_password(PASSWORD, user.password_hash)
            assert user.two_factor_setup_completed is False

    def test_add_user_prompts_for_password(self, cli_with_session_factory):
        result = cli_with_session_factory(
            cli, ["users", "add", "--email", "jane@example.com"], input=f"{PASSWORD}\n{PASSWORD}\n"
        )

        assert result.exit_code == 0, result.output
        assert "Password requirements:" in result.output
        assert "at least 8 characters" in result.output
        assert "Role: user" in result.output

    def test_duplicate_email(self, cli_with_session_factory):
        add_admin(cli_with_session_factory)

        result = add_admin(cli_with_session_factory, email="ADMIN@example.com")

        assert result.exit_code == 1
        assert "✗ Error:" in result.output

    def test_weak_password(self, cli_with_session_factory):
        result = cli_with_session_factory(cli, ["users", "add", "--email", "jane@example.com", "--password", "short"])

        assert result.exit_code == 1
        assert "✗ Error:" in result.output

    def test_list_users_empty(self, cli_with_session_factory):
        result = cli_with_session_factory(cli, ["users", "list"])

        assert result.exit_code == 0
        assert "No users found." in result.output

    def test_list_users(self, cli_with_session_factory):
        add_admin(cli_with_session_factory)

        result = cli_with_session_factory(cli, ["users", "list"])

        assert "Users (page 1 of 1, 1 total):" in result.output
        assert "admin@example.com [admin]" in result.output
        assert "2FA pending" in result.output

    def test_deactivate(self, cli_with_session_factory, sqlite_session_factory):
        add_admin(cli_with_session_factory)

        result = cli_with_session_factory(cli, ["users", "deactivate", "admin@example.com", "--confirm"])

        assert result.exit_code == 0, result.output
        assert "✓ User admin@example.com deactivated" in result.output
        with SqlAlchemyUnitOfWork(sqlite_session_factory) as uow:
            assert uow.users.get_by_email("admin@example.com").is_active is False

    def test_deactivate_unknown_user(self, cli_with_session_factory):
        result = cli_with_session_factory(cli, ["users", "deactivate", "nobody@example.com", "--confirm"])

        assert result.exit_code == 1
        assert "✗ Error:" in result.output

    def test_deactivate_can_be_cancelled(self, cli_with_session_factory):
        add_admin(cli_with_session_factory)

        result = cli_with_session_factory(cli, ["users", "deactivate", "admin@example.com"], input="n\n")

        assert "Operation cancelled." in result.output


class TestWorkflowsCommands:
    def test_seed_then_seed_again(self, cli_with_session_factory):
        first = cli_with_session_factory(cli, ["workflows", "seed"])
        second = cli_with_session_factory(cli, ["workflows", "seed"])

        assert "✓ Added 11 workflows" in first.output
        assert "Workflows already exist. Skipping seed." in second.output

    def test_list(self, cli_with_session_factory):
        cli_with_session_factory(cli, ["workflows", "seed"])

        result = cli_with_session_factory(cli, ["workflows", "list"])

        assert "Dashboard /dashboard [both]" in result.output
        assert "Invoice Generation /invoice [admin]" in result.output

    def test_list_empty(self, cli_with_session_factory):
        result = cli_with_session_factory(cli, ["workflows", "list"])

        assert "No workflows found." in result.output


class TestInvoicesCommands:
    def _add_job(self, session_factory, started_minutes_ago: int) -> InvoiceJob:
        job = InvoiceJob(
            template_id=None,
            input_file_name="clients.xlsx",
            input_file_path="/uploads/temp/clients.xlsx",
            invoice_year="2025",
            total_entities=2,
            output_directory="/uploads/invoices/2025/job",
            status=InvoiceJobStatus.PROCESSING,
            started_at=datetime.now(UTC) - timedelta(minutes=started_minutes_ago),
        )
        with SqlAlchemyUnitOfWork(session_factory) as uow:
            uow.invoice_jobs.add(job)
        return job

    def test_sweep_stale(self, cli_with_session_factory, sqlite_session_factory):
        stuck = self._add_job(sqlite_session_factory, 45)
        self._add_job(sqlite_session_factory, 5)

        result = cli_with_session_factory(cli, ["invoices", "sweep-stale", "--minutes", "30"])

        assert result.exit_code == 0, result.output
        assert "✓ Marked 1 stuck jobs as failed" in result.output
        with SqlAlchemyUnitOfWork(sqlite_session_factory) as uow:
            assert uow.invoice_jobs.get(stuck.id).status == InvoiceJobStatus.FAILED

    def test_sweep_with_shorter_age(self, cli_with_session_factory, sqlite_session_factory):
        self._add_job(sqlite_session_factory, 5)

        result = cli_with_session_factory(cli, ["invoices", "sweep-stale", "--minutes", "1"])

        assert "✓ Marked 1 stuck jobs as failed" in result.output

    def test_list_jobs_empty(self, cli_with_session_factory):
        result = cli_with_session_factory(cli, ["invoices", "list-jobs"])

        assert "No invoice jobs found." in result.output

    def test_list_jobs(self, cli_with_session_factory, sqlite_session_factory):
        job = self._add_job(sqlite_session_factory, 5)

        result = cli_with_session_factory(cli, ["invoices", "list-jobs"])

        assert "Invoice jobs (page 1 of 1, 1 total):" in result.output
        assert f"{job.id} processing 2025 0/2 clients.xlsx" in result.output


class TestDatabaseCommands:
    def test_init_is_idempotent(self, cli_with_session_factory):
        result = cli_with_session_factory(cli, ["database", "init"])

        assert result.exit_code == 0, result.output
        assert "✓ Database tables created" in result.output
