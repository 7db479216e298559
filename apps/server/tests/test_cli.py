"""Tests for the operator CLI."""

from __future__ import annotations

from contextlib import contextmanager
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from controlplane.cli.admin import app
from controlplane.models.user import AccountStatus
from controlplane.services.sessions import SessionService

runner = CliRunner()


@pytest.fixture()
def bound_scope(db_session):
    @contextmanager
    def _scope(*_args, **_kwargs):
        yield db_session

    with patch("controlplane.cli.admin.session_scope", _scope):
        yield


def test_migrate_runs_migrations() -> None:
    with patch("controlplane.cli.admin.run_migrations") as mock_run:
        result = runner.invoke(app, ["migrate"])

    assert result.exit_code == 0
    mock_run.assert_called_once_with()
    assert "Database is up to date." in result.output


def test_sweep_reports_counts(bound_scope) -> None:
    counts = {"oauth_states": 2, "sessions": 0}
    with patch("controlplane.cli.admin.sweep_expired_records", return_value=counts):
        result = runner.invoke(app, ["sweep"])

    assert result.exit_code == 0
    assert "oauth_states: 2 removed" in result.output
    assert "sessions: 0 removed" in result.output


def test_logout_all(bound_scope, db_session, active_user) -> None:
    SessionService().create_session(db_session, active_user.id)

    result = runner.invoke(app, ["logout-all", active_user.email])

    assert result.exit_code == 0
    assert f"Invalidated 1 session(s) for {active_user.email}" in result.output


def test_logout_all_unknown_user(bound_scope) -> None:
    result = runner.invoke(app, ["logout-all", "ghost@example.com"])

    assert result.exit_code == 1
    assert "not found" in result.output


def test_deactivate_user(bound_scope, db_session, active_user) -> None:
    result = runner.invoke(app, ["deactivate-user", active_user.email])

    assert result.exit_code == 0
    assert "deactivated (0 session(s) revoked)" in result.output
    db_session.refresh(active_user)
    assert active_user.account_status is AccountStatus.DEACTIVATED
