"""
Smoke tests for the tma-exam CLI commands.
"""

import pytest
from typer.testing import CliRunner

from src.cli import exam_cli
from src.core.models import Theme
from src.store.app_store import create_store

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_settings(settings, monkeypatch):
    """Point every command at the temp-dir, mock-mode settings."""
    monkeypatch.setattr(exam_cli, "get_settings", lambda: settings)
    return settings


class TestSessionCommands:
    """Tests for status/login/logout/theme."""

    def test_status_without_session(self):
        result = runner.invoke(exam_cli.app, ["status"])

        assert result.exit_code == 0
        assert "Exam Client Status" in result.output
        assert "None" in result.output

    def test_login_then_status(self, settings):
        result = runner.invoke(exam_cli.app, ["login", "--role", "student"])
        assert result.exit_code == 0
        assert "Logged in" in result.output

        result = runner.invoke(exam_cli.app, ["status"])
        assert "Active" in result.output
        assert "Aziz Tursunov" in result.output

    def test_login_rejects_unknown_role(self):
        result = runner.invoke(exam_cli.app, ["login", "--role", "admin"])

        assert result.exit_code == 1

    def test_logout_clears_persisted_session(self, settings):
        runner.invoke(exam_cli.app, ["login"])

        result = runner.invoke(exam_cli.app, ["logout"])

        assert result.exit_code == 0
        assert create_store(settings).session.state.token is None

    def test_theme_is_persisted(self, settings):
        result = runner.invoke(exam_cli.app, ["theme", "dark"])

        assert result.exit_code == 0
        assert create_store(settings).notifications.state.theme == Theme.DARK


class TestTakeCommand:
    """Tests for the interactive attempt command."""

    def test_take_algebra(self):
        result = runner.invoke(exam_cli.app, ["take", "1"], input="112\n121,123\n42\n")

        assert result.exit_code == 0, result.output
        assert "Algebra Basics" in result.output
        assert "Yes" in result.output

    def test_take_unknown_test(self):
        result = runner.invoke(exam_cli.app, ["take", "99"])

        assert result.exit_code == 1
        assert "Requested resource was not found." in result.output
