"""Integration tests for CLI commands."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from dify_sync.cli.app import app
from dify_sync.domain.models import (
    DatasetPlan,
    DiffAction,
    DiffEntry,
    ErrorKind,
    SyncError,
    SyncResult,
)
from dify_sync.operations.console import Application
from dify_sync.session import SessionStore


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def patched_settings(settings):
    with patch("dify_sync.cli.app.Settings") as mock_settings:
        mock_settings.return_value = settings
        yield settings


@pytest.fixture
def sync_config(patched_settings, markdown_dir):
    """Write a one-dataset sync config next to the docs."""
    path = markdown_dir({"a.md": "A"})
    patched_settings.sync_config_file.write_text(f"datasets:\n  - path: {path}\n    dataset_id: ds-1\n")
    return patched_settings.sync_config_file


@pytest.fixture
def mock_orchestrator():
    """Patch DatasetSync so commands run without a server."""
    with patch("dify_sync.cli.app.DatasetSync") as mock_cls:
        yield mock_cls.return_value.__enter__.return_value


def test_no_command_shows_help(cli_runner):
    result = cli_runner.invoke(app, [])

    assert result.exit_code == 0
    assert "sync" in result.output
    assert "import" in result.output


class TestSyncCommand:
    """Test 'dify-sync sync' command."""

    def test_success(self, cli_runner, sync_config, mock_orchestrator):
        mock_orchestrator.run.return_value = [
            SyncResult(dataset_label="ds-1", path=Path("docs"), created=1)
        ]

        result = cli_runner.invoke(app, ["sync"])

        assert result.exit_code == 0, result.output
        assert "Sync Summary" in result.output
        assert "Sync complete: 1 created, 0 updated, 0 unchanged, 0 deleted" in result.output
        (datasets,) = mock_orchestrator.run.call_args.args
        assert [d.dataset_id for d in datasets] == ["ds-1"]

    def test_errors_exit_nonzero(self, cli_runner, sync_config, mock_orchestrator):
        error = SyncError(filename="a.md", action=ErrorKind.CREATE, error="API error: 400 Bad Request")
        mock_orchestrator.run.return_value = [
            SyncResult(dataset_label="ds-1", path=Path("docs"), errors=[error])
        ]

        result = cli_runner.invoke(app, ["sync"])

        assert result.exit_code == 1
        assert "1 error(s) occurred during sync" in result.output

    def test_explicit_config_path(self, cli_runner, patched_settings, tmp_path, mock_orchestrator):
        config_file = tmp_path / "other.yaml"
        config_file.write_text("datasets: []\n")
        mock_orchestrator.run.return_value = []

        result = cli_runner.invoke(app, ["sync", "--config", str(config_file)])

        assert result.exit_code == 0, result.output
        mock_orchestrator.run.assert_called_once()

    def test_missing_config(self, cli_runner, patched_settings, mock_orchestrator):
        result = cli_runner.invoke(app, ["sync"])

        assert result.exit_code == 1
        assert "Config file not found" in result.output
        mock_orchestrator.run.assert_not_called()

    def test_invalid_config(self, cli_runner, patched_settings):
        patched_settings.sync_config_file.write_text("datasets: nope\n")

        result = cli_runner.invoke(app, ["sync"])

        assert result.exit_code == 1
        assert "'datasets' array is required" in result.output

    def test_missing_api_key(self, cli_runner, sync_config, patched_settings):
        patched_settings.api_key = None

        result = cli_runner.invoke(app, ["sync"])

        assert result.exit_code == 1
        assert "DIFY_API_KEY" in result.output


class TestDiffCommand:
    def test_renders_plan(self, cli_runner, sync_config, mock_orchestrator):
        mock_orchestrator.plan.return_value = [
            DatasetPlan(
                dataset_label="ds-1",
                path=Path("docs"),
                entries=[
                    DiffEntry(action=DiffAction.CREATE, filename="a.md"),
                    DiffEntry(action=DiffAction.SKIP, filename="b.md"),
                ],
            )
        ]

        result = cli_runner.invoke(app, ["diff"])

        assert result.exit_code == 0, result.output
        assert "Planned Changes (2 total)" in result.output
        assert "1 create, 1 skip" in result.output
        mock_orchestrator.run.assert_not_called()

    def test_empty_plan(self, cli_runner, sync_config, mock_orchestrator):
        mock_orchestrator.plan.return_value = [DatasetPlan(dataset_label="ds-1", path=Path("docs"))]

        result = cli_runner.invoke(app, ["diff"])

        assert result.exit_code == 0
        assert "No documents found" in result.output

    def test_plan_errors_exit_nonzero(self, cli_runner, sync_config, mock_orchestrator):
        error = SyncError(filename="", action=ErrorKind.RESOLVE_DATASET, error="Dataset not found: kb")
        mock_orchestrator.plan.return_value = [
            DatasetPlan(dataset_label="kb", path=Path("docs"), errors=[error])
        ]

        result = cli_runner.invoke(app, ["diff"])

        assert result.exit_code == 1


class TestDefinitionCommands:
    """Test export, import and logout."""

    @pytest.fixture
    def console(self):
        console = MagicMock()
        with patch("dify_sync.cli.app._open_console") as open_console:
            open_console.return_value.__enter__.return_value = console
            yield console

    def test_export(self, cli_runner, patched_settings, console, tmp_path):
        patched_settings.api_key = None
        console.list_applications.return_value = [Application(id="app-1", name="Support Bot")]
        console.export_definition.return_value = "app:\n  name: Support Bot\n"
        output_dir = tmp_path / "out"

        result = cli_runner.invoke(app, ["export", "--output-dir", str(output_dir)])

        assert result.exit_code == 0, result.output
        assert (output_dir / "support-bot.yml").read_text() == "app:\n  name: Support Bot\n"
        assert "Exported 1/1" in result.output
        console.export_definition.assert_called_once_with("app-1", False)

    def test_import_dry_run_needs_no_console(self, cli_runner, patched_settings):
        patched_settings.dsl_dir.mkdir()
        (patched_settings.dsl_dir / "bot.yml").write_text("app:\n  name: Bot\n")

        with patch("dify_sync.cli.app._open_console") as open_console:
            result = cli_runner.invoke(app, ["import", "--dry-run"])

        assert result.exit_code == 0, result.output
        assert "Would create: bot.yml -> Bot" in result.output
        assert "1 created" in result.output
        open_console.assert_not_called()

    def test_import_existing_app_skipped(self, cli_runner, patched_settings, console):
        patched_settings.api_key = None
        patched_settings.dsl_dir.mkdir()
        (patched_settings.dsl_dir / "bot.yml").write_text("app:\n  name: Bot\n")
        console.list_applications.return_value = [Application(id="app-1", name="Bot")]

        result = cli_runner.invoke(app, ["import"])

        assert result.exit_code == 0, result.output
        assert "1 skipped" in result.output
        console.replace_definition.assert_not_called()

    def test_import_missing_directory(self, cli_runner, patched_settings, tmp_path):
        result = cli_runner.invoke(app, ["import", "--dry-run", "--input-dir", str(tmp_path / "none")])

        assert result.exit_code == 1
        assert "Input directory does not exist" in result.output

    def test_logout(self, cli_runner, patched_settings):
        patched_settings.session_file.write_text("{}")

        result = cli_runner.invoke(app, ["logout"])

        assert result.exit_code == 0
        assert not patched_settings.session_file.exists()

    def test_logout_without_session(self, cli_runner, patched_settings):
        result = cli_runner.invoke(app, ["logout"])

        assert result.exit_code == 0
        assert "No stored session" in result.output
        assert not SessionStore(patched_settings.session_file).clear()
