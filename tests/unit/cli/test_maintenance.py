"""Unit tests for the maintenance optimize and repair commands."""

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from ncctl.cli.main import app
from ncctl.core.errors import DeterministicExecutionError
from ncctl.core.maintenance import MaintenanceResult
from typer.testing import CliRunner

runner = CliRunner()


@pytest.fixture
def mock_workflow() -> Iterator[MagicMock]:
    with patch("ncctl.cli.commands.maintenance.MaintenanceWorkflow") as workflow_cls:
        yield workflow_cls.return_value


def test_requires_subcommand(config_file: Path) -> None:
    result = runner.invoke(app, ["--config", str(config_file), "maintenance"])

    assert "optimize" in result.output
    assert "repair" in result.output


@pytest.mark.usefixtures("as_root")
class TestOptimizeCommand:
    """Tests for maintenance optimize."""

    def test_success(self, config_file: Path, mock_workflow: MagicMock) -> None:
        mock_workflow.optimize_database.return_value = MaintenanceResult(
            done=["oc_accounts", "oc_filecache"]
        )

        result = runner.invoke(app, ["--config", str(config_file), "maintenance", "optimize"])

        assert result.exit_code == 0
        assert "Optimized 2 table(s)." in result.output

    def test_failed_tables(self, config_file: Path, mock_workflow: MagicMock) -> None:
        mock_workflow.optimize_database.return_value = MaintenanceResult(
            done=["oc_accounts"], failed=["oc_filecache"]
        )

        result = runner.invoke(app, ["--config", str(config_file), "maintenance", "optimize"])

        assert result.exit_code == 1
        assert "oc_filecache" in result.output

    def test_no_password(self, config_file: Path, mock_workflow: MagicMock) -> None:
        mock_workflow.optimize_database.side_effect = DeterministicExecutionError(
            "No database password stored"
        )

        result = runner.invoke(app, ["--config", str(config_file), "maintenance", "optimize"])

        assert result.exit_code == 1
        assert "Optimize failed" in result.output
        assert "Log file:" in result.output


@pytest.mark.usefixtures("as_root")
class TestRepairCommand:
    """Tests for maintenance repair."""

    def test_success(self, config_file: Path, mock_workflow: MagicMock) -> None:
        mock_workflow.repair.return_value = MaintenanceResult(
            done=["maintenance:repair", "db:add-missing-indices", "files:scan", "preview:repair"]
        )

        result = runner.invoke(app, ["--config", str(config_file), "maintenance", "repair"])

        assert result.exit_code == 0
        assert "Repair complete (4 steps)." in result.output

    def test_failed_step(self, config_file: Path, mock_workflow: MagicMock) -> None:
        mock_workflow.repair.return_value = MaintenanceResult(
            done=["maintenance:repair"], failed=["files:scan"]
        )

        result = runner.invoke(app, ["--config", str(config_file), "maintenance", "repair"])

        assert result.exit_code == 1
        assert "Repair failed for: files:scan" in result.output


@pytest.mark.usefixtures("as_user")
def test_requires_root(config_file: Path, mock_workflow: MagicMock) -> None:
    result = runner.invoke(app, ["--config", str(config_file), "maintenance", "repair"])

    assert result.exit_code == 1
    mock_workflow.repair.assert_not_called()
