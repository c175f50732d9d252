"""Unit tests for the main application and its global options."""

from pathlib import Path

from ncctl import __version__
from ncctl.cli.main import app
from typer.testing import CliRunner

runner = CliRunner()


class TestGlobalOptions:
    """Tests for options handled by the app callback."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert f"ncctl version {__version__}" in result.output

    def test_help_lists_commands(self) -> None:
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        for command in ("install", "configure", "status", "update", "backup", "restore"):
            assert command in result.output

    def test_missing_config_file_is_usage_error(self, tmp_path: Path) -> None:
        missing = tmp_path / "nope.conf"

        result = runner.invoke(app, ["--config", str(missing), "status"])

        assert result.exit_code == 2
        assert "Config file not found" in result.output

    def test_invalid_config_value_is_usage_error(self, config_file: Path) -> None:
        config_file.write_text(config_file.read_text() + "DB_PORT=not-a-port\n")

        result = runner.invoke(app, ["--config", str(config_file), "status"])

        assert result.exit_code == 2
        assert "Invalid configuration" in result.output

    def test_unknown_component_rejected(self, config_file: Path) -> None:
        result = runner.invoke(app, ["--config", str(config_file), "install", "nginx"])

        assert result.exit_code == 2

    def test_log_file_option(self, config_file: Path, tmp_path: Path) -> None:
        log_file = tmp_path / "custom.log"

        runner.invoke(app, ["--config", str(config_file), "--log-file", str(log_file), "backups"])

        assert log_file.exists()

    def test_default_log_file_in_log_dir(self, config_file: Path, tmp_path: Path) -> None:
        runner.invoke(app, ["--config", str(config_file), "backups"])

        assert list((tmp_path / "log").glob("ncctl-*.log"))
