"""Unit tests for shell execution utilities."""

import os
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from ncctl.utils.shell import EXIT_NOT_FOUND, CommandResult, run_command


class TestCommandResult:
    """Tests for CommandResult."""

    def test_success_on_zero_exit(self) -> None:
        assert CommandResult(stdout="", stderr="", returncode=0).success is True

    def test_failure_on_nonzero_exit(self) -> None:
        assert CommandResult(stdout="", stderr="", returncode=1).success is False

    def test_timeout_is_never_success(self) -> None:
        """A timed-out command is a failure even with returncode 0."""
        result = CommandResult(stdout="", stderr="", returncode=0, timed_out=True)
        assert result.success is False


class TestRunCommand:
    """Tests for run_command function."""

    @patch("ncctl.utils.shell.subprocess.run")
    def test_returns_captured_output(self, mock_run: MagicMock) -> None:
        mock_run.return_value = MagicMock(stdout="out", stderr="err", returncode=0)

        result = run_command(["echo", "hi"])

        assert result == CommandResult(stdout="out", stderr="err", returncode=0)

    @patch("ncctl.utils.shell.subprocess.run")
    def test_nonzero_exit_does_not_raise(self, mock_run: MagicMock) -> None:
        mock_run.return_value = MagicMock(stdout="", stderr="nope", returncode=2)

        result = run_command(["false"])

        assert result.returncode == 2
        assert result.success is False
        assert mock_run.call_args.kwargs["check"] is False

    @patch("ncctl.utils.shell.subprocess.run")
    def test_timeout_returns_timed_out_result(self, mock_run: MagicMock) -> None:
        """On timeout the result is flagged instead of raising."""
        mock_run.side_effect = subprocess.TimeoutExpired(cmd=["sleep", "9"], timeout=1.0)

        result = run_command(["sleep", "9"], timeout=1.0)

        assert result.timed_out is True
        assert result.returncode == -1
        assert "timed out" in result.stderr

    @patch("ncctl.utils.shell.subprocess.run")
    def test_missing_executable(self, mock_run: MagicMock) -> None:
        mock_run.side_effect = FileNotFoundError()

        result = run_command(["no-such-binary"])

        assert result.returncode == EXIT_NOT_FOUND
        assert "no-such-binary" in result.stderr

    @patch("ncctl.utils.shell.subprocess.run")
    def test_merges_env(self, mock_run: MagicMock) -> None:
        """Extra env is merged on top of the current environment."""
        mock_run.return_value = MagicMock(stdout="", stderr="", returncode=0)

        run_command(["env"], env={"MYSQL_PWD": "secret"})

        call_env = mock_run.call_args.kwargs["env"]
        assert call_env["MYSQL_PWD"] == "secret"
        assert "PATH" in call_env

    @patch("ncctl.utils.shell.subprocess.run")
    def test_no_env_inherits(self, mock_run: MagicMock) -> None:
        mock_run.return_value = MagicMock(stdout="", stderr="", returncode=0)

        run_command(["env"])

        assert mock_run.call_args.kwargs["env"] is None

    @patch("ncctl.utils.shell.subprocess.run")
    def test_stdin_path_is_fed_and_decoded(self, mock_run: MagicMock, tmp_path: Path) -> None:
        """stdin_path is opened and passed as stdin; bytes output is decoded."""
        sql = tmp_path / "in.sql"
        sql.write_text("SELECT 1;\n")
        mock_run.return_value = MagicMock(stdout=b"1\n", stderr=b"", returncode=0)

        result = run_command(["mariadb"], stdin_path=sql)

        assert result.stdout == "1\n"
        assert str(mock_run.call_args.kwargs["stdin"].name) == str(sql)

    @patch("ncctl.utils.shell.subprocess.run")
    def test_child_gets_own_session(self, mock_run: MagicMock) -> None:
        """Terminal signals go to ncctl only; the child's stdin is closed."""
        mock_run.return_value = MagicMock(stdout="", stderr="", returncode=0)

        run_command(["apt-get", "install", "-y", "redis-server"])

        assert mock_run.call_args.kwargs["start_new_session"] is True
        assert mock_run.call_args.kwargs["stdin"] == subprocess.DEVNULL

    @pytest.mark.skipif(not Path("/proc/self/stat").exists(), reason="needs /proc")
    def test_real_child_outside_our_session(self) -> None:
        result = run_command(["cat", "/proc/self/stat"])

        # Fields after the command name: state, ppid, pgrp, session
        fields = result.stdout.rsplit(")", 1)[1].split()
        assert int(fields[3]) != os.getsid(0)

    def test_runs_real_command(self) -> None:
        result = run_command(["echo", "hello"])

        assert result.success is True
        assert result.stdout.strip() == "hello"
