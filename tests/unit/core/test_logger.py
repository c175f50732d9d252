"""Unit tests for logging setup and secret redaction."""

import logging
from pathlib import Path

import pytest
from ncctl.core.errors import BackupError, StepFailedError
from ncctl.core.logger import (
    REDACTED,
    ROOT_LOGGER,
    SecretRedactingFilter,
    default_log_file,
    log_error,
    log_section,
    log_success,
    redact,
    register_secret,
    setup_logging,
)


class TestSecretRedactingFilter:
    """Tests for SecretRedactingFilter."""

    def test_masks_registered_values(self) -> None:
        redactor = SecretRedactingFilter()
        redactor.register("hunter2")

        assert redactor.redact("password is hunter2") == f"password is {REDACTED}"

    def test_longest_secret_masked_first(self) -> None:
        redactor = SecretRedactingFilter()
        redactor.register("abc")
        redactor.register("abcdef")

        assert redactor.redact("abcdef") == REDACTED

    def test_empty_value_is_ignored(self) -> None:
        redactor = SecretRedactingFilter()
        redactor.register("")

        assert redactor.redact("nothing to hide") == "nothing to hide"

    def test_filter_rewrites_record(self) -> None:
        redactor = SecretRedactingFilter()
        redactor.register("s3cr3t")
        record = logging.LogRecord("ncctl", logging.INFO, __file__, 1, "pw=%s", ("s3cr3t",), None)

        assert redactor.filter(record) is True
        assert record.getMessage() == f"pw={REDACTED}"


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_file_receives_lines_at_level(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "run.log"

        used = setup_logging("INFO", log_file, console_output=False)
        log = logging.getLogger(f"{ROOT_LOGGER}.test")
        log.debug("hidden detail")
        log.info("visible line")
        for handler in logging.getLogger(ROOT_LOGGER).handlers:
            handler.flush()

        assert used == log_file
        content = log_file.read_text()
        assert "visible line" in content
        assert "[INFO]" in content
        assert "hidden detail" not in content
        assert log_file.stat().st_mode & 0o777 == 0o640

    def test_file_never_contains_registered_secret(self, tmp_path: Path) -> None:
        log_file = tmp_path / "run.log"
        register_secret("TopSecretValue42")

        setup_logging("DEBUG", log_file, console_output=False)
        logging.getLogger(f"{ROOT_LOGGER}.test").info("db password %s", "TopSecretValue42")
        for handler in logging.getLogger(ROOT_LOGGER).handlers:
            handler.flush()

        content = log_file.read_text()
        assert "TopSecretValue42" not in content
        assert REDACTED in content

    def test_replaces_previous_handlers(self, tmp_path: Path) -> None:
        setup_logging("INFO", tmp_path / "a.log", console_output=False)
        setup_logging("INFO", tmp_path / "b.log", console_output=False)

        handlers = logging.getLogger(ROOT_LOGGER).handlers
        assert len(handlers) == 1

    def test_without_file(self) -> None:
        assert setup_logging("WARNING", None, console_output=False) is None
        assert logging.getLogger(ROOT_LOGGER).level == logging.WARNING

    def test_default_log_file_name(self, tmp_path: Path) -> None:
        path = default_log_file(tmp_path)

        assert path.parent == tmp_path
        assert path.name.startswith("ncctl-")
        assert path.suffix == ".log"


class TestLogHelpers:
    """Tests for the section/success/error helpers."""

    def test_section_and_success_are_info(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.INFO, logger=ROOT_LOGGER)
        log = logging.getLogger(f"{ROOT_LOGGER}.test")

        log_section(log, "Redis")
        log_success(log, "%s configured", "redis")

        assert [r.levelno for r in caplog.records] == [logging.INFO, logging.INFO]
        assert "Redis" in caplog.records[0].getMessage()
        assert caplog.records[1].getMessage() == "OK: redis configured"

    def test_log_error_raises_step_failed(self, caplog: pytest.LogCaptureFixture) -> None:
        log = logging.getLogger(f"{ROOT_LOGGER}.test")

        with pytest.raises(StepFailedError, match="disk full on /var"):
            log_error(log, "disk full on %s", "/var")

        assert caplog.records[-1].levelno == logging.ERROR

    def test_log_error_custom_class(self) -> None:
        with pytest.raises(BackupError):
            log_error(logging.getLogger(ROOT_LOGGER), "bad archive", error_cls=BackupError)

    def test_redact_helper(self) -> None:
        register_secret("another-secret-value")
        assert redact("x another-secret-value y") == f"x {REDACTED} y"
