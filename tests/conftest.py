"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules.
"""

import logging
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from ncctl.components.base import ComponentContext
from ncctl.core.config import Settings
from ncctl.core.credentials import CredentialStore
from ncctl.core.logger import ROOT_LOGGER
from ncctl.core.paths import get_templates_dir
from ncctl.core.renderer import ConfigRenderer, TemplateSet
from ncctl.core.runner import ProcessRunner
from ncctl.operators import AptOperator, Occ, SystemdOperator
from ncctl.utils.shell import CommandResult


OK = CommandResult(stdout="", stderr="", returncode=0)


@pytest.fixture(autouse=True)
def _reset_ncctl_logger():
    """Detach handlers a test attached to the ncctl logger."""
    root = logging.getLogger(ROOT_LOGGER)
    before = list(root.handlers)
    level = root.level
    yield
    root.setLevel(level)
    for handler in list(root.handlers):
        if handler not in before:
            root.removeHandler(handler)
            handler.close()
    root.propagate = True


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing every writable location into tmp_path."""
    return Settings(
        domain="cloud.example.com",
        nextcloud_root=tmp_path / "www" / "nextcloud",
        nextcloud_data_dir=tmp_path / "data",
        backup_dir=tmp_path / "backups",
        log_dir=tmp_path / "log",
        secrets_file=tmp_path / "etc" / "secrets.env",
        ssl_email="admin@example.com",
    )


@pytest.fixture
def mock_runner() -> MagicMock:
    """ProcessRunner mock whose commands all succeed."""
    runner = MagicMock(spec=ProcessRunner)
    runner.run.return_value = OK
    runner.check.return_value = OK
    runner.succeeds.return_value = True
    return runner


@pytest.fixture
def component_ctx(settings: Settings, mock_runner: MagicMock, tmp_path: Path) -> ComponentContext:
    """Context with mocked operators, real templates and a tmp_path sysroot."""
    sysroot = tmp_path / "root"
    sysroot.mkdir()
    return ComponentContext(
        settings=settings,
        runner=mock_runner,
        apt=MagicMock(spec=AptOperator),
        systemd=MagicMock(spec=SystemdOperator),
        occ=MagicMock(spec=Occ),
        renderer=ConfigRenderer(clock=lambda: "20260101T000000000000Z"),
        templates=TemplateSet(get_templates_dir()),
        credentials=CredentialStore(settings.secrets_file),
        sysroot=sysroot,
    )
