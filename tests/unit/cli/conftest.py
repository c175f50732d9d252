"""Shared fixtures for CLI command tests."""

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Write a config file that keeps every path inside tmp_path."""
    path = tmp_path / "install-config.conf"
    path.write_text(
        "\n".join(
            [
                "DOMAIN=cloud.example.com",
                f"NEXTCLOUD_ROOT={tmp_path / 'www' / 'nextcloud'}",
                f"BACKUP_DIR={tmp_path / 'backups'}",
                f"LOG_DIR={tmp_path / 'log'}",
                f"SECRETS_FILE={tmp_path / 'etc' / 'secrets.env'}",
                "",
            ]
        )
    )
    return path


@pytest.fixture
def as_root() -> Iterator[None]:
    """Pretend the CLI runs as root."""
    with patch("ncctl.cli.types.os.geteuid", return_value=0):
        yield


@pytest.fixture
def as_user() -> Iterator[None]:
    """Pretend the CLI runs as an unprivileged user."""
    with patch("ncctl.cli.types.os.geteuid", return_value=1000):
        yield
