"""Unit tests for filesystem locations."""

import os
from pathlib import Path
from unittest.mock import patch

from ncctl.core.paths import (
    APP_NAME,
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_PATH,
    get_config_candidates,
    get_templates_dir,
    get_user_config_dir,
)


class TestGetUserConfigDir:
    """Tests for get_user_config_dir function."""

    def test_default(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            result = get_user_config_dir()

        assert result == Path.home() / ".config" / APP_NAME

    def test_respects_xdg(self) -> None:
        with patch.dict(os.environ, {"XDG_CONFIG_HOME": "/custom"}, clear=True):
            result = get_user_config_dir()

        assert result == Path("/custom") / APP_NAME


class TestGetConfigCandidates:
    """Tests for get_config_candidates function."""

    def test_default_order(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            candidates = get_config_candidates()

        assert candidates == [Path.cwd() / ".env", DEFAULT_CONFIG_PATH]

    def test_env_override_comes_first(self) -> None:
        with patch.dict(os.environ, {CONFIG_ENV_VAR: "/tmp/nc.conf"}, clear=True):
            candidates = get_config_candidates()

        assert candidates[0] == Path("/tmp/nc.conf")
        assert len(candidates) == 3


class TestGetTemplatesDir:
    """Tests for bundled templates."""

    def test_templates_are_bundled(self) -> None:
        templates = get_templates_dir()

        assert (templates / "redis.conf.tmpl").is_file()
        assert (templates / "apache-vhost.conf.tmpl").is_file()
