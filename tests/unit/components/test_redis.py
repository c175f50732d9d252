"""Unit tests for the Redis component."""

from collections.abc import Iterator
from unittest.mock import MagicMock, patch

import pytest
from ncctl.components.base import ComponentContext
from ncctl.components.redis import CONFIG_FILE, RedisComponent
from ncctl.core.credentials import REDIS_PASSWORD
from ncctl.core.renderer import find_placeholders
from ncctl.utils.shell import CommandResult


@pytest.fixture
def component() -> RedisComponent:
    return RedisComponent()


@pytest.fixture(autouse=True)
def _no_chown() -> Iterator[MagicMock]:
    """redis.conf is owned by the redis user, which tests cannot rely on."""
    with patch("ncctl.core.renderer.shutil.chown") as mock_chown:
        yield mock_chown


class TestRedisComponent:
    """Tests for RedisComponent."""

    def test_configure_writes_secret_config(
        self, component: RedisComponent, component_ctx: ComponentContext, _no_chown: MagicMock
    ) -> None:
        component.configure(component_ctx)

        config = component_ctx.path(CONFIG_FILE)
        password = component_ctx.credentials.get(REDIS_PASSWORD)
        content = config.read_text()
        assert f"requirepass {password}" in content
        assert "port 6379" in content
        assert find_placeholders(content) == set()
        assert config.stat().st_mode & 0o777 == 0o600
        assert _no_chown.call_args.kwargs == {"user": "redis", "group": "redis"}

    def test_configure_restarts_services(
        self, component: RedisComponent, component_ctx: ComponentContext
    ) -> None:
        systemd: MagicMock = component_ctx.systemd  # type: ignore[assignment]

        component.configure(component_ctx)

        component_ctx.runner.check.assert_called_once_with(  # type: ignore[attr-defined]
            ["usermod", "-a", "-G", "redis", "www-data"]
        )
        assert [c.args[0] for c in systemd.restart.call_args_list] == ["redis-server", "php8.3-fpm"]

    def test_password_is_stable_across_runs(
        self, component: RedisComponent, component_ctx: ComponentContext
    ) -> None:
        component.configure(component_ctx)
        first = component_ctx.path(CONFIG_FILE).read_text()

        component.configure(component_ctx)

        assert component_ctx.path(CONFIG_FILE).read_text() == first

    def test_probe_after_configure(
        self, component: RedisComponent, component_ctx: ComponentContext
    ) -> None:
        runner: MagicMock = component_ctx.runner  # type: ignore[assignment]
        component_ctx.apt.all_installed.return_value = True  # type: ignore[attr-defined]
        component_ctx.systemd.is_active.return_value = True  # type: ignore[attr-defined]
        component.configure(component_ctx)
        runner.run.return_value = CommandResult(stdout="PONG\n", stderr="", returncode=0)

        assert component.probe(component_ctx).satisfied is True

        ping = runner.run.call_args
        password = component_ctx.credentials.get(REDIS_PASSWORD)
        assert ping.args[0][-1] == "ping"
        assert ping.kwargs["env"] == {"REDISCLI_AUTH": password}

    def test_probe_before_configure(
        self, component: RedisComponent, component_ctx: ComponentContext
    ) -> None:
        component_ctx.systemd.is_active.return_value = True  # type: ignore[attr-defined]

        probe = component.probe(component_ctx)

        assert probe.configured is False
        assert probe.running is False

    def test_hand_edited_config_is_backed_up(
        self, component: RedisComponent, component_ctx: ComponentContext
    ) -> None:
        config = component_ctx.path(CONFIG_FILE)
        config.parent.mkdir(parents=True)
        config.write_text("requirepass oldpass\n")

        component.configure(component_ctx)

        backups = list(config.parent.glob("redis.conf.bak.*"))
        assert len(backups) == 1
        assert backups[0].read_text() == "requirepass oldpass\n"
