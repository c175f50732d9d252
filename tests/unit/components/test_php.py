"""Unit tests for the PHP-FPM component."""

from unittest.mock import MagicMock

import pytest
from ncctl.components.base import ComponentContext
from ncctl.components.php import INI_NAME, PPA, PhpComponent


@pytest.fixture
def component() -> PhpComponent:
    return PhpComponent()


class TestPhpComponent:
    """Tests for PhpComponent."""

    def test_packages_follow_version(
        self, component: PhpComponent, component_ctx: ComponentContext
    ) -> None:
        packages = component.packages(component_ctx)

        assert "php8.3-fpm" in packages
        assert "php8.3-apcu" in packages
        assert all(p.startswith("php8.3-") for p in packages)

    def test_install_adds_ppa_when_missing(
        self, component: PhpComponent, component_ctx: ComponentContext
    ) -> None:
        apt: MagicMock = component_ctx.apt  # type: ignore[assignment]
        apt.missing.return_value = ["php8.3-fpm"]

        component.install(component_ctx)

        apt.add_ppa.assert_called_once_with(PPA)
        apt.install.assert_called_once_with(["php8.3-fpm"])

    def test_install_skips_existing_ppa(
        self, component: PhpComponent, component_ctx: ComponentContext
    ) -> None:
        sources = component_ctx.path("/etc/apt/sources.list.d")
        sources.mkdir(parents=True)
        (sources / "ondrej-ubuntu-php-noble.sources").write_text("Types: deb\n")
        apt: MagicMock = component_ctx.apt  # type: ignore[assignment]
        apt.missing.return_value = []

        component.install(component_ctx)

        apt.add_ppa.assert_not_called()

    def test_configure_writes_pool_and_ini(
        self, component: PhpComponent, component_ctx: ComponentContext
    ) -> None:
        component.configure(component_ctx)

        pool = component_ctx.path("/etc/php/8.3/fpm/pool.d/nextcloud.conf")
        content = pool.read_text()
        assert "user = www-data" in content
        assert "/run/php/php8.3-fpm-nextcloud.sock" in content
        for sapi in ("fpm", "cli"):
            ini = component_ctx.path(f"/etc/php/8.3/{sapi}/conf.d/{INI_NAME}")
            assert "memory_limit = 512M" in ini.read_text()
        runner: MagicMock = component_ctx.runner  # type: ignore[assignment]
        systemd: MagicMock = component_ctx.systemd  # type: ignore[assignment]
        runner.check.assert_called_once_with(["php-fpm8.3", "-t"])
        systemd.restart.assert_called_once_with("php8.3-fpm")

    def test_running_needs_socket(
        self, component: PhpComponent, component_ctx: ComponentContext
    ) -> None:
        component_ctx.systemd.is_active.return_value = True  # type: ignore[attr-defined]
        component_ctx.apt.all_installed.return_value = True  # type: ignore[attr-defined]

        assert component.probe(component_ctx).running is False

        socket = component_ctx.path(component_ctx.settings.php_fpm_socket)
        socket.parent.mkdir(parents=True)
        socket.touch()

        assert component.probe(component_ctx).running is True
