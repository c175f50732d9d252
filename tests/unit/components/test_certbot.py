"""Unit tests for the certbot component."""

from unittest.mock import MagicMock

import pytest
from ncctl.components.base import ComponentContext
from ncctl.components.certbot import RENEWAL_TIMER, CertbotComponent


@pytest.fixture
def component() -> CertbotComponent:
    return CertbotComponent()


class TestCertbotComponent:
    """Tests for CertbotComponent."""

    def test_enabled_for_public_domain(
        self, component: CertbotComponent, component_ctx: ComponentContext
    ) -> None:
        assert component.is_enabled(component_ctx) is True

    def test_disabled_without_ssl(
        self, component: CertbotComponent, component_ctx: ComponentContext
    ) -> None:
        component_ctx.settings = component_ctx.settings.model_copy(update={"ssl_enabled": False})

        assert component.is_enabled(component_ctx) is False

    def test_configure_with_email(
        self, component: CertbotComponent, component_ctx: ComponentContext
    ) -> None:
        runner: MagicMock = component_ctx.runner  # type: ignore[assignment]
        systemd: MagicMock = component_ctx.systemd  # type: ignore[assignment]

        component.configure(component_ctx)

        args = runner.check.call_args.args[0]
        assert args[:2] == ["certbot", "--apache"]
        assert args[args.index("-d") + 1] == "cloud.example.com"
        assert args[-2:] == ["-m", "admin@example.com"]
        systemd.enable_now.assert_called_once_with(RENEWAL_TIMER)

    def test_configure_without_email(
        self,
        component: CertbotComponent,
        component_ctx: ComponentContext,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        component_ctx.settings = component_ctx.settings.model_copy(update={"ssl_email": ""})

        component.configure(component_ctx)

        args = component_ctx.runner.check.call_args.args[0]  # type: ignore[attr-defined]
        assert "--register-unsafely-without-email" in args
        assert "SSL_EMAIL" in caplog.text

    def test_probe_reads_live_certificate(
        self, component: CertbotComponent, component_ctx: ComponentContext
    ) -> None:
        assert component.probe(component_ctx).configured is False

        cert = component_ctx.path("/etc/letsencrypt/live/cloud.example.com/fullchain.pem")
        cert.parent.mkdir(parents=True)
        cert.write_text("-----BEGIN CERTIFICATE-----\n")

        assert component.probe(component_ctx).configured is True
