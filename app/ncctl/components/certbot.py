"""Let's Encrypt certificate component."""

import logging

from ncctl.components.base import Component, ComponentContext, ProbeResult

logger = logging.getLogger(__name__)

RENEWAL_TIMER = "certbot.timer"


class CertbotComponent(Component):
    """Obtains a certificate for DOMAIN through the Apache plugin.

    Disabled when SSL is turned off or the domain is local.
    """

    name = "certbot"
    depends_on = ("apache",)

    def is_enabled(self, ctx: ComponentContext) -> bool:
        return ctx.settings.certificates_wanted

    def packages(self, ctx: ComponentContext) -> list[str]:
        return ["certbot", "python3-certbot-apache"]

    def probe(self, ctx: ComponentContext) -> ProbeResult:
        cert = ctx.path(f"/etc/letsencrypt/live/{ctx.settings.domain}/fullchain.pem")
        return ProbeResult(
            installed=self.packages_installed(ctx),
            configured=cert.exists(),
            running=ctx.systemd.is_active(RENEWAL_TIMER),
        )

    def install(self, ctx: ComponentContext) -> None:
        self.install_packages(ctx)

    def configure(self, ctx: ComponentContext) -> None:
        s = ctx.settings
        args = [
            "certbot",
            "--apache",
            "--non-interactive",
            "--agree-tos",
            "--redirect",
            "--keep-until-expiring",
            "-d",
            s.domain,
        ]
        if s.ssl_email:
            args += ["-m", s.ssl_email]
        else:
            logger.warning("SSL_EMAIL is not set; registering without an email address")
            args.append("--register-unsafely-without-email")

        ctx.runner.check(args, timeout=s.install_timeout)
        ctx.systemd.enable_now(RENEWAL_TIMER)
