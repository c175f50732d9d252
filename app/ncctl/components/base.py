"""Abstract base class for infrastructure components.

A component is one named unit of the server (``php``, ``redis``, ...)
with an install action, a configure action and a read-only probe. The
orchestrator drives components; components never call each other.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar

from ncctl.core.config import Settings
from ncctl.core.credentials import CredentialStore
from ncctl.core.errors import TemplateError
from ncctl.core.paths import get_templates_dir
from ncctl.core.renderer import ConfigRenderer, ConfigTemplate, RenderedConfig, TemplateSet
from ncctl.core.runner import ProcessRunner
from ncctl.operators import AptOperator, Occ, SystemdOperator

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProbeResult:
    """Tri-state answer of a component probe.

    Each flag is checked independently; a component can be installed but
    not running after a crash.
    """

    installed: bool
    configured: bool
    running: bool

    @property
    def satisfied(self) -> bool:
        """True when the component needs no work at all."""
        return self.installed and self.configured and self.running


@dataclass(frozen=True, slots=True)
class ManagedFile:
    """A rendered config file owned by a component."""

    template: ConfigTemplate
    variables: Mapping[str, object]


@dataclass(slots=True)
class ComponentContext:
    """Everything a component action may use, built once per run.

    Attributes:
        settings: Immutable run configuration.
        runner: Process runner for ad-hoc commands.
        apt: Package operator.
        systemd: Service operator.
        occ: Nextcloud CLI operator.
        renderer: Config renderer.
        templates: Bundled template lookup.
        credentials: Generated credential store.
        sysroot: Prefix for every managed system path ("/" outside tests).
    """

    settings: Settings
    runner: ProcessRunner
    apt: AptOperator
    systemd: SystemdOperator
    occ: Occ
    renderer: ConfigRenderer
    templates: TemplateSet
    credentials: CredentialStore
    sysroot: Path = field(default=Path("/"))

    @classmethod
    def create(cls, settings: Settings) -> ComponentContext:
        """Wire the default operators for a settings object."""
        runner = ProcessRunner(default_timeout=settings.command_timeout)
        return cls(
            settings=settings,
            runner=runner,
            apt=AptOperator(runner, timeout=settings.install_timeout),
            systemd=SystemdOperator(runner),
            occ=Occ(
                runner,
                settings.nextcloud_root,
                user=settings.nextcloud_user,
                php=f"php{settings.php_version}",
                long_timeout=settings.install_timeout,
            ),
            renderer=ConfigRenderer(),
            templates=TemplateSet(get_templates_dir()),
            credentials=CredentialStore(settings.secrets_file),
        )

    def path(self, absolute: str | Path) -> Path:
        """Resolve an absolute system path below :attr:`sysroot`."""
        return self.sysroot / Path(absolute).relative_to("/")


class Component(ABC):
    """Abstract base class for all components.

    Subclasses declare :attr:`name` and :attr:`depends_on` as class
    attributes and implement the three actions.

    Example:
        >>> component = RedisComponent()
        >>> state = component.probe(ctx)
        >>> if not state.installed:
        ...     component.install(ctx)
    """

    name: ClassVar[str]
    depends_on: ClassVar[tuple[str, ...]] = ()

    def is_enabled(self, ctx: ComponentContext) -> bool:
        """Whether the component applies to the current settings."""
        return True

    def packages(self, ctx: ComponentContext) -> list[str]:
        """APT packages the install action provides."""
        return []

    def managed_files(self, ctx: ComponentContext) -> list[ManagedFile]:
        """Config files the configure action renders."""
        return []

    @abstractmethod
    def probe(self, ctx: ComponentContext) -> ProbeResult:
        """Report installed/configured/running without changing anything."""

    @abstractmethod
    def install(self, ctx: ComponentContext) -> None:
        """Install the component.

        Raises:
            ExecutionError: If a command fails; transient failures may be
                retried by the caller.
        """

    @abstractmethod
    def configure(self, ctx: ComponentContext) -> None:
        """Render config files and (re)start services.

        Raises:
            NcctlError: On any failure; configuration is never retried.
        """

    def packages_installed(self, ctx: ComponentContext) -> bool:
        return ctx.apt.all_installed(self.packages(ctx))

    def install_packages(self, ctx: ComponentContext) -> None:
        """Install whichever of :meth:`packages` are missing."""
        missing = ctx.apt.missing(self.packages(ctx))
        if missing:
            ctx.apt.install(missing)

    def files_current(self, ctx: ComponentContext) -> bool:
        """Check every managed file against an in-memory render."""
        try:
            files = self.managed_files(ctx)
        except (OSError, TemplateError) as e:
            logger.debug("%s: cannot build managed files: %s", self.name, e)
            return False
        return all(ctx.renderer.is_current(f.template, f.variables) for f in files)

    def write_files(self, ctx: ComponentContext) -> list[RenderedConfig]:
        """Render every managed file to disk."""
        return [ctx.renderer.render(f.template, f.variables) for f in self.managed_files(ctx)]

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
