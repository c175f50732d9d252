"""Component registry: the single source of truth for processing order."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from ncctl.components.apache import ApacheComponent
from ncctl.components.base import Component
from ncctl.components.certbot import CertbotComponent
from ncctl.components.cron import CronComponent
from ncctl.components.mariadb import MariadbComponent
from ncctl.components.nextcloud import NextcloudComponent
from ncctl.components.php import PhpComponent
from ncctl.components.redis import RedisComponent
from ncctl.components.system import SystemComponent
from ncctl.core.errors import ComponentNotFoundError, RegistryValidationError

logger = logging.getLogger(__name__)


class ComponentRegistry:
    """Ordered, validated collection of components.

    The order given at construction is the processing order. It is
    validated once: names must be unique and every ``depends_on`` entry
    must name a component that comes strictly earlier.

    Raises:
        RegistryValidationError: If the order cannot be honoured.
    """

    def __init__(self, components: Iterable[Component]) -> None:
        self._components: list[Component] = list(components)
        self._by_name: dict[str, Component] = {}
        self.validate()

    def validate(self) -> None:
        """Check uniqueness and that dependencies precede their dependents."""
        seen: dict[str, Component] = {}
        for component in self._components:
            if component.name in seen:
                raise RegistryValidationError(f"Duplicate component name: {component.name}")
            for dependency in component.depends_on:
                if dependency == component.name:
                    raise RegistryValidationError(f"{component.name} depends on itself")
                if dependency not in seen:
                    raise RegistryValidationError(
                        f"{component.name} depends on {dependency}, "
                        "which is not registered before it"
                    )
            seen[component.name] = component
        self._by_name = seen

    def list(self) -> list[Component]:
        """Return components in processing order."""
        return list(self._components)

    def names(self) -> list[str]:
        return [c.name for c in self._components]

    def get(self, name: str) -> Component:
        """Look up a component by name.

        Raises:
            ComponentNotFoundError: If no component has that name.
        """
        try:
            return self._by_name[name]
        except KeyError:
            known = ", ".join(self.names())
            raise ComponentNotFoundError(f"Unknown component {name!r} (known: {known})") from None

    def __iter__(self) -> Iterator[Component]:
        return iter(self._components)

    def __len__(self) -> int:
        return len(self._components)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name


def default_registry() -> ComponentRegistry:
    """Build the registry of every ncctl component in canonical order."""
    return ComponentRegistry(
        [
            SystemComponent(),
            PhpComponent(),
            ApacheComponent(),
            MariadbComponent(),
            RedisComponent(),
            NextcloudComponent(),
            CertbotComponent(),
            CronComponent(),
        ]
    )
