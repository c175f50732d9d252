"""Infrastructure components managed by ncctl.

Each component lives in its own module and implements the
:class:`~ncctl.components.base.Component` interface. The
:func:`~ncctl.components.registry.default_registry` function returns them
in their canonical processing order.
"""

from ncctl.components.base import Component, ComponentContext, ManagedFile, ProbeResult
from ncctl.components.registry import ComponentRegistry, default_registry

__all__ = [
    "Component",
    "ComponentContext",
    "ComponentRegistry",
    "ManagedFile",
    "ProbeResult",
    "default_registry",
]
