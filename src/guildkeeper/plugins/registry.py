"""Plugin registry -- maps plugin kinds to factories.

The registry is populated explicitly: :func:`create_default_registry`
registers every class in :data:`BUILTIN_PLUGINS`. Nothing is registered as
a side effect of importing a plugin module.

See Also:
    :class:`~guildkeeper.plugins.manager.PluginManager` -- turns config
    entries into initialized plugin instances through a registry.
"""

from __future__ import annotations

from typing import Callable, Optional

from guildkeeper.exceptions import DuplicateRegistrationError
from guildkeeper.plugins.base import Plugin
from guildkeeper.plugins.clearchannel import ClearChannelPlugin
from guildkeeper.plugins.liveposting import LivePostingPlugin
from guildkeeper.plugins.liverole import LiveRolePlugin
from guildkeeper.plugins.reactionrole import ReactionRolePlugin
from guildkeeper.plugins.schedule import SchedulePlugin

PluginFactory = Callable[[], Plugin]

BUILTIN_PLUGINS: tuple[type[Plugin], ...] = (
    ClearChannelPlugin,
    LivePostingPlugin,
    LiveRolePlugin,
    ReactionRolePlugin,
    SchedulePlugin,
)
"""Plugin classes shipped with guildkeeper, registered under their ``KIND``."""


class PluginRegistry:
    """Name -> factory map for plugin kinds.

    Example::

        registry = PluginRegistry()
        registry.register("schedule", SchedulePlugin)
        plugin = registry.create("schedule")
    """

    def __init__(self) -> None:
        self._factories: dict[str, PluginFactory] = {}

    def register(self, name: str, factory: PluginFactory) -> None:
        """Register *factory* under *name*.

        Raises:
            DuplicateRegistrationError: If *name* is already registered.
        """
        if name in self._factories:
            raise DuplicateRegistrationError(f"duplicate registration of plugin kind {name!r}")
        self._factories[name] = factory

    def create(self, name: str) -> Optional[Plugin]:
        """Return a new instance of kind *name*, or ``None`` if unknown."""
        factory = self._factories.get(name)
        if factory is None:
            return None
        return factory()

    def kinds(self) -> list[str]:
        return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        return name in self._factories


def create_default_registry() -> PluginRegistry:
    """Create a :class:`PluginRegistry` with every built-in plugin registered."""
    registry = PluginRegistry()
    for plugin_cls in BUILTIN_PLUGINS:
        registry.register(plugin_cls.KIND, plugin_cls)
    return registry
