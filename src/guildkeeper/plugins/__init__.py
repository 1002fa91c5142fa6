"""Plugin system for guildkeeper -- base class, registry and lifecycle.

Every configured module is an instance of a :class:`Plugin` subclass. The
:class:`~guildkeeper.plugins.registry.PluginRegistry` maps a module's
``type`` to its class, and :class:`~guildkeeper.plugins.manager.PluginManager`
creates, initializes and sets up the configured instances.

Key classes:

* :class:`Plugin` -- Abstract base class that all plugins extend.
* :class:`InitArgs` -- Everything a plugin receives when it is initialized.
"""

from guildkeeper.plugins.base import InitArgs, Plugin

__all__ = ["InitArgs", "Plugin"]
