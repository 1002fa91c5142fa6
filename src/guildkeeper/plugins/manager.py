"""Plugin manager -- turns config entries into running plugin instances.

:class:`PluginManager` walks ``module_configs`` in order, creates one
plugin per entry through a :class:`~guildkeeper.plugins.registry.PluginRegistry`,
initializes it, and later drives the setup phase for all of them.

Entries without an id, or reusing an id seen before, are logged and
skipped; the rest of the config still loads. An unknown kind or a failing
``initialize``/``setup`` raises :class:`~guildkeeper.exceptions.PluginError`,
which aborts startup.
"""

from __future__ import annotations

import logging
from typing import Optional

from guildkeeper.attributes import AttributeStore
from guildkeeper.chat.base import ChatPlatform
from guildkeeper.exceptions import GuildkeeperError, PluginError
from guildkeeper.metastore import MetaStore
from guildkeeper.models import BotConfig
from guildkeeper.plugins.base import InitArgs, Plugin, TwitchFactory, twitch_client_from_attributes
from guildkeeper.plugins.registry import PluginRegistry, create_default_registry
from guildkeeper.scheduler import Scheduler

logger = logging.getLogger(__name__)


class PluginManager:
    """Creates, initializes and sets up the configured plugins.

    Args:
        scheduler: Scheduler handed to every plugin.
        chat: Chat platform handed to every plugin.
        store: Metastore handed to every plugin.
        registry: Registry to create plugins from. Defaults to
            :func:`~guildkeeper.plugins.registry.create_default_registry`.
        twitch_factory: Builds Twitch clients for the plugins.

    Example::

        manager = PluginManager(scheduler, chat, store)
        manager.load(config)
        chat.open()
        scheduler.start()
        manager.setup_all()
    """

    def __init__(
        self,
        scheduler: Scheduler,
        chat: ChatPlatform,
        store: MetaStore,
        registry: Optional[PluginRegistry] = None,
        twitch_factory: TwitchFactory = twitch_client_from_attributes,
    ) -> None:
        self._scheduler = scheduler
        self._chat = chat
        self._store = store
        self._registry = registry or create_default_registry()
        self._twitch_factory = twitch_factory
        self._plugins: dict[str, Plugin] = {}

    @property
    def plugins(self) -> list[Plugin]:
        """Loaded plugins in config order."""
        return list(self._plugins.values())

    def __len__(self) -> int:
        return len(self._plugins)

    def load(self, config: BotConfig) -> list[Plugin]:
        """Create and initialize one plugin per ``module_configs`` entry.

        Returns:
            The plugins loaded by this call.

        Raises:
            PluginError: If an entry names an unknown kind or its
                ``initialize`` fails. The original error's exit code is kept.
        """
        loaded: list[Plugin] = []
        for idx, module in enumerate(config.module_configs):
            if not module.id:
                logger.error("Module %d (type=%s) has no id and will be disabled", idx, module.type)
                continue
            if module.id in self._plugins:
                logger.error(
                    "Module %d (type=%s) reuses id %r and will be disabled", idx, module.type, module.id
                )
                continue

            plugin = self._registry.create(module.type)
            if plugin is None:
                available = ", ".join(self._registry.kinds()) or "(none)"
                raise PluginError(
                    f"module {module.id!r}: unsupported type {module.type!r}. "
                    f"Available types: {available}"
                )

            args = InitArgs(
                id=module.id,
                attrs=AttributeStore(module.attributes),
                scheduler=self._scheduler,
                chat=self._chat,
                config=config,
                store=self._store,
                twitch_factory=self._twitch_factory,
            )
            try:
                plugin.initialize(args)
            except GuildkeeperError as exc:
                raise PluginError(
                    f"initializing module {module.id!r} ({module.type}): {exc}",
                    exit_code=exc.exit_code,
                ) from exc

            self._plugins[module.id] = plugin
            loaded.append(plugin)
            logger.debug("Enabled module %r (type=%s)", module.id, module.type)

        return loaded

    def setup_all(self) -> None:
        """Run :meth:`~guildkeeper.plugins.base.Plugin.setup` for every plugin in order.

        Raises:
            PluginError: On the first failing setup.
        """
        for plugin_id, plugin in self._plugins.items():
            try:
                plugin.setup()
            except GuildkeeperError as exc:
                raise PluginError(
                    f"running setup for module {plugin_id!r}: {exc}", exit_code=exc.exit_code
                ) from exc
