"""Startup and shutdown sequence of the bot process.

:class:`Bot` wires the configured components together in the order the
plugins rely on:

1. load the metastore from ``store_location``;
2. create and initialize every configured plugin;
3. open the chat connection and verify the configured guild;
4. start the scheduler;
5. run every plugin's setup.

Any error in these steps aborts startup and propagates to the caller.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from guildkeeper.chat.base import ChatPlatform
from guildkeeper.exceptions import GuildkeeperError, NotFoundError
from guildkeeper.metastore import MetaStore
from guildkeeper.models import BotConfig
from guildkeeper.plugins.base import TwitchFactory, twitch_client_from_attributes
from guildkeeper.plugins.manager import PluginManager
from guildkeeper.plugins.registry import PluginRegistry
from guildkeeper.scheduler import Scheduler

logger = logging.getLogger(__name__)


class Bot:
    """One bot process built from a :class:`~guildkeeper.models.BotConfig`.

    Args:
        config: Validated configuration.
        chat_factory: Creates the chat platform from the bot token.
        scheduler: Scheduler to use; a new one by default.
        registry: Plugin registry; the built-in one by default.
        twitch_factory: Builds Twitch clients for the plugins.

    Example::

        bot = Bot(config, DiscordPlatform)
        if bot.start():
            stop_event.wait()
        bot.stop()
    """

    def __init__(
        self,
        config: BotConfig,
        chat_factory: Callable[[str], ChatPlatform],
        scheduler: Optional[Scheduler] = None,
        registry: Optional[PluginRegistry] = None,
        twitch_factory: TwitchFactory = twitch_client_from_attributes,
    ) -> None:
        self.config = config
        self.chat = chat_factory(config.bot_token)
        self.scheduler = scheduler or Scheduler()
        self._registry = registry
        self._twitch_factory = twitch_factory
        self.store: Optional[MetaStore] = None
        self.manager: Optional[PluginManager] = None
        self._connected = False

    def start(self) -> bool:
        """Bring the bot up.

        Returns:
            ``False`` if no plugin is enabled (nothing to run), ``True`` once
            every plugin has been set up.

        Raises:
            GuildkeeperError: On any startup failure.
        """
        self.store = MetaStore.load(self.config.store_location)
        self.manager = PluginManager(
            self.scheduler,
            self.chat,
            self.store,
            registry=self._registry,
            twitch_factory=self._twitch_factory,
        )
        self.manager.load(self.config)
        if not len(self.manager):
            logger.debug("No modules were enabled")
            return False
        self._check_event_source()

        self.chat.open()
        self._connected = True
        logger.debug("Chat platform connected")

        try:
            guild = self.chat.guild(self.config.guild_id)
        except NotFoundError as exc:
            raise GuildkeeperError(
                f"guild {self.config.guild_id!r} not found: is the bot added and the ID correct?",
                exit_code=exc.exit_code,
            ) from exc
        logger.info("Found guild %r for operation", guild.name)

        self.scheduler.start()
        self.manager.setup_all()
        logger.info("Bot setup done with %d module(s), bot is now running", len(self.manager))
        return True

    def _check_event_source(self) -> None:
        """Warn when plugins registered event handlers nothing will call."""
        events = self.chat.handled_events()
        if not events or self.chat.delivers_events:
            return
        logger.warning(
            "Plugins handle %s events but %s has no event source; "
            "those handlers will not run (cron jobs are unaffected)",
            ", ".join(events), type(self.chat).__name__,
        )

    def stop(self) -> None:
        """Stop scheduling and close the chat connection. Running jobs are not awaited."""
        self.scheduler.shutdown()
        if self._connected:
            self.chat.close()
            self._connected = False
