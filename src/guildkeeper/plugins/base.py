"""Abstract base class for guildkeeper plugins.

Every plugin subclasses :class:`Plugin`, sets :attr:`~Plugin.KIND` (the
``type`` used in the config file) and declares its attributes in
:attr:`~Plugin.ATTRIBUTES`. The lifecycle is two-phase:

1. :meth:`Plugin.initialize` -- called once while the config is loaded,
   before the chat connection is open. The base implementation stores the
   :class:`InitArgs`, validates that every required attribute is present
   and then calls :meth:`Plugin.on_init`, where subclasses register cron
   jobs and event handlers.
2. :meth:`Plugin.setup` -- called once after the connection is open and
   the scheduler runs. Plugins that need to talk to the chat platform at
   startup (posting a managed message, say) do it here.

An exception from either phase aborts startup.

Example:
    Minimal plugin implementation::

        class HelloPlugin(Plugin):
            KIND = "hello"
            ATTRIBUTES = (
                AttributeSpec("discord_channel_id", AttributeKind.STRING, required=True),
            )

            def setup(self) -> None:
                self.args.chat.send_message(self.attr("discord_channel_id"), "hello")
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Optional

from guildkeeper.attributes import AttributeKind, AttributeSpec, AttributeStore, required_names
from guildkeeper.chat.base import ChatPlatform
from guildkeeper.metastore import MetaStore
from guildkeeper.models import BotConfig
from guildkeeper.scheduler import Scheduler
from guildkeeper.twitch.client import TwitchClient

TwitchFactory = Callable[[AttributeStore], TwitchClient]

TWITCH_RETRY_CLIENT_ERRORS = AttributeSpec(
    "twitch_retry_client_errors", AttributeKind.BOOL, default=True,
    description="Retry Twitch requests answered with a 4xx status (429 is always retried)",
)


def twitch_client_from_attributes(attrs: AttributeStore) -> TwitchClient:
    """Build a :class:`TwitchClient` from ``twitch_client_id`` / ``twitch_client_secret``.

    ``twitch_retry_client_errors`` (default ``True``) is passed through as
    ``retry_client_errors``.
    """
    return TwitchClient(
        attrs.must_string("twitch_client_id"),
        attrs.must_string("twitch_client_secret"),
        retry_client_errors=attrs.resolve(TWITCH_RETRY_CLIENT_ERRORS),
    )


@dataclass
class InitArgs:
    """Everything a plugin receives at initialization.

    Attributes:
        id: Unique instance id from the config; also the metastore key.
        attrs: The instance's attribute bag.
        scheduler: Process-wide cron scheduler.
        chat: Chat platform session (not yet open during ``initialize``).
        config: The whole bot configuration.
        store: Shared metastore.
        twitch_factory: Builds a Twitch client from the attribute bag.
    """

    id: str
    attrs: AttributeStore
    scheduler: Scheduler
    chat: ChatPlatform
    config: BotConfig
    store: MetaStore
    twitch_factory: TwitchFactory = field(default=twitch_client_from_attributes)


class Plugin(ABC):
    """Base class for all guildkeeper plugins.

    Subclasses set :attr:`KIND`, :attr:`DESCRIPTION` and :attr:`ATTRIBUTES`
    and override :meth:`on_init` and/or :meth:`setup`.

    See Also:
        :class:`~guildkeeper.plugins.manager.PluginManager` for how the
        phases are driven.
    """

    KIND: ClassVar[str] = ""
    DESCRIPTION: ClassVar[str] = ""
    ATTRIBUTES: ClassVar[tuple[AttributeSpec, ...]] = ()

    def __init__(self) -> None:
        self._args: Optional[InitArgs] = None

    @property
    def id(self) -> str:
        """Instance id; empty before :meth:`initialize`."""
        return self._args.id if self._args else ""

    @property
    def args(self) -> InitArgs:
        if self._args is None:
            raise RuntimeError(f"{type(self).__name__} used before initialize()")
        return self._args

    @property
    def attrs(self) -> AttributeStore:
        return self.args.attrs

    def initialize(self, args: InitArgs) -> None:
        """Validate required attributes, then run :meth:`on_init`.

        Raises:
            ValidationMissingError: If required attributes are absent.
        """
        self._args = args
        args.attrs.expect(*required_names(self.ATTRIBUTES))
        self.on_init()

    def on_init(self) -> None:
        """Register cron jobs and event handlers. Default: nothing."""

    def setup(self) -> None:
        """Run post-connect setup. Default: nothing."""

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    @classmethod
    def spec(cls, name: str) -> AttributeSpec:
        for spec in cls.ATTRIBUTES:
            if spec.name == name:
                return spec
        raise KeyError(f"{cls.KIND}: no attribute {name!r} declared")

    def attr(self, name: str) -> Any:
        """Read attribute *name* through its declared spec and default."""
        return self.attrs.resolve(self.spec(name))

    def twitch(self) -> TwitchClient:
        """Build a Twitch client for this instance."""
        return self.args.twitch_factory(self.attrs)
