"""Abstract chat-platform interface consumed by the plugins.

Plugins talk to the chat platform only through :class:`ChatPlatform`. The
REST side (messages, reactions, roles) is implemented by concrete
subclasses such as :class:`~guildkeeper.chat.discord.DiscordPlatform`.
Inbound events are delivered by whatever gateway client the deployment
uses: it calls :meth:`ChatPlatform.dispatch` and the platform fans the event
out to the handlers plugins registered with :meth:`ChatPlatform.add_handler`.

Event types:

* :data:`EVENT_PRESENCE_UPDATE` -- payload :class:`~guildkeeper.chat.models.PresenceUpdate`
* :data:`EVENT_REACTION_ADD` / :data:`EVENT_REACTION_REMOVE` -- payload
  :class:`~guildkeeper.chat.models.ReactionEvent`
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Callable, Optional

from guildkeeper.chat.models import Embed, Guild, Member, Message

logger = logging.getLogger(__name__)

EVENT_PRESENCE_UPDATE = "presence_update"
EVENT_REACTION_ADD = "reaction_add"
EVENT_REACTION_REMOVE = "reaction_remove"

EventHandler = Callable[[Any], None]


class ChatPlatform(ABC):
    """Base class for chat-platform sessions.

    Subclasses implement the REST operations. Event handler bookkeeping
    and dispatch live here so every implementation isolates handler
    failures the same way: an exception in one handler is logged and the
    remaining handlers still run.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    # ------------------------------------------------------------------ #
    # Events
    # ------------------------------------------------------------------ #

    def add_handler(self, event_type: str, handler: EventHandler) -> None:
        """Register *handler* to be called for every event of *event_type*."""
        self._handlers[event_type].append(handler)

    def dispatch(self, event_type: str, event: Any) -> None:
        """Deliver *event* to all handlers registered for *event_type*."""
        for handler in list(self._handlers.get(event_type, ())):
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler for %s failed", event_type)

    @property
    def delivers_events(self) -> bool:
        """Whether a gateway client feeds this session's :meth:`dispatch`.

        REST-only sessions return ``False``; handlers registered on them
        never run.
        """
        return False

    def handled_events(self) -> list[str]:
        """Event types that have at least one registered handler, sorted."""
        return sorted(event_type for event_type, handlers in self._handlers.items() if handlers)

    # ------------------------------------------------------------------ #
    # Session
    # ------------------------------------------------------------------ #

    @abstractmethod
    def open(self) -> None:
        """Connect and verify the credentials."""

    @abstractmethod
    def close(self) -> None:
        """Release the connection."""

    @property
    @abstractmethod
    def bot_user_id(self) -> str:
        """User id of the bot account (valid after :meth:`open`)."""

    @abstractmethod
    def guild(self, guild_id: str) -> Guild:
        """Fetch a guild. Raises :class:`~guildkeeper.exceptions.NotFoundError`."""

    # ------------------------------------------------------------------ #
    # Messages
    # ------------------------------------------------------------------ #

    @abstractmethod
    def list_recent_messages(
        self, channel_id: str, limit: int, after: Optional[str] = None
    ) -> list[Message]:
        """List up to *limit* messages, newest first, optionally after message id *after*."""

    @abstractmethod
    def get_message(self, channel_id: str, message_id: str) -> Message:
        """Fetch one message. Raises :class:`~guildkeeper.exceptions.NotFoundError`."""

    @abstractmethod
    def send_message(
        self, channel_id: str, content: str, embed: Optional[Embed] = None
    ) -> Message:
        """Post a new message and return it."""

    @abstractmethod
    def edit_message(
        self,
        channel_id: str,
        message_id: str,
        content: str,
        embed: Optional[Embed] = None,
    ) -> Message:
        """Replace content and embed of an existing message."""

    @abstractmethod
    def delete_message(self, channel_id: str, message_id: str) -> None:
        """Delete a message."""

    @abstractmethod
    def crosspost_message(self, channel_id: str, message_id: str) -> Message:
        """Publish an announcement-channel message to following channels."""

    # ------------------------------------------------------------------ #
    # Reactions
    # ------------------------------------------------------------------ #

    @abstractmethod
    def add_reaction(self, channel_id: str, message_id: str, emoji: str) -> None:
        """React to a message as the bot (``emoji`` is unicode or ``name:id``)."""

    @abstractmethod
    def remove_reaction_emoji(self, channel_id: str, message_id: str, emoji: str) -> None:
        """Remove all reactions of *emoji* from a message."""

    # ------------------------------------------------------------------ #
    # Members and roles
    # ------------------------------------------------------------------ #

    @abstractmethod
    def get_member(self, guild_id: str, user_id: str) -> Member:
        """Fetch a guild member including their role ids."""

    @abstractmethod
    def add_role(self, guild_id: str, user_id: str, role_id: str) -> None:
        """Give *role_id* to a member."""

    @abstractmethod
    def remove_role(self, guild_id: str, user_id: str, role_id: str) -> None:
        """Take *role_id* away from a member."""
