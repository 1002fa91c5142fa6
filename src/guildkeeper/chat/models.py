"""Pydantic models for the chat-platform objects the plugins read and write.

The shapes follow Discord's REST payloads closely enough that
:class:`~guildkeeper.chat.discord.DiscordPlatform` can validate responses
directly into them; fields the plugins never look at are dropped.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _ChatModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


# --- Embeds ---


class EmbedField(_ChatModel):
    name: str = ""
    value: str = ""
    inline: bool = False


class EmbedThumbnail(_ChatModel):
    url: str = ""
    width: int = 0
    height: int = 0


class EmbedImage(_ChatModel):
    url: str = ""
    width: int = 0
    height: int = 0


class EmbedAuthor(_ChatModel):
    name: str = ""
    url: str = ""
    icon_url: str = ""


class EmbedFooter(_ChatModel):
    text: str = ""
    icon_url: str = ""


class Embed(_ChatModel):
    """A rich embed attached to a message.

    ``timestamp`` is regenerated on every render and is therefore never
    part of an equality check (see :func:`guildkeeper.reconcile.embeds_equal`).
    """

    title: str = ""
    description: str = ""
    url: str = ""
    type: str = "rich"
    color: Optional[int] = None
    timestamp: Optional[str] = None
    author: Optional[EmbedAuthor] = None
    footer: Optional[EmbedFooter] = None
    image: Optional[EmbedImage] = None
    thumbnail: Optional[EmbedThumbnail] = None
    fields: list[EmbedField] = Field(default_factory=list)


# --- Messages ---


class User(_ChatModel):
    id: str
    username: str = ""
    bot: bool = False


class Emoji(_ChatModel):
    """A unicode emoji (``id`` is ``None``) or a custom guild emoji."""

    id: Optional[str] = None
    name: str = ""

    @property
    def code(self) -> str:
        """The ``:name:id`` form used in configuration for custom emoji."""
        return f":{self.name}:{self.id or ''}"

    @property
    def api_name(self) -> str:
        """The form the reaction endpoints expect (``name`` or ``name:id``)."""
        return f"{self.name}:{self.id}" if self.id else self.name


class Reaction(_ChatModel):
    emoji: Emoji
    count: int = 0
    me: bool = False


class Message(_ChatModel):
    id: str
    channel_id: str = ""
    content: str = ""
    embeds: list[Embed] = Field(default_factory=list)
    timestamp: Optional[datetime] = None
    author: Optional[User] = None
    reactions: list[Reaction] = Field(default_factory=list)


class Guild(_ChatModel):
    id: str
    name: str = ""


class Member(_ChatModel):
    user: Optional[User] = None
    roles: list[str] = Field(default_factory=list)

    @property
    def user_id(self) -> str:
        return self.user.id if self.user else ""


# --- Gateway events ---


class ActivityType(int, enum.Enum):
    PLAYING = 0
    STREAMING = 1
    LISTENING = 2
    WATCHING = 3
    CUSTOM = 4
    COMPETING = 5


class Activity(_ChatModel):
    name: str = ""
    type: int = ActivityType.PLAYING
    url: Optional[str] = None


class PresenceUpdate(_ChatModel):
    """A member's presence changed (gateway ``PRESENCE_UPDATE``)."""

    guild_id: str = ""
    user: Optional[User] = None
    activities: list[Activity] = Field(default_factory=list)

    @property
    def user_id(self) -> str:
        return self.user.id if self.user else ""

    def streaming_activity(self) -> Optional[Activity]:
        """Return the first streaming activity, if any."""
        for activity in self.activities:
            if activity.type == ActivityType.STREAMING:
                return activity
        return None


class ReactionEvent(_ChatModel):
    """A reaction was added to or removed from a message."""

    user_id: str
    channel_id: str
    message_id: str
    guild_id: Optional[str] = None
    emoji: Emoji
    added: bool = True
