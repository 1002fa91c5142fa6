"""Chat-platform interface, data models, and the Discord REST adapter."""

from guildkeeper.chat.base import (
    EVENT_PRESENCE_UPDATE,
    EVENT_REACTION_ADD,
    EVENT_REACTION_REMOVE,
    ChatPlatform,
)
from guildkeeper.chat.models import (
    Activity,
    ActivityType,
    Embed,
    EmbedField,
    EmbedFooter,
    EmbedImage,
    EmbedThumbnail,
    Emoji,
    Guild,
    Member,
    Message,
    PresenceUpdate,
    Reaction,
    ReactionEvent,
    User,
)

__all__ = [
    "EVENT_PRESENCE_UPDATE",
    "EVENT_REACTION_ADD",
    "EVENT_REACTION_REMOVE",
    "Activity",
    "ActivityType",
    "ChatPlatform",
    "Embed",
    "EmbedField",
    "EmbedFooter",
    "EmbedImage",
    "EmbedThumbnail",
    "Emoji",
    "Guild",
    "Member",
    "Message",
    "PresenceUpdate",
    "Reaction",
    "ReactionEvent",
    "User",
]
