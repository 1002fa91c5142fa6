"""Reaction role plugin.

This module provides :class:`ReactionRolePlugin`, which implements the
``reactionrole`` kind. At setup it keeps a managed message (content plus an
optional embed) in the configured channel and makes the message's
reactions match ``reaction_roles``. Afterwards, members reacting to that
message receive the mapped role, and lose it again when they remove their
reaction.

``reaction_roles`` entries have the form ``emote=role-id[:set]``. ``emote``
is a unicode emoji or a custom emoji written ``:<name>:<id>``. Roles marked
``:set`` are only ever added, never removed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from guildkeeper.attributes import AttributeKind, AttributeSpec
from guildkeeper.chat.base import EVENT_REACTION_ADD, EVENT_REACTION_REMOVE
from guildkeeper.chat.models import Embed, EmbedThumbnail, Message, ReactionEvent
from guildkeeper.exceptions import AttributeValueError
from guildkeeper.plugins.base import Plugin
from guildkeeper.reconcile import ManagedMessage, ReconcileResult

logger = logging.getLogger(__name__)

DEFAULT_COLOR = 0x2ECC71

STR = AttributeKind.STRING
INT = AttributeKind.INT64
LIST = AttributeKind.STRING_LIST


@dataclass(frozen=True)
class ReactionRole:
    emote: str
    role_id: str
    keep: bool = False

    @property
    def api_emoji(self) -> str:
        """The emote in the form the reaction endpoints expect."""
        return self.emote[1:] if self.emote.startswith(":") else self.emote


def parse_reaction_roles(entries: list[str]) -> dict[str, ReactionRole]:
    """Parse ``emote=role-id[:set]`` entries into a mapping keyed by emote.

    Raises:
        AttributeValueError: If an entry has no ``=`` or no role id.
    """
    roles: dict[str, ReactionRole] = {}
    for entry in entries:
        emote, sep, role = entry.partition("=")
        role_id, _, flag = role.partition(":")
        if not sep or not emote or not role_id:
            raise AttributeValueError(f"attribute 'reaction_roles': invalid entry {entry!r}")
        roles[emote] = ReactionRole(emote=emote, role_id=role_id, keep=flag == "set")
    return roles


class ReactionRolePlugin(Plugin):
    """Hand out roles for reactions on a managed message."""

    KIND = "reactionrole"
    DESCRIPTION = "Creates a post with pre-set reactions and assigns roles on reaction"
    ATTRIBUTES = (
        AttributeSpec("discord_channel_id", STR, required=True,
                      description="ID of the Discord channel to post the message to"),
        AttributeSpec("reaction_roles", LIST, required=True,
                      description="Entries in format emote=role-id[:set]; :set roles are never removed"),
        AttributeSpec("content", STR, default="", description="Message content to post above the embed"),
        AttributeSpec("embed_title", STR, default="",
                      description="Title of the embed (embed will not be added when title is missing)"),
        AttributeSpec("embed_description", STR, default="", description="Description for the embed block"),
        AttributeSpec("embed_color", INT, default=DEFAULT_COLOR,
                      description="Integer / HEX representation of the color for the embed"),
        AttributeSpec("embed_thumbnail_url", STR, default="",
                      description="Publicly hosted image URL to use as thumbnail"),
        AttributeSpec("embed_thumbnail_width", INT, default=0, description="Width of the thumbnail"),
        AttributeSpec("embed_thumbnail_height", INT, default=0, description="Height of the thumbnail"),
    )

    def __init__(self) -> None:
        super().__init__()
        self._message: Optional[ManagedMessage] = None

    @property
    def message(self) -> ManagedMessage:
        """The managed message; available after :meth:`initialize`."""
        if self._message is None:
            raise RuntimeError(f"{type(self).__name__} used before initialize()")
        return self._message

    def on_init(self) -> None:
        args = self.args
        self._message = ManagedMessage(args.chat, args.store, args.id, self.attr("discord_channel_id"))
        args.chat.add_handler(EVENT_REACTION_ADD, self.handle_reaction)
        args.chat.add_handler(EVENT_REACTION_REMOVE, self.handle_reaction)

    def roles(self) -> dict[str, ReactionRole]:
        return parse_reaction_roles(self.attrs.must_string_list("reaction_roles"))

    # ------------------------------------------------------------------ #
    # Setup
    # ------------------------------------------------------------------ #

    def build_embed(self) -> Optional[Embed]:
        title = self.attr("embed_title")
        if not title:
            return None

        embed = Embed(
            title=title,
            description=self.attr("embed_description").strip(),
            color=self.attr("embed_color"),
            type="rich",
        )
        thumbnail_url = self.attr("embed_thumbnail_url")
        if thumbnail_url:
            embed.thumbnail = EmbedThumbnail(
                url=thumbnail_url,
                width=self.attr("embed_thumbnail_width"),
                height=self.attr("embed_thumbnail_height"),
            )
        return embed

    def setup(self) -> None:
        roles = self.roles()
        result, message = self.message.sync(self.attr("content"), self.build_embed())
        if result is not ReconcileResult.UNCHANGED:
            logger.info("plugin=%s reaction-role message %s", self.id, result.value)
        self.sync_reactions(message, roles)

    def sync_reactions(self, message: Message, roles: dict[str, ReactionRole]) -> None:
        """Remove foreign reactions from *message* and add the missing configured ones."""
        chat = self.args.chat
        channel_id = self.message.channel_id
        present: set[str] = set()
        for reaction in message.reactions:
            emoji = reaction.emoji
            if emoji.name not in roles and emoji.code not in roles:
                logger.debug("plugin=%s removing foreign reaction %s", self.id, emoji.api_name)
                chat.remove_reaction_emoji(channel_id, message.id, emoji.api_name)
                continue
            present.update((emoji.name, emoji.code))

        for emote, role in roles.items():
            if emote not in present:
                logger.debug("plugin=%s adding reaction %s", self.id, emote)
                chat.add_reaction(channel_id, message.id, role.api_emoji)

    # ------------------------------------------------------------------ #
    # Events
    # ------------------------------------------------------------------ #

    def handle_reaction(self, event: ReactionEvent) -> None:
        chat = self.args.chat
        if event.user_id == chat.bot_user_id:
            return

        message_id = self.message.remembered_id()
        if not message_id or event.message_id != message_id:
            return

        roles = self.roles()
        guild_id = self.args.config.guild_id
        for check in (event.emoji.name, event.emoji.code):
            role = roles.get(check)
            if role is None:
                continue

            if event.added:
                chat.add_role(guild_id, event.user_id, role.role_id)
                logger.debug("plugin=%s user=%s added role %s", self.id, event.user_id, role.role_id)
            elif not role.keep:
                chat.remove_role(guild_id, event.user_id, role.role_id)
                logger.debug("plugin=%s user=%s removed role %s", self.id, event.user_id, role.role_id)
            return
