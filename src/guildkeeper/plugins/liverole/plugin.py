"""Live role plugin.

This module provides :class:`LiveRolePlugin`, which implements the
``liverole`` kind: members streaming on Twitch get the
``role_streamers_live`` role, and lose it once their presence no longer
shows a Twitch stream.
"""

from __future__ import annotations

import enum
import logging
from typing import Optional
from urllib.parse import urlsplit

from guildkeeper.attributes import AttributeKind, AttributeSpec
from guildkeeper.chat.base import EVENT_PRESENCE_UPDATE
from guildkeeper.chat.models import PresenceUpdate
from guildkeeper.exceptions import AttributeValueError, GuildkeeperError
from guildkeeper.plugins.base import TWITCH_RETRY_CLIENT_ERRORS, Plugin

logger = logging.getLogger(__name__)

TWITCH_HOST = "www.twitch.tv"

STR = AttributeKind.STRING


class RoleAction(str, enum.Enum):
    ADD = "add"
    REMOVE = "remove"


class LiveRolePlugin(Plugin):
    """Assign a role to members while they stream on Twitch."""

    KIND = "liverole"
    DESCRIPTION = "Adds live-role to certain group of users if they are streaming on Twitch"
    ATTRIBUTES = (
        AttributeSpec("role_streamers_live", STR, required=True,
                      description="Role ID to assign to live streamers (the bot must be able to assign it)"),
        AttributeSpec("role_streamers", STR, default="",
                      description="Only take members with this role ID into account"),
        AttributeSpec("twitch_client_id", STR, required=True,
                      description="Twitch client ID the token was issued for"),
        AttributeSpec("twitch_client_secret", STR, required=True,
                      description="Secret for the Twitch app identified with twitch_client_id"),
        TWITCH_RETRY_CLIENT_ERRORS,
    )

    def on_init(self) -> None:
        self.args.chat.add_handler(EVENT_PRESENCE_UPDATE, self.handle_presence_update)

    def decide(self, event: PresenceUpdate) -> tuple[Optional[RoleAction], str]:
        """Work out what to do with the live role for *event*.

        Returns:
            The action (``None`` to leave the role alone) and the reason.
        """
        activity = event.streaming_activity()
        if activity is None:
            return RoleAction.REMOVE, "no activity"

        try:
            url = urlsplit(activity.url or "")
        except ValueError:
            logger.warning("plugin=%s unable to parse activity URL %r", self.id, activity.url)
            return RoleAction.REMOVE, "broken activity URL"

        if url.hostname != TWITCH_HOST:
            return RoleAction.REMOVE, "activity not on twitch"

        username = url.path.lstrip("/")
        try:
            streams = self.twitch().get_streams_for_users(username)
        except GuildkeeperError as exc:
            logger.warning("plugin=%s unable to fetch streams for %s: %s", self.id, username, exc)
            return RoleAction.REMOVE, "error in getting streams"

        if streams.data:
            return RoleAction.ADD, "stream found"
        return None, "no stream found"

    def handle_presence_update(self, event: PresenceUpdate) -> None:
        if event.user is None or event.guild_id != self.args.config.guild_id:
            return

        chat = self.args.chat
        member = chat.get_member(event.guild_id, event.user_id)
        role_streamers = self.attr("role_streamers")
        if role_streamers and role_streamers not in member.roles:
            return

        action, reason = self.decide(event)
        if action is None:
            return

        role_id = self.attr("role_streamers_live")
        if not role_id:
            raise AttributeValueError("attribute 'role_streamers_live': empty live-role-id")

        if action is RoleAction.ADD and role_id not in member.roles:
            chat.add_role(event.guild_id, event.user_id, role_id)
        elif action is RoleAction.REMOVE and role_id in member.roles:
            chat.remove_role(event.guild_id, event.user_id, role_id)
        else:
            return
        logger.debug("plugin=%s user=%s live-role %s (%s)", self.id, event.user_id, action.value, reason)
