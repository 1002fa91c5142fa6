"""Channel cleanup plugin.

This module provides :class:`ClearChannelPlugin`, which implements the
``clearchannel`` kind: a cron job deletes every message in a channel that
is older than ``retention``, optionally restricted by author.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from guildkeeper.attributes import AttributeKind, AttributeSpec
from guildkeeper.chat.models import Message
from guildkeeper.exceptions import AttributeNotSetError
from guildkeeper.plugins.base import Plugin

logger = logging.getLogger(__name__)

MESSAGES_TO_LOAD = 100

STR = AttributeKind.STRING
DUR = AttributeKind.DURATION
LIST = AttributeKind.STRING_LIST


def _message_sort_key(message: Message) -> int:
    try:
        return int(message.id)
    except ValueError:
        return 0


class ClearChannelPlugin(Plugin):
    """Delete messages older than the retention period."""

    KIND = "clearchannel"
    DESCRIPTION = "Cleans up old messages from a channel (for example announcement channel)"
    ATTRIBUTES = (
        AttributeSpec("discord_channel_id", STR, required=True,
                      description="ID of the Discord channel to clean up"),
        AttributeSpec("retention", DUR, required=True,
                      description="How long to keep messages in this channel"),
        AttributeSpec("cron", STR, default="0 * * * *", description="When to execute the cleaner"),
        AttributeSpec("only_users", LIST,
                      description="When set, only posts authored by these user IDs are deleted"),
        AttributeSpec("protect_users", LIST,
                      description="Posts authored by these user IDs are never deleted"),
    )

    def on_init(self) -> None:
        self.args.scheduler.add_cron_job(self.attr("cron"), self.clear, name=f"{self.KIND}:{self.id}")

    def _user_list(self, name: str) -> list[str]:
        try:
            return self.attrs.get_string_list(name)
        except AttributeNotSetError:
            return []

    def may_delete(self, message: Message, only_users: list[str], protect_users: list[str]) -> bool:
        author_id = message.author.id if message.author else ""
        if only_users and author_id not in only_users:
            return False
        if protect_users and author_id in protect_users:
            return False
        return True

    def clear(self) -> int:
        """Delete expired messages, oldest first. Returns the number deleted."""
        chat = self.args.chat
        channel_id = self.attr("discord_channel_id")
        retention: timedelta = self.attr("retention")
        only_users = self._user_list("only_users")
        protect_users = self._user_list("protect_users")

        deleted = 0
        after = "0"
        while True:
            page = sorted(
                chat.list_recent_messages(channel_id, MESSAGES_TO_LOAD, after=after),
                key=_message_sort_key,
            )
            if not page:
                break

            now = datetime.now(timezone.utc)
            for message in page:
                if message.timestamp is None:
                    logger.error("plugin=%s message %s has no timestamp", self.id, message.id)
                    return deleted
                if now - message.timestamp < retention:
                    # Everything from here on is younger.
                    logger.debug("plugin=%s deleted %d message(s)", self.id, deleted)
                    return deleted

                if self.may_delete(message, only_users, protect_users):
                    chat.delete_message(channel_id, message.id)
                    deleted += 1
                after = message.id

        logger.debug("plugin=%s deleted %d message(s)", self.id, deleted)
        return deleted
