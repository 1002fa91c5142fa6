"""Live announcement plugin.

This module provides :class:`LivePostingPlugin`, which implements the
``liveposting`` kind: when a streamer goes live on Twitch, a "now live"
post with a preview embed is sent to a Discord channel.

Two triggers feed it:

- **Presence updates** -- a guild member starts a streaming activity that
  points at ``www.twitch.tv`` (disable with ``disable_presence``).
- **Polling** -- a cron job checks ``poll_usernames`` (disable by setting
  ``cron`` to an empty string).

Only streams that started within ``stream_freshness`` are announced, and an
identical post younger than that window suppresses a new one, so both
triggers firing for the same stream produce one post.
"""

from __future__ import annotations

import base64
import logging
import threading
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from guildkeeper.attributes import AttributeKind, AttributeSpec
from guildkeeper.chat.base import EVENT_PRESENCE_UPDATE
from guildkeeper.chat.models import (
    Embed,
    EmbedAuthor,
    EmbedField,
    EmbedImage,
    EmbedThumbnail,
    PresenceUpdate,
)
from guildkeeper.exceptions import AttributeNotSetError
from guildkeeper.plugins.base import TWITCH_RETRY_CLIENT_ERRORS, Plugin

logger = logging.getLogger(__name__)

PREVIEW_WIDTH = 1280
PREVIEW_HEIGHT = 720
PROFILE_WIDTH = 300
PROFILE_HEIGHT = 300
MESSAGES_TO_LOAD = 100
TWITCH_COLOR = 0x6441A5
TWITCH_HOST = "www.twitch.tv"

STR = AttributeKind.STRING
BOOL = AttributeKind.BOOL
DUR = AttributeKind.DURATION
LIST = AttributeKind.STRING_LIST


def render_post_text(template: str, display_name: str, username: str) -> str:
    return template.replace("${displayname}", display_name).replace("${username}", username)


def preview_image_url(template: str, now: datetime, preserve_proxy: str = "") -> str:
    """Build the stream preview URL for an embed.

    Fills the ``{width}``/``{height}`` placeholders of Twitch's thumbnail
    template and adds a ``_discordNoCache`` query parameter so Discord
    fetches a fresh image. With *preserve_proxy* set the result is wrapped
    as ``<proxy>/b64:<urlsafe base64 of the URL>``.
    """
    url = template.replace("{width}", str(PREVIEW_WIDTH)).replace("{height}", str(PREVIEW_HEIGHT))
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.append(("_discordNoCache", now.isoformat(timespec="seconds")))
    url = urlunsplit(parts._replace(query=urlencode(sorted(query))))

    if preserve_proxy:
        proxy = urlsplit(preserve_proxy)
        encoded = base64.urlsafe_b64encode(url.encode("utf-8")).decode("ascii")
        url = urlunsplit(proxy._replace(path="/b64:" + encoded))
    return url


class LivePostingPlugin(Plugin):
    """Announce streams going live on Twitch in a Discord channel."""

    KIND = "liveposting"
    DESCRIPTION = "Announces stream live status based on Discord streaming status"
    ATTRIBUTES = (
        AttributeSpec("discord_channel_id", STR, required=True,
                      description="ID of the Discord channel to post the message to"),
        AttributeSpec("post_text", STR, required=True,
                      description="Message to post, ${displayname} and ${username} are replaced"),
        AttributeSpec("post_text_{username}", STR,
                      description="Override post_text for one (lower-cased) Twitch login"),
        AttributeSpec("twitch_client_id", STR, required=True,
                      description="Twitch client ID the token was issued for"),
        AttributeSpec("twitch_client_secret", STR, required=True,
                      description="Secret for the Twitch app identified with twitch_client_id"),
        TWITCH_RETRY_CLIENT_ERRORS,
        AttributeSpec("disable_presence", BOOL, default=False,
                      description="Disable posting live-postings for Discord presence changes"),
        AttributeSpec("cron", STR, default="*/5 * * * *",
                      description="When to poll poll_usernames (empty disables); keep below stream_freshness"),
        AttributeSpec("poll_usernames", LIST,
                      description="Twitch logins checked on every cron run (at most 100)"),
        AttributeSpec("stream_freshness", DUR, default=timedelta(minutes=5),
                      description="How long after stream start to post the announcement"),
        AttributeSpec("whitelisted_role", STR, default="",
                      description="Only post for members of this role ID"),
        AttributeSpec("remove_old", BOOL, default=False,
                      description="Delete older messages with the same content"),
        AttributeSpec("preserve_proxy", STR, default="",
                      description="URL prefix of a preserve proxy caching the stream preview"),
        AttributeSpec("auto_publish", BOOL, default=False,
                      description="Publish (crosspost) the message to followers of the channel"),
    )

    def __init__(self) -> None:
        super().__init__()
        self._lock = threading.Lock()

    def on_init(self) -> None:
        args = self.args
        if not self.attr("disable_presence"):
            args.chat.add_handler(EVENT_PRESENCE_UPDATE, self.handle_presence_update)

        cron = self.attr("cron")
        if cron:
            args.scheduler.add_cron_job(cron, self.poll, name=f"{self.KIND}:{args.id}")

    # ------------------------------------------------------------------ #
    # Triggers
    # ------------------------------------------------------------------ #

    def poll(self) -> None:
        """Check ``poll_usernames`` for fresh streams."""
        try:
            usernames = self.attrs.get_string_list("poll_usernames")
        except AttributeNotSetError:
            return

        logger.debug("plugin=%s polling %d user(s)", self.id, len(usernames))
        self.fetch_and_post(*usernames)

    def handle_presence_update(self, event: PresenceUpdate) -> None:
        if event.user is None or event.guild_id != self.args.config.guild_id:
            return

        member = self.args.chat.get_member(event.guild_id, event.user_id)
        whitelisted_role = self.attr("whitelisted_role")
        if whitelisted_role and whitelisted_role not in member.roles:
            return

        activity = event.streaming_activity()
        if activity is None:
            return

        url = urlsplit(activity.url or "")
        if url.hostname != TWITCH_HOST:
            logger.debug("plugin=%s user=%s activity %r is not on Twitch", self.id, event.user_id, activity.url)
            return

        self.fetch_and_post(url.path.lstrip("/"))

    # ------------------------------------------------------------------ #
    # Posting
    # ------------------------------------------------------------------ #

    def fetch_and_post(self, *usernames: str) -> int:
        """Announce every fresh stream of *usernames*. Returns the number of posts sent."""
        client = self.twitch()
        users = client.get_users_by_login(*usernames)
        streams = client.get_streams_for_users(*usernames)

        freshness = self.attr("stream_freshness")
        now = datetime.now(timezone.utc)
        posted = 0
        for stream in streams.data:
            for user in users.data:
                if user.id != stream.user_id:
                    continue
                if now - stream.started_at > freshness:
                    logger.debug("plugin=%s stream of %s is not fresh", self.id, user.login)
                    continue
                if self.send_live_post(
                    user.login,
                    user.display_name,
                    stream.title,
                    stream.game_name,
                    stream.thumbnail_url,
                    user.profile_image_url,
                ):
                    posted += 1
        return posted

    def send_live_post(
        self,
        username: str,
        display_name: str,
        title: str,
        game: str,
        preview_image: str,
        profile_image: str,
    ) -> bool:
        """Post the announcement unless an identical one is still fresh.

        Returns:
            ``True`` if a message was sent.
        """
        with self._lock:
            chat = self.args.chat
            channel_id = self.attr("discord_channel_id")
            template = self.attrs.must_string(
                f"post_text_{username.lower()}", default=self.attr("post_text")
            )
            post_text = render_post_text(template, display_name, username)

            freshness = self.attr("stream_freshness")
            now = datetime.now(timezone.utc)
            for message in chat.list_recent_messages(channel_id, MESSAGES_TO_LOAD):
                if message.content != post_text:
                    continue
                if message.timestamp is not None and now - message.timestamp < freshness:
                    logger.debug("plugin=%s live-post for %s already present", self.id, username)
                    return False
                if not self.attr("remove_old"):
                    continue
                chat.delete_message(channel_id, message.id)

            embed = Embed(
                author=EmbedAuthor(name=display_name, icon_url=profile_image),
                color=TWITCH_COLOR,
                fields=[EmbedField(name="Game", value=game)],
                image=EmbedImage(
                    url=preview_image_url(preview_image, now, self.attr("preserve_proxy")),
                    width=PREVIEW_WIDTH,
                    height=PREVIEW_HEIGHT,
                ),
                thumbnail=EmbedThumbnail(url=profile_image, width=PROFILE_WIDTH, height=PROFILE_HEIGHT),
                title=title,
                type="rich",
                url=f"https://{TWITCH_HOST}/{username}",
            )

            message = chat.send_message(channel_id, post_text, embed)
            logger.info("plugin=%s posted live-post for %s", self.id, username)

            if self.attr("auto_publish"):
                chat.crosspost_message(channel_id, message.id)
                logger.debug("plugin=%s published message %s", self.id, message.id)
            return True
