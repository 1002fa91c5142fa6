"""Stream schedule plugin.

This module provides :class:`SchedulePlugin`, which implements the
``schedule`` kind. On every cron tick it fetches the broadcaster's Twitch
schedule, renders it into an embed (one field per upcoming segment) and an
optional templated message body, and keeps a single message in the
configured channel in sync with it through
:class:`~guildkeeper.reconcile.ManagedMessage`.

The ``content`` attribute is a Jinja2 template. It is rendered with the
schedule's fields (``segments``, ``broadcaster_name``, ``broadcaster_login``,
``vacation`` ...) as top-level variables, plus ``format_time(dt)`` (also
available as a filter) which formats a datetime with ``time_format`` in
``timezone``::

    content: |
      Next stream: {{ segments[0].start_time | format_time }}
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jinja2

from guildkeeper.attributes import AttributeKind, AttributeSpec
from guildkeeper.chat.models import Embed, EmbedField, EmbedThumbnail
from guildkeeper.exceptions import AttributeValueError
from guildkeeper.plugins.base import TWITCH_RETRY_CLIENT_ERRORS, Plugin
from guildkeeper.reconcile import ManagedMessage, ReconcileResult
from guildkeeper.timefmt import DEFAULT_TIME_FORMAT, format_time, load_timezone
from guildkeeper.twitch.models import ScheduleData, ScheduleSegment

logger = logging.getLogger(__name__)

DEFAULT_COLOR = 0x2ECC71

STR = AttributeKind.STRING
INT = AttributeKind.INT64
DUR = AttributeKind.DURATION


def segment_title(segment: ScheduleSegment) -> Optional[str]:
    """Return the field text for *segment*, or ``None`` if it is not listed.

    Segments without a start time and cancelled segments are not listed.
    The category name stands in for a missing title and is appended in
    parentheses when the title does not already mention it. Segments with
    neither title nor category are not listed.
    """
    if segment.start_time is None or segment.canceled_until is not None:
        return None

    title = segment.title
    category = segment.category
    if category is not None and not title:
        title = category.name
    elif category is not None and category.name not in title:
        title = f"{title} ({category.name})"
    elif category is None and not title:
        return None
    return title.strip()


class SchedulePlugin(Plugin):
    """Post the Twitch stream schedule as a managed Discord message."""

    KIND = "schedule"
    DESCRIPTION = "Posts stream schedule derived from Twitch schedule as embed in Discord channel"
    ATTRIBUTES = (
        AttributeSpec("discord_channel_id", STR, required=True,
                      description="ID of the Discord channel to post the message to"),
        AttributeSpec("twitch_channel_id", STR, required=True,
                      description="ID (not name) of the channel to fetch the schedule from"),
        AttributeSpec("twitch_client_id", STR, required=True,
                      description="Twitch client ID the token was issued for"),
        AttributeSpec("twitch_client_secret", STR, required=True,
                      description="Secret for the Twitch app identified with twitch_client_id"),
        TWITCH_RETRY_CLIENT_ERRORS,
        AttributeSpec("cron", STR, default="*/10 * * * *",
                      description="When to execute the schedule transfer"),
        AttributeSpec("schedule_past_time", DUR, default=timedelta(minutes=15),
                      description="How long in the past should the schedule contain an entry"),
        AttributeSpec("schedule_entries", INT, default=5,
                      description="How many schedule entries to add to the embed as fields"),
        AttributeSpec("embed_title", STR, default="",
                      description="Title of the embed (embed will not be added when title is missing)"),
        AttributeSpec("embed_description", STR, default="", description="Description for the embed block"),
        AttributeSpec("embed_color", INT, default=DEFAULT_COLOR,
                      description="Integer / HEX representation of the color for the embed"),
        AttributeSpec("embed_thumbnail_url", STR, default="",
                      description="Publicly hosted image URL to use as thumbnail"),
        AttributeSpec("embed_thumbnail_width", INT, default=0, description="Width of the thumbnail"),
        AttributeSpec("embed_thumbnail_height", INT, default=0, description="Height of the thumbnail"),
        AttributeSpec("content", STR, default="",
                      description="Message content posted above the embed (Jinja2 template)"),
        AttributeSpec("timezone", STR, default="UTC",
                      description="Timezone to display the times in (e.g. Europe/Berlin)"),
        AttributeSpec("time_format", STR, default=DEFAULT_TIME_FORMAT,
                      description="strftime format used for the times"),
    )

    def __init__(self) -> None:
        super().__init__()
        self._message: Optional[ManagedMessage] = None

    @property
    def message(self) -> ManagedMessage:
        """The managed schedule post; available after :meth:`initialize`."""
        if self._message is None:
            raise RuntimeError(f"{type(self).__name__} used before initialize()")
        return self._message

    def on_init(self) -> None:
        args = self.args
        self._message = ManagedMessage(args.chat, args.store, args.id, self.attr("discord_channel_id"))
        args.scheduler.add_cron_job(self.attr("cron"), self.refresh, name=f"{self.KIND}:{args.id}")

    # ------------------------------------------------------------------ #
    # Job
    # ------------------------------------------------------------------ #

    def refresh(self) -> ReconcileResult:
        """Fetch the schedule and bring the managed message up to date."""
        now = datetime.now(timezone.utc)
        schedule = self.twitch().get_channel_stream_schedule(
            self.attr("twitch_channel_id"),
            start_time=now - self.attr("schedule_past_time"),
        )

        embed = self.build_embed(schedule.data, now) if self.attr("embed_title") else None
        content = self.render_content(schedule.data) if self.attr("content") else ""

        result = self.message.reconcile(content, embed)
        if result is not ReconcileResult.UNCHANGED:
            logger.info("plugin=%s stream schedule %s", self.id, result.value)
        return result

    # ------------------------------------------------------------------ #
    # Rendering
    # ------------------------------------------------------------------ #

    def format_time(self, moment: datetime) -> str:
        try:
            tz = load_timezone(self.attr("timezone"))
        except ValueError as exc:
            raise AttributeValueError(f"attribute 'timezone': {exc}") from exc
        return format_time(moment, self.attr("time_format"), tz)

    def build_embed(self, data: ScheduleData, now: datetime) -> Embed:
        embed = Embed(
            title=self.attr("embed_title"),
            description=self.attr("embed_description").strip(),
            color=self.attr("embed_color"),
            timestamp=now.isoformat(),
            type="rich",
        )

        thumbnail_url = self.attr("embed_thumbnail_url")
        if thumbnail_url:
            embed.thumbnail = EmbedThumbnail(
                url=thumbnail_url,
                width=self.attr("embed_thumbnail_width"),
                height=self.attr("embed_thumbnail_height"),
            )

        limit = self.attr("schedule_entries")
        for segment in data.segments:
            if len(embed.fields) >= limit:
                break
            title = segment_title(segment)
            if title is None or segment.start_time is None:
                continue
            embed.fields.append(
                EmbedField(name=self.format_time(segment.start_time), value=title, inline=False)
            )
        return embed

    def render_content(self, data: ScheduleData) -> str:
        environment = jinja2.Environment(autoescape=False)
        environment.filters["format_time"] = self.format_time
        try:
            template = environment.from_string(self.attr("content"))
            return template.render(
                **{name: getattr(data, name) for name in type(data).model_fields},
                format_time=self.format_time,
            )
        except jinja2.TemplateError as exc:
            raise AttributeValueError(f"attribute 'content': rendering template: {exc}") from exc
