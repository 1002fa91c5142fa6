"""Twitch Helix API access for guildkeeper plugins.

Classes:
    :class:`TwitchClient` -- retrying client backed by :mod:`httpx`.

Plugins never construct the client directly; they call the
``twitch_factory`` passed in :class:`~guildkeeper.plugins.base.InitArgs`
so tests can substitute a fake.

Example::

    from guildkeeper.twitch import TwitchClient

    client = TwitchClient(client_id, client_secret)
    streams = client.get_streams_for_users("luziferus")
"""

from guildkeeper.twitch.client import TwitchClient
from guildkeeper.twitch.models import (
    ScheduleSegment,
    Stream,
    StreamListing,
    StreamSchedule,
    User,
    UserListing,
)

__all__ = [
    "TwitchClient",
    "ScheduleSegment",
    "Stream",
    "StreamListing",
    "StreamSchedule",
    "User",
    "UserListing",
]
