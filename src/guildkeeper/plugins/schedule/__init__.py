"""Stream schedule plugin (``schedule``).

Keeps one message in a Discord channel in sync with a broadcaster's
Twitch stream schedule.

See Also:
    :class:`~guildkeeper.plugins.schedule.plugin.SchedulePlugin`
"""

from guildkeeper.plugins.schedule.plugin import SchedulePlugin

__all__ = ["SchedulePlugin"]
