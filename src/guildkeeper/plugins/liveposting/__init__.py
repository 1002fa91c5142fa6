"""Live announcement plugin (``liveposting``).

See Also:
    :class:`~guildkeeper.plugins.liveposting.plugin.LivePostingPlugin`
"""

from guildkeeper.plugins.liveposting.plugin import LivePostingPlugin

__all__ = ["LivePostingPlugin"]
