"""Live role plugin (``liverole``).

See Also:
    :class:`~guildkeeper.plugins.liverole.plugin.LiveRolePlugin`
"""

from guildkeeper.plugins.liverole.plugin import LiveRolePlugin

__all__ = ["LiveRolePlugin"]
