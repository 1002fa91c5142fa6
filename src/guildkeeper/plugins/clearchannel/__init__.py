"""Channel cleanup plugin (``clearchannel``).

See Also:
    :class:`~guildkeeper.plugins.clearchannel.plugin.ClearChannelPlugin`
"""

from guildkeeper.plugins.clearchannel.plugin import ClearChannelPlugin

__all__ = ["ClearChannelPlugin"]
