"""Reaction role plugin (``reactionrole``).

See Also:
    :class:`~guildkeeper.plugins.reactionrole.plugin.ReactionRolePlugin`
"""

from guildkeeper.plugins.reactionrole.plugin import ReactionRolePlugin

__all__ = ["ReactionRolePlugin"]
