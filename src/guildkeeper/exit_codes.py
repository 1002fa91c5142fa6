"""Numeric process exit codes used when the bot terminates on a startup error.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~guildkeeper.exceptions.GuildkeeperError` subclass.
Process supervisors (systemd, container runtimes) can inspect the exit code
to tell a configuration mistake from a platform outage without parsing logs.

Example::

    $ guildkeeper run -c config.yaml
    $ echo $?
    10   # EXIT_PLUGIN_ERROR -- a configured plugin failed to initialize
"""

EXIT_SUCCESS = 0
"""The bot shut down cleanly."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred (includes config file problems)."""

EXIT_INVALID_ATTRIBUTES = 2
"""A plugin attribute was missing or had an unusable value."""

EXIT_NOT_FOUND = 4
"""A chat-platform resource (guild, channel, message) was not found."""

EXIT_API_ERROR = 5
"""A remote API answered with an error status or an undecodable body."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_STORE_ERROR = 8
"""The metastore could not be loaded or written."""

EXIT_PLUGIN_ERROR = 10
"""A plugin could not be registered, created, initialized or set up."""
