"""guildkeeper -- Twitch-aware community automations for a Discord guild.

The bot runs a configurable set of plugins against one guild: it keeps a
stream-schedule post in sync, announces streams going live, hands out a
live role, assigns roles by reaction and purges old channel messages.

The reusable core shared by all plugins:

Modules:
    attributes: Typed, defaulting accessors over a plugin's attribute bag.
    metastore: Durable per-plugin key/value store persisted as JSON.
    twitch: Retrying Helix API client with app-token acquisition.
    plugins: Plugin base class, registry and lifecycle manager.
    reconcile: Keeps one managed channel message in sync with desired state.
    chat: Chat-platform interface, data models and the Discord adapter.
    scheduler: Cron scheduler driving the plugins' periodic jobs.
    config: YAML configuration file loading.
    app: Typer application and console-script entry point.
"""

__version__ = "0.4.0"
