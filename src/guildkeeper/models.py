"""Pydantic models for the bot configuration file.

The configuration is a YAML document::

    bot_token: "..."
    guild_id: "1234"
    store_location: /var/lib/guildkeeper/store.json
    module_configs:
      - id: schedule
        type: schedule
        attributes:
          discord_channel_id: "5678"
          twitch_channel_id: "91011"

Unknown keys are rejected at both levels so a typo fails at startup rather
than silently disabling a setting. ``attributes`` is left untyped: each
plugin interprets its own attributes through
:class:`~guildkeeper.attributes.AttributeStore`.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ModuleConfig(BaseModel):
    """One configured plugin instance.

    Example::

        ModuleConfig(id="sched", type="schedule", attributes={"cron": "*/5 * * * *"})
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default="", description="Unique instance id, also the metastore key")
    type: str = Field(description="Plugin kind, e.g. schedule or liveposting")
    attributes: dict[str, Any] = Field(
        default_factory=dict, description="Plugin-specific attribute bag"
    )

    @field_validator("attributes", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class BotConfig(BaseModel):
    """Top-level configuration file."""

    model_config = ConfigDict(extra="forbid")

    bot_token: str = Field(default="", description="Discord bot token")
    guild_id: str = Field(default="", description="Guild (server) the bot operates in")
    store_location: str = Field(default="", description="Path of the metastore JSON file")
    module_configs: list[ModuleConfig] = Field(
        default_factory=list, description="Plugin instances to enable, in order"
    )

    @field_validator("module_configs", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value
