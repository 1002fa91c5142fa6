"""Configuration loading.

The config file is first rendered as a Jinja2 template so secrets can be
pulled from the environment instead of being written to disk::

    bot_token: "{{ env('DISCORD_BOT_TOKEN') }}"

The rendered text is parsed with :func:`yaml.safe_load` and validated into a
:class:`~guildkeeper.models.BotConfig`. Every failure along the way is
reported as :class:`~guildkeeper.exceptions.ConfigError`.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import jinja2
import yaml
from pydantic import ValidationError

from guildkeeper.exceptions import ConfigError
from guildkeeper.models import BotConfig

CONFIG_ENV_VAR = "GUILDKEEPER_CONFIG"
DEFAULT_CONFIG_PATH = "config.yaml"


def _env(name: str, default: Optional[str] = None) -> str:
    value = os.environ.get(name, default)
    if value is None:
        raise ConfigError(f"environment variable {name} is not set")
    return value


def render_config(text: str) -> str:
    """Render the config template, exposing ``env(name, default=None)``."""
    environment = jinja2.Environment(undefined=jinja2.StrictUndefined, keep_trailing_newline=True)
    environment.globals["env"] = _env
    try:
        return environment.from_string(text).render()
    except jinja2.TemplateError as exc:
        raise ConfigError(f"rendering config template: {exc}") from exc


def parse_config(text: str, source: str = "<string>") -> BotConfig:
    """Render, parse and validate configuration *text*.

    Raises:
        ConfigError: If the template, the YAML or the schema is invalid, or
            ``store_location`` is empty.
    """
    rendered = render_config(text)
    try:
        data = yaml.safe_load(rendered)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in config {source}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config {source}: top level must be a mapping")

    try:
        config = BotConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config {source}: {exc}") from exc

    if not config.store_location:
        raise ConfigError(f"Invalid config {source}: config contains no store location")
    return config


def load_config(path: str | Path) -> BotConfig:
    """Load the bot configuration from *path*.

    Raises:
        ConfigError: If the file cannot be read or is invalid.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Unable to read config {path}: {exc}") from exc
    return parse_config(text, source=str(path))
