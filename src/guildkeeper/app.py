"""Typer application and CLI entry point for guildkeeper.

Commands:

* ``run`` -- load the config, start every configured plugin and block
  until SIGINT/SIGTERM.
* ``plugins`` -- list the built-in plugin kinds and their attributes.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``.

See Also:
    :mod:`guildkeeper.bot`: The startup sequence behind ``run``.
    :mod:`guildkeeper.output`: Output formatting set up in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import threading
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

import typer

from guildkeeper import __version__
from guildkeeper.attributes import AttributeSpec
from guildkeeper.bot import Bot
from guildkeeper.chat.discord import DiscordPlatform
from guildkeeper.config import CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH, load_config
from guildkeeper.exceptions import GuildkeeperError
from guildkeeper.exit_codes import EXIT_GENERIC_FAILURE
from guildkeeper.logging_setup import LOG_LEVELS, configure
from guildkeeper.output import OutputFormat, OutputManager, error, get_output, print_table, set_output
from guildkeeper.plugins.registry import BUILTIN_PLUGINS

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="guildkeeper",
    help="Community automation bot for Discord and Twitch.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"guildkeeper {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    log_level: str = typer.Option(
        "info", "--log-level", "-l", help=f"Log level ({', '.join(LOG_LEVELS)})."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
) -> None:
    """Set up output and logging before every sub-command."""
    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(format=fmt, no_color=no_color)
    set_output(output)

    try:
        configure(log_level, console=output.stderr)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--log-level") from exc

    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level


# ------------------------------------------------------------------ #
# run
# ------------------------------------------------------------------ #


def _install_stop_handlers(stop: threading.Event) -> None:
    """Make SIGINT and SIGTERM set *stop* instead of raising."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        logger.info("Received signal %d, shutting down", signum)
        stop.set()

    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)


@app.command("run")
def run_command(
    config_path: Path = typer.Option(
        DEFAULT_CONFIG_PATH,
        "--config",
        "-c",
        envvar=CONFIG_ENV_VAR,
        help="Path to the YAML config file.",
    ),
) -> None:
    """Start the bot with the plugins configured in CONFIG."""
    stop = threading.Event()
    bot: Optional[Bot] = None
    try:
        config = load_config(config_path)
        bot = Bot(config, DiscordPlatform)
        if not bot.start():
            get_output().warning("no modules were enabled, quitting now")
            return

        _install_stop_handlers(stop)
        while not stop.wait(1.0):
            pass
    except GuildkeeperError as exc:
        error(str(exc))
        raise typer.Exit(exc.exit_code) from exc
    finally:
        if bot is not None:
            bot.stop()


# ------------------------------------------------------------------ #
# plugins
# ------------------------------------------------------------------ #


def _format_default(spec: AttributeSpec) -> str:
    value = spec.default
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, timedelta):
        return _format_timedelta(value)
    if isinstance(value, int) and spec.name.endswith("_color"):
        return f"0x{value:06X}"
    if value == "":
        return '""'
    return str(value)


def _format_timedelta(value: timedelta) -> str:
    seconds = int(value.total_seconds())
    hours, rest = divmod(seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    out = ""
    if hours:
        out += f"{hours}h"
    if minutes:
        out += f"{minutes}m"
    if seconds or not out:
        out += f"{seconds}s"
    return out


@app.command("plugins")
def plugins_command(
    kind: Optional[str] = typer.Argument(None, help="Only show this plugin kind."),
) -> None:
    """List the built-in plugin kinds and their attributes."""
    plugin_classes = [cls for cls in BUILTIN_PLUGINS if kind is None or cls.KIND == kind]
    if not plugin_classes:
        available = ", ".join(sorted(cls.KIND for cls in BUILTIN_PLUGINS))
        error(f"Unknown plugin kind {kind!r}. Available kinds: {available}")
        raise typer.Exit(EXIT_GENERIC_FAILURE)

    for plugin_cls in sorted(plugin_classes, key=lambda cls: cls.KIND):
        rows = [
            [
                spec.name,
                spec.kind.value,
                "yes" if spec.required else "",
                _format_default(spec),
                spec.description,
            ]
            for spec in plugin_cls.ATTRIBUTES
        ]
        print_table(
            ["Attribute", "Type", "Required", "Default", "Description"],
            rows,
            title=f"{plugin_cls.KIND}: {plugin_cls.DESCRIPTION}",
        )


def main() -> None:
    """CLI entry point invoked by the ``guildkeeper`` console script.

    :class:`~guildkeeper.exceptions.GuildkeeperError` instances escaping a
    command cause a clean exit with the error's ``exit_code``. Any other
    exception prints its traceback and exits with a generic failure.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except GuildkeeperError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception:
        get_output().stderr.print_exception()
        error("Unexpected error.")
        sys.exit(EXIT_GENERIC_FAILURE)
