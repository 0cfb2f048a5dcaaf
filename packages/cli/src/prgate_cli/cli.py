"""CLI entry point for prgate.

Commands:
  scan  Scan one commit: review its pull requests and set the exit code
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from prgate_cli.commands.scan import scan_cmd

console = Console()

_LOG_LEVELS = {0: logging.WARNING, 1: logging.INFO, 2: logging.DEBUG}


def build_sinks(notify) -> dict:
    """Instantiate the notification sinks enabled in NotifySettings.

    Returns ``{"alerts": sink, "metrics": sink}``; an unconfigured slot gets a
    NoOpSink so callers never branch on it. Lives here so that neither
    prgate_core nor prgate_notify know about each other.
    """
    from prgate_notify.noop import NoOpSink

    sinks = {"alerts": NoOpSink(), "metrics": NoOpSink()}

    if notify.irc_enabled:
        from prgate_notify.irc import IrcAlertSink

        sinks["alerts"] = IrcAlertSink(
            api_url=notify.irc_api_url,
            token=notify.irc_api_token.get_secret_value(),
            botname=notify.irc_api_bot,
            channel=notify.irc_api_room,
        )

    if notify.pixel_enabled:
        from prgate_notify.pixel import PixelMetricsSink

        sinks["metrics"] = PixelMetricsSink(api_url=notify.pixel_api_url, group_prefix=notify.pixel_api_groupprefix)

    return sinks


def _configure_logging(debug_level: int) -> None:
    logging.basicConfig(
        level=_LOG_LEVELS[debug_level],
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=debug_level >= 2)],
        force=True,
    )


@click.group()
@click.version_option(
    version=importlib.metadata.version("prgate"),
    prog_name="prgate",
)
@click.option(
    "--config",
    "config_path",
    default=".prgate.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRGATE_CONFIG",
)
@click.option(
    "--debug-level",
    type=click.IntRange(0, 2),
    default=0,
    show_default=True,
    help="Log verbosity: 0 warnings only, 1 progress, 2 everything.",
)
@click.pass_context
def main(ctx: click.Context, config_path: str, debug_level: int):
    """Per-commit pull request scanner with auto-approval and capped review comments."""
    ctx.ensure_object(dict)
    _configure_logging(debug_level)
    ctx.obj["config_path"] = config_path


main.add_command(scan_cmd)
