"""CLI entry point — Click group with global options."""

from __future__ import annotations

import logging

import click

from panicaudit import __version__
from panicaudit.config import PanicAuditConfig
from panicaudit.report import TAGLINE


@click.group(help=f"panicaudit — {TAGLINE}.")
@click.version_option(version=__version__, prog_name="panicaudit")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to a YAML settings file.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def load_config(ctx: click.Context) -> PanicAuditConfig:
    """Build the config for a command, reporting bad settings as usage errors."""
    try:
        return PanicAuditConfig.load(ctx.obj.get("config_path"))
    except ValueError as e:
        raise click.UsageError(f"Invalid settings: {e}") from e


def _register_commands() -> None:
    from panicaudit.cli.audit import audit  # noqa: F811
    from panicaudit.cli.legend import legend  # noqa: F811

    main.add_command(audit)
    main.add_command(legend)


_register_commands()
