"""CLI command: panicaudit legend — print the rule catalog."""

from __future__ import annotations

import click
from rich.console import Console

from panicaudit.report import print_legend, print_what_we_detect

console = Console(stderr=True)


@click.command()
@click.option("--explain", "-e", is_flag=True, help="Also explain each panic class.")
def legend(explain: bool) -> None:
    """Print the panic audit rule legend."""
    print_legend(console)
    if explain:
        print_what_we_detect(console)
