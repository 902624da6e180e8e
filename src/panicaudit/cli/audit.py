"""CLI command: panicaudit audit <crate|path> — panic pattern analysis."""

from __future__ import annotations

import shutil
import sys
import tempfile
from pathlib import Path

import click
from rich.console import Console

from panicaudit.cli import load_config
from panicaudit.registry import RegistryError, download_crate, get_latest_version
from panicaudit.report import (
    print_banner,
    print_report,
    print_what_we_detect,
    render_json,
)
from panicaudit.scanner.engine import ScanEngine

console = Console(stderr=True)

# Exit code for resolution failures (bad path, registry errors)
_EXIT_ERROR = 2


@click.command()
@click.argument("target")
@click.argument("version", required=False)
@click.option("--local", "-l", is_flag=True, help="Treat TARGET as a local path.")
@click.option("--all", "-a", "show_all", is_flag=True, help="Show low-risk findings too.")
@click.option("--explain", "-e", is_flag=True, help="Explain each panic class.")
@click.option("--json", "as_json", is_flag=True, help="Print findings as JSON.")
@click.option("--summary", is_flag=True, help="Print counts only.")
@click.option(
    "--fail-on-findings",
    is_flag=True,
    help="Exit non-zero when critical findings exist.",
)
@click.option(
    "--exclude",
    "-x",
    multiple=True,
    help="File or directory name patterns to skip.",
)
@click.pass_context
def audit(
    ctx: click.Context,
    target: str,
    version: str | None,
    local: bool,
    show_all: bool,
    explain: bool,
    as_json: bool,
    summary: bool,
    fail_on_findings: bool,
    exclude: tuple[str, ...],
) -> None:
    """Audit a crate from crates.io (or a local path) for panic patterns."""
    config = load_config(ctx)
    show_all = show_all or config.show_all
    fail_on_findings = fail_on_findings or config.fail_on_findings

    # JSON goes to stdout alone
    status = Console(stderr=True, quiet=as_json)
    print_banner(status)
    if explain:
        print_what_we_detect(status)

    engine = ScanEngine(exclude_patterns=[*config.exclude, *exclude])

    if local:
        path = Path(target)
        if not path.exists():
            console.print(f"[red]Path does not exist: {target}[/red]")
            sys.exit(_EXIT_ERROR)
        crate_name = path.resolve().name or target
        version = "local"
        status.print(f"\n📂 Scanning local path: [cyan]{path}[/cyan]")
        result = engine.scan(path)
    else:
        crate_name = target
        work_dir = None
        try:
            if not version:
                status.print("\n🔎 Finding latest version...")
                version = get_latest_version(crate_name, config)
            config.work_dir.mkdir(parents=True, exist_ok=True)
            work_dir = tempfile.mkdtemp(
                prefix=f"{crate_name}-{version}-", dir=config.work_dir
            )
            status.print(f"📥 Downloading [cyan]{crate_name} v{version}[/cyan]...")
            download_crate(crate_name, version, work_dir, config)
            result = engine.scan(work_dir)
        except RegistryError as e:
            console.print(f"[red]{e}[/red]")
            sys.exit(_EXIT_ERROR)
        finally:
            if work_dir is not None:
                status.print("\n🧹 Cleaning up...")
                shutil.rmtree(work_dir, ignore_errors=True)

    if as_json:
        click.echo(render_json(result.findings))
    else:
        print_report(
            status,
            result,
            crate_name,
            version,
            show_all=show_all,
            summary=summary,
        )

    if result.has_critical and fail_on_findings:
        status.print(
            "\n[bold red]⚠️  CRITICAL: This crate contains patterns that can "
            "take down production![/bold red]"
        )
        status.print("    Review and fix critical issues before deploying.")
        sys.exit(1)

    status.print("\n✅ Audit complete!")
    if not result.findings:
        status.print("   No panic patterns detected.")
    elif result.has_critical:
        status.print(
            "   ⚠️  Critical issues found - review before production deployment."
        )
    else:
        status.print("   No critical issues found, but review high/medium patterns.")
