"""Report rendering — Rich console output and JSON for audit results."""

from __future__ import annotations

import json
from collections import Counter

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from panicaudit import __version__
from panicaudit.scanner.models import (
    PanicClass,
    ScanResult,
    Severity,
    Vulnerability,
    sort_findings,
)
from panicaudit.scanner.rules import all_rules

TAGLINE = "Find panic patterns that can take down production Rust services"

_RULE = "═" * 80
_THIN_RULE = "─" * 80

_SEVERITY_COLORS = {
    Severity.CRITICAL: "red",
    Severity.HIGH: "yellow",
    Severity.MEDIUM: "white",
    Severity.LOW: "bright_black",
}

_SEVERITY_BADGES = {
    Severity.CRITICAL: "🔴 CRITICAL",
    Severity.HIGH: "🟠 HIGH",
    Severity.MEDIUM: "🟡 MEDIUM",
    Severity.LOW: "⚪ LOW",
}

_COUNT_LABELS = {
    Severity.CRITICAL: "(Can cause outages)",
    Severity.HIGH: "(Can crash handlers)",
    Severity.MEDIUM: "(Conditional failures)",
    Severity.LOW: "(Low risk)",
}

# (class name, example constructs, one-line impact)
_PANIC_CLASSES = [
    ("Assumption Panics", "unwrap(), expect(), unwrap_unchecked()",
     "Flags logic that assumes 'this can't fail' on real-world input"),
    ("Implicit Panics", "Indexing [i], todo!(), unimplemented!()",
     "Panics hidden in normal-looking code"),
    ("Panic Amplification", "Mutex::lock().unwrap(), panics in Drop",
     "Single panic → cascading failure across threads"),
    ("Cloudflare-Class", "Deserialization + size/bounds + unwrap",
     "The exact pattern that caused Cloudflare's global outage"),
    ("Assertion Failures", "assert!() in non-test code",
     "Turns unexpected input into crashes"),
    ("Allocation & OOM", "Vec::with_capacity(untrusted)",
     "Memory-driven panics and restarts"),
    ("FFI Boundary Panics", 'Panics in extern "C" paths',
     "Can abort the entire process"),
    ("Process-Killing Calls", "std::process::exit() in libraries",
     "One code path kills the whole service"),
]

# (severity, description, examples, action)
_SEVERITY_GUIDE = [
    (Severity.CRITICAL, "Can cause cascading outages (Cloudflare-class)",
     "External I/O, network, config loading, panic amplification",
     "Add error handling, implement fallback, return Result"),
    (Severity.HIGH, "Can crash request handlers or worker threads",
     "Parsing untrusted data, database ops, large allocations",
     "Validate input, return Result, add size limits"),
    (Severity.MEDIUM, "Can fail under specific runtime conditions",
     "Environment variables, assertions, array indexing",
     "Provide defaults, add bounds checking, validate assumptions"),
    (Severity.LOW, "Low-risk internal operations",
     "Arc unwrap, internal field access, after explicit validation",
     "Review context - usually intentional and safe"),
]


def print_banner(console: Console) -> None:
    console.print(f"[bright_black]{_RULE}[/bright_black]")
    console.print(f"  [bold cyan]panicaudit v{__version__}[/bold cyan]")
    console.print(f"  [italic]{TAGLINE}[/italic]")
    console.print(f"[bright_black]{_RULE}[/bright_black]")


def print_legend(console: Console) -> None:
    """Print the rule catalog."""
    table = Table(title="PANIC AUDIT RULE LEGEND", show_lines=False)
    table.add_column("ID", style="bold cyan")
    table.add_column("Kind")
    table.add_column("Severity", style="yellow")
    table.add_column("Message")

    for rule in all_rules():
        table.add_row(rule.id, rule.kind, rule.severity, rule.message)

    console.print(table)


def print_what_we_detect(console: Console) -> None:
    console.print("\n[bold]WHAT WE DETECT[/bold]")
    console.print(f"[bright_black]{_RULE}[/bright_black]")
    console.print("\nNot a style linter. Not just unwrap police.")
    console.print("[bold cyan]panicaudit[/bold cyan] answers:")
    console.print("  • Can this take down prod?")
    console.print("  • Is this on a hot path?")
    console.print("  • Can one panic cascade into many failures?")
    console.print("  • Is this reachable from untrusted input?")

    console.print(f"\n[bold]{len(_PANIC_CLASSES)} CRITICAL PANIC CLASSES[/bold]")
    console.print(f"[bright_black]{_THIN_RULE}[/bright_black]")
    for i, (name, examples, impact) in enumerate(_PANIC_CLASSES, start=1):
        console.print(f"\n[bold]{i}.[/bold] [cyan]{name}[/cyan] - {escape(examples)}")
        console.print(f"   {impact}")


def print_severity_legend(console: Console) -> None:
    console.print("\n[bold]SEVERITY LEVELS & ACTIONS[/bold]")
    console.print(f"[bright_black]{_THIN_RULE}[/bright_black]")

    for severity, description, examples, action in _SEVERITY_GUIDE:
        color = _SEVERITY_COLORS[severity]
        console.print(
            f"\n  [{color} bold]{_SEVERITY_BADGES[severity]}[/{color} bold] - {description}"
        )
        console.print(f"     [bold]Examples:[/bold] {examples}")
        console.print(f"     [bold {color}]Action:[/bold {color}] {action}")


def class_breakdown(
    findings: list[Vulnerability], severity: Severity
) -> list[tuple[PanicClass, int]]:
    """Panic classes among ``severity`` findings, most frequent first."""
    counts = Counter(f.panic_class for f in findings if f.severity == severity)
    return sorted(counts.items(), key=lambda item: (-item[1], item[0].value))


def _print_breakdown(
    console: Console, findings: list[Vulnerability], severity: Severity
) -> None:
    breakdown = class_breakdown(findings, severity)
    if not breakdown:
        return

    total = sum(count for _, count in breakdown)
    color = _SEVERITY_COLORS[severity]
    console.print(f"\n[bold {color}]{_SEVERITY_BADGES[severity]} ({total})[/bold {color}]")
    for panic_class, count in breakdown:
        name = panic_class.value.replace("Class", "")
        console.print(f"  • [cyan]{name}[/cyan]: {count}")


def print_report(
    console: Console,
    result: ScanResult,
    crate_name: str,
    version: str,
    show_all: bool = False,
    summary: bool = False,
) -> None:
    """Print the human-readable audit report for one crate."""
    version_display = version if version == "local" else f"v{version}"
    console.print(f"\n[bright_black]{_RULE}[/bright_black]")
    console.print(
        f"[bold]AUDIT REPORT:[/bold] [bold yellow]{escape(crate_name)}[/bold yellow] "
        f"[bright_black]{escape(version_display)}[/bright_black]"
    )
    console.print(f"[bright_black]{_RULE}[/bright_black]\n")

    if not result.findings:
        console.print("[bold green]✅ No panic patterns detected![/bold green]")
        console.print("\nThis crate appears to handle errors gracefully.")
        _print_scan_stats(console, result)
        return

    findings = result.sorted_findings()

    if summary:
        print_summary(console, result)
        return

    counts = result.counts()
    console.print(f"⚠️  [bold]{len(findings)}[/bold] panic patterns detected:\n")
    for severity in Severity:
        if counts[severity]:
            color = _SEVERITY_COLORS[severity]
            label = f"{severity.value}:".ljust(9)
            console.print(
                f"   [{color}]{label} {counts[severity]} {_COUNT_LABELS[severity]}[/{color}]"
            )

    print_severity_legend(console)

    console.print(f"\n[bright_black]{_RULE}[/bright_black]")
    console.print("[bold]PANIC PATTERNS BY CLASS & SEVERITY[/bold]")
    console.print(f"[bright_black]{_THIN_RULE}[/bright_black]")
    for severity in Severity:
        if severity == Severity.LOW and not show_all:
            continue
        _print_breakdown(console, findings, severity)

    _print_detailed(console, findings)

    lower = [f for f in findings if f.severity in (Severity.MEDIUM, Severity.LOW)]
    if lower and show_all:
        console.print(f"\n[bright_black]{_RULE}[/bright_black]")
        console.print("[bold]OTHER FINDINGS (Medium & Low Risk)[/bold]")
        console.print(f"[bright_black]{_THIN_RULE}[/bright_black]")
        for i, vuln in enumerate(lower, start=1):
            console.print(
                f"  {i}. {vuln.severity.value} - [cyan]{escape(vuln.pattern)}[/cyan] in "
                f"[bright_black]{escape(vuln.file)}[/bright_black]:[yellow]{vuln.line}[/yellow]"
            )
    elif lower:
        console.print(f"\n[bright_black]{_RULE}[/bright_black]")
        console.print(
            f"💡 {len(lower)} lower-risk patterns hidden. "
            "Use --all to see all findings."
        )

    _print_scan_stats(console, result)


def _print_detailed(console: Console, findings: list[Vulnerability]) -> None:
    critical_high = [
        f for f in findings if f.severity in (Severity.CRITICAL, Severity.HIGH)
    ]
    if not critical_high:
        return

    console.print(f"\n[bright_black]{_RULE}[/bright_black]")
    console.print("[bold]DETAILED FINDINGS (Critical & High Risk)[/bold]")
    console.print(f"[bright_black]{_THIN_RULE}[/bright_black]")

    for i, vuln in enumerate(critical_high, start=1):
        color = _SEVERITY_COLORS[vuln.severity]
        console.print(f"\n{i}. [bold {color}]{_SEVERITY_BADGES[vuln.severity]}[/bold {color}]")
        console.print(f"   Class:   {vuln.panic_class.value}")
        console.print(f"   Pattern: [cyan]{escape(vuln.pattern)}[/cyan]")
        console.print(
            f"   File:    [bright_black]{escape(vuln.file)}[/bright_black]:"
            f"[yellow]{vuln.line}[/yellow]"
        )
        console.print(
            f"   Code:    [bright_white]{escape(_one_line(vuln.code))}[/bright_white]",
            emoji=False,
        )


def print_summary(console: Console, result: ScanResult) -> None:
    console.print("\n[bold]SUMMARY[/bold]")
    console.print(f"[bright_black]{_THIN_RULE}[/bright_black]")
    for severity, count in result.counts().items():
        if count:
            console.print(f"{severity.value.upper():<10}: {count}")
    console.print(f"\nTotal findings: {len(result.findings)}")


def _print_scan_stats(console: Console, result: ScanResult) -> None:
    console.print(
        f"\nScanned {result.files_scanned} files "
        f"({result.files_skipped} skipped) "
        f"in {result.duration:.2f}s"
    )


def render_json(findings: list[Vulnerability]) -> str:
    """Serialize findings, most severe first, as a JSON array."""
    return json.dumps([f.to_dict() for f in sort_findings(findings)], indent=2)


def _one_line(code: str) -> str:
    return " ".join(code.split())
