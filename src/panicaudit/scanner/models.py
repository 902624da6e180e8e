"""Scanner data models — severities, panic classes, findings and scan results."""

from __future__ import annotations

import enum
import functools
import time
from collections import Counter
from dataclasses import dataclass, field


@functools.total_ordering
class Severity(enum.Enum):
    """Production-impact ranking of a finding, most severe first."""

    CRITICAL = "Critical"  # Can cause cascading outages
    HIGH = "High"  # Can crash request handlers
    MEDIUM = "Medium"  # Can fail under specific conditions
    LOW = "Low"  # Low-risk internal operations

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank


_SEVERITY_RANK = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
}


class PanicClass(enum.Enum):
    """Why a construct can panic."""

    ASSUMPTION_PANIC = "AssumptionPanic"
    IMPLICIT_PANIC = "ImplicitPanic"
    PANIC_AMPLIFICATION = "PanicAmplification"
    CLOUDFLARE_CLASS = "CloudflareClass"
    ASSERTION_FAILURE = "AssertionFailure"
    ALLOCATION_PANIC = "AllocationPanic"
    # Reserved: a panic unwinding out of an extern "C" function aborts
    FFI_BOUNDARY = "FFIBoundary"
    PROCESS_KILLING = "ProcessKilling"


# Longest code snippet kept on a finding
MAX_CODE_LENGTH = 120


@dataclass(frozen=True)
class Vulnerability:
    """A single panic finding, attributed to one file and one approximate line."""

    file: str
    line: str
    severity: Severity
    panic_class: PanicClass
    pattern: str
    code: str

    @classmethod
    def create(
        cls,
        file: str,
        line: int,
        severity: Severity,
        panic_class: PanicClass,
        pattern: str,
        code: str,
    ) -> Vulnerability:
        """Build a finding, stringifying the line and truncating the snippet."""
        return cls(
            file=file,
            line=str(line),
            severity=severity,
            panic_class=panic_class,
            pattern=pattern,
            code=code[:MAX_CODE_LENGTH],
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "file": self.file,
            "line": self.line,
            "severity": self.severity.value,
            "panic_class": self.panic_class.value,
            "pattern": self.pattern,
            "code": self.code,
        }


def sort_findings(findings: list[Vulnerability]) -> list[Vulnerability]:
    """Return findings ordered Critical-first, then by file and line."""
    return sorted(findings, key=_sort_key)


def _sort_key(finding: Vulnerability) -> tuple[int, str, int]:
    line = int(finding.line) if finding.line.isdigit() else 0
    return (finding.severity.rank, finding.file, line)


@dataclass
class ScanResult:
    """Aggregate result of scanning one source tree."""

    directory: str
    findings: list[Vulnerability] = field(default_factory=list)
    files_scanned: int = 0
    files_skipped: int = 0
    duration: float = 0.0
    timestamp: float = field(default_factory=time.time)

    def counts(self) -> dict[Severity, int]:
        """Number of findings per severity, every severity present."""
        tally = Counter(f.severity for f in self.findings)
        return {severity: tally.get(severity, 0) for severity in Severity}

    @property
    def has_critical(self) -> bool:
        return any(f.severity == Severity.CRITICAL for f in self.findings)

    def sorted_findings(self) -> list[Vulnerability]:
        return sort_findings(self.findings)
