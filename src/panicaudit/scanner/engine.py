"""Scan engine — walks a source tree and drives the tree scanner per file."""

from __future__ import annotations

import fnmatch
import logging
import os
import time
from collections.abc import Iterable, Iterator
from pathlib import Path

from panicaudit.scanner.models import ScanResult
from panicaudit.scanner.visitor import TreeScanner

logger = logging.getLogger(__name__)

_RUST_EXTENSION = ".rs"

# Directories to always skip
_SKIP_DIRS = {
    ".git",
    ".hg",
    ".svn",
    "target",
}


class ScanEngine:
    """Orchestrates panic analysis across a directory of Rust sources."""

    def __init__(self, exclude_patterns: list[str] | None = None) -> None:
        self._exclude = list(exclude_patterns or [])

    def scan(self, directory: str | Path) -> ScanResult:
        """Scan every ``.rs`` file below ``directory``."""
        directory = Path(directory).resolve()
        logger.info("Auditing %s for production panic patterns", directory)

        sources: list[tuple[str, str]] = []
        skipped = 0
        for file_path in self._walk(directory):
            try:
                content = file_path.read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                logger.debug("Skipping %s: %s", file_path, e)
                skipped += 1
                continue
            sources.append((file_path.relative_to(directory).as_posix(), content))

        logger.info("Scanning %d Rust source files", len(sources))
        result = self.scan_sources(sources, directory=str(directory))
        result.files_skipped += skipped
        return result

    def scan_sources(
        self,
        sources: Iterable[tuple[str, str]],
        directory: str = "",
    ) -> ScanResult:
        """Scan ``(relative path, source text)`` pairs in order."""
        start = time.time()
        result = ScanResult(directory=directory)
        scanner = TreeScanner()

        for rel_path, content in sources:
            if scanner.scan_file(rel_path, content):
                result.files_scanned += 1
            else:
                result.files_skipped += 1

        result.findings = scanner.vulnerabilities
        result.duration = time.time() - start
        logger.info(
            "Found %d panic patterns in %d files (%d skipped)",
            len(result.findings),
            result.files_scanned,
            result.files_skipped,
        )
        return result

    def _walk(self, directory: Path) -> Iterator[Path]:
        """Walk directory yielding Rust files in a stable order."""
        for root, dirs, files in os.walk(directory):
            # Prune skipped directories in-place
            dirs[:] = sorted(
                d for d in dirs if d not in _SKIP_DIRS and not self._excluded(d)
            )

            for name in sorted(files):
                if not name.endswith(_RUST_EXTENSION) or self._excluded(name):
                    continue
                yield Path(root) / name

    def _excluded(self, name: str) -> bool:
        return any(fnmatch.fnmatch(name, pattern) for pattern in self._exclude)
