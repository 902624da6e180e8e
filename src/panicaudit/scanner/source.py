"""Best-effort line recovery for rendered syntax-node text."""

from __future__ import annotations

from dataclasses import dataclass, field

# Non-whitespace characters of a snippet used for matching
_MATCH_PREFIX = 40


def _strip_ws(text: str) -> str:
    return "".join(text.split())


@dataclass
class SourceTracker:
    """Holds the path and text of the file being scanned.

    A snippet is located by comparing its first 40 non-whitespace
    characters against each whitespace-stripped source line. The first
    line that contains the prefix wins, so two lines sharing the same
    normalized prefix both resolve to the earlier one. A miss resolves
    to line 1.
    """

    path: str = ""
    source: str = ""
    _lines: list[str] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        self._lines = [_strip_ws(line) for line in self.source.splitlines()]

    def update(self, path: str, source: str) -> None:
        """Point the tracker at a new file."""
        self.path = path
        self.source = source
        self._lines = [_strip_ws(line) for line in source.splitlines()]

    def find_line(self, snippet: str) -> int:
        """Return the 1-based line on which ``snippet`` starts."""
        prefix = _strip_ws(snippet)[:_MATCH_PREFIX]
        if not prefix:
            return 1

        for line_num, line in enumerate(self._lines, start=1):
            if prefix in line:
                return line_num
        return 1
