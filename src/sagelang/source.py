"""Source text representation and span tracking for diagnostics."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, order=True)
class Position:
    """A point in the source: 1-indexed line/column, 0-indexed offset."""

    offset: int
    line: int
    col: int


START = Position(0, 1, 1)


@dataclass(frozen=True)
class Span:
    """A range within a source file. ``end`` is exclusive."""

    file: str
    start: Position
    end: Position

    @property
    def start_line(self) -> int:
        return self.start.line

    @property
    def start_col(self) -> int:
        return self.start.col

    @property
    def end_line(self) -> int:
        return self.end.line

    @property
    def end_col(self) -> int:
        return self.end.col

    def __str__(self) -> str:
        return f"{self.file}:{self.start.line}:{self.start.col}"


class SourceFile:
    """A loaded source text with offset/line lookups for diagnostics."""

    def __init__(self, path: Path, content: str | None = None) -> None:
        self.path = path
        self.content = path.read_text() if content is None else content
        self.lines = self.content.splitlines()
        self._line_starts = [0]
        for i, ch in enumerate(self.content):
            if ch == "\n":
                self._line_starts.append(i + 1)

    @classmethod
    def from_text(cls, text: str, name: str = "<input>") -> SourceFile:
        return cls(Path(name), text)

    @property
    def name(self) -> str:
        return str(self.path)

    def position_at(self, offset: int) -> Position:
        """Convert a character offset to a Position, clamped to the text."""
        offset = max(0, min(offset, len(self.content)))
        idx = bisect_right(self._line_starts, offset) - 1
        return Position(offset, idx + 1, offset - self._line_starts[idx] + 1)

    def offset_at(self, line: int, col: int) -> int:
        """Inverse of position_at for 1-indexed line/column."""
        if line < 1:
            return 0
        if line > len(self._line_starts):
            return len(self.content)
        offset = self._line_starts[line - 1] + col - 1
        return max(0, min(offset, len(self.content)))

    def line_at(self, n: int) -> str:
        """Return the 1-indexed line, or empty string if out of range."""
        if 1 <= n <= len(self.lines):
            return self.lines[n - 1]
        return ""

    def span_text(self, span: Span) -> str:
        """Extract the text covered by a span."""
        return self.content[span.start.offset : span.end.offset]
