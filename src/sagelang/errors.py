"""Diagnostics for SAGE documents and their Rust-style rendering."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sagelang.source import Span


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"
    NOTE = "note"


_COLORS = {
    Severity.ERROR: "\033[1;31m",    # bold red
    Severity.WARNING: "\033[1;33m",  # bold yellow
    Severity.NOTE: "\033[1;36m",     # bold cyan
}
_BOLD = "\033[1m"
_BLUE = "\033[1;34m"
_RESET = "\033[0m"


@dataclass(frozen=True)
class DiagnosticLabel:
    """Points at the node a diagnostic concerns."""

    span: Span
    message: str = ""
    style: str = "primary"  # "primary" or "secondary"


@dataclass(frozen=True)
class Suggestion:
    message: str
    replacement: str


@dataclass
class Diagnostic:
    """A single finding about a document, anchored by its labels."""

    severity: Severity
    code: str
    message: str
    labels: list[DiagnosticLabel] = field(default_factory=list)
    suggestions: list[Suggestion] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    @property
    def span(self) -> Span | None:
        """Span of the primary label, if any."""
        for label in self.labels:
            if label.style == "primary":
                return label.span
        return self.labels[0].span if self.labels else None


class DiagnosticRenderer:
    """Renders diagnostics as a header, a source excerpt and carets.

    Sources registered with :meth:`add_source` are used as-is; other files
    are read from disk on first use.
    """

    def __init__(self, *, color: bool = True) -> None:
        self.color = color
        self._file_cache: dict[str, list[str]] = {}

    def _c(self, code: str) -> str:
        return code if self.color else ""

    def add_source(self, filename: str, text: str) -> None:
        self._file_cache[filename] = text.splitlines()

    def _get_source_line(self, filename: str, line_num: int) -> str | None:
        if filename not in self._file_cache:
            try:
                path = Path(filename)
                lines = path.read_text().splitlines() if path.is_file() else []
            except OSError:
                lines = []
            self._file_cache[filename] = lines
        lines = self._file_cache[filename]
        if 1 <= line_num <= len(lines):
            return lines[line_num - 1]
        return None

    def render(self, diag: Diagnostic) -> str:
        lines: list[str] = []
        color = _COLORS[diag.severity]
        bar = f"  {self._c(_BLUE)}   |{self._c(_RESET)}"

        # warning[W100]: message
        lines.append(
            f"{self._c(color)}{diag.severity.value}[{diag.code}]{self._c(_RESET)}"
            f"{self._c(_BOLD)}: {diag.message}{self._c(_RESET)}"
        )

        for label in diag.labels:
            span = label.span
            lines.append(f"  {self._c(_BLUE)}-->{self._c(_RESET)} {span}")
            lines.append(bar)

            source_line = self._get_source_line(span.file, span.start_line)
            if source_line is not None:
                gutter = f"{span.start_line:>4}"
                lines.append(f"  {self._c(_BLUE)}{gutter} |{self._c(_RESET)} {source_line}")
                # Multi-line spans are underlined to the end of their first line.
                if span.start_line == span.end_line:
                    width = span.end_col - span.start_col
                else:
                    width = len(source_line) - span.start_col + 1
                padding = " " * (span.start_col - 1)
                carets = "^" * max(1, width)
                lines.append(f"{bar} {padding}{self._c(color)}{carets}{self._c(_RESET)}")

            if label.message:
                lines.append(f"{bar}   {self._c(color)}{label.message}{self._c(_RESET)}")

        for note in diag.notes:
            lines.append(f"  {self._c(_BLUE)}={self._c(_RESET)} note: {note}")

        for suggestion in diag.suggestions:
            lines.append(f"  {self._c(_BLUE)}try:{self._c(_RESET)} {suggestion.replacement}")

        return "\n".join(lines)


class CompileError(Exception):
    """Raised when a caller asks for failures as an exception."""

    def __init__(self, diagnostics: list[Diagnostic]) -> None:
        self.diagnostics = diagnostics
        messages = [d.message for d in diagnostics]
        super().__init__(f"{len(diagnostics)} error(s): {'; '.join(messages)}")
