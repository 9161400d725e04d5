"""
document.py - Line-indexed view of a workflow document

This module provides the immutable line array the engine reads from and the
edit list it writes to. Nothing here understands YAML; lines only know their
offsets, indentation and whether they are blank or comments.
"""

import bisect
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

_INDENT_RE = re.compile(r"[ \t]*")
_DOCUMENT_MARKER_RE = re.compile(r"^(?:---|\.\.\.)(?:[ \t]|$)")


@dataclass(frozen=True)
class Line:
    """A single line of the original text"""

    number: int
    start: int
    text: str
    ending: str

    @property
    def indent(self) -> str:
        """Literal leading whitespace, tabs included"""
        match = _INDENT_RE.match(self.text)
        return match.group(0) if match else ""

    @property
    def depth(self) -> int:
        return len(self.indent)

    @property
    def content(self) -> str:
        return self.text[self.depth :]

    @property
    def end(self) -> int:
        """Offset just past the text, before the line ending"""
        return self.start + len(self.text)

    @property
    def next_start(self) -> int:
        return self.end + len(self.ending)

    @property
    def is_blank(self) -> bool:
        return not self.content.strip()

    @property
    def is_comment(self) -> bool:
        return self.content.startswith("#")

    @property
    def is_significant(self) -> bool:
        """True for lines that carry YAML structure"""
        return not self.is_blank and not self.is_comment

    @property
    def is_document_marker(self) -> bool:
        return bool(_DOCUMENT_MARKER_RE.match(self.text))


class Document:
    """Immutable source text plus its line index"""

    def __init__(self, text: str) -> None:
        self.text = text
        self.lines: Tuple[Line, ...] = tuple(self._split(text))
        self._starts = [line.start for line in self.lines]

    @staticmethod
    def _split(text: str) -> List[Line]:
        lines = []
        offset = 0
        for number, chunk in enumerate(text.split("\n")):
            ending = "\n"
            if chunk.endswith("\r"):
                chunk = chunk[:-1]
                ending = "\r\n"
            if offset + len(chunk) + len(ending) > len(text):
                ending = ending[:-1]
            lines.append(Line(number, offset, chunk, ending))
            offset += len(chunk) + len(ending)

        # Text ending in a newline leaves an empty trailing chunk
        if len(lines) > 1 and lines[-1].text == "" and lines[-1].ending == "":
            lines.pop()

        return lines

    def __len__(self) -> int:
        return len(self.lines)

    def line_at(self, offset: int) -> Line:
        """Return the line containing a character offset"""
        index = bisect.bisect_right(self._starts, offset) - 1
        return self.lines[max(index, 0)]

    @property
    def newline(self) -> str:
        """Line terminator used by the document, defaulting to LF"""
        for line in self.lines:
            if line.ending:
                return line.ending
        return "\n"

    def previous_significant(self, number: int) -> Optional[Line]:
        """Nearest line before ``number`` carrying structure, or None"""
        for index in range(number - 1, -1, -1):
            line = self.lines[index]
            if line.is_significant:
                return line
        return None

    def next_significant(self, number: int) -> Optional[Line]:
        """Nearest line after ``number`` carrying structure, or None"""
        for index in range(number + 1, len(self.lines)):
            line = self.lines[index]
            if line.is_significant:
                return line
        return None


@dataclass(frozen=True)
class Edit:
    """Replace ``text[start:end]`` with ``replacement``; start == end inserts"""

    start: int
    end: int
    replacement: str


def apply_edits(text: str, edits: Iterable[Edit]) -> str:
    """
    Apply non-overlapping edits to the original text

    Edits are applied from the end of the text toward the beginning so every
    offset keeps referring to the original text.

    Args:
        text: Original document text
        edits: Edits expressed against ``text``

    Returns:
        The edited text, or ``text`` itself when there are no edits

    Raises:
        ValueError: If two edits overlap
    """
    ordered = sorted(edits, key=lambda e: (e.start, e.end))
    if not ordered:
        return text

    for before, after in zip(ordered, ordered[1:]):
        same_insertion_point = before.start == before.end == after.start == after.end
        if after.start < before.end or same_insertion_point:
            raise ValueError(
                f"Overlapping edits at offsets {before.start}-{before.end} "
                f"and {after.start}-{after.end}"
            )

    result = text
    for edit in reversed(ordered):
        result = result[: edit.start] + edit.replacement + result[edit.end :]

    return result
