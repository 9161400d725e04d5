"""
scanner.py - Locate untrusted expressions in executable blocks

This module walks the raw workflow text, finds every ``${{ ... }}`` token whose
expression is untrusted and classifies it as a rewrite candidate or as an
ignored occurrence (inside a comment, outside a ``run:`` value, or part of a
compound expression).
"""

import bisect
import logging
import re
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple, Union

from .document import Document, Line
from .taxonomy import ContextPattern, ContextTaxonomy

logger = logging.getLogger(__name__)

EXPRESSION_RE = re.compile(r"\$\{\{[ \t]*([^\n]*?)[ \t]*\}\}")
RUN_KEY_RE = re.compile(r"^(?P<dashes>(?:-[ \t]+)*)run[ \t]*:(?=[ \t]|$)")
BLOCK_SCALAR_RE = re.compile(r"^[|>][0-9+-]*[ \t]*(?:#.*)?$")

REASON_COMMENT = "comment"
REASON_NOT_EXECUTABLE = "not_executable"
REASON_COMPLEX_EXPRESSION = "complex_expression"
REASON_NO_STEP = "no_step"
REASON_UNSUPPORTED_ENV = "unsupported_env"
REASON_UNSUPPORTED_SHELL = "unsupported_shell"


def comment_start(text: str) -> Optional[int]:
    """
    Find where a trailing or full-line comment begins

    A ``#`` starts a comment when it opens the line's content or follows
    whitespace, and is not inside single or double quotes. A quote glued to
    the end of a word, as in ``don't``, is an apostrophe and opens nothing.

    Args:
        text: A single line, without its terminator

    Returns:
        Index of the ``#``, or None if the line has no comment
    """
    quote = None
    for index, char in enumerate(text):
        if quote:
            if char == quote:
                quote = None
        elif char in "'\"" and (index == 0 or not text[index - 1].isalnum()):
            quote = char
        elif char == "#" and (index == 0 or text[index - 1] in " \t"):
            return index
    return None


@dataclass(frozen=True)
class ExecutableBlock:
    """The value of a ``run:`` key"""

    key_line: int
    key_column: int
    start: int
    end: int
    last_line: int
    is_block_scalar: bool
    on_item_line: bool

    def contains(self, offset: int) -> bool:
        return self.start <= offset < self.end


@dataclass(frozen=True)
class Occurrence:
    """An untrusted ``${{ ... }}`` token found in the document"""

    expression: str
    start: int
    end: int
    line: int
    column: int

    @property
    def location(self) -> str:
        return f"line {self.line + 1}, column {self.column + 1}"


@dataclass(frozen=True)
class Candidate(Occurrence):
    """An occurrence inside an executable block, eligible for rewriting"""

    pattern: Optional[ContextPattern] = None
    block: Optional[ExecutableBlock] = None

    def ignored(self, reason: str) -> "IgnoredOccurrence":
        """Demote the candidate once a later stage decides not to rewrite it"""
        return IgnoredOccurrence(
            expression=self.expression,
            start=self.start,
            end=self.end,
            line=self.line,
            column=self.column,
            reason=reason,
        )


@dataclass(frozen=True)
class IgnoredOccurrence(Occurrence):
    """An occurrence left untouched, with the reason why"""

    reason: str = REASON_NOT_EXECUTABLE


ScanResult = Union[Candidate, IgnoredOccurrence]


def find_executable_blocks(document: Document) -> List[ExecutableBlock]:
    """
    Find the value span of every ``run:`` key in the document

    The value runs from just after ``run:`` to the end of the last line
    indented deeper than the key. Blank lines inside the value are kept,
    trailing ones are not.

    Args:
        document: Document to search

    Returns:
        Blocks in document order
    """
    blocks: List[ExecutableBlock] = []
    lines = document.lines

    for line in lines:
        if not line.is_significant:
            continue

        # Script text that happens to contain "run:" belongs to the outer value
        if blocks and line.number <= blocks[-1].last_line:
            continue

        match = RUN_KEY_RE.match(line.content)
        if not match:
            continue

        key_column = line.depth + len(match.group("dashes"))
        value = line.content[match.end() :].strip()

        last = line.number
        index = line.number + 1
        while index < len(lines) and (lines[index].is_blank or lines[index].depth > key_column):
            if not lines[index].is_blank:
                last = index
            index += 1

        blocks.append(
            ExecutableBlock(
                key_line=line.number,
                key_column=key_column,
                start=line.start + line.depth + match.end(),
                end=lines[last].end,
                last_line=last,
                is_block_scalar=bool(BLOCK_SCALAR_RE.match(value)),
                on_item_line=bool(match.group("dashes")),
            )
        )

    return blocks


class OccurrenceScanner:
    """Scans workflow text for untrusted expressions"""

    def __init__(self, taxonomy: Optional[ContextTaxonomy] = None) -> None:
        """
        Initialize the scanner

        Args:
            taxonomy: Untrusted context table, defaults to the built-in one
        """
        self.taxonomy = taxonomy or ContextTaxonomy.default()

    def scan(self, document: Document) -> Iterator[ScanResult]:
        """
        Yield every untrusted occurrence in document order

        Tokens whose expression mentions no untrusted context are skipped
        silently; everything else is yielded as a Candidate or an
        IgnoredOccurrence.
        """
        blocks = find_executable_blocks(document)
        block_starts = [block.start for block in blocks]

        for match in EXPRESSION_RE.finditer(document.text):
            expression = match.group(1)
            pattern = self.taxonomy.match(expression)
            if pattern is None and not self.taxonomy.mentions(expression):
                continue

            line = document.line_at(match.start())
            fields = dict(
                expression=expression,
                start=match.start(),
                end=match.end(),
                line=line.number,
                column=match.start() - line.start,
            )

            reason, block = self._classify(line, match.start(), blocks, block_starts)
            if reason is None and pattern is None:
                reason = REASON_COMPLEX_EXPRESSION

            if reason is not None:
                logger.debug("Ignoring %s at line %d: %s", expression, line.number + 1, reason)
                yield IgnoredOccurrence(reason=reason, **fields)
            else:
                yield Candidate(pattern=pattern, block=block, **fields)

    def _classify(
        self,
        line: Line,
        offset: int,
        blocks: List[ExecutableBlock],
        block_starts: List[int],
    ) -> Tuple[Optional[str], Optional[ExecutableBlock]]:
        comment = comment_start(line.text)
        if comment is not None and offset - line.start >= comment:
            return REASON_COMMENT, None

        index = bisect.bisect_right(block_starts, offset) - 1
        if index >= 0 and blocks[index].contains(offset):
            return None, blocks[index]

        return REASON_NOT_EXECUTABLE, None

    def candidates(self, document: Document) -> List[Candidate]:
        """Return only the occurrences eligible for rewriting"""
        return [result for result in self.scan(document) if isinstance(result, Candidate)]
