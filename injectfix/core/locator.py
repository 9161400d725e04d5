"""
locator.py - Find the step that owns an executable block

This module walks backward from a ``run:`` key to the list item that starts
its step, checks that the list is a ``steps:`` sequence and records what the
patcher needs to know about the step: the literal indentation of its keys,
its ``env:`` block and its shell, falling back to ``defaults.run.shell`` and
the runner when the step sets none.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .document import Document, Line
from .scanner import (
    REASON_NO_STEP,
    REASON_NOT_EXECUTABLE,
    RUN_KEY_RE,
    Candidate,
    ExecutableBlock,
    IgnoredOccurrence,
    comment_start,
)

logger = logging.getLogger(__name__)

ITEM_RE = re.compile(r"^(?:-[ \t]+)+")
KEY_RE = re.compile(
    r"^(?:-[ \t]+)?(?P<key>[A-Za-z0-9_.-]+|\"[^\"]*\"|'[^']*')[ \t]*:(?:[ \t]+(?P<value>.*))?$"
)
STEPS_KEY_RE = re.compile(r"^steps[ \t]*:[ \t]*(?:#.*)?$")

DEFAULT_NESTING_UNIT = "  "

# Shell used by steps on Windows runners that set none
WINDOWS_DEFAULT_SHELL = "pwsh"


def _strip_comment(value: str) -> str:
    index = comment_start(value)
    if index is not None:
        value = value[:index]
    return value.strip()


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        return value[1:-1]
    return value


def _item_prefix(line: Line) -> Optional[str]:
    """Dashes and spacing that open a list item, or None"""
    match = ITEM_RE.match(line.content)
    return match.group(0) if match else None


def _parse_key(text: str) -> Optional[Tuple[str, str]]:
    match = KEY_RE.match(text)
    if not match:
        return None
    key = _unquote(match.group("key"))
    return key, _strip_comment(match.group("value") or "")


@dataclass(frozen=True)
class EnvBlock:
    """An ``env:`` mapping declared by a step"""

    key_line: int
    last_line: int
    entries: Tuple[Tuple[str, str], ...]
    entry_indent: Optional[str]
    inline: bool = False

    def get(self, name: str) -> Optional[str]:
        for key, value in self.entries:
            if key == name:
                return value
        return None


@dataclass(frozen=True)
class Step:
    """A list item of a ``steps:`` sequence that owns a ``run:`` key"""

    start_line: int
    end_line: int
    key_column: int
    indent: str
    nesting_unit: str
    run_line: int
    run_on_item_line: bool
    blank_line_before_run: bool
    shell: Optional[str] = None
    env: Optional[EnvBlock] = None

    @property
    def entry_indent(self) -> str:
        """Literal prefix for lines inside the step's env block"""
        if self.env is not None and self.env.entry_indent is not None:
            return self.env.entry_indent
        return self.indent + self.nesting_unit


class StructuralLocator:
    """Resolves executable blocks to their enclosing steps"""

    def __init__(self, document: Document) -> None:
        self.document = document
        self._cache: Dict[int, Optional[Step]] = {}

    def group(
        self, candidates: List[Candidate]
    ) -> Tuple[Dict[Step, List[Candidate]], List[IgnoredOccurrence]]:
        """
        Group candidates by the step that owns them

        Args:
            candidates: Candidates in document order

        Returns:
            Tuple of (candidates by step in first-seen order, candidates that
            could not be placed in a step)
        """
        groups: Dict[Step, List[Candidate]] = {}
        dropped: List[IgnoredOccurrence] = []

        for candidate in candidates:
            step = self.locate(candidate.block) if candidate.block else None
            if step is None:
                reason = self.unlocated_reason(candidate.block) if candidate.block else REASON_NO_STEP
                logger.debug(
                    "No enclosing step for %s at %s (%s)",
                    candidate.expression,
                    candidate.location,
                    reason,
                )
                dropped.append(candidate.ignored(reason))
                continue
            groups.setdefault(step, []).append(candidate)

        return groups, dropped

    def locate(self, block: ExecutableBlock) -> Optional[Step]:
        """Return the step owning a ``run:`` value, or None if it is not in one"""
        if block.key_line not in self._cache:
            self._cache[block.key_line] = self._build_step(block)
        return self._cache[block.key_line]

    def unlocated_reason(self, block: ExecutableBlock) -> str:
        """
        Explain why a ``run:`` value has no step

        A ``run:`` key nested in a plain mapping (``with:``, ``defaults.run``,
        a job) or in a list other than ``steps:`` is not a script at all.
        A key that does sit under a list item whose shape cannot be read is
        still reported as a sink without a step.

        Returns:
            ``not_executable`` or ``no_step``
        """
        start = self._find_step_start(block)
        if start is not None:
            if self._steps_key_line(start) is None:
                return REASON_NOT_EXECUTABLE
            return REASON_NO_STEP
        if block.on_item_line:
            return REASON_NO_STEP

        parent = self._parent(block.key_line)
        if parent is None:
            return REASON_NOT_EXECUTABLE
        prefix = _item_prefix(parent)
        if prefix is None:
            return REASON_NOT_EXECUTABLE

        # "- with:" followed by a nested run key
        parsed = _parse_key(parent.content)
        if parsed is not None and not parsed[1] and block.key_column > parent.depth + len(prefix):
            return REASON_NOT_EXECUTABLE
        return REASON_NO_STEP

    def _build_step(self, block: ExecutableBlock) -> Optional[Step]:
        start = self._find_step_start(block)
        if start is None:
            return None
        steps_line = self._steps_key_line(start)
        if steps_line is None:
            return None

        lines = self.document.lines
        column = block.key_column
        end = self._find_step_end(start, column)
        keys = self._step_keys(start, end, column)

        env = None
        shell = None
        for line_number, key, value in keys:
            if key == "env":
                env = self._read_env(line_number, value, end, column)
            elif key == "shell":
                shell = _unquote(value).lower() or None
        if shell is None:
            shell = self._default_shell(steps_line)

        run_line = block.key_line
        return Step(
            start_line=start,
            end_line=end,
            key_column=column,
            indent=self._key_indent(start, run_line, keys, column),
            nesting_unit=self._nesting_unit(start, end, keys, column),
            run_line=run_line,
            run_on_item_line=block.on_item_line,
            blank_line_before_run=run_line - 1 > start and lines[run_line - 1].is_blank,
            shell=shell,
            env=env,
        )

    def _find_step_start(self, block: ExecutableBlock) -> Optional[int]:
        lines = self.document.lines
        column = block.key_column

        if block.on_item_line:
            match = RUN_KEY_RE.match(lines[block.key_line].content)
            if match is None or match.group("dashes").count("-") != 1:
                return None
            return block.key_line

        for index in range(block.key_line - 1, -1, -1):
            line = lines[index]
            if not line.is_significant or line.depth >= column:
                continue

            prefix = _item_prefix(line)
            if prefix is not None and prefix.count("-") == 1 and line.depth + len(prefix) == column:
                return index
            return None

        return None

    def _steps_key_line(self, start: int) -> Optional[int]:
        """Line of the ``steps:`` key holding the item at ``start``, or None"""
        lines = self.document.lines
        item_depth = lines[start].depth

        for index in range(start - 1, -1, -1):
            line = lines[index]
            if not line.is_significant or line.depth > item_depth:
                continue
            if line.depth == item_depth and _item_prefix(line) is not None:
                continue
            return index if STEPS_KEY_RE.match(line.content) else None

        return None

    def _parent(self, number: int) -> Optional[Line]:
        """Nearest less indented line above ``number`` in the same document"""
        depth = self.document.lines[number].depth
        line = self.document.previous_significant(number)
        while line is not None and not line.is_document_marker:
            if line.depth < depth:
                return line
            line = self.document.previous_significant(line.number)
        return None

    def _mapping_keys(self, first: int, parent_depth: int) -> List[Tuple[int, str, str]]:
        """Keys of the block mapping starting at line ``first``"""
        lines = self.document.lines
        keys = []
        key_depth = None

        for index in range(first, len(lines)):
            line = lines[index]
            if not line.is_significant:
                continue
            if line.depth <= parent_depth or line.is_document_marker:
                break
            if key_depth is None:
                key_depth = line.depth
            if line.depth == key_depth and _item_prefix(line) is None:
                parsed = _parse_key(line.content)
                if parsed is not None:
                    keys.append((index, parsed[0], parsed[1]))

        return keys

    def _lookup(self, keys: List[Tuple[int, str, str]], path: Tuple[str, ...]) -> Optional[str]:
        """Follow ``path`` through nested block mappings"""
        for line_number, key, value in keys:
            if key != path[0]:
                continue
            if len(path) == 1:
                return value
            if value:
                return None
            depth = self.document.lines[line_number].depth
            return self._lookup(self._mapping_keys(line_number + 1, depth), path[1:])
        return None

    def _default_shell(self, steps_line: int) -> Optional[str]:
        """
        Shell a step inherits when it sets none

        Job ``defaults.run.shell`` wins over the workflow's, and a Windows
        runner label means PowerShell. Runner expressions such as
        ``${{ matrix.os }}`` are not resolved.
        """
        lines = self.document.lines
        job = self._parent(steps_line)
        job_keys = self._mapping_keys(job.number + 1, job.depth) if job is not None else []

        first = 0
        for index in range(steps_line, -1, -1):
            if lines[index].is_document_marker:
                first = index + 1
                break
        workflow_keys = self._mapping_keys(first, -1)

        for keys in (job_keys, workflow_keys):
            shell = self._lookup(keys, ("defaults", "run", "shell"))
            if shell:
                return _unquote(shell).lower()

        if "windows" in self._runner_labels(job_keys).lower():
            return WINDOWS_DEFAULT_SHELL
        return None

    def _runner_labels(self, job_keys: List[Tuple[int, str, str]]) -> str:
        lines = self.document.lines
        for line_number, key, value in job_keys:
            if key != "runs-on":
                continue
            if value:
                return value

            # Block sequence of labels or a group mapping
            depth = lines[line_number].depth
            labels = []
            for line in lines[line_number + 1 :]:
                if not line.is_significant:
                    continue
                if line.depth <= depth or line.is_document_marker:
                    break
                labels.append(_strip_comment(line.content))
            return " ".join(labels)
        return ""

    def _find_step_end(self, start: int, column: int) -> int:
        lines = self.document.lines
        for index in range(start + 1, len(lines)):
            line = lines[index]
            if line.is_significant and line.depth < column:
                return index
        return len(lines)

    def _step_keys(self, start: int, end: int, column: int) -> List[Tuple[int, str, str]]:
        lines = self.document.lines
        keys = []

        for index in range(start, end):
            line = lines[index]
            if index == start:
                text = line.text[column:]
            elif line.is_significant and line.depth == column and _item_prefix(line) is None:
                text = line.content
            else:
                continue

            parsed = _parse_key(text)
            if parsed is not None:
                keys.append((index, parsed[0], parsed[1]))

        return keys

    def _read_env(self, key_line: int, value: str, end: int, column: int) -> EnvBlock:
        if value:
            return EnvBlock(key_line, key_line, (), None, inline=True)

        lines = self.document.lines
        entries = []
        entry_indent = None
        entry_depth = None
        last = key_line

        for index in range(key_line + 1, end):
            line = lines[index]
            if not line.is_significant:
                continue
            if line.depth <= column:
                break

            last = index
            if entry_depth is None:
                entry_depth = line.depth
                entry_indent = line.indent
            if line.depth == entry_depth:
                parsed = _parse_key(line.content)
                if parsed is not None:
                    entries.append(parsed)

        return EnvBlock(key_line, last, tuple(entries), entry_indent)

    def _key_indent(
        self, start: int, run_line: int, keys: List[Tuple[int, str, str]], column: int
    ) -> str:
        lines = self.document.lines
        if run_line != start:
            return lines[run_line].indent

        for line_number, _, _ in keys:
            if line_number != start:
                return lines[line_number].indent

        return lines[start].text[:column].replace("-", " ")

    def _nesting_unit(
        self, start: int, end: int, keys: List[Tuple[int, str, str]], column: int
    ) -> str:
        # Prefer a nested mapping inside this step, then anywhere in the document
        for line_number, _, value in keys:
            if value:
                continue
            child = self.document.next_significant(line_number)
            if child is not None and child.number < end and child.depth > column:
                if _item_prefix(child) is None:
                    return " " * (child.depth - column)

        for line in self.document.lines:
            if not line.is_significant or line.is_document_marker:
                continue
            parsed = _parse_key(line.content)
            if parsed is None or parsed[1]:
                continue
            child = self.document.next_significant(line.number)
            if (
                child is not None
                and child.depth > line.depth
                and _item_prefix(child) is None
                and _item_prefix(line) is None
            ):
                return " " * (child.depth - line.depth)

        return DEFAULT_NESTING_UNIT
