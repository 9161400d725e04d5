"""
taxonomy.py - Untrusted GitHub context expressions

This module holds the table of context paths an attacker can control and the
rule that turns a matched path into an environment variable name.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

ROOT_CONTEXT = "github"
EVENT_NAMESPACE = "event"

DEFAULT_UNTRUSTED_CONTEXTS = [
    "event.issue.title",
    "event.issue.body",
    "event.pull_request.title",
    "event.pull_request.body",
    "event.pull_request.head.ref",
    "event.pull_request.head.label",
    "event.pull_request.head.repo.default_branch",
    "event.comment.body",
    "event.review.body",
    "event.review_comment.body",
    "event.discussion.title",
    "event.discussion.body",
    "event.issue_comment.comment",
    "event.pages.*.page_name",
    "event.commits.*.message",
    "event.commits.*.author.email",
    "event.commits.*.author.name",
    "event.head_commit.message",
    "event.head_commit.author.email",
    "event.head_commit.author.name",
    "event.forkee.name",
    "event.forkee.full_name",
    "event.workflow_run.head_branch",
    "event.workflow_run.head_commit.message",
    "event.workflow_run.head_commit.author.email",
    "event.workflow_run.head_commit.author.name",
    "head_ref",
]

_IDENT = r"[A-Za-z_][A-Za-z0-9_-]*"

# A bare property path: ``a.b[0].c``, ``a.*.b`` or ``a['b']``
_PATH_RE = re.compile(
    rf"^{_IDENT}(?:\.(?:{_IDENT}|\*)|\[(?:\d+|\*|'[^']*')\])*$"
)
_SEGMENT_RE = re.compile(rf"\.?({_IDENT}|\*)|\[(\d+|\*|'[^']*')\]")

# Path-looking tokens inside a larger expression
_PATH_TOKEN_RE = re.compile(rf"{_IDENT}(?:\.(?:{_IDENT}|\*)|\[(?:\d+|\*|'[^']*')\])*")


def split_path(path: str) -> Optional[Tuple[str, ...]]:
    """
    Split a context property path into its segments

    Args:
        path: Expression text such as ``github.event.commits[0].message``

    Returns:
        Tuple of segments, or None if the text is not a bare property path
    """
    path = path.strip()
    if not _PATH_RE.match(path):
        return None

    segments = []
    for match in _SEGMENT_RE.finditer(path):
        segment = match.group(1) if match.group(1) is not None else match.group(2)
        segments.append(segment.strip("'"))

    return tuple(segments)


def _strip_root(segments: Tuple[str, ...]) -> Tuple[str, ...]:
    if len(segments) > 1 and segments[0].lower() == ROOT_CONTEXT:
        return segments[1:]
    return segments


@dataclass(frozen=True)
class ContextPattern:
    """A dangerous context path, relative to the ``github`` context"""

    path: str = field(compare=False)
    segments: Tuple[str, ...] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        segments = split_path(self.path)
        if segments is None:
            raise ValueError(f"Invalid context pattern: {self.path}")
        object.__setattr__(self, "segments", _strip_root(segments))

    def matches(self, segments: Tuple[str, ...]) -> bool:
        """Check a root-stripped segment tuple against this pattern"""
        if len(segments) != len(self.segments):
            return False

        for expected, actual in zip(self.segments, segments):
            if expected != "*" and expected.lower() != actual.lower():
                return False

        return True


class ContextTaxonomy:
    """Lookup table for attacker-controlled context expressions"""

    def __init__(
        self,
        patterns: Iterable[str] = (),
        name_prefixes: Iterable[str] = (EVENT_NAMESPACE,),
    ) -> None:
        """
        Initialize the taxonomy

        Args:
            patterns: Context paths, optionally rooted at ``github.``; ``*``
                matches any single segment
            name_prefixes: Leading namespaces dropped when deriving names
        """
        self.patterns: List[ContextPattern] = []
        for pattern in patterns:
            context = ContextPattern(pattern)
            if context not in self.patterns:
                self.patterns.append(context)
        self.name_prefixes = tuple(prefix.lower() for prefix in name_prefixes)

    @classmethod
    def default(cls) -> "ContextTaxonomy":
        return cls(DEFAULT_UNTRUSTED_CONTEXTS)

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "ContextTaxonomy":
        """
        Build the taxonomy described by a configuration dictionary

        Args:
            config: Configuration with optional ``extra_contexts`` and
                ``ignored_contexts`` lists

        Returns:
            Default taxonomy extended and filtered by the configuration
        """
        config = config or {}
        taxonomy = cls.default().extend(config.get("extra_contexts") or [])
        return taxonomy.without(config.get("ignored_contexts") or [])

    def extend(self, patterns: Iterable[str]) -> "ContextTaxonomy":
        """Return a new taxonomy with additional patterns"""
        return ContextTaxonomy(
            [p.path for p in self.patterns] + list(patterns), self.name_prefixes
        )

    def without(self, patterns: Iterable[str]) -> "ContextTaxonomy":
        """Return a new taxonomy with the given patterns removed"""
        removed = {ContextPattern(p) for p in patterns}
        return ContextTaxonomy(
            [p.path for p in self.patterns if p not in removed], self.name_prefixes
        )

    def __iter__(self) -> Iterator[ContextPattern]:
        return iter(self.patterns)

    def __len__(self) -> int:
        return len(self.patterns)

    def __contains__(self, expression: object) -> bool:
        return isinstance(expression, str) and self.match(expression) is not None

    def match(self, expression: str) -> Optional[ContextPattern]:
        """
        Find the pattern matching a bare context path

        Args:
            expression: Text between ``${{`` and ``}}``

        Returns:
            The matching pattern, or None if the expression is not a bare
            path or is not untrusted
        """
        segments = split_path(expression)
        if segments is None:
            return None

        segments = _strip_root(segments)
        for pattern in self.patterns:
            if pattern.matches(segments):
                return pattern

        return None

    def mentions(self, expression: str) -> bool:
        """Check whether any path inside a compound expression is untrusted"""
        for token in _PATH_TOKEN_RE.findall(expression):
            if self.match(token) is not None:
                return True
        return False

    def variable_name(self, expression: str) -> str:
        """
        Derive the environment variable name for an expression

        ``github.event.pull_request.head.ref`` becomes ``PULL_REQUEST_HEAD_REF``
        and ``github.event.commits[0].message`` becomes ``COMMITS_0_MESSAGE``.

        Raises:
            ValueError: If the expression is not a bare property path
        """
        segments = split_path(expression)
        if segments is None:
            raise ValueError(f"Not a context path: {expression}")

        return self._name_from_segments(_strip_root(segments))

    def _name_from_segments(self, segments: Tuple[str, ...]) -> str:
        if len(segments) > 1 and segments[0].lower() in self.name_prefixes:
            segments = segments[1:]

        name = "_".join(segments)
        name = re.sub(r"[^A-Za-z0-9]+", "_", name).strip("_")
        return name.upper()

    def list_contexts(self) -> List[Dict[str, str]]:
        """List every pattern with the variable name it produces"""
        return [
            {
                "context": ".".join((ROOT_CONTEXT,) + pattern.segments),
                "variable": self._name_from_segments(
                    tuple("N" if s == "*" else s for s in pattern.segments)
                ),
            }
            for pattern in self.patterns
        ]
