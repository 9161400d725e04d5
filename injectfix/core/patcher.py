"""
patcher.py - Script injection remediation for GitHub Actions workflows

This module ties the engine together: it scans a workflow's text, groups the
untrusted expressions by step, binds each to an environment variable and
returns the patched text with every other byte left as it was. The Fixer class
applies the engine to files on disk.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import click

from ..utils.file_handler import list_workflow_files, read_workflow_file, safe_write_file
from ..utils.yaml_handler import verify_patched_workflow
from .document import Document, Edit, apply_edits
from .locator import Step, StructuralLocator
from .namer import VariableBinding, assign_bindings
from .rewriter import rewrite_run_body, shell_family
from .scanner import (
    REASON_COMPLEX_EXPRESSION,
    REASON_NO_STEP,
    REASON_UNSUPPORTED_ENV,
    REASON_UNSUPPORTED_SHELL,
    Candidate,
    IgnoredOccurrence,
    OccurrenceScanner,
)
from .synthesizer import synthesize_env_edits
from .taxonomy import ContextTaxonomy

logger = logging.getLogger(__name__)

# Occurrences in executable blocks that were found but could not be rewritten
UNFIXED_REASONS = {
    REASON_COMPLEX_EXPRESSION,
    REASON_NO_STEP,
    REASON_UNSUPPORTED_ENV,
    REASON_UNSUPPORTED_SHELL,
}


@dataclass
class PatchResult:
    """Outcome of patching one workflow document"""

    original: str
    patched: str
    file_path: Optional[str] = None
    candidates: List[Candidate] = field(default_factory=list)
    ignored: List[IgnoredOccurrence] = field(default_factory=list)
    bindings: Dict[Step, List[VariableBinding]] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return self.patched != self.original

    @property
    def unfixed(self) -> List[IgnoredOccurrence]:
        return [occurrence for occurrence in self.ignored if occurrence.reason in UNFIXED_REASONS]


def patch_workflow(
    text: str,
    taxonomy: Optional[ContextTaxonomy] = None,
    file_path: Optional[str] = None,
) -> PatchResult:
    """
    Rewrite every script injection sink in a workflow document

    Args:
        text: Raw workflow text
        taxonomy: Untrusted context table, defaults to the built-in one
        file_path: Label carried on the result, never opened

    Returns:
        PatchResult with the patched text and diagnostics
    """
    taxonomy = taxonomy or ContextTaxonomy.default()
    document = Document(text)
    result = PatchResult(original=text, patched=text, file_path=file_path)

    candidates: List[Candidate] = []
    for occurrence in OccurrenceScanner(taxonomy).scan(document):
        if isinstance(occurrence, Candidate):
            candidates.append(occurrence)
        else:
            result.ignored.append(occurrence)

    if not candidates:
        return result

    groups, dropped = StructuralLocator(document).group(candidates)
    result.ignored.extend(dropped)

    edits: List[Edit] = []
    for step, step_candidates in groups.items():
        reason = _unsupported_reason(step)
        if reason is not None:
            logger.debug("Skipping step at line %d: %s", step.start_line + 1, reason)
            result.ignored.extend(candidate.ignored(reason) for candidate in step_candidates)
            continue

        bindings = assign_bindings(step, step_candidates, taxonomy)
        edits.extend(synthesize_env_edits(document, step, bindings.values()))
        edits.extend(rewrite_run_body(document, step_candidates, bindings, step.shell))

        result.candidates.extend(step_candidates)
        result.bindings[step] = list(bindings.values())

    result.candidates.sort(key=lambda candidate: candidate.start)
    result.ignored.sort(key=lambda occurrence: occurrence.start)
    result.patched = apply_edits(text, edits)
    return result


def _unsupported_reason(step: Step) -> Optional[str]:
    if step.env is not None and step.env.inline:
        return REASON_UNSUPPORTED_ENV
    if shell_family(step.shell) is None:
        return REASON_UNSUPPORTED_SHELL
    return None


def generate_patch(text: str, taxonomy: Optional[ContextTaxonomy] = None) -> str:
    """
    Return the workflow text with its script injection sinks fixed

    The text is returned unchanged when there is nothing to fix.
    """
    return patch_workflow(text, taxonomy).patched


class Fixer:
    """Class for fixing script injection in workflow files"""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        interactive: bool = False,
        dry_run: bool = False,
    ) -> None:
        """
        Initialize the fixer

        Args:
            config: Configuration dictionary
            interactive: Whether to prompt before writing each file
            dry_run: Compute patches without writing them
        """
        self.config = config or {}
        self.interactive = interactive
        self.dry_run = dry_run
        self.taxonomy = ContextTaxonomy.from_config(self.config)
        self.results: Dict[str, PatchResult] = {}

    def _auto_fix_option(self, name: str, default: bool = True) -> bool:
        return bool(self.config.get("auto_fix", {}).get(name, default))

    def fix_workflow_file(self, file_path: str) -> Tuple[int, int]:
        """
        Fix script injection in a workflow file

        Args:
            file_path: Path to the workflow file

        Returns:
            Tuple of (sinks_fixed, sinks_skipped)
        """
        if not os.path.exists(file_path):
            return 0, 0

        try:
            content = read_workflow_file(file_path)
        except (OSError, UnicodeDecodeError) as e:
            click.echo(f"Error reading {file_path}: {e}", err=True)
            return 0, 0

        result = patch_workflow(content, self.taxonomy, file_path)
        self.results[file_path] = result

        fixed = len(result.candidates)
        skipped = len(result.unfixed)

        if not result.changed:
            return 0, skipped

        if not self._auto_fix_option("enabled"):
            click.echo(f"Auto-fix disabled; skipping fixes for {file_path}")
            return 0, fixed + skipped

        if self._auto_fix_option("verify_yaml"):
            ok, message = verify_patched_workflow(result.original, result.patched)
            if not ok:
                click.echo(f"Refusing to patch {file_path}: {message}", err=True)
                return 0, fixed + skipped

        if self.dry_run:
            return fixed, skipped

        if self.interactive and not click.confirm(
            f"\nRewrite {fixed} script injection sink(s) in {file_path}?", default=True
        ):
            return 0, fixed + skipped

        if not safe_write_file(
            file_path, result.patched, create_backup=self._auto_fix_option("backup")
        ):
            click.echo(f"Error writing {file_path}", err=True)
            return 0, fixed + skipped

        return fixed, skipped


def fix_workflow_file(
    file_path: str,
    config: Optional[Dict[str, Any]] = None,
    interactive: bool = False,
    dry_run: bool = False,
) -> Tuple[int, int]:
    """
    Fix script injection in a workflow file

    Args:
        file_path: Path to the workflow file
        config: Configuration dictionary
        interactive: Whether to prompt before writing
        dry_run: Compute the patch without writing it

    Returns:
        Tuple of (sinks_fixed, sinks_skipped)
    """
    fixer = Fixer(config, interactive, dry_run)
    return fixer.fix_workflow_file(file_path)


def fix_repository(
    repo_path: str,
    config: Optional[Dict[str, Any]] = None,
    interactive: bool = False,
    dry_run: bool = False,
    fixer: Optional[Fixer] = None,
) -> Tuple[int, int]:
    """
    Fix script injection in all workflow files in a repository

    Args:
        repo_path: Path to the repository, or to a single workflow file
        config: Configuration dictionary
        interactive: Whether to prompt before writing each file
        dry_run: Compute patches without writing them
        fixer: Fixer to use, so callers can inspect its results afterwards

    Returns:
        Tuple of (total_sinks_fixed, total_sinks_skipped)
    """
    total_fixed = 0
    total_skipped = 0

    fixer = fixer or Fixer(config, interactive, dry_run)

    if os.path.isfile(repo_path):
        file_paths = [repo_path]
    else:
        file_paths = sorted(list_workflow_files(repo_path))

    for file_path in file_paths:
        fixed, skipped = fixer.fix_workflow_file(file_path)

        total_fixed += fixed
        total_skipped += skipped

        verb = "Would fix" if fixer.dry_run else "Fixed"
        if fixed > 0:
            click.echo(f"✅ {verb} {fixed} sink(s) in {file_path}")
        if skipped > 0:
            click.echo(f"⚠️ Skipped {skipped} sink(s) in {file_path}")

    return total_fixed, total_skipped
