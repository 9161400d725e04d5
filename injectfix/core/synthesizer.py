"""
synthesizer.py - Insert or extend a step's env block

New bindings are appended to an existing block mapping, or a new ``env:`` key
is inserted directly above the step's ``run:`` key. Nothing outside the
inserted lines is touched.
"""

from typing import Iterable, List

from .document import Document, Edit
from .locator import Step
from .namer import VariableBinding


def synthesize_env_edits(
    document: Document, step: Step, bindings: Iterable[VariableBinding]
) -> List[Edit]:
    """
    Build the edits that declare new bindings in a step's env block

    Args:
        document: Original document
        step: Step receiving the bindings
        bindings: Bindings in first-occurrence order; existing ones are skipped

    Returns:
        Zero or one insertion edit
    """
    new_bindings = [binding for binding in bindings if not binding.existing]
    if not new_bindings:
        return []

    newline = document.newline
    entries = [f"{step.entry_indent}{binding.as_entry()}" for binding in new_bindings]

    if step.env is not None:
        last = document.lines[step.env.last_line]
        if last.ending:
            return [Edit(last.next_start, last.next_start, newline.join(entries) + newline)]
        # The block ends the file without a trailing newline
        return [Edit(last.end, last.end, newline + newline.join(entries))]

    run_line = document.lines[step.run_line]
    block = newline.join(entries) + newline

    if step.run_on_item_line:
        offset = run_line.start + step.key_column
        return [Edit(offset, offset, "env:" + newline + block + step.indent)]

    separator = newline if step.blank_line_before_run else ""
    return [Edit(run_line.start, run_line.start, f"{step.indent}env:{newline}{block}{separator}")]
