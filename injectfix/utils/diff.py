"""
diff.py - Unified diff rendering for patched workflows
"""

import difflib
from typing import List

import click


def unified_diff(before: str, after: str, file_path: str = "workflow.yml") -> str:
    """
    Render a unified diff between two versions of a workflow

    Args:
        before: Original text
        after: Patched text
        file_path: Path shown in the diff headers

    Returns:
        Diff text, empty when the versions are identical
    """
    lines = difflib.unified_diff(
        before.splitlines(keepends=True),
        after.splitlines(keepends=True),
        fromfile=f"a/{file_path}",
        tofile=f"b/{file_path}",
    )

    rendered: List[str] = []
    for line in lines:
        rendered.append(line if line.endswith("\n") else line + "\n")
    return "".join(rendered)


def colorize_diff(diff: str) -> str:
    """Color added and removed lines with click styles"""
    colored = []
    for line in diff.splitlines(keepends=True):
        if line.startswith(("+++", "---")):
            colored.append(click.style(line, bold=True))
        elif line.startswith("+"):
            colored.append(click.style(line, fg="green"))
        elif line.startswith("-"):
            colored.append(click.style(line, fg="red"))
        elif line.startswith("@@"):
            colored.append(click.style(line, fg="cyan"))
        else:
            colored.append(line)
    return "".join(colored)
