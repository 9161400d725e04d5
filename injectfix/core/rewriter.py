"""
rewriter.py - Replace untrusted expressions in run scripts

Every candidate token is replaced by a reference to its environment variable
in the syntax of the step's shell. Surrounding quotes are left as written.
"""

import re
from typing import Dict, List, Optional

from .document import Document, Edit
from .namer import VariableBinding
from .scanner import Candidate

_IDENTIFIER_CHAR_RE = re.compile(r"[A-Za-z0-9_]")

POSIX_SHELLS = {None, "bash", "sh"}
POWERSHELL_SHELLS = {"pwsh", "powershell"}
CMD_SHELLS = {"cmd"}


def shell_family(shell: Optional[str]) -> Optional[str]:
    """
    Classify a step's ``shell:`` value

    Custom shells such as ``bash -e {0}`` are classified by their program.

    Returns:
        ``"posix"``, ``"powershell"``, ``"cmd"`` or None when the shell has no
        known variable syntax
    """
    program = shell.split()[0] if shell else None
    if program in POSIX_SHELLS:
        return "posix"
    if program in POWERSHELL_SHELLS:
        return "powershell"
    if program in CMD_SHELLS:
        return "cmd"
    return None


def variable_reference(name: str, shell: Optional[str] = None, following: str = "") -> str:
    """
    Build a shell reference to an environment variable

    Args:
        name: Variable name
        shell: The step's ``shell:`` value
        following: Text right after the replaced token

    Returns:
        ``$NAME`` (``${NAME}`` when glued to an identifier), ``$env:NAME`` or
        ``%NAME%``
    """
    family = shell_family(shell)
    if family == "powershell":
        if following and _IDENTIFIER_CHAR_RE.match(following[0]):
            return f"${{env:{name}}}"
        return f"$env:{name}"
    if family == "cmd":
        return f"%{name}%"
    if following and _IDENTIFIER_CHAR_RE.match(following[0]):
        return f"${{{name}}}"
    return f"${name}"


def rewrite_run_body(
    document: Document,
    candidates: List[Candidate],
    bindings: Dict[str, VariableBinding],
    shell: Optional[str] = None,
) -> List[Edit]:
    """
    Build one substitution edit per candidate

    Args:
        document: Original document
        candidates: Candidates of a single step
        bindings: Bindings keyed by expression text
        shell: The step's ``shell:`` value

    Returns:
        Substitution edits in document order
    """
    edits = []
    for candidate in candidates:
        binding = bindings[candidate.expression]
        following = document.text[candidate.end : candidate.end + 1]
        edits.append(
            Edit(candidate.start, candidate.end, variable_reference(binding.name, shell, following))
        )
    return edits
