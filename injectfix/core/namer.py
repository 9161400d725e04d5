"""
namer.py - Environment variable bindings for a step

Each distinct untrusted expression in a step gets one variable. Names come from
the taxonomy and are made unique against the step's existing ``env:`` entries.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from .locator import Step
from .scanner import Candidate
from .taxonomy import ContextTaxonomy

_BOUND_EXPRESSION_RE = re.compile(r"^\$\{\{[ \t]*(.*?)[ \t]*\}\}$")


@dataclass(frozen=True)
class VariableBinding:
    """An environment variable holding one untrusted expression"""

    name: str
    expression: str
    existing: bool = False

    @property
    def value(self) -> str:
        return f"${{{{ {self.expression} }}}}"

    def as_entry(self) -> str:
        return f"{self.name}: {self.value}"


def bound_expression(value: str) -> Optional[str]:
    """Return the expression an env value binds, if it is exactly one ``${{ }}``"""
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        value = value[1:-1]
    match = _BOUND_EXPRESSION_RE.match(value)
    return match.group(1) if match else None


def assign_bindings(
    step: Step, candidates: List[Candidate], taxonomy: ContextTaxonomy
) -> Dict[str, VariableBinding]:
    """
    Assign a variable to every distinct expression used in a step

    Args:
        step: Step owning the candidates
        candidates: The step's candidates in document order
        taxonomy: Source of the naming rule

    Returns:
        Bindings keyed by expression text, in first-occurrence order
    """
    existing: Dict[str, str] = {}
    if step.env is not None:
        existing = dict(step.env.entries)

    taken: Set[str] = set(existing)
    bindings: Dict[str, VariableBinding] = {}

    for candidate in candidates:
        expression = candidate.expression
        if expression in bindings:
            continue

        reused = _find_existing(existing, expression)
        if reused is not None:
            bindings[expression] = VariableBinding(reused, expression, existing=True)
            continue

        base = taxonomy.variable_name(expression)
        name = base
        suffix = 2
        while name in taken:
            name = f"{base}_{suffix}"
            suffix += 1

        taken.add(name)
        bindings[expression] = VariableBinding(name, expression)

    return bindings


def _find_existing(existing: Dict[str, str], expression: str) -> Optional[str]:
    for name, value in existing.items():
        if bound_expression(value) == expression:
            return name
    return None
