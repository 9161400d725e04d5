"""
core package for injectfix

This package contains the script injection remediation engine and its configuration.
"""

from .config import (
    ConfigurationError,
    generate_default_config,
    ignore_contexts,
    load_config,
    save_config,
)
from .document import Document, Edit, apply_edits
from .locator import Step, StructuralLocator
from .namer import VariableBinding, assign_bindings
from .patcher import Fixer, PatchResult, fix_repository, fix_workflow_file, generate_patch, patch_workflow
from .scanner import Candidate, IgnoredOccurrence, OccurrenceScanner
from .taxonomy import DEFAULT_UNTRUSTED_CONTEXTS, ContextTaxonomy

__all__ = [
    "ConfigurationError",
    "generate_default_config",
    "ignore_contexts",
    "load_config",
    "save_config",
    "Document",
    "Edit",
    "apply_edits",
    "Step",
    "StructuralLocator",
    "VariableBinding",
    "assign_bindings",
    "Fixer",
    "PatchResult",
    "fix_repository",
    "fix_workflow_file",
    "generate_patch",
    "patch_workflow",
    "Candidate",
    "IgnoredOccurrence",
    "OccurrenceScanner",
    "DEFAULT_UNTRUSTED_CONTEXTS",
    "ContextTaxonomy",
]
