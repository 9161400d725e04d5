"""
utils package for injectfix

File, YAML, diff and version helpers shared by the core and the CLI.
"""

from .diff import colorize_diff, unified_diff
from .file_handler import (
    create_file_backup,
    has_github_workflows,
    list_workflow_files,
    read_workflow_file,
    restore_from_backup,
    safe_write_file,
)
from .yaml_handler import (
    is_github_actions_workflow,
    load_workflow_documents,
    verify_patched_workflow,
)

__all__ = [
    "colorize_diff",
    "unified_diff",
    "create_file_backup",
    "has_github_workflows",
    "list_workflow_files",
    "read_workflow_file",
    "restore_from_backup",
    "safe_write_file",
    "is_github_actions_workflow",
    "load_workflow_documents",
    "verify_patched_workflow",
]
