"""
injectfix - GitHub Actions script injection fixer

Rewrites untrusted ``${{ github.event... }}`` expressions in workflow ``run:``
scripts so the value reaches the shell through an environment variable,
leaving the rest of the file byte-for-byte unchanged.
"""

from injectfix.utils.version import __version__, get_version, get_version_info

from .core import (
    DEFAULT_UNTRUSTED_CONTEXTS,
    ConfigurationError,
    ContextTaxonomy,
    Fixer,
    PatchResult,
    fix_repository,
    fix_workflow_file,
    generate_default_config,
    generate_patch,
    load_config,
    patch_workflow,
    save_config,
)
from .utils.banner import _BANNER

__all__ = [
    "__version__",
    "get_version",
    "get_version_info",
    "DEFAULT_UNTRUSTED_CONTEXTS",
    "ConfigurationError",
    "ContextTaxonomy",
    "Fixer",
    "PatchResult",
    "fix_repository",
    "fix_workflow_file",
    "generate_default_config",
    "generate_patch",
    "load_config",
    "patch_workflow",
    "save_config",
    "_BANNER",
]


def main() -> None:
    """Main entry point for the injectfix CLI tool"""
    from .cli import cli

    cli()
