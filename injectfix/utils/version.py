"""
version.py - Version information for injectfix
"""

import platform
from typing import Any, Dict

__version__ = "0.1.0"
__release_date__ = "2026-10-19"


def get_version() -> str:
    """
    Get injectfix version

    Returns:
        Version string
    """
    return __version__


def get_version_info() -> Dict[str, Any]:
    """
    Get detailed version information

    Returns:
        Dictionary with the version, its release date and the running Python
    """
    return {
        "version": __version__,
        "release_date": __release_date__,
        "release_year": int(__release_date__.split("-")[0]),
        "python": platform.python_version(),
    }


def version_message() -> str:
    """Line printed by ``injectfix --version``"""
    info = get_version_info()
    return f"injectfix {info['version']} ({info['release_date']}, Python {info['python']})"
