"""
file_handler.py - Utilities for file operations

This module provides file handling utilities for injectfix, including
workflow discovery, byte-preserving reads, backup creation and safe writes.
"""

import os
import shutil
import tempfile
from typing import List

import click


def has_github_workflows(path: str) -> bool:
    """
    Check if a directory contains GitHub workflow files

    Args:
        path: Directory path to check

    Returns:
        True if the directory contains a .github/workflows directory with YAML files
    """
    return len(list_workflow_files(path)) > 0


def list_workflow_files(repo_path: str) -> List[str]:
    """
    List all GitHub Actions workflow files in a repository

    Args:
        repo_path: Path to the repository

    Returns:
        List of workflow file paths
    """
    workflows_dir = os.path.join(repo_path, ".github", "workflows")
    if not os.path.isdir(workflows_dir):
        return []

    return [
        os.path.join(workflows_dir, f)
        for f in os.listdir(workflows_dir)
        if f.endswith((".yml", ".yaml"))
    ]


def read_workflow_file(file_path: str) -> str:
    """
    Read a workflow file without translating line endings

    Args:
        file_path: Path to the file

    Returns:
        File content exactly as stored

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    with open(file_path, "r", encoding="utf-8", newline="") as f:
        return f.read()


def create_file_backup(file_path: str, suffix: str = ".bak") -> str:
    """
    Create a backup of a file

    Args:
        file_path: Path to the file to backup
        suffix: Suffix to append to the backup file name

    Returns:
        Path to the backup file

    Raises:
        FileNotFoundError: If the source file doesn't exist
    """
    backup_path = f"{file_path}{suffix}"

    shutil.copy2(file_path, backup_path)

    return backup_path


def restore_from_backup(backup_path: str, original_path: str) -> bool:
    """
    Restore a file from backup

    Args:
        backup_path: Path to the backup file
        original_path: Path to restore to

    Returns:
        True if successful, False otherwise
    """
    if not os.path.exists(backup_path):
        return False

    shutil.copy2(backup_path, original_path)

    return True


def safe_write_file(file_path: str, content: str, create_backup: bool = True) -> bool:
    """
    Safely write content to a file with backup

    Args:
        file_path: Path to the file to write
        content: Content to write, line endings included
        create_backup: Whether to create a backup of the original file

    Returns:
        True if successful, False otherwise
    """
    backup_path = None
    if create_backup and os.path.exists(file_path):
        backup_path = create_file_backup(file_path)

    try:
        os.makedirs(os.path.dirname(os.path.abspath(file_path)), exist_ok=True)

        # Write to a temporary file first
        fd, temp_path = tempfile.mkstemp(dir=os.path.dirname(os.path.abspath(file_path)))
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(content)

            if os.path.exists(file_path):
                shutil.copymode(file_path, temp_path)

            # Replace the original file with the temporary one
            shutil.move(temp_path, file_path)
            return True
        finally:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
    except OSError as e:
        click.echo(f"Error writing file: {e}", err=True)

        if backup_path and os.path.exists(backup_path):
            restore_from_backup(backup_path, file_path)

        return False
