"""
cli.py - Command-line interface for injectfix

This module provides the command-line interface for the injectfix tool,
allowing users to find and fix script injection in GitHub Actions workflows.
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click
import yaml

from .core import (
    ConfigurationError,
    ContextTaxonomy,
    Fixer,
    PatchResult,
    fix_repository,
    generate_default_config,
    ignore_contexts,
    load_config,
    patch_workflow,
)
from .core.config import validate_config
from .utils.banner import _BANNER
from .utils.diff import colorize_diff, unified_diff
from .utils.file_handler import has_github_workflows, list_workflow_files, read_workflow_file
from .utils.version import __version__, version_message
from .utils.yaml_handler import is_github_actions_workflow, load_workflow_documents

REASON_LABELS = {
    "comment": "inside a comment",
    "not_executable": "not in a run script",
    "complex_expression": "part of a compound expression",
    "no_step": "enclosing step could not be read",
    "unsupported_env": "step env is not a block mapping",
    "unsupported_shell": "step shell has no known variable syntax",
}


def _load_settings(config: Optional[str], ignore: Tuple[str, ...] = ()) -> Dict[str, Any]:
    """Load config and apply command-line overrides, exiting on errors"""
    try:
        config_data = load_config(config)
        if ignore:
            config_data = ignore_contexts(config_data, list(ignore))
            validate_config(config_data)
    except ConfigurationError as e:
        click.echo(f"Error loading config: {e}", err=True)
        sys.exit(1)
    return config_data


def _discover_files(repo_path: str) -> List[str]:
    """Resolve REPO_PATH to workflow files, exiting when there are none"""
    path = Path(repo_path)
    if path.is_file() and path.suffix in [".yml", ".yaml"]:
        return [str(path)]

    if not has_github_workflows(repo_path):
        click.echo(f"No workflows found at {path / '.github' / 'workflows'}", err=True)
        sys.exit(1)
    return sorted(list_workflow_files(repo_path))


def _echo_result(result: PatchResult, verbose: bool) -> None:
    for candidate in result.candidates:
        click.echo(
            f"  {click.style('SINK', fg='red')} {candidate.location}: "
            f"${{{{ {candidate.expression} }}}}"
        )

    for occurrence in result.ignored:
        if occurrence.reason in ("comment", "not_executable") and not verbose:
            continue
        color = "yellow" if occurrence in result.unfixed else "blue"
        click.echo(
            f"  {click.style('SKIP', fg=color)} {occurrence.location}: "
            f"${{{{ {occurrence.expression} }}}} ({REASON_LABELS.get(occurrence.reason, occurrence.reason)})"
        )


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, message=version_message())
@click.option("--debug", is_flag=True, help="Log engine decisions to stderr")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """injectfix ☠ GitHub Actions script injection fixer

    Moves untrusted ${{ github.event... }} expressions out of run scripts
    and into step environment variables.
    """
    if debug:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if ctx.invoked_subcommand is None:
        click.echo(_BANNER)
        click.echo("Use `injectfix --help` for available commands.")


@cli.command()
@click.argument("repo_path", type=click.Path())
@click.option("--config", type=click.Path(), help="Path to YAML config file")
@click.option("--ignore", multiple=True, help="Context pattern to treat as trusted")
@click.option("--verbose", is_flag=True, help="Also list occurrences that are not sinks")
def scan(repo_path: str, config: Optional[str], ignore: Tuple[str, ...], verbose: bool) -> None:
    """Find script injection sinks in GitHub Actions workflows (read-only)

    REPO_PATH: Path to the repository root or specific workflow file
    """
    config_data = _load_settings(config, ignore)
    taxonomy = ContextTaxonomy.from_config(config_data)
    verbose = verbose or bool(config_data.get("report", {}).get("verbose", False))

    total_sinks = 0
    total_unfixable = 0
    for file_path in _discover_files(repo_path):
        try:
            content = read_workflow_file(file_path)
        except (OSError, UnicodeDecodeError) as e:
            click.echo(f"Error reading {file_path}: {e}", err=True)
            continue

        try:
            documents = load_workflow_documents(content)
            if not any(is_github_actions_workflow(doc) for doc in documents):
                click.echo(f"⚠️ {file_path} does not appear to be a GitHub Actions workflow")
        except yaml.YAMLError as e:
            click.echo(f"⚠️ {file_path} is not valid YAML: {e}")

        result = patch_workflow(content, taxonomy, file_path)
        sinks = len(result.candidates) + len(result.unfixed)
        total_sinks += sinks
        total_unfixable += len(result.unfixed)

        if sinks or (verbose and result.ignored):
            click.echo(f"\n{file_path}:")
            _echo_result(result, verbose)

    click.echo(
        f"\nScan complete: {total_sinks} sink(s) found, "
        f"{total_sinks - total_unfixable} fixable automatically"
    )

    if total_sinks > 0:
        sys.exit(1)


@cli.command()
@click.argument("repo_path", type=click.Path(exists=True))
@click.option("--config", type=click.Path(exists=True), help="Path to YAML config file")
@click.option("--ignore", multiple=True, help="Context pattern to treat as trusted")
@click.option("--interactive", is_flag=True, help="Confirm each file individually")
@click.option("--dry-run", is_flag=True, help="Show what would be fixed without making changes")
@click.option("--diff/--no-diff", "show_diff", default=None, help="Print a diff of each change")
@click.option("--no-backup", is_flag=True, help="Do not keep a .bak copy of patched files")
def fix(
    repo_path: str,
    config: Optional[str],
    ignore: Tuple[str, ...],
    interactive: bool,
    dry_run: bool,
    show_diff: Optional[bool],
    no_backup: bool,
) -> None:
    """Rewrite script injection sinks to use environment variables

    REPO_PATH: Path to the repository root or specific workflow file
    """
    if dry_run:
        click.echo("Running in dry-run mode. No changes will be made.")

    if interactive and dry_run:
        click.echo("Note: --interactive has no effect in dry-run mode.")

    config_data = _load_settings(config, ignore)
    if no_backup:
        config_data["auto_fix"] = dict(config_data.get("auto_fix", {}), backup=False)
    if show_diff is None:
        show_diff = bool(config_data.get("report", {}).get("show_diff", True))

    if not Path(repo_path).is_file():
        _discover_files(repo_path)

    fixer = Fixer(config_data, interactive=interactive and not dry_run, dry_run=dry_run)
    fixed, skipped = fix_repository(repo_path, fixer=fixer)

    if show_diff:
        color = "NO_COLOR" not in os.environ
        for file_path, result in fixer.results.items():
            if not result.changed:
                continue
            diff = unified_diff(result.original, result.patched, file_path)
            click.echo("")
            click.echo(colorize_diff(diff) if color else diff, nl=False)

    click.echo("\n----- Fix Summary -----")
    if dry_run:
        click.echo(f"Fixable sinks: {fixed}")
    else:
        click.echo(f"Sinks fixed: {fixed}")
    click.echo(f"Sinks skipped: {skipped}")

    if fixed > 0 and not dry_run:
        click.echo("\n✅ Fixes applied successfully!")
    elif fixed > 0:
        click.echo("\n✅ Sinks can be fixed (run without --dry-run to apply)")
    elif skipped == 0:
        click.echo("\n✅ No script injection found!")
    else:
        click.echo("\n⚠️ Some sinks could not be fixed automatically")


@cli.command()
@click.option("--config", type=click.Path(exists=True), help="Path to YAML config file")
@click.option(
    "--format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
def contexts(config: Optional[str], format: str) -> None:
    """List the untrusted contexts and the variables they become"""
    taxonomy = ContextTaxonomy.from_config(_load_settings(config))
    entries = taxonomy.list_contexts()

    if format == "json":
        click.echo(json.dumps(entries, indent=2))
        return

    click.echo(f"🔍 injectfix treats {len(entries)} context(s) as untrusted:")
    for entry in entries:
        click.echo(f" - {entry['context']} -> {click.style(entry['variable'], fg='cyan')}")


@cli.command()
@click.option("--config", type=click.Path(exists=True), help="Path to YAML config file to validate")
@click.option("--generate", is_flag=True, help="Generate a default config file")
@click.option("--output", type=click.Path(), help="Output path for generated config")
def config(config: Optional[str], generate: bool, output: Optional[str]) -> None:
    """View or validate current config"""
    if generate:
        try:
            config_str = generate_default_config(output_path=output)
        except ConfigurationError as e:
            click.echo(f"❌ {e}", err=True)
            sys.exit(1)

        if output:
            click.echo(f"Default config written to {output}")
        else:
            click.echo(config_str)
        return

    try:
        config_data = load_config(config)
    except ConfigurationError as e:
        click.echo(f"❌ Config validation failed: {e}", err=True)
        sys.exit(1)

    click.echo("✅ Config loaded and valid.")
    taxonomy = ContextTaxonomy.from_config(config_data)
    click.echo(f" - untrusted contexts: {len(taxonomy)}")
    for section in ("auto_fix", "report"):
        for name, value in config_data.get(section, {}).items():
            click.echo(f" - {section}.{name}: {'enabled' if value else 'disabled'}")


if __name__ == "__main__":
    cli()
