"""
yaml_handler.py - Utilities for YAML processing

This module provides the PyYAML side of injectfix: a workflow-aware loader
and a structural check run on patched text before it is written.
"""

from typing import Any, List, Tuple

import yaml


class WorkflowLoader(yaml.SafeLoader):
    """Safe loader that keeps ``on``/``off``/``yes``/``no`` as strings"""

    pass


# PyYAML follows YAML 1.1, where plain ``on`` resolves to the boolean True.
# Workflows use ``on`` as a key, so the boolean resolver is removed for this
# loader only.
for first_char, resolvers in list(WorkflowLoader.yaml_implicit_resolvers.items()):
    WorkflowLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:bool"
    ]


def load_workflow_documents(content: str) -> List[Any]:
    """
    Load every YAML document in a workflow file

    Args:
        content: YAML content as string

    Returns:
        List of loaded documents

    Raises:
        yaml.YAMLError: If YAML parsing fails
    """
    return list(yaml.load_all(content, Loader=WorkflowLoader))


def is_github_actions_workflow(yaml_content: Any) -> bool:
    """
    Check if YAML content is a GitHub Actions workflow or composite action

    Args:
        yaml_content: Loaded YAML document

    Returns:
        True if the content seems to be a workflow or composite action
    """
    if not isinstance(yaml_content, dict):
        return False

    if "on" in yaml_content and "jobs" in yaml_content:
        return True

    runs = yaml_content.get("runs")
    return isinstance(runs, dict) and "steps" in runs


def _split_steps(obj: Any, envs: List[Any]) -> Any:
    """Copy a document with step env blocks collected and run values blanked"""
    if isinstance(obj, dict):
        result = {}
        for key, value in obj.items():
            if key == "steps" and isinstance(value, list):
                result[key] = [_split_step(step, envs) for step in value]
            else:
                result[key] = _split_steps(value, envs)
        return result
    if isinstance(obj, list):
        return [_split_steps(item, envs) for item in obj]
    return obj


def _split_step(step: Any, envs: List[Any]) -> Any:
    if not isinstance(step, dict):
        return _split_steps(step, envs)

    envs.append(step.get("env"))
    return {
        key: None if key == "run" else _split_steps(value, envs)
        for key, value in step.items()
        if key != "env"
    }


def _env_preserved(before: Any, after: Any) -> bool:
    if before is None:
        return after is None or isinstance(after, dict)
    if not isinstance(before, dict) or not isinstance(after, dict):
        return bool(before == after)

    return all(key in after and after[key] == value for key, value in before.items())


def verify_patched_workflow(original: str, patched: str) -> Tuple[bool, str]:
    """
    Check that a patch only added env entries and changed run scripts

    Args:
        original: Workflow text before patching
        patched: Workflow text after patching

    Returns:
        Tuple of (ok, message); message explains a failure
    """
    try:
        before = load_workflow_documents(original)
    except yaml.YAMLError as e:
        return False, f"original workflow is not valid YAML: {e}"

    try:
        after = load_workflow_documents(patched)
    except yaml.YAMLError as e:
        return False, f"patched workflow is not valid YAML: {e}"

    if len(before) != len(after):
        return False, "patched workflow has a different number of YAML documents"

    before_envs: List[Any] = []
    after_envs: List[Any] = []
    if _split_steps(before, before_envs) != _split_steps(after, after_envs):
        return False, "patch changed the workflow outside step env and run values"

    for before_env, after_env in zip(before_envs, after_envs):
        if not _env_preserved(before_env, after_env):
            return False, "patch changed an existing env entry"

    return True, ""

