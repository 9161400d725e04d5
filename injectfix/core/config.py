"""
config.py - Configuration management for injectfix

This module handles loading, validating, and managing configuration for the injectfix tool.
"""

import copy
import os
from typing import Any, Dict, List, Optional, cast

import yaml

from .taxonomy import split_path

DEFAULT_CONFIG: Dict[str, Any] = {
    "extra_contexts": [],
    "ignored_contexts": [],
    "auto_fix": {
        "enabled": True,
        "backup": True,
        "verify_yaml": True,
    },
    "report": {
        "show_diff": True,
        "verbose": False,
    },
}


class ConfigurationError(Exception):
    """Exception raised for configuration errors"""

    pass


def get_config_paths() -> List[str]:
    """
    Get list of possible config file locations in priority order

    Returns:
        List of config file paths to check
    """
    paths = []

    paths.append(os.path.join(os.getcwd(), "injectfix.yml"))
    paths.append(os.path.join(os.getcwd(), "injectfix.yaml"))
    paths.append(os.path.join(os.getcwd(), ".injectfix.yml"))
    paths.append(os.path.join(os.getcwd(), ".injectfix.yaml"))

    home_dir = os.path.expanduser("~")
    paths.append(os.path.join(home_dir, ".injectfix.yml"))
    paths.append(os.path.join(home_dir, ".injectfix.yaml"))
    paths.append(os.path.join(home_dir, ".config", "injectfix", "config.yml"))
    paths.append(os.path.join(home_dir, ".config", "injectfix", "config.yaml"))

    if os.name == "posix":
        paths.append("/etc/injectfix/config.yml")
        paths.append("/etc/injectfix/config.yaml")

    return paths


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge two config dictionaries

    Args:
        base: Base configuration
        override: Configuration to override base

    Returns:
        Merged configuration dictionary
    """
    result = base.copy()

    for key, override_value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(override_value, dict):
            result[key] = merge_configs(result[key], override_value)
        else:
            result[key] = override_value

    return result


def _validate_contexts(config: Dict[str, Any]) -> None:
    """Validate context pattern lists"""

    for section in ("extra_contexts", "ignored_contexts"):
        if section not in config:
            continue

        patterns = config[section]
        if patterns is None:
            continue
        if not isinstance(patterns, list):
            raise ConfigurationError(f"'{section}' must be a list")

        for pattern in patterns:
            if not isinstance(pattern, str) or split_path(pattern) is None:
                raise ConfigurationError(
                    f"Invalid context pattern '{pattern}' in '{section}'. "
                    "Expected a property path such as 'event.issue.title'"
                )


def _validate_flags(config: Dict[str, Any], section: str) -> None:
    """Validate a section made of boolean flags"""

    if section not in config:
        return

    if not isinstance(config[section], dict):
        raise ConfigurationError(f"'{section}' must be a dictionary")

    for name, value in config[section].items():
        if name not in DEFAULT_CONFIG[section]:
            raise ConfigurationError(f"Unknown configuration option '{section}.{name}'")
        if not isinstance(value, bool):
            raise ConfigurationError(f"'{section}.{name}' must be a boolean")


def validate_config(config: Dict[str, Any]) -> None:
    """Validate configuration structure and values"""

    for key in config.keys():
        if key not in DEFAULT_CONFIG:
            raise ConfigurationError(f"Unknown configuration option '{key}'")

    _validate_contexts(config)
    _validate_flags(config, "auto_fix")
    _validate_flags(config, "report")


def _read_config_file(path: str) -> Optional[Dict[str, Any]]:
    with open(path, "r", encoding="utf-8") as f:
        user_config = yaml.safe_load(f)

    if user_config is None:
        return None
    if not isinstance(user_config, dict):
        raise ConfigurationError("Configuration file must contain a mapping")

    validate_config(user_config)
    return user_config


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from file or use defaults

    Args:
        config_path: Path to configuration file, or None to auto-detect

    Returns:
        Loaded configuration dictionary

    Raises:
        ConfigurationError: If configuration file is invalid
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path:
        if not os.path.exists(config_path):
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            user_config = _read_config_file(config_path)
        except ConfigurationError:
            raise
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Error parsing YAML configuration: {e}")
        except OSError as e:
            raise ConfigurationError(f"Error loading configuration: {e}")

        if user_config:
            config = merge_configs(config, user_config)
    else:
        for path in get_config_paths():
            if not os.path.exists(path):
                continue

            try:
                user_config = _read_config_file(path)
            except (ConfigurationError, yaml.YAMLError, OSError):
                # Auto-detected files are optional; a broken one is skipped
                continue

            if user_config:
                config = merge_configs(config, user_config)
                break

    return config


def save_config(config: Dict[str, Any], config_path: str) -> None:
    """
    Save configuration to file

    Args:
        config: Configuration dictionary to save
        config_path: Path to save configuration to

    Raises:
        ConfigurationError: If configuration cannot be saved
    """
    try:
        os.makedirs(os.path.dirname(os.path.abspath(config_path)), exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)

    except OSError as e:
        raise ConfigurationError(f"Error saving configuration: {e}")


def generate_default_config(output_path: Optional[str] = None) -> str:
    """
    Generate default configuration YAML

    Args:
        output_path: Path to save default configuration to, or None to return as string

    Returns:
        Default configuration YAML

    Raises:
        ConfigurationError: If configuration cannot be saved
    """
    default_config_yaml = cast(
        str,
        yaml.safe_dump(DEFAULT_CONFIG, default_flow_style=False, sort_keys=False),
    )

    if output_path:
        try:
            os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)

            with open(output_path, "w", encoding="utf-8") as f:
                f.write(default_config_yaml)
        except OSError as e:
            raise ConfigurationError(f"Error saving default configuration: {e}")

    return default_config_yaml


def ignore_contexts(config: Dict[str, Any], patterns: List[str]) -> Dict[str, Any]:
    """
    Stop treating specific contexts as untrusted

    Args:
        config: Configuration dictionary
        patterns: Context patterns to ignore

    Returns:
        Updated configuration dictionary
    """
    updated_config = config.copy()

    ignored = list(updated_config.get("ignored_contexts") or [])
    for pattern in patterns:
        if pattern not in ignored:
            ignored.append(pattern)
    updated_config["ignored_contexts"] = ignored

    return updated_config
