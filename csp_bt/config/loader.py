"""
Configuration loader with YAML/JSON support, environment overrides, and CLI overrides.
"""

import json
import os
from pathlib import Path
from typing import Dict, Any, List

import yaml

from .schemas import RunConfig

ENV_PREFIX = "CSPBT__"


def load_config(path: str) -> RunConfig:
    """
    Load configuration from YAML or JSON file.

    Args:
        path: Path to config file

    Returns:
        RunConfig validated instance

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If file format is unsupported
    """
    config_path = Path(path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    suffix = config_path.suffix.lower()

    if suffix in [".yaml", ".yml"]:
        with open(config_path, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f) or {}
    elif suffix == ".json":
        with open(config_path, "r", encoding="utf-8") as f:
            config_dict = json.load(f)
    else:
        raise ValueError(f"Unsupported config file format: {suffix}. Use .yaml, .yml, or .json")

    return RunConfig(**config_dict)


def _parse_value(value: str) -> Any:
    """Parse an override value: JSON first, then bool/null/number, else the raw string."""
    try:
        return json.loads(value)
    except (json.JSONDecodeError, ValueError):
        pass
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if lowered == "null":
        return None
    try:
        if "." in value:
            return float(value)
        return int(value)
    except ValueError:
        return value


def _set_nested(overrides: Dict[str, Any], section: str, nested_keys: List[str], value: Any) -> None:
    current = overrides.setdefault(section, {})
    for key_part in nested_keys[:-1]:
        current = current.setdefault(key_part, {})
    current[nested_keys[-1]] = value


def _merge_overrides(cfg: RunConfig, overrides: Dict[str, Any]) -> RunConfig:
    config_dict = cfg.model_dump()
    for section, values in overrides.items():
        if isinstance(config_dict.get(section), dict) and isinstance(values, dict):
            config_dict[section] = _deep_merge(config_dict[section], values)
        else:
            config_dict[section] = values
    # Re-validate
    return RunConfig(**config_dict)


def apply_env_overrides(cfg: RunConfig) -> RunConfig:
    """
    Apply environment variable overrides to configuration.

    Environment variables must follow pattern: CSPBT__{section}__{key}
    Example: CSPBT__strategy__days_to_expiration=14

    Args:
        cfg: Base RunConfig

    Returns:
        RunConfig with environment overrides applied
    """
    overrides: Dict[str, Any] = {}

    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        # CSPBT__strategy__pricing_mode -> ["strategy", "pricing_mode"]
        # Lowercased: env vars are often uppercase on Windows
        parts = key[len(ENV_PREFIX):].lower().split("__")
        if len(parts) < 2:
            continue

        _set_nested(overrides, parts[0], parts[1:], _parse_value(value))

    if not overrides:
        return cfg

    return _merge_overrides(cfg, overrides)


def apply_cli_overrides(cfg: RunConfig, sets: List[str]) -> RunConfig:
    """
    Apply CLI --set key=value overrides to configuration.

    Supports nested keys: strategy.days_to_expiration=14 or engine.start=2023-01-01
    Uses json.loads for typed values, falls back to string.

    Args:
        cfg: Base RunConfig
        sets: List of "key=value" strings from CLI --set flags

    Returns:
        RunConfig with CLI overrides applied
    """
    if not sets:
        return cfg

    overrides: Dict[str, Any] = {}

    for set_str in sets:
        if "=" not in set_str:
            raise ValueError(f"Invalid --set format: {set_str}. Expected 'key=value'")

        key_str, value_str = set_str.split("=", 1)
        key_parts = key_str.split(".")
        if len(key_parts) < 2:
            raise ValueError(f"Invalid --set key format: {key_str}. Expected 'section.key' or 'section.nested.key'")

        _set_nested(overrides, key_parts[0], key_parts[1:], _parse_value(value_str))

    return _merge_overrides(cfg, overrides)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries"""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result
