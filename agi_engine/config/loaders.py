"""
Configuration file loaders and path resolution.

This module handles:
- Path resolution (relative to the project root)
- YAML loading with ${VAR:-default} environment expansion
- Optional ``*.local.yaml`` operator overrides merged over the base file
"""

import os
import re
from pathlib import Path

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Project root directory (parent of agi_engine/)
_PROJ_DIR = Path(__file__).parent.parent.parent.resolve()

# ${VAR}, ${VAR:-default} and ${VAR:=default}
_ENV_VAR_PATTERN = re.compile(r'\$\{([^}:]+)(:-|:=)?([^}]*)?\}')


def expand_env_vars(text: str) -> str:
    """
    Expand environment variables, with shell-style defaults.

    ``${VAR:-default}`` and ``${VAR:=default}`` both fall back to ``default``
    when VAR is unset or empty. A bare ``${VAR}`` that is unset is left as
    written. Plain ``$VAR`` goes through ``os.path.expandvars``.
    """
    def replace_match(match):
        name = match.group(1)
        operator = match.group(2)
        default = match.group(3) or ""
        value = os.environ.get(name)

        if operator in (":-", ":="):
            return default if not value else value
        return value if value is not None else match.group(0)

    return os.path.expandvars(_ENV_VAR_PATTERN.sub(replace_match, text))


def resolve_config_path(path: str) -> str:
    if not os.path.isabs(path):
        return os.path.join(_PROJ_DIR, path)
    return path


def load_yaml_with_env_expansion(path: str) -> dict:
    """
    Read a YAML file, expand environment references and parse it.

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If YAML parsing fails
    """
    try:
        with open(path, 'r') as f:
            raw = f.read()
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found at: {path}")

    try:
        data = yaml.safe_load(expand_env_vars(raw))
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Error parsing YAML configuration {path}: {e}")
    return data if data is not None else {}


def deep_merge_dicts(base: dict, override: dict) -> dict:
    """
    Merge *override* into a copy of *base*, recursing into nested dicts.

    An explicit ``None`` in *override* deletes the key; lists and scalars
    replace the base value.
    """
    merged = dict(base)
    for key, value in override.items():
        if value is None:
            merged.pop(key, None)
            continue
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge_dicts(current, value)
        else:
            merged[key] = value
    return merged


def load_yaml_with_local_override(path: str) -> dict:
    """
    Load ``config/agi.yaml`` and merge ``config/agi.local.yaml`` over it when present.
    """
    base_data = load_yaml_with_env_expansion(path)

    stem, ext = os.path.splitext(path)
    local_path = f"{stem}.local{ext}"
    if not os.path.isfile(local_path):
        return base_data

    try:
        local_data = load_yaml_with_env_expansion(local_path)
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Failed to load local config override; using base config only",
                       local_path=local_path, error=str(exc))
        return base_data

    if not isinstance(local_data, dict):
        logger.warning("Local config override is not a mapping; ignoring", local_path=local_path)
        return base_data

    logger.info("Merging local config override", local_path=local_path)
    return deep_merge_dicts(base_data, local_data)
