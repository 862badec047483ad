"""Configuration manager for ChangeLens using TOML files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import toml

logger = logging.getLogger(__name__)

# Defaults for the [context] section
DEFAULT_CONTEXT_CONFIG: Dict[str, Any] = {
    "max_depth": 2,
    "token_limit": 30000,
    "fingerprint_length": 100,
    "resolve_extensions": [".ts", ".js", ".tsx", ".jsx"],
    "excluded_dirs": ["node_modules", "dist", "build", "out"],
    "source_dirs": ["src"],
}


def _config_file(config_file: Optional[Path]) -> Path:
    if config_file is not None:
        return config_file
    from .config import CONFIG_FILE

    return CONFIG_FILE


def load_full_config(config_file: Optional[Path] = None) -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    path = _config_file(config_file)
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path, exc)
        return {}


def _save_full_config(config: Dict[str, Any], config_file: Optional[Path] = None) -> bool:
    """Write entire config dict to TOML file, preserving all sections."""
    path = _config_file(config_file)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            toml.dump(config, f)
        return True
    except OSError as exc:
        logger.warning("Could not write config %s: %s", path, exc)
        return False


def load_context_config(config_file: Optional[Path] = None) -> Dict[str, Any]:
    """Defaults merged with the ``[context]`` section."""
    merged = {k: (list(v) if isinstance(v, list) else v) for k, v in DEFAULT_CONTEXT_CONFIG.items()}
    section = load_full_config(config_file).get("context", {})
    for key, value in section.items():
        if key not in DEFAULT_CONTEXT_CONFIG:
            logger.warning("Unknown [context] setting '%s' ignored", key)
            continue
        try:
            merged[key] = _validated(key, value)
        except (TypeError, ValueError) as exc:
            logger.warning("Invalid [context] setting %s=%r (%s); using default", key, value, exc)
    return merged


def _validated(key: str, value: Any) -> Any:
    """Check a hand-edited value against the type of its default.

    Strings go through :func:`coerce_setting`, so ``max_depth = "3"`` works.
    """
    if isinstance(value, str):
        return coerce_setting(key, value)
    default = DEFAULT_CONTEXT_CONFIG[key]
    if isinstance(default, list):
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise TypeError("expected a list of strings")
        return list(value)
    if isinstance(default, int):
        # bool is an int subclass; ``max_depth = true`` is still a mistake
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError("expected an integer")
        if value < 0:
            raise ValueError(f"{key} must be non-negative")
    return value


def coerce_setting(key: str, raw: str) -> Any:
    """Convert the string *raw* to the type of ``DEFAULT_CONTEXT_CONFIG[key]``.

    Lists are given comma-separated.

    Raises:
        KeyError: unknown setting.
        ValueError: *raw* does not convert.
    """
    default = DEFAULT_CONTEXT_CONFIG[key]
    if isinstance(default, list):
        return [item.strip() for item in raw.split(",") if item.strip()]
    if isinstance(default, int):
        value = int(raw)
        if value < 0:
            raise ValueError(f"{key} must be non-negative")
        return value
    return raw


def save_context_setting(key: str, raw: str, config_file: Optional[Path] = None) -> bool:
    """Set one ``[context]`` value, preserving other sections.

    Returns:
        True if saved successfully, False otherwise
    """
    value = coerce_setting(key, raw)
    config = load_full_config(config_file)
    config.setdefault("context", {})[key] = value
    return _save_full_config(config, config_file)


def reset_context_config(config_file: Optional[Path] = None) -> bool:
    """Remove the ``[context]`` section, restoring defaults."""
    config = load_full_config(config_file)
    config.pop("context", None)
    return _save_full_config(config, config_file)
