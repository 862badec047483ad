"""Configuration paths and loaded defaults for ChangeLens."""

from __future__ import annotations

import os
from pathlib import Path

from .models import ContextSettings

BASE_DIR = Path(os.environ.get("CHANGELENS_HOME", str(Path.home() / ".changelens"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

# Load configuration from TOML file (if available)
from .config_manager import load_context_config  # noqa: E402

_context_config = load_context_config(CONFIG_FILE)

MAX_DEPTH = _context_config["max_depth"]
TOKEN_LIMIT = _context_config["token_limit"]


def current_settings() -> ContextSettings:
    """Settings as currently stored on disk (re-read on every call)."""
    return ContextSettings.from_mapping(load_context_config(CONFIG_FILE))
