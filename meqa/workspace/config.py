"""Per-workspace credential document (``<workspace>/.config``)."""

from __future__ import annotations

import uuid
from pathlib import Path
from typing import Any, Dict

import yaml

from meqa.errors import ConfigParseError

CONFIG_FILE = ".config"
CONFIG_API_KEY = "api_key"


def config_path(workspace_dir) -> Path:
    return Path(workspace_dir) / CONFIG_FILE


def load_config(workspace_dir) -> Dict[str, Any]:
    """
    Return the workspace config, creating it on first use.

    A missing file gets a fresh UUID4 api_key which is written out
    immediately, so every later load in the same workspace sees the same key.
    Existing documents are returned untouched, extra keys included.
    No locking: two first-time loads racing in one workspace both write,
    the last one wins.
    """
    path = config_path(workspace_dir)

    if not path.exists():
        config = {CONFIG_API_KEY: str(uuid.uuid4())}
        path.write_text(yaml.safe_dump(config, sort_keys=False), encoding="utf-8")
        path.chmod(0o644)
        return config

    text = path.read_text(encoding="utf-8")
    try:
        config = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigParseError(f"malformed config file {path}: {e}") from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigParseError(f"config file {path} must hold a mapping, got {type(config).__name__}")
    return config
