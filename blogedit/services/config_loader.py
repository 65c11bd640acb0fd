"""Helpers for reading the editor configuration from TOML or YAML files."""

from __future__ import annotations

import os
from pathlib import Path
import tomllib
from typing import Any

from pydantic import ValidationError
import yaml

from blogedit.models.config import ConfigError, EditorConfig

CONFIG_ENV_VAR = "BLOGEDIT_CONFIG"


def _read_mapping(path: Path) -> dict[str, Any]:
    """Parse ``path`` according to its suffix and return the top-level table."""

    suffix = path.suffix.lower()
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"couldn't read config {path}: {exc}") from exc

    try:
        if suffix in {".yaml", ".yml"}:
            payload = yaml.safe_load(raw) or {}
        else:
            payload = tomllib.loads(raw)
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"couldn't parse config {path}: {exc}") from exc

    if not isinstance(payload, dict):
        raise ConfigError(f"config {path} must contain a table of settings")
    return payload


def load_config(path: Path | str | None = None) -> EditorConfig:
    """Load and validate the configuration named by ``path`` or ``BLOGEDIT_CONFIG``."""

    location = path or os.getenv(CONFIG_ENV_VAR)
    if not location:
        raise ConfigError(f"no config file given and {CONFIG_ENV_VAR} is not set")

    config_path = Path(location).expanduser()
    payload = _read_mapping(config_path)

    # Relative directories are taken relative to the config file itself.
    base = config_path.resolve().parent
    for key in ("source_dir", "blog_dir", "build_dir", "blog_build_dir", "deploy_dir", "dest_dir", "templates_dir"):
        value = payload.get(key)
        if isinstance(value, str) and value and not Path(value).expanduser().is_absolute():
            payload[key] = str(base / value)

    try:
        return EditorConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"invalid config {config_path}:\n{exc}") from exc
