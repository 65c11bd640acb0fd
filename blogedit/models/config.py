"""Immutable configuration shared by every editor component."""

from __future__ import annotations

from pathlib import Path
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ConfigError(ValueError):
    """Raised when the editor configuration cannot be loaded or validated."""


# Key names used by older configuration files.
_LEGACY_KEYS: dict[str, str] = {
    "url": "public_url",
    "path_regex": "path_pattern",
    "blog_dir": "source_dir",
    "blog_build_dir": "build_dir",
    "dest_dir": "deploy_dir",
    "create_revision": "commit_command",
    "stage_revision": "stage_command",
    "list_revisions": "list_revisions_command",
    "revert_revision": "revert_command",
}


class EditorConfig(BaseModel):
    """Process-wide settings, validated and canonicalised once at startup."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True, extra="forbid")

    host: str = "127.0.0.1"
    port: int = Field(8080, ge=0, le=65535)

    public_url: str = Field(..., description="External URL of this service, used for redirects.")
    blog_url: str = Field(..., description="URL of the live blog queried for source paths.")
    path_pattern: re.Pattern[str] = Field(..., description="Regex with one group capturing the source path.")

    source_dir: Path
    build_dir: Path
    deploy_dir: Path

    build_command: list[str]
    stage_command: list[str]
    commit_command: list[str]
    reset_command: list[str]
    list_revisions_command: list[str]
    revert_command: list[str]

    templates_dir: Path | None = None
    atomic_deploy: bool = True
    rebuild_after_revert: bool = False
    blog_timeout: float | None = Field(None, gt=0)

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        translated: dict[str, Any] = {}
        for key, value in data.items():
            if key == "bind":
                host, _, port = str(value).rpartition(":")
                translated.setdefault("host", host.strip("[]") or "127.0.0.1")
                translated.setdefault("port", port)
                continue
            translated[_LEGACY_KEYS.get(key, key)] = value
        return translated

    @field_validator("path_pattern", mode="before")
    @classmethod
    def _compile_pattern(cls, value: Any) -> re.Pattern[str]:
        if isinstance(value, re.Pattern):
            pattern = value
        else:
            try:
                pattern = re.compile(str(value))
            except re.error as exc:
                raise ValueError(f"invalid path pattern: {exc}") from exc
        if pattern.groups != 1:
            raise ValueError(f"path pattern must contain exactly one capture group, found {pattern.groups}")
        return pattern

    @field_validator(
        "build_command",
        "stage_command",
        "commit_command",
        "reset_command",
        "list_revisions_command",
        "revert_command",
    )
    @classmethod
    def _require_program(cls, value: list[str]) -> list[str]:
        if not value or not value[0].strip():
            raise ValueError("command must name a program")
        return value

    @field_validator("source_dir")
    @classmethod
    def _canonical_source_dir(cls, value: Path) -> Path:
        try:
            resolved = value.expanduser().resolve(strict=True)
        except OSError as exc:
            raise ValueError(f"source directory {value} is not accessible: {exc}") from exc
        if not resolved.is_dir():
            raise ValueError(f"source directory {resolved} is not a directory")
        return resolved

    @field_validator("build_dir", "deploy_dir", "templates_dir")
    @classmethod
    def _canonical_dir(cls, value: Path | None) -> Path | None:
        if value is None:
            return None
        return value.expanduser().resolve()

    @field_validator("public_url", "blog_url")
    @classmethod
    def _ensure_url(cls, value: str) -> str:
        cleaned = value.strip()
        if "://" not in cleaned:
            raise ValueError(f"expected an absolute URL, got {value!r}")
        return cleaned

