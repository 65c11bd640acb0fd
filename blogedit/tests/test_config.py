"""Tests for configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from blogedit.models.config import ConfigError, EditorConfig
from blogedit.services.config_loader import CONFIG_ENV_VAR, load_config


def _write_source(tmp_path: Path) -> Path:
    source = tmp_path / "blog"
    source.mkdir()
    return source


TOML_CONFIG = """
bind = "0.0.0.0:9000"
url = "http://editor.example.com/"
blog_url = "http://blog.example.com/"
path_regex = "<!-- source: (.+?) -->"
blog_dir = "blog"
blog_build_dir = "blog/_site"
dest_dir = "public"
build_command = ["make", "build"]
stage_revision = ["git", "add"]
create_revision = ["git", "commit", "-m"]
reset_command = ["git", "reset", "--hard"]
list_revisions = ["git", "log", "--oneline"]
revert_revision = ["git", "revert", "--no-edit"]
"""


def test_load_toml_config_accepts_legacy_key_names(tmp_path: Path) -> None:
    source = _write_source(tmp_path)
    config_path = tmp_path / "editor.toml"
    config_path.write_text(TOML_CONFIG)

    config = load_config(config_path)

    assert config.host == "0.0.0.0"
    assert config.port == 9000
    assert config.public_url == "http://editor.example.com/"
    assert config.source_dir == source.resolve()
    assert config.build_dir == (source / "_site").resolve()
    assert config.deploy_dir == (tmp_path / "public").resolve()
    assert config.commit_command == ["git", "commit", "-m"]
    assert config.path_pattern.search("<!-- source: posts/a.md -->").group(1) == "posts/a.md"
    assert config.atomic_deploy is True
    assert config.rebuild_after_revert is False


def test_load_yaml_config_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    source = _write_source(tmp_path)
    config_path = tmp_path / "editor.yaml"
    config_path.write_text(
        "\n".join(
            [
                "public_url: http://editor.example.com",
                "blog_url: http://blog.example.com/",
                "path_pattern: 'source=(\\S+)'",
                f"source_dir: {source}",
                "build_dir: build",
                "deploy_dir: public",
                "build_command: [make]",
                "stage_command: [git, add]",
                "commit_command: [git, commit, -m]",
                "reset_command: [git, reset, --hard]",
                "list_revisions_command: [git, log, --oneline]",
                "revert_command: [git, revert, --no-edit]",
                "rebuild_after_revert: true",
            ]
        )
    )
    monkeypatch.setenv(CONFIG_ENV_VAR, str(config_path))

    config = load_config()

    assert config.source_dir == source.resolve()
    assert config.build_dir == (tmp_path / "build").resolve()
    assert config.rebuild_after_revert is True


def test_source_dir_is_canonicalised_through_symlinks(tmp_path: Path) -> None:
    source = _write_source(tmp_path)
    link = tmp_path / "link"
    link.symlink_to(source, target_is_directory=True)
    config_path = tmp_path / "editor.toml"
    config_path.write_text(TOML_CONFIG.replace('blog_dir = "blog"', 'blog_dir = "link"'))

    config = load_config(config_path)

    assert config.source_dir == source.resolve()


def test_missing_source_dir_is_rejected(tmp_path: Path) -> None:
    config_path = tmp_path / "editor.toml"
    config_path.write_text(TOML_CONFIG)

    with pytest.raises(ConfigError, match="source directory"):
        load_config(config_path)


def test_pattern_must_have_exactly_one_group(tmp_path: Path) -> None:
    _write_source(tmp_path)
    config_path = tmp_path / "editor.toml"
    config_path.write_text(TOML_CONFIG.replace("(.+?)", "(.+?) (\\\\d+)"))

    with pytest.raises(ConfigError, match="exactly one capture group"):
        load_config(config_path)


def test_missing_config_location_is_reported(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)

    with pytest.raises(ConfigError, match=CONFIG_ENV_VAR):
        load_config()


def test_unparsable_config_is_reported(tmp_path: Path) -> None:
    config_path = tmp_path / "editor.toml"
    config_path.write_text("url = [unterminated")

    with pytest.raises(ConfigError, match="couldn't parse"):
        load_config(config_path)


def test_config_is_immutable(tmp_path: Path) -> None:
    source = _write_source(tmp_path)
    config = EditorConfig.model_validate(
        {
            "public_url": "http://editor.test",
            "blog_url": "http://blog.test",
            "path_pattern": "(x)",
            "source_dir": source,
            "build_dir": tmp_path / "build",
            "deploy_dir": tmp_path / "public",
            "build_command": ["true"],
            "stage_command": ["true"],
            "commit_command": ["true"],
            "reset_command": ["true"],
            "list_revisions_command": ["true"],
            "revert_command": ["true"],
        }
    )

    with pytest.raises(ValidationError):
        config.public_url = "http://elsewhere.test"  # type: ignore[misc]
