"""Shared fixtures and helpers for the test suite."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
import subprocess
import sys
from typing import Any, Callable

import httpx
import pytest

from blogedit.models.config import EditorConfig
from blogedit.services.commands import CommandRunner
from blogedit.services.deployer import StaticSiteDeployer
from blogedit.services.revisions import RevertPipeline, RevisionPipeline

PATH_PATTERN = r"<!-- source: (.+?) -->"

# Renders every Markdown file below the working directory into argv[1] as .html,
# prefixed with the marker the editor scrapes to find the source file.
BUILD_SCRIPT = '''
import pathlib
import sys

root = pathlib.Path.cwd()
out = pathlib.Path(sys.argv[1])
out.mkdir(parents=True, exist_ok=True)
for stale in list(out.rglob("*.html")):
    stale.unlink()
count = 0
for source in sorted(root.rglob("*.md")):
    if ".git" in source.parts:
        continue
    relative = source.relative_to(root)
    target = (out / relative).with_suffix(".html")
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(f"<!-- source: {relative.as_posix()} -->\\n" + source.read_text())
    count += 1
print(f"built {count} pages")
'''


def git(repo: Path, *args: str) -> str:
    result = subprocess.run(["git", *args], cwd=repo, check=True, text=True, capture_output=True)
    return result.stdout


def init_repo(path: Path) -> None:
    git(path, "init", "-q")
    git(path, "config", "user.name", "Blog Editor")
    git(path, "config", "user.email", "editor@example.com")
    git(path, "config", "commit.gpgsign", "false")


@dataclass(slots=True)
class Site:
    """Temporary blog checkout with its build and deploy directories."""

    root: Path
    source_dir: Path
    build_dir: Path
    deploy_dir: Path
    build_script: Path

    def config(self, **overrides: Any) -> EditorConfig:
        settings: dict[str, Any] = {
            "public_url": "http://editor.test",
            "blog_url": "http://blog.test/",
            "path_pattern": PATH_PATTERN,
            "source_dir": self.source_dir,
            "build_dir": self.build_dir,
            "deploy_dir": self.deploy_dir,
            "build_command": [sys.executable, str(self.build_script), str(self.build_dir)],
            "stage_command": ["git", "add", "--all"],
            "commit_command": ["git", "commit", "-q", "-m"],
            "reset_command": ["sh", "-c", "git reset -q --hard && git clean -qfd"],
            "list_revisions_command": ["git", "log", "--format=%H %s"],
            "revert_command": ["git", "revert", "--no-edit"],
        }
        settings.update(overrides)
        return EditorConfig.model_validate(settings)

    def git(self, *args: str) -> str:
        return git(self.source_dir, *args)

    def status(self) -> str:
        return git(self.source_dir, "status", "--porcelain")

    def log_messages(self) -> list[str]:
        return git(self.source_dir, "log", "--format=%s").splitlines()

    def live_blog(self) -> httpx.MockTransport:
        """Serve the deploy directory the way the published blog would."""

        def handler(request: httpx.Request) -> httpx.Response:
            page = self.deploy_dir / request.url.path.lstrip("/")
            if page.is_file():
                return httpx.Response(200, text=page.read_text())
            return httpx.Response(404, text="not found")

        return httpx.MockTransport(handler)


@pytest.fixture()
def site(tmp_path: Path) -> Site:
    """Git-tracked source tree with one post, already built and deployed."""

    source_dir = tmp_path / "blog"
    (source_dir / "posts").mkdir(parents=True)
    (source_dir / "posts" / "first.md").write_text("# First\n\nHello world.\n")
    (source_dir / "about.md").write_text("# About\n")
    init_repo(source_dir)
    git(source_dir, "add", ".")
    git(source_dir, "commit", "-q", "-m", "initial")

    build_script = tmp_path / "build.py"
    build_script.write_text(BUILD_SCRIPT)
    build_dir = tmp_path / "build"
    deploy_dir = tmp_path / "public"

    subprocess.run([sys.executable, str(build_script), str(deploy_dir)], cwd=source_dir, check=True, capture_output=True)

    return Site(
        root=tmp_path,
        source_dir=source_dir.resolve(),
        build_dir=build_dir,
        deploy_dir=deploy_dir,
        build_script=build_script,
    )


@pytest.fixture()
def pipelines() -> Callable[[EditorConfig], tuple[RevisionPipeline, RevertPipeline]]:
    """Return a factory wiring both pipelines to one runner, deployer and lock."""

    def _factory(config: EditorConfig) -> tuple[RevisionPipeline, RevertPipeline]:
        runner = CommandRunner(working_dir=config.source_dir)
        deployer = StaticSiteDeployer.from_config(config, runner)
        lock = asyncio.Lock()
        return (
            RevisionPipeline.from_config(config, runner, deployer, lock),
            RevertPipeline.from_config(config, runner, deployer, lock),
        )

    return _factory
