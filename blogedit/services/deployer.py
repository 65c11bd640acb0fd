"""Rebuild the static site and publish the build output into the served directory."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from pathlib import Path
import shutil
import uuid

from blogedit.models.config import EditorConfig
from blogedit.models.errors import ServerError
from blogedit.services.commands import CommandRunner

logger = logging.getLogger(__name__)


def _replace_tree(source: Path, destination: Path) -> None:
    """Remove ``destination`` and copy ``source`` in its place.

    Readers of ``destination`` may observe it missing or half-populated
    while this runs.
    """

    if destination.exists():
        shutil.rmtree(destination)
    shutil.copytree(source, destination)


def _swap_tree(source: Path, destination: Path) -> None:
    """Copy ``source`` next to ``destination`` and rename it into place.

    ``destination`` is only absent between the two renames.
    """

    token = uuid.uuid4().hex[:8]
    staging = destination.with_name(f".{destination.name}.staging-{token}")
    retired = destination.with_name(f".{destination.name}.old-{token}")

    destination.parent.mkdir(parents=True, exist_ok=True)
    try:
        shutil.copytree(source, staging)
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise

    if destination.exists():
        destination.rename(retired)
    try:
        staging.rename(destination)
    except OSError:
        if retired.exists():
            retired.rename(destination)
        shutil.rmtree(staging, ignore_errors=True)
        raise
    shutil.rmtree(retired, ignore_errors=True)


@dataclass(slots=True)
class StaticSiteDeployer:
    """Run the build command, then replace the deploy directory with its output."""

    runner: CommandRunner
    build_command: list[str]
    build_dir: Path
    deploy_dir: Path
    atomic: bool = True

    @classmethod
    def from_config(cls, config: EditorConfig, runner: CommandRunner) -> "StaticSiteDeployer":
        return cls(
            runner=runner,
            build_command=list(config.build_command),
            build_dir=config.build_dir,
            deploy_dir=config.deploy_dir,
            atomic=config.atomic_deploy,
        )

    async def rebuild_and_deploy(self) -> str:
        """Return the build command's output once the new site is in place.

        Failures propagate unchanged; restoring the source tree is left to
        the caller.
        """

        build_output = await self.runner.run(self.build_command)

        publish = _swap_tree if self.atomic else _replace_tree
        try:
            await asyncio.to_thread(publish, self.build_dir, self.deploy_dir)
        except OSError as exc:
            raise ServerError(f"couldn't deploy {self.build_dir} to {self.deploy_dir}: {exc}") from exc

        logger.info("Deployed %s to %s", self.build_dir, self.deploy_dir, extra={"event": "deploy.done"})
        return build_output
