"""Pipelines that record source changes as revisions and revert to earlier ones."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import logging
from typing import TypeVar

from blogedit.models.config import EditorConfig
from blogedit.models.errors import AlreadyExists, BadRequest, EditorError, ServerError
from blogedit.models.revision import ChangeAction, PipelineOutcome, ResolvedPath, RevisionEntry
from blogedit.services.commands import CommandRunner
from blogedit.services.deployer import StaticSiteDeployer

logger = logging.getLogger(__name__)

T = TypeVar("T")


def build_commit_message(action: ChangeAction, target: ResolvedPath, note: str | None = None) -> str:
    """Return ``"{note} - {action} {relative path}"``, leaving out the note when blank."""

    prefix = f"{note.strip()} - " if note and note.strip() else ""
    return f"{prefix}{action.value} {target.relative}"


async def _reset_on_failure(
    runner: CommandRunner,
    reset_command: list[str],
    operation: Callable[[], Awaitable[T]],
) -> T:
    """Await ``operation``; on failure restore the working tree and re-raise.

    The original error stays the reported one; the reset outcome is appended
    to it as context.
    """

    try:
        return await operation()
    except EditorError as exc:
        error = exc
    except Exception as exc:
        error = ServerError(f"{type(exc).__name__}: {exc}")
        error.__cause__ = exc

    logger.error("Pipeline failed, resetting working tree: %s", error.message, extra={"event": "pipeline.failed"})
    try:
        reset_output = await runner.run(reset_command)
    except EditorError as reset_error:
        logger.error("Reset failed: %s", reset_error.message, extra={"event": "pipeline.reset_failed"})
        error.add_context(f"failed resetting\n\n{reset_error}")
    else:
        logger.warning("Working tree reset after failure", extra={"event": "pipeline.reset"})
        error.add_context(f"had to reset\n\n{reset_output}")
    raise error


def _write_file(target: ResolvedPath, content: str, *, create: bool) -> None:
    try:
        if create:
            target.path.parent.mkdir(parents=True, exist_ok=True)
        target.path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise ServerError(f"couldn't write {target.path}: {exc}") from exc


def _remove_file(target: ResolvedPath) -> None:
    try:
        target.path.unlink()
    except OSError as exc:
        raise ServerError(f"couldn't delete {target.path}: {exc}") from exc


@dataclass(slots=True)
class RevisionPipeline:
    """Apply a source change, publish it, and record it as a revision.

    All work happens under ``lock``, which is shared with
    :class:`RevertPipeline` so that only one pipeline touches the source
    tree, the revision tool and the deploy directory at a time.
    """

    runner: CommandRunner
    deployer: StaticSiteDeployer
    stage_command: list[str]
    commit_command: list[str]
    reset_command: list[str]
    lock: asyncio.Lock

    @classmethod
    def from_config(
        cls,
        config: EditorConfig,
        runner: CommandRunner,
        deployer: StaticSiteDeployer,
        lock: asyncio.Lock,
    ) -> "RevisionPipeline":
        return cls(
            runner=runner,
            deployer=deployer,
            stage_command=list(config.stage_command),
            commit_command=list(config.commit_command),
            reset_command=list(config.reset_command),
            lock=lock,
        )

    async def write(
        self,
        target: ResolvedPath,
        content: str,
        *,
        note: str | None = None,
        create: bool = False,
    ) -> PipelineOutcome:
        """Overwrite (or with ``create`` newly create) ``target`` and commit the edit."""

        async with self.lock:
            if create and await asyncio.to_thread(target.path.exists):
                raise AlreadyExists(target.path)

            async def mutate() -> None:
                await asyncio.to_thread(_write_file, target, content, create=create)

            message = build_commit_message(ChangeAction.EDIT, target, note)
            return await _reset_on_failure(
                self.runner, self.reset_command, lambda: self._commit(target, mutate, message)
            )

    async def delete(self, target: ResolvedPath, *, note: str | None = None) -> PipelineOutcome:
        """Remove ``target`` and commit the deletion."""

        async with self.lock:

            async def mutate() -> None:
                await asyncio.to_thread(_remove_file, target)

            message = build_commit_message(ChangeAction.DELETE, target, note)
            return await _reset_on_failure(
                self.runner, self.reset_command, lambda: self._commit(target, mutate, message)
            )

    async def _commit(
        self,
        target: ResolvedPath,
        mutate: Callable[[], Awaitable[None]],
        message: str,
    ) -> PipelineOutcome:
        outcome = PipelineOutcome()
        await mutate()

        # Publish the working tree first so the site shows the change even if
        # recording the revision fails later on.
        outcome.record(await self.deployer.rebuild_and_deploy())
        outcome.record(await self.runner.run(self.stage_command, str(target.path)))
        outcome.record(await self.runner.run(self.commit_command, message))
        outcome.record(await self.deployer.rebuild_and_deploy())

        logger.info("Committed %r", message, extra={"event": "revision.committed"})
        return outcome


@dataclass(slots=True)
class RevertPipeline:
    """List recorded revisions and return the source tree to one of them."""

    runner: CommandRunner
    deployer: StaticSiteDeployer
    list_command: list[str]
    revert_command: list[str]
    reset_command: list[str]
    lock: asyncio.Lock
    rebuild_after_revert: bool = False

    @classmethod
    def from_config(
        cls,
        config: EditorConfig,
        runner: CommandRunner,
        deployer: StaticSiteDeployer,
        lock: asyncio.Lock,
    ) -> "RevertPipeline":
        return cls(
            runner=runner,
            deployer=deployer,
            list_command=list(config.list_revisions_command),
            revert_command=list(config.revert_command),
            reset_command=list(config.reset_command),
            lock=lock,
            rebuild_after_revert=config.rebuild_after_revert,
        )

    async def list_revisions(self) -> list[RevisionEntry]:
        async with self.lock:
            output = await self.runner.run(self.list_command)
        return RevisionEntry.parse_listing(output)

    async def revert(self, revision: str) -> PipelineOutcome:
        """Revert to the revision named by the first word of ``revision``.

        The deployed site is left untouched unless ``rebuild_after_revert``
        is set.
        """

        token = RevisionEntry(revision).token
        if token is None:
            raise BadRequest(f"no hash in revision {revision}")

        logger.info("Reverting revision %s", token, extra={"event": "revision.revert"})
        async with self.lock:
            outcome = PipelineOutcome()
            outcome.record(await self.runner.run(self.revert_command, token))
            if self.rebuild_after_revert:
                outcome.record(
                    await _reset_on_failure(self.runner, self.reset_command, self.deployer.rebuild_and_deploy)
                )
            return outcome
