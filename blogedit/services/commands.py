"""Run the configured external tools inside the source tree."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
import logging
from pathlib import Path

from blogedit.models.errors import NonZeroExit, SpawnError

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class CommandRunner:
    """Execute argument vectors with ``working_dir`` as the current directory."""

    working_dir: Path

    async def run(self, command: Sequence[str], *extra: str) -> str:
        """Run ``command`` with ``extra`` appended and return its standard output.

        Output is decoded as UTF-8 with undecodable bytes replaced. A program
        that cannot be started raises :class:`SpawnError`; a non-zero exit
        raises :class:`NonZeroExit` carrying both captured streams.
        """

        argv = [*command, *extra]
        logger.debug("Running %s", argv, extra={"event": "command.start"})

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=self.working_dir,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (OSError, ValueError) as exc:
            # ValueError: an argument the OS cannot take, such as one with a NUL byte
            logger.error("Command %s could not be started: %s", argv[0], exc, extra={"event": "command.spawn_error"})
            raise SpawnError(argv, exc) from exc

        raw_stdout, raw_stderr = await process.communicate()
        stdout = raw_stdout.decode("utf-8", errors="replace")
        stderr = raw_stderr.decode("utf-8", errors="replace")

        if process.returncode != 0:
            logger.warning(
                "Command %s exited with status %s",
                argv,
                process.returncode,
                extra={"event": "command.failed"},
            )
            raise NonZeroExit(argv, process.returncode, stdout, stderr)

        return stdout
