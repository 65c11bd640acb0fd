"""Error taxonomy shared by the pipelines and the HTTP layer.

Every error carries the HTTP status it maps to and a plain-text body made
of the primary message followed by any context blocks appended while the
error travelled upward (for example the outcome of a compensating reset).
"""

from __future__ import annotations

from collections.abc import Sequence


class EditorError(Exception):
    """Base class for failures surfaced to the client as plain text."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.context: list[str] = []

    def add_context(self, text: str) -> None:
        """Append diagnostic text after the primary message."""

        self.context.append(text)

    def __str__(self) -> str:
        return "\n\n".join([self.message, *self.context])


class BadRequest(EditorError):
    status_code = 400


class Forbidden(BadRequest):
    """A path resolved outside the source tree."""

    def __init__(self, path: object, root: object) -> None:
        super().__init__("path escapes the source tree")
        self.path = path
        self.root = root


class AlreadyExists(BadRequest):
    def __init__(self, path: object) -> None:
        super().__init__("already exists")
        self.path = path


class ServerError(EditorError):
    status_code = 500


class CommandError(ServerError):
    """An external command could not be run to a successful exit."""

    def __init__(self, message: str, argv: Sequence[str]) -> None:
        super().__init__(message)
        self.argv = list(argv)


class SpawnError(CommandError):
    def __init__(self, argv: Sequence[str], reason: OSError | ValueError) -> None:
        super().__init__(f"couldn't start {' '.join(argv)}: {reason}", argv)
        self.reason = reason


class NonZeroExit(CommandError):
    def __init__(self, argv: Sequence[str], returncode: int, stdout: str, stderr: str) -> None:
        message = f"failed: {' '.join(argv)}\nstdout:\n{stdout}\nstderr:\n{stderr}"
        super().__init__(message, argv)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


__all__ = [
    "AlreadyExists",
    "BadRequest",
    "CommandError",
    "EditorError",
    "Forbidden",
    "NonZeroExit",
    "ServerError",
    "SpawnError",
]
