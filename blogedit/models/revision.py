"""Data structures passed between the path resolvers and the revision pipelines."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import html
from pathlib import Path


class ChangeAction(str, Enum):
    """Verb recorded in the commit message for a source change."""

    EDIT = "edit"
    DELETE = "delete"


@dataclass(slots=True, frozen=True)
class ResolvedPath:
    """Absolute source file path proven to lie inside ``root`` when it was resolved.

    Nothing keeps the proof alive: the file may be renamed or removed by
    another process right afterwards, so instances live for one request only.
    """

    path: Path
    root: Path

    @property
    def relative(self) -> Path:
        return self.path.relative_to(self.root)

    def __str__(self) -> str:
        return str(self.path)


@dataclass(slots=True, frozen=True)
class PublishRedirect:
    """Instruction to send the client to the creation form for an unpublished page."""

    location: str

    def to_html(self) -> str:
        return f'<head><meta http-equiv="Refresh" content="0; URL={html.escape(self.location)}"></head>'


@dataclass(slots=True)
class PipelineOutcome:
    """Standard output of every command run by one pipeline invocation, in order."""

    outputs: list[str] = field(default_factory=list)

    def record(self, output: str) -> None:
        self.outputs.append(output)

    def extend(self, other: "PipelineOutcome") -> None:
        self.outputs.extend(other.outputs)

    @property
    def text(self) -> str:
        return "".join(self.outputs)

    def __str__(self) -> str:
        return self.text


@dataclass(slots=True, frozen=True)
class RevisionEntry:
    """One line of the revision listing; its first word identifies the revision."""

    line: str

    @property
    def token(self) -> str | None:
        words = self.line.split()
        return words[0] if words else None

    @classmethod
    def parse_listing(cls, output: str) -> list["RevisionEntry"]:
        """Split the listing command's output into entries, skipping blank lines."""

        return [cls(line) for line in output.split("\n") if line.strip()]
