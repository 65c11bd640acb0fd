"""Map public blog URLs and submitted filenames onto files inside the source tree.

Existing pages are located by asking the live blog to render the URL and
reading the source path out of the returned HTML, so an edit can only
target a file the published site itself claims for that URL. New pages
have nothing to ask about and are normalised lexically instead. Both
routes end in the same containment check against the canonical source
directory.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from pathlib import Path, PurePath
import re

import httpx

from blogedit.models.config import EditorConfig
from blogedit.models.errors import BadRequest, Forbidden, ServerError
from blogedit.models.revision import PublishRedirect, ResolvedPath

logger = logging.getLogger(__name__)


def ensure_contained(path: Path, root: Path) -> None:
    """Raise :class:`Forbidden` unless ``path`` lies at or below ``root``."""

    if not path.is_relative_to(root):
        logger.warning(
            "Rejected %s: outside of %s",
            path,
            root,
            extra={"event": "path.forbidden"},
        )
        raise Forbidden(path, root)


def normalize_path(root: Path, candidate: str) -> Path:
    """Join ``candidate`` onto ``root`` and collapse ``.`` and ``..`` without touching disk.

    ``..`` drops the previously kept component even when that directory does
    not exist. The result must still lie inside ``root``.
    """

    joined = PurePath(root, candidate)
    parts: list[str] = []
    for part in joined.parts:
        if part == ".":
            continue
        if part == "..":
            # never pop the anchor
            if len(parts) > 1:
                parts.pop()
            continue
        parts.append(part)

    normalised = Path(*parts)
    ensure_contained(normalised, root)
    return normalised


@dataclass(slots=True)
class PathResolver:
    """Resolve a public URL path to a source file by querying the live blog."""

    client: httpx.AsyncClient
    blog_url: str
    pattern: re.Pattern[str]
    source_dir: Path
    public_url: str

    @classmethod
    def from_config(cls, config: EditorConfig, client: httpx.AsyncClient) -> "PathResolver":
        return cls(
            client=client,
            blog_url=config.blog_url,
            pattern=config.path_pattern,
            source_dir=config.source_dir,
            public_url=config.public_url,
        )

    async def resolve(self, request_path: str) -> ResolvedPath | PublishRedirect:
        """Return the source file behind ``request_path`` or a redirect to the creation form."""

        blog_url = httpx.URL(self.blog_url)
        # a leading "//" would otherwise be read as a network location
        page_url = blog_url.join("/" + request_path.lstrip("/")) if request_path else blog_url
        if (page_url.scheme, page_url.host, page_url.port) != (blog_url.scheme, blog_url.host, blog_url.port):
            raise BadRequest(f"{request_path} does not belong to {self.blog_url}")

        try:
            response = await self.client.get(page_url)
        except httpx.HTTPError as exc:
            raise ServerError(f"couldn't fetch {page_url}: {exc}") from exc

        if not response.is_success:
            logger.info(
                "Live blog answered %s for %s; offering publish form",
                response.status_code,
                request_path,
                extra={"event": "path.unpublished"},
            )
            return PublishRedirect(f"{self.public_url.rstrip('/')}/publish{request_path}")

        page_text = response.text
        match = self.pattern.search(page_text)
        if match is None:
            raise ServerError(f"nothing matching {self.pattern.pattern} in {page_text}")

        # Lexical check first so escapes are refused even when the target is missing;
        # the canonical check below catches escapes through symlinks.
        relative = match.group(1)
        normalize_path(self.source_dir, relative)
        candidate = self.source_dir / relative
        try:
            actual = await asyncio.to_thread(candidate.resolve, strict=True)
        except OSError as exc:
            raise ServerError(f"couldn't resolve {candidate}: {exc}") from exc

        ensure_contained(actual, self.source_dir)
        return ResolvedPath(path=actual, root=self.source_dir)


def resolve_new_file(source_dir: Path, filename: str) -> ResolvedPath:
    """Normalise a filename submitted for creation into a contained source path."""

    if not filename.strip() or "\0" in filename:
        raise BadRequest(f"invalid filename {filename!r}")
    path = normalize_path(source_dir, filename)
    if path == source_dir:
        raise BadRequest(f"invalid filename {filename!r}")
    return ResolvedPath(path=path, root=source_dir)
