"""FastAPI web application for editing, publishing and reverting blog posts."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
import logging
from pathlib import Path

from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, Response
from fastapi.templating import Jinja2Templates
import httpx
from starlette.datastructures import FormData
from starlette.exceptions import HTTPException as StarletteHTTPException

from blogedit.models.config import EditorConfig
from blogedit.models.errors import BadRequest, EditorError, ServerError
from blogedit.models.revision import PublishRedirect, ResolvedPath
from blogedit.services.commands import CommandRunner
from blogedit.services.deployer import StaticSiteDeployer
from blogedit.services.paths import PathResolver, resolve_new_file
from blogedit.services.revisions import RevertPipeline, RevisionPipeline

DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EditorServices:
    """Components shared by every request, built once from the configuration."""

    config: EditorConfig
    resolver: PathResolver
    revisions: RevisionPipeline
    reverts: RevertPipeline
    templates: Jinja2Templates

    @classmethod
    def build(
        cls,
        config: EditorConfig,
        client: httpx.AsyncClient,
        templates: Jinja2Templates,
    ) -> "EditorServices":
        runner = CommandRunner(working_dir=config.source_dir)
        deployer = StaticSiteDeployer.from_config(config, runner)
        lock = asyncio.Lock()
        return cls(
            config=config,
            resolver=PathResolver.from_config(config, client),
            revisions=RevisionPipeline.from_config(config, runner, deployer, lock),
            reverts=RevertPipeline.from_config(config, runner, deployer, lock),
            templates=templates,
        )


def get_services(request: Request) -> EditorServices:
    """FastAPI dependency returning the services attached at startup."""

    return request.app.state.services


def create_app(
    config: EditorConfig | None = None,
    *,
    blog_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the application for ``config`` (loaded from ``BLOGEDIT_CONFIG`` when omitted)."""

    if config is None:
        from blogedit.services.config_loader import load_config

        config = load_config()

    templates = Jinja2Templates(directory=str(config.templates_dir or DEFAULT_TEMPLATE_DIR))

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        async with httpx.AsyncClient(timeout=config.blog_timeout, transport=blog_transport) as client:
            app.state.services = EditorServices.build(config, client, templates)
            yield

    app = FastAPI(title="Blog Editor", lifespan=lifespan)
    _register_routes(app)
    _register_error_handlers(app)
    return app


def _required_field(form: FormData, name: str, message: str) -> str:
    value = form.get(name)
    if not isinstance(value, str):
        raise BadRequest(message)
    return value


def _optional_field(form: FormData, name: str) -> str | None:
    value = form.get(name)
    return value if isinstance(value, str) and value.strip() else None


async def _read_source(target: ResolvedPath) -> str:
    try:
        return await asyncio.to_thread(target.path.read_text, encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ServerError(f"couldn't read {target.path}") from exc


def _register_routes(app: FastAPI) -> None:
    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    @app.get("/edit/{path:path}", response_class=HTMLResponse)
    async def get_edit(
        request: Request,
        path: str = "",
        services: EditorServices = Depends(get_services),
    ) -> Response:
        """Render the edit form for the source file behind a public URL."""

        request_path = f"/{path}" if path else ""
        resolved = await services.resolver.resolve(request_path)
        if isinstance(resolved, PublishRedirect):
            return HTMLResponse(resolved.to_html())

        content = await _read_source(resolved)
        return services.templates.TemplateResponse(
            request,
            "edit.html",
            {
                "title": f"Edit {resolved.relative}",
                "content": content,
                "request_path": request_path,
                "source_path": str(resolved.relative),
            },
        )

    @app.post("/edit/{path:path}")
    async def post_edit(
        request: Request,
        path: str = "",
        services: EditorServices = Depends(get_services),
    ) -> Response:
        """Overwrite or delete the source file behind a public URL."""

        request_path = f"/{path}" if path else ""
        resolved = await services.resolver.resolve(request_path)
        if isinstance(resolved, PublishRedirect):
            return HTMLResponse(resolved.to_html())

        form = await request.form()
        content = _required_field(form, "content", "no content from form?")
        note = _optional_field(form, "note")

        if form.get("delete") == "on":
            outcome = await services.revisions.delete(resolved, note=note)
            return PlainTextResponse(f"deleted {resolved.path}\n\n{outcome}")

        outcome = await services.revisions.write(resolved, content, note=note)
        return PlainTextResponse(f"wrote to {resolved.path}\n\n{outcome}")

    @app.get("/publish", response_class=HTMLResponse)
    @app.get("/publish/{path:path}", response_class=HTMLResponse)
    async def get_publish(
        request: Request,
        path: str = "",
        services: EditorServices = Depends(get_services),
    ) -> Response:
        """Render the creation form, suggesting the unpublished path if one was given."""

        return services.templates.TemplateResponse(
            request,
            "publish.html",
            {"title": "Publish", "suggested_path": path},
        )

    @app.post("/publish")
    async def post_publish(
        request: Request,
        services: EditorServices = Depends(get_services),
    ) -> Response:
        """Create a new source file and commit it."""

        form = await request.form()
        filename = _required_field(form, "filename", "missing filename")
        content = _required_field(form, "content", "missing content")
        note = _optional_field(form, "note")

        target = resolve_new_file(services.config.source_dir, filename)
        outcome = await services.revisions.write(target, content, note=note, create=True)
        return PlainTextResponse(f"wrote to {target.path}\n\n{outcome}")

    @app.get("/revert", response_class=HTMLResponse)
    async def get_revert(
        request: Request,
        services: EditorServices = Depends(get_services),
    ) -> Response:
        """Render the list of known revisions."""

        revisions = await services.reverts.list_revisions()
        return services.templates.TemplateResponse(
            request,
            "revert.html",
            {"title": "Revert", "revisions": revisions},
        )

    @app.post("/revert")
    async def post_revert(
        request: Request,
        services: EditorServices = Depends(get_services),
    ) -> Response:
        """Revert the source tree to the submitted revision."""

        form = await request.form()
        revision = _required_field(form, "revision", "no revision from form?")
        outcome = await services.reverts.revert(revision)
        return PlainTextResponse(str(outcome))


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(EditorError)
    async def editor_error_handler(request: Request, exc: EditorError) -> PlainTextResponse:
        if exc.status_code >= 500:
            logger.error(
                "%s %s failed",
                request.method,
                request.url.path,
                extra={"event": "request.error", "status": exc.status_code},
            )
        return PlainTextResponse(str(exc), status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> PlainTextResponse:
        # unknown routes and unsupported methods both read as "not found"
        if exc.status_code in {404, 405}:
            return PlainTextResponse(f"404: {request.url.path}", status_code=404)
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code)
