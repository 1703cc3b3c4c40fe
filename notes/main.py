from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional, Tuple
from urllib.parse import parse_qs

import uvicorn
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import (
    FileResponse,
    HTMLResponse,
    PlainTextResponse,
    RedirectResponse,
    Response,
)
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from .routing import match_path
from .settings import ConfigError, ConfigStore
from .storage import (
    InvalidIdentifierError,
    Page,
    PageNotFoundError,
    PageStore,
    PageStoreError,
)
from .templates import USERNAME_ERROR, render

DATA_DIR = Path(".")
DOCS_DIRNAME = "docs"
CONFIG_FILENAME = "app-config.json"
LOG_FILENAME = "server.log"
ASSETS_DIR = Path(__file__).resolve().parent / "assets"
FAVICON_PATH = ASSETS_DIR / "img" / "favicon.ico"
HOST = "127.0.0.1"
PORT = 4646

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

PageHandler = Callable[[Request, str], Awaitable[Response]]

logger = logging.getLogger("notes")


def _configure_logging(log_file: Path) -> logging.Logger:
    if logger.handlers:
        return logger
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logger.setLevel(logging.DEBUG)
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    file_handler = RotatingFileHandler(
        log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(logging.INFO)
    stream_handler.setFormatter(formatter)
    logger.addHandler(file_handler)
    logger.addHandler(stream_handler)
    logger.propagate = False
    logger.debug("Logging initialised, writing to %s", log_file)
    return logger


def _page_store(request: Request) -> PageStore:
    return request.app.state.page_store


def _config_store(request: Request) -> ConfigStore:
    return request.app.state.config_store


async def _form_field(request: Request, name: str) -> str:
    body_bytes = await request.body()
    form_data = parse_qs(body_bytes.decode("utf-8", errors="replace"), keep_blank_values=True)
    return (form_data.get(name) or [""])[-1]


def _render_index(request: Request, errors: Optional[Dict[str, str]] = None) -> str:
    links = _page_store(request).list_pages()
    return render(
        "index",
        links=links,
        username=_config_store(request).username,
        errors=errors,
    )


def _route_method(request: Request) -> str:
    # HEAD is answered by the GET handlers; the server drops the body.
    return "GET" if request.method == "HEAD" else request.method


async def index(request: Request) -> Response:
    if _route_method(request) == "GET":
        return HTMLResponse(_render_index(request))
    if request.method == "POST":
        username = (await _form_field(request, "username")).strip()
        if not username:
            return HTMLResponse(_render_index(request, errors={"Username": USERNAME_ERROR}))
        _config_store(request).update(username)
        return RedirectResponse(url="/", status_code=status.HTTP_303_SEE_OTHER)
    return RedirectResponse(url="/", status_code=status.HTTP_303_SEE_OTHER)


async def edit_page(request: Request, identifier: str) -> Response:
    try:
        page = _page_store(request).load(identifier)
    except PageNotFoundError:
        page = Page(title=identifier)
    return HTMLResponse(render("edit", page))


async def save_page(request: Request, identifier: str) -> Response:
    body = await _form_field(request, "body")
    page = Page(title=identifier, body=body.encode("utf-8"))
    try:
        _page_store(request).save(page)
    except PageStoreError as exc:
        logger.exception("Saving page %s failed.", identifier)
        return PlainTextResponse(str(exc), status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return RedirectResponse(url=f"/view/{identifier}", status_code=status.HTTP_303_SEE_OTHER)


async def view_page(request: Request, identifier: str) -> Response:
    try:
        page = _page_store(request).load(identifier)
    except PageNotFoundError:
        logger.debug("Page %s missing, redirecting to the editor.", identifier)
        return RedirectResponse(url=f"/edit/{identifier}", status_code=status.HTTP_303_SEE_OTHER)
    return HTMLResponse(render("view", page))


PAGE_ROUTES: Dict[Tuple[str, str], PageHandler] = {
    ("GET", "edit"): edit_page,
    ("POST", "save"): save_page,
    ("GET", "view"): view_page,
}


async def dispatch_page(request: Request) -> Response:
    route = match_path(request.scope["path"])
    if route is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    handler = PAGE_ROUTES.get((_route_method(request), route.action))
    if handler is None:
        allowed = sorted(method for method, action in PAGE_ROUTES if action == route.action)
        return PlainTextResponse(
            "Method Not Allowed",
            status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
            headers={"Allow": ", ".join(allowed)},
        )
    try:
        return await handler(request, route.identifier)
    except InvalidIdentifierError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND) from None


async def favicon() -> FileResponse:
    if not FAVICON_PATH.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return FileResponse(FAVICON_PATH)


async def _http_error(request: Request, exc: StarletteHTTPException) -> Response:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return HTMLResponse(
            render("not_found", request.scope["path"]),
            status_code=status.HTTP_404_NOT_FOUND,
        )
    return await http_exception_handler(request, exc)


async def _config_error(request: Request, exc: ConfigError) -> Response:
    logger.error("Configuration update failed: %s", exc)
    return PlainTextResponse(str(exc), status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


def create_app(data_dir: Path = DATA_DIR) -> FastAPI:
    """
    Build the application around the stores living in ``data_dir``.

    Raises ``ConfigError`` when the configuration file can neither be read
    nor recreated with defaults.
    """
    config_store = ConfigStore(data_dir / CONFIG_FILENAME)
    config_store.reload()

    app = FastAPI(
        title="Plain Notes",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        redirect_slashes=False,
    )
    app.state.page_store = PageStore(data_dir / DOCS_DIRNAME)
    app.state.config_store = config_store

    # Order matters: the page dispatcher catches every remaining path.
    app.add_api_route("/favicon.ico", favicon, methods=["GET", "HEAD"])
    app.mount("/assets", StaticFiles(directory=ASSETS_DIR, check_dir=False), name="assets")
    app.add_api_route("/", index, methods=ALL_METHODS)
    app.add_api_route("/{page_path:path}", dispatch_page, methods=ALL_METHODS)

    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(ConfigError, _config_error)

    logger.info(
        "Application ready (pages=%s config=%s)",
        app.state.page_store.root,
        config_store.path,
    )
    return app


def run(data_dir: Path = DATA_DIR, host: str = HOST, port: int = PORT) -> None:
    _configure_logging(data_dir / LOG_FILENAME)
    app = create_app(data_dir)
    logger.info("Server running on http://%s:%d/ (CTRL+C to stop)", host, port)
    uvicorn.run(app, host=host, port=port)


__all__ = ["create_app", "run"]
