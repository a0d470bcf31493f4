"""
=============================================================================
STATIC FILE HANDLER
=============================================================================

Serves the /app tree and the home document from the static root.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   URL                       Filesystem (static_dir = ./public)      │
    │                                                                      │
    │   GET /                 →   ./public/index.html                     │
    │   GET /app/             →   ./public/index.html  (or a listing)     │
    │   GET /app/logo.png     →   ./public/logo.png                       │
    │   GET /app/assets       →   301 Location: /app/assets/              │
    │                                                                      │
    │   The /app prefix is stripped; what is left is relative to root.    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PATH TRAVERSAL
=============================================================================

    GET /app/%2e%2e/%2e%2e/etc/passwd

The parser already refuses ".." segments, but a symlink inside the root
can still point outside it. Every path is resolved (symlinks followed)
and must stay under the resolved root, otherwise 403.

=============================================================================
CONDITIONAL REQUESTS
=============================================================================

    First request:                       Later request:
    ─────────────────                    ─────────────────
    GET /app/style.css                   GET /app/style.css
                                         If-None-Match: "1700000000-512"
    200 OK
    ETag: "1700000000-512"               304 Not Modified
    Last-Modified: ...                   (no body)

The ETag is "<mtime>-<size>": cheap to compute, changes whenever the file
is rewritten.

=============================================================================
"""

import html
import logging
from pathlib import Path
from datetime import datetime, timezone
from urllib.parse import quote

from ..http.request import HTTPRequest
from ..http.response import (
    HTTPResponse, ResponseBuilder, HTTPStatus,
    error_response, forbidden, internal_error, method_not_allowed, not_found,
    format_http_date,
)
from ..http.mime_types import get_content_type


logger = logging.getLogger(__name__)


SAFE_METHODS = ("GET", "HEAD")


class StaticFileHandler:
    """
    Handler for a static file tree mounted under a URL prefix.

        static = StaticFileHandler(".", url_prefix="/app")
        router.add_route("/app/*path", static.handle)

    Only GET and HEAD are served; anything else is a 405 with
    "Allow: GET, HEAD". HEAD is answered exactly like GET here; the server
    drops the body of every HEAD response and keeps its Content-Length.
    """

    def __init__(
        self,
        root_dir: str,
        url_prefix: str = "/app",
        index_file: str = "index.html",
        enable_directory_listing: bool = True,
    ):
        """
        Args:
            root_dir: Directory to serve. Must exist.
            url_prefix: Stripped from the URL before the filesystem lookup.
            index_file: Served for directory URLs when present.
            enable_directory_listing: Render an HTML listing for
                directories without an index file, else 403.
        """
        self.root_dir = Path(root_dir).resolve()
        self.url_prefix = url_prefix.rstrip("/")
        self.index_file = index_file
        self.enable_directory_listing = enable_directory_listing

        if not self.root_dir.is_dir():
            raise ValueError(f"Static root directory does not exist: {root_dir}")

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        if request.method not in SAFE_METHODS:
            return method_not_allowed(SAFE_METHODS)

        # ─────────────────────────────────────────────────────────────────
        # STRIP THE URL PREFIX
        # ─────────────────────────────────────────────────────────────────
        if "path" in request.path_params:
            relative = request.path_params["path"]
        else:
            relative = request.path
            if relative.startswith(self.url_prefix):
                relative = relative[len(self.url_prefix):]
        relative = relative.lstrip("/")

        # ─────────────────────────────────────────────────────────────────
        # RESOLVE AND CONTAIN
        # ─────────────────────────────────────────────────────────────────
        full_path = (self.root_dir / relative).resolve()
        try:
            full_path.relative_to(self.root_dir)
        except ValueError:
            logger.warning(f"Path traversal attempt: {request.path}")
            return forbidden("Access denied")

        # ─────────────────────────────────────────────────────────────────
        # DIRECTORIES
        # ─────────────────────────────────────────────────────────────────
        if full_path.is_dir():
            if not request.path.endswith("/"):
                return (ResponseBuilder()
                    .redirect(quote(request.path) + "/", permanent=True)
                    .build())

            index_path = full_path / self.index_file
            if index_path.is_file():
                full_path = index_path
            elif self.enable_directory_listing:
                return self._directory_listing(full_path, request.path)
            else:
                return forbidden("Directory listing not allowed")

        if not full_path.is_file():
            return not_found()

        return serve_file(full_path, request)

    def _directory_listing(self, path: Path, url_path: str) -> HTTPResponse:
        """Render a minimal HTML index of a directory, sorted by name."""
        entries = []

        if path != self.root_dir:
            entries.append('<li><a href="../">../</a></li>')

        for entry in sorted(path.iterdir()):
            name = entry.name + ("/" if entry.is_dir() else "")
            entries.append(
                f'<li><a href="{quote(name)}">{html.escape(name)}</a></li>'
            )

        title = html.escape(url_path)
        page = (
            "<!DOCTYPE html>\n"
            f"<html>\n<head><title>Index of {title}</title></head>\n"
            f"<body>\n<h1>Index of {title}</h1>\n"
            f"<ul>\n{''.join(entries)}\n</ul>\n"
            "</body>\n</html>\n"
        )
        return ResponseBuilder().html(page).build()


def serve_file(path: Path, request: HTTPRequest) -> HTTPResponse:
    """
    200 with the file content and validators, or 304 if the client's
    If-None-Match already names this version.
    """
    try:
        stat = path.stat()
        etag = f'"{int(stat.st_mtime)}-{stat.st_size}"'
        mtime = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)

        if request.headers.get("if-none-match", "") == etag:
            return (ResponseBuilder()
                .status(HTTPStatus.NOT_MODIFIED)
                .header("ETag", etag)
                .build())

        content = path.read_bytes()
    except PermissionError:
        return forbidden("Permission denied")
    except OSError as e:
        logger.error(f"Error serving file {path}: {e}")
        return internal_error("Failed to read file")

    return (ResponseBuilder()
        .status(HTTPStatus.OK)
        .header("Content-Type", get_content_type(path))
        .header("ETag", etag)
        .header("Last-Modified", format_http_date(mtime))
        .body(content)
        .build())


class HomeHandler:
    """
    Serve one file for "/": the home document.

        home = HomeHandler("./public/index.html")
        router.add_route("/", method_guard("GET", home.handle))

    A missing file is a plain 404, not a server error.
    """

    def __init__(self, path: str):
        self.path = Path(path)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        if not self.path.is_file():
            logger.debug(f"Home document missing: {self.path}")
            return error_response(HTTPStatus.NOT_FOUND)
        return serve_file(self.path, request)


def serve_static(root_dir: str, **kwargs) -> StaticFileHandler:
    """
    Factory for StaticFileHandler.

        static = serve_static("./public", url_prefix="/app")
    """
    return StaticFileHandler(root_dir, **kwargs)
