"""
=============================================================================
MIME TYPE DETECTION
=============================================================================

Maps file extensions to Content-Type values for the static file tree.

    ┌────────────────────────────────────────────────────────────────────┐
    │  LOOKUP ORDER                                                      │
    ├────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │  1. WEB_TYPES below       fixed answers for the assets a browser   │
    │                           is strict about (.js, .css, .svg, ...)   │
    │  2. mimetypes module      the platform's extension table           │
    │  3. octet-stream          unknown: the browser downloads it        │
    │                                                                     │
    │  Text types get "; charset=utf-8" appended.                        │
    │                                                                     │
    └────────────────────────────────────────────────────────────────────┘

A platform table can map .js to "application/x-javascript" or miss
.webp entirely, and browsers refuse to run scripts served with the wrong
type. The fixed table wins for that reason.

=============================================================================
"""

import mimetypes
from pathlib import Path
from typing import Optional, Union


WEB_TYPES = {
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
    ".mjs": "text/javascript",
    ".json": "application/json",
    ".map": "application/json",
    ".xml": "application/xml",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".csv": "text/csv",

    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",
    ".avif": "image/avif",

    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".otf": "font/otf",

    ".wasm": "application/wasm",
    ".pdf": "application/pdf",
}

DEFAULT_MIME_TYPE = "application/octet-stream"

# application/* and image/* types that are really text
_TEXT_LIKE = {
    "application/json",
    "application/xml",
    "application/javascript",
    "image/svg+xml",
}


def get_mime_type(path: Union[str, Path], default: Optional[str] = None) -> str:
    """
    MIME type for a file name.

        >>> get_mime_type("styles.css")
        'text/css'
        >>> get_mime_type("unknown.xyz")
        'application/octet-stream'
    """
    extension = Path(path).suffix.lower()

    if extension in WEB_TYPES:
        return WEB_TYPES[extension]

    guessed, _ = mimetypes.guess_type(f"file{extension}", strict=False)
    return guessed or default or DEFAULT_MIME_TYPE


def is_text_type(mime_type: str) -> bool:
    return mime_type.startswith("text/") or mime_type in _TEXT_LIKE


def get_content_type(path: Union[str, Path], charset: str = "utf-8") -> str:
    """
    Full Content-Type header value for a file.

        >>> get_content_type("index.html")
        'text/html; charset=utf-8'
        >>> get_content_type("logo.png")
        'image/png'
    """
    mime_type = get_mime_type(path)
    if is_text_type(mime_type):
        return f"{mime_type}; charset={charset}"
    return mime_type
