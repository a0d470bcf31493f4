"""
=============================================================================
HEALTH CHECK
=============================================================================

    GET /api/healthz

    HTTP/1.1 200 OK
    Content-Type: text/plain; charset=utf-8

    OK

Liveness only: if a worker thread can answer, the process is up. There is
nothing downstream (no database, no cache) worth probing.

=============================================================================
"""

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ok


def health(request: HTTPRequest) -> HTTPResponse:
    """Always 200 "OK" as text/plain."""
    return ok("OK")
