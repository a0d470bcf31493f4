"""
=============================================================================
METHOD GUARD
=============================================================================

Restricts a handler to exactly one HTTP method.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   GET  /reset ──► MethodGuard("POST") ──► 405                       │
    │                                           Allow: POST               │
    │                                           (no body)                 │
    │                                                                      │
    │   POST /reset ──► MethodGuard("POST") ──► reset handler             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The wrapped handler is never called for the wrong method. The guard keeps
no state, so it composes with MetricsMiddleware in either order:

    MethodGuard("GET").wrap(MetricsMiddleware(cfg).wrap(h))  # 405s not counted
    MetricsMiddleware(cfg).wrap(MethodGuard("GET").wrap(h))  # 405s counted

Three spellings of the same thing:

    method_guard("POST", handler)          # function
    MethodGuard("POST").wrap(handler)      # middleware class

    @allow("POST")                         # decorator
    def handler(request): ...

=============================================================================
"""

from typing import Callable

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, method_not_allowed


class MethodGuard(Middleware):
    """Answer 405 unless the request method is `method`."""

    def __init__(self, method: str):
        if not method:
            raise ValueError("method must be a non-empty HTTP method")
        self.method = method.upper()

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        if request.method != self.method:
            return method_not_allowed([self.method])
        return next(request)

    @property
    def name(self) -> str:
        return f"MethodGuard[{self.method}]"


def method_guard(method: str, handler: NextHandler) -> NextHandler:
    """Wrap handler so only `method` reaches it."""
    return MethodGuard(method).wrap(handler)


def allow(method: str) -> Callable[[NextHandler], NextHandler]:
    """
    Decorator form of method_guard.

        @allow("GET")
        def metrics(request):
            ...
    """
    def decorator(handler: NextHandler) -> NextHandler:
        return method_guard(method, handler)
    return decorator
