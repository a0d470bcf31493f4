"""
=============================================================================
MIDDLEWARE
=============================================================================

Cross-cutting request behaviour, kept out of the handlers.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ LoggingMiddleware   GLOBAL     access log line + X-Request-ID      │
    │ MethodGuard         PER ROUTE  one allowed method, else 405        │
    │ MetricsMiddleware   PER ROUTE  hit counter before the handler      │
    └─────────────────────────────────────────────────────────────────────┘

Every middleware has the same shape, so any of them can wrap any handler
or any other middleware:

    def __call__(self, request, next) -> HTTPResponse

=============================================================================
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware, RequestLog
from .metrics import MetricsMiddleware
from .method_guard import MethodGuard, method_guard, allow

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",

    "LoggingMiddleware",
    "RequestLog",
    "MetricsMiddleware",
    "MethodGuard",
    "method_guard",
    "allow",
]
