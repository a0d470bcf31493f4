"""
=============================================================================
HANDLERS
=============================================================================

Request handlers: one callable per endpoint, request in, response out.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ Endpoint                  Handler                                    │
    ├─────────────────────────────────────────────────────────────────────┤
    │ /                         HomeHandler.handle                         │
    │ /app/*path                StaticFileHandler.handle                   │
    │ /api/healthz              health                                     │
    │ /metrics, /reset          MetricsHandler.metrics / .reset            │
    │ /api/validate_chirp       validate_chirp_handler                     │
    └─────────────────────────────────────────────────────────────────────┘

Handlers hold no per-request state. Method restriction and hit counting
are middleware concerns and live in chirpy.middleware; wiring happens in
chirpy.app.

=============================================================================
"""

from .static import StaticFileHandler, HomeHandler, serve_static, serve_file
from .health import health
from .admin import MetricsHandler
from .chirps import validate_chirp_handler

__all__ = [
    "StaticFileHandler",
    "HomeHandler",
    "serve_static",
    "serve_file",
    "health",
    "MetricsHandler",
    "validate_chirp_handler",
]
