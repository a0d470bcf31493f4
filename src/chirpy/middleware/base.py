"""
=============================================================================
BASE MIDDLEWARE INTERFACE
=============================================================================

The middleware protocol and the pipeline that chains middleware around a
handler (Chain of Responsibility).

    ┌─────────────────────────────────────────────────────────────────────┐
    │              CHAIN OF RESPONSIBILITY - REQUEST FLOW                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Request ────────────────────────────────────────────────►         │
    │                                                                      │
    │   ┌──────────┐    ┌──────────┐    ┌──────────┐    ┌──────────┐     │
    │   │  Logging │───►│  Router  │───►│  Method  │───►│ Handler  │     │
    │   │    MW    │    │          │    │  Guard   │    │          │     │
    │   └────┬─────┘    └──────────┘    └────┬─────┘    └────┬─────┘     │
    │        │                               │               │            │
    │   [before]                        [before]          [exec]          │
    │   start timer                     wrong method?                     │
    │                                   → 405, stop                       │
    │        ▲                                               │            │
    │   [after]                                              ▼            │
    │   access log line                                                   │
    │                                                                      │
    │   ◄──────────────────────────────────────────────── Response        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Middleware is applied at two levels:

    GLOBAL      server.use(mw)           wraps router.handle, sees every
                                         request (access logging)
    PER ROUTE   mw.wrap(handler)         wraps one route's handler
                                         (method guard, hit counting)

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


# The next middleware or the final handler
NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Abstract base class for middleware.

    =========================================================================
    MIDDLEWARE ANATOMY
    =========================================================================

        class MyMiddleware(Middleware):
            def __call__(self, request, next):
                # PRE-PROCESSING: may short-circuit by returning early
                if not self.is_valid(request):
                    return bad_request("Invalid request")

                response = next(request)

                # POST-PROCESSING
                response.set_header("X-Processed-By", "MyMiddleware")
                return response

    =========================================================================
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """
        Process the request.

        Args:
            request: The incoming HTTP request
            next: The next handler in the chain

        Returns:
            HTTP response (from next() or short-circuited)
        """

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Bind this middleware to one handler.

            guarded = MethodGuard("POST").wrap(validate_chirp_handler)
            router.add_route("/api/validate_chirp", guarded)
        """
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return self(request, handler)

        wrapped.__name__ = f"{self.name}({getattr(handler, '__name__', 'handler')})"
        return wrapped

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Chains middleware around a final handler.

        pipeline.add(LoggingMiddleware())    # First added = outermost
        pipeline.add(OtherMiddleware())

            ┌─────────────────────────────────────────────────────────┐
            │  LoggingMiddleware                                      │
            │  ┌───────────────────────────────────────────────────┐  │
            │  │  OtherMiddleware                                  │  │
            │  │  ┌─────────────────────────────────────────────┐  │  │
            │  │  │         FINAL HANDLER (router.handle)       │  │  │
            │  │  └─────────────────────────────────────────────┘  │  │
            │  └───────────────────────────────────────────────────┘  │
            └─────────────────────────────────────────────────────────┘

    Requests flow inward in the order added; responses flow back out in
    reverse.
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """Append middleware; the first added is the outermost."""
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Wrap handler with every middleware in the pipeline.

        Given [MW1, MW2, MW3] we wrap in REVERSE order:

            current = MW3.wrap(handler)
            current = MW2.wrap(current)
            current = MW1.wrap(current)

        so the call order is MW1 → MW2 → MW3 → handler.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = middleware.wrap(current)
        return current

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)
