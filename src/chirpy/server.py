"""
=============================================================================
HTTP SERVER
=============================================================================

Ties the transport, the middleware pipeline and the router together, and
owns the start/stop lifecycle.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │   HTTPServer    │                          │
    │                        └────────┬────────┘                          │
    │                                 │                                    │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │ SocketServer │    │  ThreadPool  │    │    Router    │        │
    │    └──────┬───────┘    └──────┬───────┘    └──────────────┘        │
    │           ▼                   ▼                                     │
    │    ┌──────────────┐    ┌──────────────────────────────────┐        │
    │    │  Connection  │    │ Logging → Router → Guard/Metrics │        │
    │    └──────────────┘    │          → Handler               │        │
    │                        └──────────────────────────────────┘        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
LIFECYCLE
=============================================================================

    HTTPServer(config)        validate config, build components
          │
          ▼
    run()  ─────────────────  bind, listen, accept  (blocks)
          │                        │
          │      shutdown(5.0) ────┤  1. close the listening socket
          │                        │  2. close idle keep-alive connections
          │                        │  3. wait for in-flight requests
          │                        │     (until the deadline)
          ▼                        ▼
    run() returns None        True = drained, False = deadline exceeded

A server is single use: run() after shutdown() raises ServerClosedError.
shutdown() may be called from any thread, before run() has bound the
socket, and any number of times.

=============================================================================
"""

import logging
import threading
import time
from typing import Optional, Callable, Set, Tuple

from .config import ServerConfig
from .core import SocketServer, Connection, ThreadPool
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPResponse, HTTPStatus, Router,
    error_response, internal_error,
)
from .middleware import MiddlewarePipeline, Middleware


logger = logging.getLogger(__name__)


class ServerClosedError(RuntimeError):
    """run() was called on a server that has already been shut down."""


class HTTPServer:
    """
    HTTP/1.1 server with graceful shutdown.

        server = HTTPServer(ServerConfig(port=8080))

        @server.get("/api/healthz")
        def healthz(request):
            return ok("OK")

        threading.Thread(target=server.run).start()
        ...
        drained = server.shutdown(timeout=5.0)
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        """
        Args:
            config: Server configuration. Defaults listen on 0.0.0.0:8080.

        Raises:
            ValueError: If the configuration is invalid.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        # ─────────────────────────────────────────────────────────────────
        # CORE COMPONENTS
        # ─────────────────────────────────────────────────────────────────
        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)

        # ─────────────────────────────────────────────────────────────────
        # APPLICATION COMPONENTS
        # ─────────────────────────────────────────────────────────────────
        self._router = Router()
        self._middleware = MiddlewarePipeline()
        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None

        # ─────────────────────────────────────────────────────────────────
        # LIFECYCLE STATE
        # ─────────────────────────────────────────────────────────────────
        self._state_lock = threading.Lock()
        self._closing = False

        # Open connections; shutdown() waits on the condition until empty
        self._connections: Set[Connection] = set()
        self._conn_cond = threading.Condition()

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def use(self, middleware: Middleware) -> "HTTPServer":
        """
        Add global middleware. Runs in the order added, around the router.

            server.use(LoggingMiddleware())
        """
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        return self._router

    def route(self, path: str, method: Optional[str] = None, **kwargs):
        """Register a route handler (decorator)."""
        return self._router.route(path, method, **kwargs)

    def get(self, path: str, **kwargs):
        return self._router.get(path, **kwargs)

    def post(self, path: str, **kwargs):
        return self._router.post(path, **kwargs)

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._socket_server.is_running and not self._closing

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port). With port 0 this is the real ephemeral port."""
        return self._socket_server.address

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the listening socket is bound. False on timeout or stop."""
        return self._socket_server.wait_until_ready(timeout)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self) -> None:
        """
        Serve until shutdown() is called (blocking).

        Returns:
            None once the server has been shut down.

        Raises:
            ServerClosedError: If shutdown() already ran.
            OSError: If the socket cannot be bound, or accept() fails.
        """
        with self._state_lock:
            if self._closing:
                raise ServerClosedError("Server has been shut down")
            # shutdown() takes this lock too, so it never misses a started pool
            self._handler = self._middleware.wrap(self._router.handle)
            self._thread_pool.start()

        try:
            self._socket_server.start(self._handle_connection)
        except OSError:
            self._thread_pool.shutdown(wait=False)
            raise

        logger.info("Server stopped accepting connections")

    def shutdown(self, timeout: float = 5.0) -> bool:
        """
        Stop the server gracefully.

        =====================================================================
        GRACEFUL SHUTDOWN
        =====================================================================

            1. Close the listening socket (no new connections)
            2. Every 50ms, close connections idle between requests
            3. Wait for connections with a request in flight to finish
            4. Give up at the deadline and report it

        Connections that finish a request during shutdown get
        "Connection: close" and are not kept alive.

        =====================================================================

        Args:
            timeout: Seconds to wait for in-flight requests.

        Returns:
            True if every connection finished in time, False if the
            deadline passed first. Repeat calls return True.
        """
        with self._state_lock:
            if self._closing:
                return True
            self._closing = True

        logger.info(f"Shutting down (timeout {timeout}s)")
        self._socket_server.shutdown()

        deadline = time.monotonic() + timeout
        with self._conn_cond:
            while self._connections:
                for conn in list(self._connections):
                    conn.close_if_idle()

                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self._conn_cond.wait(min(0.05, remaining))

            pending = len(self._connections)

        self._thread_pool.shutdown(wait=False)

        drained = pending == 0
        if drained:
            logger.info("All connections drained")
        else:
            logger.warning(
                f"Shutdown deadline exceeded with {pending} connection(s) in flight"
            )
        return drained

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Hand an accepted connection to the thread pool (accept thread)."""
        if self._closing:
            conn.close()
            return

        self._register(conn)
        try:
            submitted = self._thread_pool.submit(
                self._process_connection, args=(conn,), block=False
            )
        except RuntimeError:
            submitted = False

        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()
            self._unregister(conn)

    def _register(self, conn: Connection):
        with self._conn_cond:
            self._connections.add(conn)

    def _unregister(self, conn: Connection):
        with self._conn_cond:
            self._connections.discard(conn)
            self._conn_cond.notify_all()

    def _process_connection(self, conn: Connection):
        """
        Keep-alive loop for one connection (worker thread).

            read → parse → middleware + router → write → repeat or close
        """
        try:
            with conn:
                while True:
                    # ─────────────────────────────────────────────────────
                    # READ
                    # ─────────────────────────────────────────────────────
                    try:
                        raw_request = conn.read_request()
                    except TimeoutError:
                        self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                        break
                    except ValueError as e:
                        logger.debug(f"[{conn.id}] {e}")
                        self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE)
                        break
                    except HTTPParseError as e:
                        logger.debug(f"[{conn.id}] Framing error: {e}")
                        self._send_error(conn, HTTPStatus(e.status_code), str(e))
                        break

                    if raw_request is None:
                        break

                    # ─────────────────────────────────────────────────────
                    # PARSE
                    # ─────────────────────────────────────────────────────
                    try:
                        request = self._parser.parse(raw_request, conn.address)
                    except HTTPParseError as e:
                        logger.debug(f"[{conn.id}] Parse error: {e}")
                        self._send_error(conn, HTTPStatus(e.status_code), str(e))
                        break

                    # ─────────────────────────────────────────────────────
                    # DISPATCH
                    # ─────────────────────────────────────────────────────
                    conn.set_processing()
                    response = self._dispatch(conn, request)

                    # ─────────────────────────────────────────────────────
                    # WRITE
                    # ─────────────────────────────────────────────────────
                    keep_alive = (
                        request.is_keep_alive
                        and self.config.keep_alive
                        and not self._closing
                    )
                    if keep_alive:
                        response.set_header("Connection", "keep-alive")
                        response.set_header(
                            "Keep-Alive", f"timeout={int(self.config.idle_timeout)}"
                        )
                    else:
                        response.set_header("Connection", "close")

                    if request.method == "HEAD":
                        response.set_header("Content-Length", str(len(response.body)))
                        response.body = b""

                    if not conn.send_response(response.to_bytes(self.config.server_name)):
                        break
                    if not keep_alive:
                        break

                    conn.set_keep_alive()
        except Exception as e:
            logger.exception(f"[{conn.id}] Connection error: {e}")
        finally:
            self._unregister(conn)

    def _dispatch(self, conn: Connection, request: HTTPRequest) -> HTTPResponse:
        try:
            return self._handler(request)
        except Exception as e:
            logger.exception(f"[{conn.id}] Handler error: {e}")
            return internal_error()

    def _send_error(self, conn: Connection, status: HTTPStatus, message: Optional[str] = None):
        """Send a JSON error for failures before a handler ran, then close."""
        response = error_response(status, message)
        response.set_header("Connection", "close")
        conn.send_response(response.to_bytes(self.config.server_name))
