"""
=============================================================================
LOW-LEVEL TCP SOCKET SERVER
=============================================================================

Owns the listening socket: create, bind, listen, accept, close. Every
accepted client socket is wrapped in a Connection and handed to a callback
(the HTTP server, which queues it on the thread pool).

=============================================================================
SOCKET LIFECYCLE (Server Side)
=============================================================================

    1. socket()    Create the file descriptor
    2. bind()      Reserve IP:PORT    ◄── "Address already in use" lives here
    3. listen()    Kernel starts queueing connections (backlog)
    4. accept()    Pop one connection, get a NEW socket for that client
    5. close()     Release the port

                    ┌───────────────────────┐
                    │   Listening Socket    │ ◄── Created once in start()
                    └───────────┬───────────┘     Never sends/receives data
                                │ accept()
        ┌───────────────────────┼───────────────────────┐
        ▼                       ▼                       ▼
    ┌─────────┐            ┌─────────┐            ┌─────────┐
    │ Client  │            │ Client  │            │ Client  │
    │ Socket  │            │ Socket  │            │ Socket  │
    └─────────┘            └─────────┘            └─────────┘

=============================================================================
STOPPING THE ACCEPT LOOP
=============================================================================

shutdown() may be called from any thread, at any time, even before start()
has bound the socket:

    - It marks the server CLOSED, so a later start() returns at once.
    - It shuts down and closes the listening socket, so the kernel refuses
      new connections immediately and a blocked accept() wakes up.
    - The accept loop also polls with a 1 second timeout as a backstop.

Process signals are NOT handled here; the CLI owns them.

=============================================================================
"""

import socket
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP socket server.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      SocketServer Internals                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    start(callback)                                                   │
    │        ├──► _create_socket()   SO_REUSEADDR, TCP_NODELAY, 1s poll   │
    │        ├──► bind() / listen()  OSError propagates (fatal)           │
    │        ├──► _ready.set()       wait_until_ready() returns           │
    │        └──► _accept_loop()     blocks until shutdown()              │
    │                                                                      │
    │    shutdown()                                                        │
    │        ├──► _closed = True, _running = False                        │
    │        └──► close listening socket (wakes accept)                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘
    """

    def __init__(self, config: ServerConfig):
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._bound_address: Optional[Tuple[str, int]] = None

        self._running = False
        self._closed = False
        self._lock = threading.Lock()

        # Set once the socket is listening (or start() gave up)
        self._ready = threading.Event()

    @property
    def is_running(self) -> bool:
        """Check if the accept loop is running."""
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """
        The bound (host, port).

        Before binding this is the configured address; afterwards the
        real one, which matters when the config asks for port 0.
        """
        return self._bound_address or (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Restarting right after a stop must not fail on TIME_WAIT.
        # SO_REUSEPORT is deliberately NOT set: a second server on the
        # same port has to fail with "Address already in use".
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # Small responses go out immediately instead of waiting on Nagle
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        # accept() returns at least once a second so _running is re-checked
        sock.settimeout(1.0)
        return sock

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Bind, listen and accept connections until shutdown().

        Args:
            connection_handler: Called with every accepted Connection.

        Raises:
            OSError: If the socket cannot be bound or put into listen
                     mode. Nothing is left open in that case.
        """
        # shutdown() takes the same lock, so it sees either no socket or a
        # listening one, never a socket halfway through bind().
        bind_error: Optional[OSError] = None
        with self._lock:
            if self._closed:
                self._ready.set()
                return
            self._socket = self._create_socket()
            try:
                self._socket.bind((self.config.host, self.config.port))
                self._socket.listen(self.config.backlog)
            except OSError as e:
                bind_error = e
            else:
                self._bound_address = self._socket.getsockname()[:2]
                self._running = True

        if bind_error is not None:
            logger.error(
                f"Failed to bind to {self.config.host}:{self.config.port}: {bind_error}"
            )
            self._cleanup()
            raise bind_error
        self._ready.set()

        host, port = self._bound_address
        logger.info(f"Server listening on {host}:{port}")

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        """Accept connections while running and pass them on."""
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                # The listening socket was closed by shutdown(), or broke
                if self._running:
                    logger.error(f"Accept error: {e}")
                    raise
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                read_timeout=self.config.read_timeout,
                write_timeout=self.config.write_timeout,
                idle_timeout=self.config.idle_timeout,
                max_request_size=self.config.max_request_size,
            )
            connection_handler(conn)

    def shutdown(self):
        """
        Stop accepting connections immediately.

        Safe to call from any thread, before or during start(), and any
        number of times.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._running = False
            sock = self._socket

        logger.info("Closing listening socket")
        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass  # Not connected is the normal case for a listener
            try:
                sock.close()
            except OSError:
                pass
        self._ready.set()

    def _cleanup(self):
        with self._lock:
            self._running = False
            sock, self._socket = self._socket, None
        if sock is not None:
            try:
                sock.close()
            except OSError:
                pass
        self._ready.set()
        logger.info("Socket server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until the socket is listening.

        Returns:
            True if the server is now accepting connections.
        """
        self._ready.wait(timeout)
        return self._running

