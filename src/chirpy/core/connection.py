"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket with the buffered, timeout-aware API the
HTTP layer needs.

=============================================================================
TCP IS A BYTE STREAM
=============================================================================

TCP keeps bytes in order but does NOT keep message boundaries. One request
may arrive over several recv() calls, and one recv() may contain the tail
of one request plus the head of the next (pipelining). So we buffer until
we see the end of the headers (\\r\\n\\r\\n), then read the body: exactly
Content-Length more bytes, or chunks up to the zero-size last chunk when
Transfer-Encoding is chunked. Anything extra stays for the next request.

=============================================================================
THREE CLOCKS
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   accept ──► [ wait for first byte ] ──► [ read request ] ──►      │
    │               first request:              read_timeout              │
    │                 read_timeout              (total deadline)          │
    │               keep-alive:                                           │
    │                 idle_timeout                                        │
    │                                                                      │
    │          ──► [ handler ] ──► [ write response ] ──► wait again     │
    │                               write_timeout                         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The read timeout is a DEADLINE for the whole request, not a per-recv
timeout; a client trickling one byte every four seconds is still cut off.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──────► READING ──────► PROCESSING ──────► WRITING ────────┐
     │             │                                    │           │
     │             │                                    │           ▼
     │             │                                    │      KEEP_ALIVE
     │             ▼                                    │           │
     └──────────► CLOSING ◄─────────────────────────────┴───────────┘
                    │
                    ▼
                  CLOSED

NEW and KEEP_ALIVE are the IDLE states: no request is in flight, so a
shutting-down server may close the connection at any moment. The switch
out of an idle state happens under a lock so that close_if_idle() and the
reader never both win.

=============================================================================
"""

import socket
import threading
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Tuple
import uuid

from ..http.request import decode_chunked, is_chunked


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states."""

    NEW = "new"                # Accepted, no bytes read yet
    READING = "reading"        # Reading request data
    PROCESSING = "processing"  # Handler is executing
    WRITING = "writing"        # Sending the response
    KEEP_ALIVE = "keep_alive"  # Response sent, waiting for the next request
    CLOSING = "closing"        # Close sequence started
    CLOSED = "closed"          # Socket released


IDLE_STATES = (ConnectionState.NEW, ConnectionState.KEEP_ALIVE)


@dataclass(eq=False)
class Connection:
    """
    Represents a client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short identifier used in log lines.
        state: Current connection state.
        requests_handled: Number of requests read on this connection.
        read_timeout: Deadline in seconds for reading one request.
        write_timeout: Deadline in seconds for sending one response.
        idle_timeout: How long a keep-alive connection waits for more.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    read_timeout: float = 5.0
    write_timeout: float = 10.0
    idle_timeout: float = 120.0
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        self.socket.settimeout(self.read_timeout)

    @property
    def client_ip(self) -> str:
        """Get the client IP address."""
        return self.address[0]

    @property
    def is_idle(self) -> bool:
        """True while no request is in flight on this connection."""
        return self.state in IDLE_STATES

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request from the socket.

        ┌─────────────────────────────────────────────────────────────────┐
        │                    read_request() Flow                           │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │   1. Wait for the first byte (read or idle timeout)              │
        │   2. Leave the idle state (unless shutdown closed us)            │
        │   3. Start the read deadline                                     │
        │   4. recv() until \\r\\n\\r\\n                                       │
        │   5. Content-Length or chunked framing, recv() the body          │
        │   6. Cut the request out of the buffer, keep the leftovers       │
        │                                                                  │
        └─────────────────────────────────────────────────────────────────┘

        Returns:
            Complete request bytes, or None if the connection was closed
            by the peer, by a keep-alive idle timeout, or by shutdown.

        Raises:
            TimeoutError: If a request was started but not finished in time,
                          or the first request never arrived.
            ValueError: If the request exceeds max_request_size.
            HTTPParseError: If chunk framing is malformed.
        """
        self.last_activity = time.time()
        keep_alive_wait = self.requests_handled > 0

        try:
            # ─────────────────────────────────────────────────────────────
            # STEP 1: Wait for the next request to begin
            # ─────────────────────────────────────────────────────────────
            if not self._buffer:
                self.socket.settimeout(
                    self.idle_timeout if keep_alive_wait else self.read_timeout
                )
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk

            # ─────────────────────────────────────────────────────────────
            # STEP 2: Leave the idle state
            # ─────────────────────────────────────────────────────────────
            if not self._begin_reading():
                return None

            deadline = time.monotonic() + self.read_timeout

            # ─────────────────────────────────────────────────────────────
            # STEP 3: Read until the headers are complete
            # ─────────────────────────────────────────────────────────────
            while b"\r\n\r\n" not in self._buffer:
                self._check_size()
                chunk = self._recv_before(deadline)
                if not chunk:
                    return None
                self._buffer += chunk
            self._check_size()

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            chunked, content_length = self._parse_framing(self._buffer[:header_end])

            # ─────────────────────────────────────────────────────────────
            # STEP 4: Read the body
            # ─────────────────────────────────────────────────────────────
            if chunked:
                request_end = self._read_chunked(body_start, deadline)
                if request_end is None:
                    return None
            else:
                # Unknown transfer codings read no body; the parser answers 501
                request_end = body_start + content_length
                if request_end > self.max_request_size:
                    raise ValueError(f"Request too large: {request_end} bytes")

                while len(self._buffer) < request_end:
                    chunk = self._recv_before(deadline)
                    if not chunk:
                        break  # Peer closed mid-body; the parser reports it
                    self._buffer += chunk

            # ─────────────────────────────────────────────────────────────
            # STEP 5: Extract one request, keep pipelined leftovers
            # ─────────────────────────────────────────────────────────────
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.last_activity = time.time()
            return request_data

        except socket.timeout:
            if keep_alive_wait and self.is_idle:
                logger.debug(f"[{self.id}] Keep-alive idle timeout")
                return None
            raise TimeoutError("Request read timeout")

    def _begin_reading(self) -> bool:
        """Move from an idle state to READING unless shutdown got here first."""
        with self._lock:
            if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
                return False
            self.state = ConnectionState.READING
            return True

    def _recv_before(self, deadline: float) -> bytes:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise socket.timeout("read deadline exceeded")
        self.socket.settimeout(remaining)
        return self._recv()

    def _recv(self) -> bytes:
        """
        Receive one chunk.

        Returns:
            Received bytes, or b"" if the peer went away or the socket
            was shut down underneath us.
        """
        try:
            data = self.socket.recv(self.buffer_size)
        except socket.timeout:
            raise
        except OSError:
            return b""
        self.last_activity = time.time()
        return data

    def _check_size(self):
        if len(self._buffer) > self.max_request_size:
            raise ValueError(f"Request too large: {len(self._buffer)} bytes")

    def _parse_framing(self, headers: bytes) -> Tuple[bool, int]:
        """
        Find how the body is framed in the raw header block.

        Done before full parsing because we need it to know how much
        to read. Transfer-Encoding wins over Content-Length. A malformed
        Content-Length counts as 0; the parser rejects it.

        Returns:
            (chunked, content_length)
        """
        transfer_encoding = None
        content_length = 0
        header_str = headers.decode("latin-1")
        for line in header_str.split("\r\n")[1:]:
            name, _, value = line.partition(":")
            name = name.strip().lower()
            if name == "transfer-encoding":
                transfer_encoding = value.strip()
            elif name == "content-length":
                try:
                    content_length = max(int(value.strip()), 0)
                except ValueError:
                    content_length = 0

        if transfer_encoding is not None:
            return is_chunked(transfer_encoding), 0
        return False, content_length

    def _read_chunked(self, body_start: int, deadline: float) -> Optional[int]:
        """
        recv() until the chunked body starting at body_start is complete.

        Returns:
            Index just past the body, or None if the peer went away.

        Raises:
            HTTPParseError: On malformed chunk framing.
            ValueError: If the request exceeds max_request_size.
            HTTPParseError: If chunk framing is malformed.
        """
        while True:
            decoded = decode_chunked(self._buffer, body_start)
            if decoded is not None:
                return decoded[1]
            self._check_size()
            chunk = self._recv_before(deadline)
            if not chunk:
                return None
            self._buffer += chunk

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send response bytes under the write timeout.

        Returns:
            True if every byte was sent, False if the client went away
            or stopped reading for longer than write_timeout.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.settimeout(self.write_timeout)
            self.socket.sendall(data)
            self.last_activity = time.time()
            return True
        except socket.timeout:
            logger.warning(f"[{self.id}] Write timed out after {self.write_timeout}s")
            return False
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    # =========================================================================
    # STATE CHANGES
    # =========================================================================

    def set_processing(self):
        self.state = ConnectionState.PROCESSING

    def set_keep_alive(self):
        """Mark the connection idle, ready for the next request."""
        with self._lock:
            if self.state not in (ConnectionState.CLOSING, ConnectionState.CLOSED):
                self.state = ConnectionState.KEEP_ALIVE

    def close_if_idle(self) -> bool:
        """
        Close the connection if no request is in flight.

        Called by the server during shutdown. Shutting the socket down
        wakes a worker blocked in recv(); it then sees an empty read and
        leaves its loop.

        Returns:
            True if the connection was idle and is now closing.
        """
        with self._lock:
            if self.state not in IDLE_STATES:
                return False
            self.state = ConnectionState.CLOSING
        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Peer already gone
        return True

    def close(self):
        """
        Close the connection gracefully.

        1. shutdown(SHUT_WR) sends FIN so the client sees end-of-response
        2. Drain briefly so unread client bytes don't trigger an RST
        3. close() releases the file descriptor
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
