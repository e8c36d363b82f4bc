"""
=============================================================================
CLIENT CONNECTION
=============================================================================

Wraps one accepted client socket for the preview server.

TCP is a byte stream, not a message stream: one recv() may return half a
request line or two pipelined requests at once. Connection buffers bytes
until a full request (headers plus Content-Length body) is available and
keeps any leftover bytes for the next read_request() call.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      CONNECTION STATE MACHINE                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ─┐       │
    │              ▲                                                │       │
    │              └────────────────────────────────────────────────┘       │
    │                                                                      │
    │   any state ──► CLOSING ──► CLOSED                                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The state is what lets the server force-close connections that are still
busy once the shutdown grace period runs out.

=============================================================================
"""

import socket
import time
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass(eq=False)
class Connection:
    """
    A client connection with buffered request reading.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short identifier used as a log prefix.
        state: Current ConnectionState.
        requests_handled: Requests completed on this connection so far.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request from the socket.

        Returns:
            The request bytes, or None if the client closed the connection
            or an idle keep-alive connection timed out.

        Raises:
            TimeoutError: The first request did not arrive in time.
            ValueError: The request exceeds max_request_size.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        # Subsequent requests on a kept-alive socket get the shorter timeout
        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk
                self._check_size()

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break
                self._buffer += chunk
                self._check_size()

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.last_activity = time.time()
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            if self.state != ConnectionState.CLOSED:
                self.socket.settimeout(self.timeout)

    def _recv(self) -> bytes:
        try:
            data = self.socket.recv(self.buffer_size)
            self.last_activity = time.time()
            return data
        except (ConnectionResetError, BrokenPipeError):
            return b""
        except OSError:
            # Socket closed underneath us by a forced shutdown
            if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
                return b""
            raise

    def _check_size(self):
        if len(self._buffer) > self.max_request_size:
            raise ValueError(f"Request too large: {len(self._buffer)} bytes")

    def _parse_content_length(self, headers: bytes) -> int:
        try:
            header_str = headers.decode("utf-8", errors="replace").lower()
            for line in header_str.split("\r\n"):
                if line.startswith("content-length:"):
                    return int(line.split(":", 1)[1].strip())
        except (ValueError, IndexError):
            pass
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send response bytes with sendall().

        Returns:
            True if everything was sent, False if the client went away.
        """
        self.state = ConnectionState.WRITING
        self.last_activity = time.time()

        try:
            self.socket.sendall(data)
            self.last_activity = time.time()
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """Shut down the write side, drain briefly, release the socket."""
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

    def abort(self):
        """
        Close immediately without draining.

        Used when the shutdown grace period has expired and the worker
        holding this connection is still busy.
        """
        if self.state == ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSING
        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        try:
            self.socket.close()
        except OSError:
            pass
        self.state = ConnectionState.CLOSED

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
