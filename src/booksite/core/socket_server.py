"""
=============================================================================
TCP SOCKET SERVER
=============================================================================

Owns the listening socket of the preview server and its accept loop.

    socket() ──► setsockopt() ──► bind() ──► listen() ──► accept() loop
                                                             │
                                        Connection(client) ◄─┘
                                               │
                                               ▼
                                   connection_handler(conn)

The listening socket has a 1 second timeout so the accept loop wakes up
regularly and notices shutdown() without needing another connection to
arrive first.

=============================================================================
SIGNALS
=============================================================================

SIGTERM (docker stop, systemd) and SIGINT (Ctrl+C) both call shutdown().
That only stops *accepting*: draining in-flight requests is the job of
HTTPServer, which runs after start() returns.

Python only allows installing signal handlers from the main thread. When
the server runs in a background thread (as it does in tests), signals
are left alone and shutdown() has to be called directly.

=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import SiteConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP server: accepts connections and hands them off.

    Usage:
        server = SocketServer(config)
        server.start(handle_connection)    # blocks until shutdown()
    """

    def __init__(self, config: SiteConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._running = False
        self._ready_event = threading.Event()
        self._original_handlers: dict = {}
        self._bound_port: Optional[int] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port); the real port when config.port was 0."""
        return (self.config.host, self._bound_port or self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Rebind right after a restart instead of waiting out TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # Preview responses are small; send them without Nagle delay
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        sock.settimeout(1.0)
        return sock

    def _setup_signals(self):
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, skipping signal handlers")
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        for sig in (signal.SIGTERM, signal.SIGINT):
            self._original_handlers[sig] = signal.signal(sig, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Bind, listen and run the accept loop. Blocks until shutdown().

        Args:
            connection_handler: Called with each accepted Connection. It
                                must return quickly (HTTPServer submits the
                                connection to its thread pool).

        Raises:
            OSError: If the address cannot be bound.
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._bound_port = self._socket.getsockname()[1]
        self._socket.listen(self.config.backlog)

        self._running = True
        self._setup_signals()
        self._ready_event.set()

        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            connection_handler(conn)

    def shutdown(self):
        """Stop accepting connections. Safe to call more than once, from any thread."""
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False

    def _cleanup(self):
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._ready_event.clear()
        logger.info("Socket server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. Returns False on timeout."""
        return self._ready_event.wait(timeout)
