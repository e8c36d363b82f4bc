"""
=============================================================================
PREVIEW SERVER
=============================================================================

The HTTP front end over the content router:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   SocketServer ──accept──► ThreadPool.submit(_process_connection)    │
    │                                    │                                 │
    │                                    ▼                                 │
    │                           RequestParser.parse                        │
    │                                    │                                 │
    │                                    ▼                                 │
    │                  LoggingMiddleware ──► Router.handle                 │
    │                                    │                                 │
    │                                    ▼                                 │
    │                           Connection.send_response                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Content is produced per request, so a page requested while its book is
still building is served as soon as the builder has published it.

=============================================================================
ERRORS
=============================================================================

    parse error            → 4xx/505 from HTTPParseError, connection closed
    request read timeout   → 408, connection closed
    request too large      → 413, connection closed
    pool queue full        → 503, connection closed
    no handler for the URI → 404 (Router)
    handler raised         → 500 to this client, then the exception is
                             re-raised so the worker logs the traceback

=============================================================================
GRACEFUL SHUTDOWN
=============================================================================

    1. SIGTERM / SIGINT   stop accepting connections
    2. drain              wait up to shutdown_grace for running requests
    3. force              abort the connections that are still open
    4. stop workers

=============================================================================
"""

import logging
import threading
from typing import Callable, Optional, Set, Tuple

from .config import SiteConfig
from .core import Connection, SocketServer, ThreadPool
from .http import (
    HTTPParseError,
    HTTPRequest,
    HTTPResponse,
    HTTPStatus,
    RequestParser,
    error_response,
    status_from_code,
)
from .http.router import Router
from .middleware import Middleware, MiddlewarePipeline


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Multi-threaded HTTP/1.1 server for a content Router.

    Usage:
        server = HTTPServer(config, site.router)
        server.use(LoggingMiddleware())
        server.run()                      # blocks until SIGINT/SIGTERM

    Tests run it on a background thread instead:
        thread = server.start_background()
        host, port = server.address
        ...
        server.shutdown()
        thread.join()
    """

    def __init__(self, config: SiteConfig, router: Router):
        self.config = config
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._router = router
        self._middleware = MiddlewarePipeline()
        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None

        self._connections: Set[Connection] = set()
        self._connections_lock = threading.Lock()

    def use(self, middleware: Middleware) -> "HTTPServer":
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        return self._router

    @property
    def address(self) -> Tuple[str, int]:
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._socket_server.is_running

    # ─────────────────────────────────────────────────────────────────────
    # LIFECYCLE
    # ─────────────────────────────────────────────────────────────────────

    def run(self):
        """Serve until shutdown() or a termination signal. Blocks."""
        self._handler = self._middleware.wrap(self._router.handle)
        self._thread_pool.start()

        logger.info(
            f"Starting preview server on http://{self.config.host}:{self.config.port} "
            f"({self.config.min_workers}-{self.config.max_workers} workers)"
        )

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def start_background(self, timeout: float = 5.0) -> threading.Thread:
        """
        Run the server on a daemon thread and wait until it listens.

        Raises:
            RuntimeError: The socket was not listening within ``timeout``.
        """
        thread = threading.Thread(target=self.run, name="HTTPServer", daemon=True)
        thread.start()
        if not self._socket_server.wait_until_ready(timeout):
            raise RuntimeError(f"Server did not start within {timeout}s")
        return thread

    def shutdown(self):
        """Ask the server to stop. Safe from any thread."""
        self._socket_server.shutdown()

    def _shutdown(self):
        logger.info("Shutting down server...")

        grace = self.config.shutdown_grace
        if not self._thread_pool.drain(timeout=grace):
            with self._connections_lock:
                remaining = list(self._connections)
            logger.warning(
                f"{len(remaining)} connections still open after {grace}s, closing them"
            )
            for conn in remaining:
                conn.abort()

        self._thread_pool.shutdown(wait=False)
        logger.info("Server stopped")

    # ─────────────────────────────────────────────────────────────────────
    # CONNECTIONS
    # ─────────────────────────────────────────────────────────────────────

    def _handle_connection(self, conn: Connection):
        """Called by the accept loop; hands the connection to a worker."""
        submitted = self._thread_pool.submit(self._process_connection, args=(conn,))

        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection):
        """Keep-alive loop for one connection (worker thread)."""
        with self._connections_lock:
            self._connections.add(conn)

        try:
            with conn:
                self._serve(conn)
        finally:
            with self._connections_lock:
                self._connections.discard(conn)

    def _serve(self, conn: Connection):
        while self._socket_server.is_running:
            try:
                raw_request = conn.read_request()
            except TimeoutError:
                self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                return
            except ValueError as e:
                self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, str(e))
                return
            except OSError as e:
                logger.debug(f"[{conn.id}] Read failed: {e}")
                return

            if raw_request is None:
                return

            try:
                request = self._parser.parse(raw_request, conn.address)
            except HTTPParseError as e:
                self._send_error(conn, e.status_code, str(e))
                return

            try:
                response = self._handler(request)
            except Exception as e:
                logger.error(f"[{conn.id}] Handler error for {request.path}: {e}")
                self._send_error(conn, HTTPStatus.INTERNAL_SERVER_ERROR, "")
                raise

            keep_alive = request.is_keep_alive and self.config.keep_alive
            if keep_alive:
                response.headers.setdefault("Connection", "keep-alive")
                response.headers.setdefault("Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}")
            else:
                response.headers["Connection"] = "close"

            data = response.to_bytes(self.config.server_name, include_body=not request.is_head)
            if not conn.send_response(data):
                return
            if not keep_alive:
                return

            conn.set_keep_alive()

    def _send_error(self, conn: Connection, status: int, message: str):
        """Error response for failures outside the router; always closes."""
        response = error_response(status_from_code(int(status)), message)
        response.headers["Connection"] = "close"
        conn.send_response(response.to_bytes(self.config.server_name))

    @property
    def stats(self) -> dict:
        with self._connections_lock:
            open_connections = len(self._connections)
        return {
            "connections": open_connections,
            "pool": self._thread_pool.stats,
            "handlers": len(self._router),
        }
