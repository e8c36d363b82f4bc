"""
=============================================================================
CONTENT ROUTER
=============================================================================

The router is an ordered list of content handlers. It does not know about
URL patterns or HTTP methods per route: each handler owns a slice of the
URI space and answers resolve(uri) for it.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ROUTING ORDER                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. static        FilesHandler   /s/main.css, /s/favicon.svg        │
    │   2. covers        DirHandler     /covers/go.png                     │
    │   3. covers_small  DirHandler     /covers_small/go.png               │
    │   4. site          DynamicHandler /index.html, /404.html, ...        │
    │   5. book:go       DynamicHandler /essential/go/...                  │
    │   6. book:rust     DynamicHandler /essential/rust/...                │
    │   7. sitemap       ContentHandler /robots.txt, /sitemap.txt          │
    │                                  (appended once books are done)      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

FIRST MATCH WINS. find_handler() asks each handler in registration
order and returns the first producer it gets. Registration order is the
priority: fixed assets and site pages go before the book handlers.

Handlers are expected to own disjoint URIs, but that is a convention the
tests check, not something the router enforces. all_uris() concatenates
without deduplicating so an overlap shows up instead of being hidden.

The handler list is append-only. Appends happen while books build (the
sitemap handler arrives last); readers copy the list under the lock and
then work on the copy.

=============================================================================
"""

import logging
import posixpath
import threading
from typing import List, Optional

from ..handlers.base import BufferWriter, Handler, Producer
from .request import HTTPRequest
from .response import HTTPResponse, ResponseBuilder, method_not_allowed, not_found
from .status_codes import HTTPStatus


logger = logging.getLogger(__name__)


ALLOWED_METHODS = ("GET", "HEAD")


def normalize_uri(path: str) -> str:
    """
    Map a request path to the URI it is stored under.

        /                       →  /index.html
        /essential/go/          →  /essential/go/index.html
        /essential/go/intro     →  /essential/go/intro.html
        /s/main.css             →  /s/main.css
    """
    if not path.startswith("/"):
        path = "/" + path

    if path.endswith("/"):
        return path + "index.html"

    _, ext = posixpath.splitext(posixpath.basename(path))
    if not ext:
        return path + ".html"
    return path


class Router:
    """
    Ordered, append-only collection of content handlers.

    Usage:
        router = Router()
        router.add(static_files)
        router.add(book_handler)

        producer = router.find_handler("/essential/go/index.html")
        everything = router.all_uris()
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._handlers: List[Handler] = []

    def add(self, handler: Handler) -> "Router":
        with self._lock:
            self._handlers.append(handler)
        logger.debug(f"Added handler: {handler!r}")
        return self

    @property
    def handlers(self) -> List[Handler]:
        """Snapshot of the handlers in priority order."""
        with self._lock:
            return list(self._handlers)

    def find_handler(self, uri: str) -> Optional[Producer]:
        """First producer any handler returns for ``uri``, or None."""
        for handler in self.handlers:
            producer = handler.resolve(uri)
            if producer is not None:
                return producer
        return None

    def all_uris(self) -> List[str]:
        """Every handler's URIs, in handler order, duplicates kept."""
        uris: List[str] = []
        for handler in self.handlers:
            uris.extend(handler.list_uris())
        return uris

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Serve one HTTP request.

        Flow:
            1. anything but GET / HEAD    → 405
            2. normalize the path         → URI
            3. find_handler(URI) is None  → 404
            4. run the producer into memory → 200

        Exceptions raised by the producer propagate to the caller.
        """
        if request.method not in ALLOWED_METHODS:
            return method_not_allowed(", ".join(ALLOWED_METHODS))

        uri = normalize_uri(request.path)
        producer = self.find_handler(uri)

        if producer is None:
            logger.debug(f"No handler for {uri}")
            return not_found(f"No content at {request.path}")

        writer = BufferWriter()
        producer(writer, request)

        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .content(writer.getvalue(), writer.content_type or "application/octet-stream")
            .no_cache()
            .build())

    def log_handlers(self) -> None:
        """Log the handler chain with current URI counts."""
        for i, handler in enumerate(self.handlers, 1):
            logger.info(f"  {i:2d}. {handler!r}: {len(handler.list_uris())} URIs")

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers)
