"""
=============================================================================
SITE ASSEMBLY
=============================================================================

A Site ties the book builders, the router and the two completion
barriers together:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   BookBuilder(go)  ───┐                                              │
    │   BookBuilder(rust) ──┼──► books_done ──► sitemap task ──► server_done│
    │   BookBuilder(js)  ───┘        │                               │     │
    │                                ▼                               ▼     │
    │                        readiness log                    exporters    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The sitemap needs the final URL set of every book, so it waits for
books_done. Exporters need the sitemap too, so they wait for both.
wait_ready() does exactly that, bounded by build_timeout.

=============================================================================
HANDLER ORDER
=============================================================================

    1. static         /s/...            FilesHandler
    2. covers         /covers/...       DirHandler (no @2x)
    3. covers_small   /covers_small/... DirHandler (no @2x)
    4. site           /index.html ...   DynamicHandler
    5. book:<short>   one per book      DynamicHandler (BookBuilder)
    6. sitemap        /robots.txt ...   ContentHandler, added last

=============================================================================
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from .books.fetch import CachingClient, PageSource
from .books.model import Book
from .builder import BookBuilder
from .config import CachePolicy, SiteConfig
from .core.sync import Barrier
from .errors import BuildTimeoutError, SiteError
from .handlers.base import Producer
from .handlers.directory import DirHandler, exclude_retina
from .handlers.dynamic import DynamicHandler
from .handlers.files import FilesHandler
from .http.router import Router
from .render import TemplateRenderer, template_producer
from .sitemap import sitemap_handler


logger = logging.getLogger(__name__)


ClientFactory = Callable[[Book], CachingClient]


# URI → template of the book-independent pages
SITE_PAGES = {
    "/index.html": "index.html",
    "/index-grid.html": "index_grid.html",
    "/404.html": "404.html",
    "/about.html": "about.html",
    "/feedback.html": "feedback.html",
}


def default_client_factory(config: SiteConfig) -> ClientFactory:
    """One PageSource (and HTTP session) per book; none under CACHE_ONLY."""

    def factory(book: Book) -> CachingClient:
        source = None
        if config.cache_policy is not CachePolicy.CACHE_ONLY:
            source = PageSource(config.source_url, timeout=config.fetch_timeout)
        return CachingClient(
            source,
            book.cache_dir,
            policy=config.cache_policy,
            fail_fast=config.fetch_fail_fast,
        )

    return factory


class Site:
    """
    The whole site: router, builders and barriers.

    Usage:
        site = Site(books, config, renderer)
        site.start()
        site.wait_ready()        # raises BuildTimeoutError if stuck
        site.raise_fatal()       # raises the first fatal build error
        uris = site.router.all_uris()
    """

    def __init__(
        self,
        books: List[Book],
        config: SiteConfig,
        renderer: TemplateRenderer,
        client_factory: Optional[ClientFactory] = None,
    ):
        self.books = list(books)
        self.config = config
        self.renderer = renderer

        self.router = Router()
        self.books_done = Barrier("books")
        self.server_done = Barrier("server")
        self.limiter = threading.BoundedSemaphore(config.max_parallel_books)

        client_factory = client_factory or default_client_factory(config)
        self.builders = [
            BookBuilder(book, config, renderer, client_factory(book), self.limiter, self.books_done)
            for book in self.books
        ]

        self.sitemap_error: Optional[SiteError] = None
        self._started = False
        self._register_handlers()

    def _register_handlers(self) -> None:
        static = FilesHandler("static")
        added = static.add_files_in_dir(self.config.static_dir, "/s")
        logger.debug(f"Registered {added} static files")

        self.router.add(static)
        self.router.add(DirHandler("covers", self.config.covers_dir, "/covers", include=exclude_retina))
        self.router.add(
            DirHandler("covers_small", self.config.covers_small_dir, "/covers_small", include=exclude_retina)
        )
        self.router.add(DynamicHandler("site", self._resolve_site_page, lambda: list(SITE_PAGES)))

        for builder in self.builders:
            self.router.add(builder.handler)

    # ─────────────────────────────────────────────────────────────────────
    # SITE PAGES
    # ─────────────────────────────────────────────────────────────────────

    def _resolve_site_page(self, uri: str) -> Optional[Producer]:
        template = SITE_PAGES.get(uri)
        if template is None:
            return None
        return template_producer(self.renderer, template, self._site_data)

    def _site_data(self) -> Dict[str, Any]:
        return {
            "site_url": self.config.site_url,
            "books": self.books,
        }

    # ─────────────────────────────────────────────────────────────────────
    # BACKGROUND WORK
    # ─────────────────────────────────────────────────────────────────────

    def start(self) -> None:
        """Launch every book builder and the sitemap task. Call once."""
        if self._started:
            raise RuntimeError("Site already started")
        self._started = True

        logger.info(
            f"Building {len(self.builders)} books, "
            f"{self.config.max_parallel_books} at a time"
        )
        for builder in self.builders:
            builder.start()

        self.server_done.add("sitemap")
        thread = threading.Thread(target=self._build_sitemap, name="Sitemap", daemon=True)
        try:
            thread.start()
        except RuntimeError:
            self.server_done.done("sitemap")
            raise

    def _build_sitemap(self) -> None:
        try:
            if not self.books_done.wait(timeout=self.config.build_timeout):
                self.sitemap_error = BuildTimeoutError(
                    f"Sitemap not built: books still running after {self.config.build_timeout}s",
                    pending=self.books_done.pending,
                )
                logger.error(str(self.sitemap_error))
                return
            self.router.add(sitemap_handler(self.books, self.config.site_url))
        except Exception as e:
            self.sitemap_error = SiteError(f"Building sitemap failed: {e}", fatal=True)
            logger.exception(f"Building sitemap failed: {e}")
        finally:
            self.server_done.done("sitemap")

    def wait_ready(self, timeout: Optional[float] = None) -> None:
        """
        Block until books_done and then server_done reach zero.

        Args:
            timeout: Total seconds for both waits. Defaults to build_timeout.

        Raises:
            BuildTimeoutError: A barrier did not reach zero in time, or the
                               sitemap task gave up waiting for the books.
            SiteError: The sitemap task failed.
        """
        timeout = self.config.build_timeout if timeout is None else timeout
        deadline = time.time() + timeout

        for barrier in (self.books_done, self.server_done):
            remaining = max(deadline - time.time(), 0.0)
            if not barrier.wait(timeout=remaining):
                raise BuildTimeoutError(
                    f"Barrier {barrier.name!r} not reached after {timeout}s",
                    pending=barrier.pending,
                )

        if self.sitemap_error is not None:
            raise self.sitemap_error

    def log_when_ready(self) -> None:
        """Readiness logger: waits on both barriers and reports the URL count."""
        start = time.time()
        try:
            self.wait_ready()
        except SiteError as e:
            logger.error(str(e))
            return
        uris = self.router.all_uris()
        logger.info(f"Site ready: {len(uris)} URLs in {time.time() - start:.1f}s")
        self.router.log_handlers()
        for builder, error in self.errors:
            logger.warning(f"Book {builder.name} built with error: {error}")

    # ─────────────────────────────────────────────────────────────────────
    # RESULTS
    # ─────────────────────────────────────────────────────────────────────

    @property
    def errors(self) -> List[Tuple[BookBuilder, BaseException]]:
        return [(b, b.error) for b in self.builders if b.error is not None]

    def raise_fatal(self) -> None:
        """
        Re-raise the first fatal builder error.

        Errors outside the SiteError hierarchy are bugs and count as fatal.
        """
        for builder, error in self.errors:
            if not isinstance(error, SiteError) or error.fatal:
                raise error

    @property
    def stats(self) -> dict:
        return {
            "books": [b.stats for b in self.builders],
            "books_done": self.books_done.stats,
            "server_done": self.server_done.stats,
            "handlers": len(self.router),
        }


def build_site(
    books: List[Book],
    config: SiteConfig,
    renderer: Optional[TemplateRenderer] = None,
    client_factory: Optional[ClientFactory] = None,
) -> Site:
    """
    Check templates, create the Site and start its background work.

    Raises:
        ConfigError: A required template is missing or invalid.
    """
    if renderer is None:
        renderer = TemplateRenderer(config.templates_dir, auto_reload=config.reload_templates)
    renderer.require()

    site = Site(books, config, renderer, client_factory=client_factory)
    site.start()
    return site
