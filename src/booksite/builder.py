"""
=============================================================================
BOOK BUILDER
=============================================================================

One BookBuilder per book. It runs on its own thread and publishes the
book's pages through a DynamicHandler that the router can query at any
time, including long before the build has finished.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         BUILD LIFECYCLE                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   start()          books_done.add("go"), spawn thread                │
    │       │                                                              │
    │       ▼                                                              │
    │   limiter slot     at most max_parallel_books builds at a time       │
    │       │                                                              │
    │       ▼                                                              │
    │   fetch tree       on_page(): snippets, images, headings             │
    │       │                     id → page map   (under the book lock)    │
    │       ▼                                                              │
    │   publish          link tree, page URIs, image files, toc.json       │
    │       │            one critical section                              │
    │       ▼                                                              │
    │   finally          release slot, books_done.done("go")               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
SHARED STATE
=============================================================================

The builder is the only writer of its page map, image files and TOC.
Readers (router probes, HTTP workers, the exporter) only go through
resolve() and list_uris(), and both take the same per-book lock the
writer uses. There is no lock shared between books.

Fixed book URIs are answered by a switch in resolve(), not by the page
map:

    /essential/go/index.html       book index (root page)
    /essential/go/404.html         book not-found page
    /essential/go/overview.html    chapter overview

They render from whatever the book holds at request time, so they are
listed from the start.

=============================================================================
FAILURES
=============================================================================

Whatever happens inside the thread, the slot is released and the
barrier decremented. The error is kept on ``builder.error`` for the
driver, which decides whether it is fatal.

=============================================================================
"""

import json
import logging
import threading
import time
from typing import Any, Dict, List, Optional

from .books.fetch import CachingClient
from .books.images import collect_images
from .books.model import Book, Page, link_page_tree
from .books.snippets import SnippetRunner
from .config import SiteConfig
from .core.sync import Barrier
from .errors import FetchError
from .handlers.content import ContentHandler
from .handlers.dynamic import DynamicHandler
from .handlers.files import FilesHandler
from .handlers.base import Producer
from .render import TemplateRenderer, template_producer


logger = logging.getLogger(__name__)


class BookBuilder:
    """
    Background builder and content handler owner for one book.

    Args:
        book: The book to build.
        config: Site configuration.
        renderer: Template renderer shared by all books.
        client: Fetch client bound to this book's cache directory.
        limiter: Slot limiter shared by all builders.
        barrier: The "books done" barrier.
    """

    def __init__(
        self,
        book: Book,
        config: SiteConfig,
        renderer: TemplateRenderer,
        client: CachingClient,
        limiter: threading.BoundedSemaphore,
        barrier: Barrier,
    ):
        self.book = book
        self.config = config
        self.renderer = renderer
        self.client = client
        self.limiter = limiter
        self.barrier = barrier

        self.snippets: Optional[SnippetRunner] = None
        if config.eval_snippets:
            self.snippets = SnippetRunner(book.cache_dir / "snippets", config.snippet_timeout)

        self._lock = threading.Lock()
        self._id_to_page: Dict[str, Page] = {}
        self._uri_to_page: Dict[str, Page] = {}
        self._files = FilesHandler(f"book:{book.short}:files")
        self._toc: Optional[ContentHandler] = None

        self.handler = DynamicHandler(f"book:{book.short}", self.resolve, self.list_uris)

        self.index_uri = book.url + "index.html"
        self.not_found_uri = book.url + "404.html"
        self.overview_uri = book.url + "overview.html"
        self.toc_uri = book.url + "toc.json"

        self.pages_count = 0
        self.error: Optional[BaseException] = None
        self.finished = threading.Event()
        self.duration = 0.0
        self._thread: Optional[threading.Thread] = None

    @property
    def name(self) -> str:
        return self.book.short

    # ─────────────────────────────────────────────────────────────────────
    # LIFECYCLE
    # ─────────────────────────────────────────────────────────────────────

    def start(self) -> None:
        """Register with the barrier and launch the build thread."""
        self.barrier.add(self.name)
        self._thread = threading.Thread(
            target=self._run,
            name=f"Build-{self.name}",
            daemon=True,
        )
        try:
            self._thread.start()
        except RuntimeError:
            self.barrier.done(self.name)
            raise

    def _run(self) -> None:
        start = time.time()
        try:
            with self.limiter:
                self.build()
        except FetchError as e:
            self.error = e
            logger.error(f"Building {self.name} failed: {e}")
        except Exception as e:
            self.error = e
            logger.exception(f"Building {self.name} crashed: {e}")
        finally:
            self.duration = time.time() - start
            self.finished.set()
            self.barrier.done(self.name)

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self.finished.wait(timeout)

    def build(self) -> None:
        """
        Fetch, decorate and publish the book. Runs on the build thread;
        tests call it directly.

        Raises:
            FetchError: The root page is unavailable, or a page failed
                        with a fail-fast client.
        """
        self.client.fetch_page_tree(self.book.root_page_id, on_page=self._on_page)

        root = self._publish()
        if root is None:
            raise FetchError(
                f"Root page {self.book.root_page_id} of {self.name} is not available",
                page_id=self.book.root_page_id,
                fatal=self.client.fail_fast,
            )

        logger.info(
            f"Got {self.pages_count} pages for {self.name}, "
            f"downloaded: {self.client.downloaded_count}, "
            f"from cache: {self.client.from_cache_count}"
        )

    def _on_page(self, data: dict) -> None:
        page = Page.from_dict(data, self.book)

        if self.snippets is not None:
            self.snippets.evaluate_page(page)
        collect_images(page, self.client, self.book.img_dir)
        page.compute_headings()

        with self._lock:
            if page.id in self._id_to_page:
                logger.warning(f"{self.name}: duplicate page id {page.id} ignored")
                return
            self._id_to_page[page.id] = page

    def _publish(self) -> Optional[Page]:
        with self._lock:
            root = link_page_tree(self.book, self._id_to_page)
            if root is None:
                return None

            pages = self.book.all_pages()
            self.pages_count = len(pages) - 1
            for page in pages[1:]:
                self._uri_to_page[page.html_url] = page
            for page in pages:
                for uri, path in page.images:
                    self._files.add_file(uri, path)

            self._toc = ContentHandler(
                f"book:{self.name}:toc",
                {self.toc_uri: self._toc_json(pages)},
            )

        self.book.add_sitemap_url(self.book.url)
        self.book.add_sitemap_url(self.index_uri)
        for page in pages[1:]:
            self.book.add_sitemap_url(page.html_url)

        return root

    @staticmethod
    def _toc_json(pages: List[Page]) -> bytes:
        """Search index: one entry per page and per heading."""
        entries = []
        for page in pages[1:]:
            entries.append({
                "title": page.title,
                "url": page.html_url,
                "parent": page.parent.id if page.parent is not None else "",
            })
            for heading in page.headings:
                entries.append({
                    "title": heading.text,
                    "url": f"{page.html_url}#{heading.id}",
                    "parent": page.id,
                })
        return json.dumps(entries, sort_keys=True).encode("utf-8")

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT HANDLER CLOSURES
    # ─────────────────────────────────────────────────────────────────────

    def resolve(self, uri: str) -> Optional[Producer]:
        if not uri.startswith(self.book.url):
            return None

        if uri == self.index_uri:
            return template_producer(self.renderer, "book_index.html", self._book_data)
        if uri == self.not_found_uri:
            return template_producer(self.renderer, "book_404.html", self._book_data)
        if uri == self.overview_uri:
            return template_producer(self.renderer, "overview.html", self._book_data)

        with self._lock:
            page = self._uri_to_page.get(uri)
            toc = self._toc
            if page is not None:
                return template_producer(self.renderer, "page.html", lambda: self._page_data(page))
            if toc is not None:
                producer = toc.resolve(uri)
                if producer is not None:
                    return producer
            return self._files.resolve(uri)

    def list_uris(self) -> List[str]:
        with self._lock:
            uris = [self.index_uri, self.not_found_uri, self.overview_uri]
            uris.extend(self._uri_to_page)
            if self._toc is not None:
                uris.extend(self._toc.list_uris())
            uris.extend(self._files.list_uris())
        return uris

    # ─────────────────────────────────────────────────────────────────────
    # TEMPLATE DATA
    # ─────────────────────────────────────────────────────────────────────

    def _base_data(self) -> Dict[str, Any]:
        return {
            "site_url": self.config.site_url,
            "book": self.book,
            "index_url": self.index_uri,
            "overview_url": self.overview_uri,
            "toc_url": self.toc_uri,
        }

    def _book_data(self) -> Dict[str, Any]:
        data = self._base_data()
        with self._lock:
            chapters = self.book.chapters()
            data["chapters"] = chapters
            data["chapters_count"] = len(chapters)
            data["articles"] = {chapter.id: list(chapter.children) for chapter in chapters}
            data["pages_count"] = len(self._uri_to_page)
        return data

    def _page_data(self, page: Page) -> Dict[str, Any]:
        data = self._base_data()
        data["page"] = page
        data["breadcrumbs"] = page.breadcrumbs()
        data["children"] = {child.id: child for child in page.children}
        return data

    @property
    def stats(self) -> dict:
        with self._lock:
            pages = len(self._uri_to_page)
            files = len(self._files)
        return {
            "book": self.name,
            "pages": pages,
            "images": files,
            "downloaded": self.client.downloaded_count,
            "from_cache": self.client.from_cache_count,
            "finished": self.finished.is_set(),
            "error": str(self.error) if self.error else None,
        }

    def __repr__(self) -> str:
        return f"BookBuilder({self.name!r}, finished={self.finished.is_set()})"
