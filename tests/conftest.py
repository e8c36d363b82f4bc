"""
pytest configuration and fixtures.
"""

import socket
import threading
from pathlib import Path
from typing import Dict, Generator, Iterable, List, Optional

import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from booksite.books.fetch import CachingClient
from booksite.books.model import Book
from booksite.config import CachePolicy, SiteConfig
from booksite.errors import FetchError
from booksite.render import TemplateRenderer
from booksite.site import Site


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request for a book page."""
    return (
        b"GET /essential/go/index.html?ref=nav&x=1 HTTP/1.1\r\n"
        b"Host: localhost:9003\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: text/html\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def config(tmp_path: Path) -> SiteConfig:
    """Test configuration rooted in a temporary directory."""
    return SiteConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        keep_alive_timeout=1.0,
        shutdown_grace=1.0,
        books_dir=str(tmp_path / "books"),
        covers_dir=str(tmp_path / "covers"),
        covers_small_dir=str(tmp_path / "covers_small"),
        site_url="https://example.com",
        cache_policy=CachePolicy.DOWNLOAD_IF_NEWER,
        eval_snippets=False,
        max_parallel_books=2,
        build_timeout=10.0,
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


# =============================================================================
# FAKE PAGE SOURCE
# =============================================================================


class FakePageSource:
    """
    In-memory stand-in for PageSource.

    Pages are served with ETag "etag-<id>"; a request carrying that ETag
    gets a 304 (None). Ids in ``failing`` raise FetchError. When ``gate``
    is set, every request blocks until the event is set.
    """

    def __init__(self, pages: Dict[str, dict], failing: Iterable[str] = (),
                 gate: Optional[threading.Event] = None):
        self.pages = pages
        self.failing = set(failing)
        self.gate = gate
        self.requests: List[str] = []
        self.downloads: List[str] = []

    def get_page(self, page_id: str, etag: str = ""):
        if self.gate is not None:
            self.gate.wait(timeout=30)
        self.requests.append(page_id)
        if page_id in self.failing or page_id not in self.pages:
            raise FetchError(f"page {page_id} unavailable", page_id=page_id)
        if etag and etag == f"etag-{page_id}":
            return None, etag
        return self.pages[page_id], f"etag-{page_id}"

    def download(self, url: str, dest: Path) -> int:
        self.downloads.append(url)
        data = f"image:{url}".encode()
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(data)
        return len(data)


def make_pages(short: str, count: int, extra_blocks: Optional[Dict[str, list]] = None) -> Dict[str, dict]:
    """Root page "<short>-root" with ``count`` child pages "<short>-p1"..."""
    extra_blocks = extra_blocks or {}
    child_ids = [f"{short}-p{i}" for i in range(1, count + 1)]
    pages = {
        f"{short}-root": {
            "id": f"{short}-root",
            "title": f"{short} book",
            "children": child_ids,
            "blocks": [],
        }
    }
    for i, page_id in enumerate(child_ids, 1):
        pages[page_id] = {
            "id": page_id,
            "title": f"Chapter {i}",
            "blocks": [
                {"id": f"{page_id}-h", "type": "header", "text": f"Intro {i}"},
                {"id": f"{page_id}-t", "type": "text", "text": f"Text of chapter {i}"},
            ] + extra_blocks.get(page_id, []),
        }
    return pages


def make_book(short: str, config: SiteConfig) -> Book:
    return Book(
        title=short.capitalize(),
        title_long=f"Essential {short.capitalize()}",
        short=short,
        root_page_id=f"{short}-root",
        books_prefix=config.books_prefix,
        site_url=config.site_url,
        books_dir=config.books_dir,
    )


def fake_client_factory(sources: Dict[str, FakePageSource], config: SiteConfig,
                        fail_fast: bool = False):
    def factory(book: Book) -> CachingClient:
        return CachingClient(
            sources[book.short],
            book.cache_dir,
            policy=config.cache_policy,
            fail_fast=fail_fast,
        )
    return factory


@pytest.fixture
def renderer(config: SiteConfig) -> TemplateRenderer:
    return TemplateRenderer(config.templates_dir)


@pytest.fixture
def two_books(config: SiteConfig) -> List[Book]:
    """Books "alpha" (2 pages) and "beta" (1 page)."""
    return [make_book("alpha", config), make_book("beta", config)]


@pytest.fixture
def two_book_sources() -> Dict[str, FakePageSource]:
    return {
        "alpha": FakePageSource(make_pages("alpha", 2)),
        "beta": FakePageSource(make_pages("beta", 1)),
    }


@pytest.fixture
def sample_site(config, renderer, two_books, two_book_sources) -> Generator[Site, None, None]:
    """A started two-book site whose barriers have been reached."""
    site = Site(two_books, config, renderer,
                client_factory=fake_client_factory(two_book_sources, config))
    site.start()
    site.wait_ready(timeout=10)
    yield site
