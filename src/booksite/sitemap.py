"""
robots.txt and sitemap.txt.

Both are built once, after every book builder has finished, from the
per-book sitemap URL sets, and then served from memory.
"""

import logging
from typing import Iterable, List

from .books.model import Book, absolute_url
from .handlers.content import ContentHandler


logger = logging.getLogger(__name__)


ROBOTS_TXT = "User-agent: *\nDisallow:\n\nSitemap: %s\n"


def sitemap_urls(books: Iterable[Book]) -> List[str]:
    """Sorted absolute URLs of every book, each listed once."""
    urls = set()
    for book in books:
        urls.update(book.sitemap_urls())
    return sorted(urls)


def sitemap_handler(books: Iterable[Book], site_url: str) -> ContentHandler:
    urls = sitemap_urls(books)
    robots = ROBOTS_TXT % absolute_url(site_url, "/sitemap.txt")
    logger.info(f"Sitemap has {len(urls)} URLs")

    return ContentHandler(
        "sitemap",
        {
            "/robots.txt": robots.encode("utf-8"),
            "/sitemap.txt": "\n".join(urls).encode("utf-8"),
        },
    )
