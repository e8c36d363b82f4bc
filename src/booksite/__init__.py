"""
=============================================================================
BOOKSITE - Multi-Book Documentation Site Builder
=============================================================================

Builds a website out of several books whose pages come from a remote
page source, and either serves it live or exports it as static files.

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        BOOKSITE ARCHITECTURE                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   books.json ──► Book ×N ──► BookBuilder ×N (background, bounded)    │
    │                                   │                                  │
    │                                   ▼ publishes pages                  │
    │                           DynamicHandler per book                    │
    │                                   │                                  │
    │   static / covers / site pages ───┼──► Router (first match wins)     │
    │   sitemap (after books_done) ─────┘          │                       │
    │                                              │                       │
    │                         ┌────────────────────┴─────────────┐         │
    │                         ▼                                  ▼         │
    │                   HTTPServer                     write_to_dir / zip  │
    │               (per-request resolve)           (after both barriers)  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    booksite/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m booksite)
    ├── config.py            # SiteConfig dataclass, CachePolicy
    ├── errors.py            # SiteError hierarchy
    ├── site.py              # Site: router + builders + barriers
    ├── builder.py           # BookBuilder
    ├── render.py            # Jinja2 TemplateRenderer
    ├── sitemap.py           # robots.txt / sitemap.txt
    ├── export.py            # Directory and zip exporters
    ├── publish.py           # Preview upload, git commit
    ├── server.py            # HTTPServer (preview)
    ├── books/               # Catalog, page model, fetching, images, snippets
    ├── core/                # Sockets, connections, thread pool, barriers
    ├── http/                # Request parsing, responses, router
    ├── handlers/            # Content handler variants
    ├── middleware/          # Access logging
    ├── templates/           # Jinja2 templates
    └── static/              # Served under /s/

=============================================================================
QUICK START
=============================================================================

    from booksite import SiteConfig, build_site, load_books, write_to_dir

    config = SiteConfig(cache_policy=CachePolicy.CACHE_ONLY)
    books = load_books("books.json", config)

    site = build_site(books, config)
    write_to_dir(site, "www")          # waits for every book first

=============================================================================
"""

__version__ = "1.0.0"

from .config import CachePolicy, SiteConfig
from .errors import SiteError, ConfigError, FetchError, RenderError, BuildTimeoutError
from .books import Book, Page, load_books, select_books
from .site import Site, build_site
from .export import write_to_dir, write_to_zip
from .server import HTTPServer

__all__ = [
    "CachePolicy",
    "SiteConfig",
    "SiteError",
    "ConfigError",
    "FetchError",
    "RenderError",
    "BuildTimeoutError",
    "Book",
    "Page",
    "load_books",
    "select_books",
    "Site",
    "build_site",
    "write_to_dir",
    "write_to_zip",
    "HTTPServer",
    "__version__",
]
