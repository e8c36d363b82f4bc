"""
=============================================================================
SITE CONFIGURATION
=============================================================================

One configuration object, built once at startup and handed by reference
to everything that needs it: the router, the book builders, the exporters
and the HTTP front end.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m booksite --preview --port 9003                   │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── BOOKSITE_PORT=9003 python -m booksite --preview            │
    │                                                                      │
    │   3. Default values (in this dataclass)                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
RUN-MODE FLAGS
=============================================================================

Whether snippets get evaluated, whether the network may be touched at
all, how long to wait for background builds: these are read from many
places. They live here, on the config, instead of in module globals.

=============================================================================
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from .errors import ConfigError


PACKAGE_DIR = Path(__file__).parent


class CachePolicy(Enum):
    """
    How the fetch client treats its on-disk page cache.

    ALWAYS_DOWNLOAD     Ignore the cache, hit the network for every page
    DOWNLOAD_IF_NEWER   Revalidate cached pages (ETag), download on change
    CACHE_ONLY          Never touch the network, fail on cache misses
    """

    ALWAYS_DOWNLOAD = "always"
    DOWNLOAD_IF_NEWER = "if-newer"
    CACHE_ONLY = "cache-only"


def _default_parallelism() -> int:
    return os.cpu_count() or 1


@dataclass
class SiteConfig:
    """
    Configuration for building and serving the site.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK / HTTP      host, port, backlog, buffer_size, timeout,
                        keep_alive, keep_alive_timeout, max_request_size
    WORKER POOL         min_workers, max_workers, shutdown_grace
    PATHS               books_file, books_dir, covers_dir, covers_small_dir,
                        static_dir, templates_dir
    SITE IDENTITY       site_url, books_prefix
    FETCHING            source_url, cache_policy, fetch_fail_fast,
                        fetch_timeout
    BUILD               eval_snippets, snippet_timeout, max_parallel_books,
                        build_timeout, reload_templates
    PUBLISHING          preview_upload_url
    LOGGING             log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK / HTTP
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    port: int = 9003
    backlog: int = 128
    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive: bool = True
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024
    """Only GET and HEAD are served, so requests never need a big body."""

    # ─────────────────────────────────────────────────────────────────────
    # WORKER POOL
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 16

    shutdown_grace: float = 5.0
    """
    Seconds to let in-flight requests finish after SIGTERM/SIGINT.
    Whatever is still running afterwards gets its connection closed.
    """

    # ─────────────────────────────────────────────────────────────────────
    # PATHS
    # ─────────────────────────────────────────────────────────────────────

    books_file: str = "books.json"
    books_dir: str = "books"
    """Per-book cache root: books/<short>/cache, books/<short>/img"""
    covers_dir: str = "covers"
    covers_small_dir: str = "covers_small"
    static_dir: str = str(PACKAGE_DIR / "static")
    templates_dir: str = str(PACKAGE_DIR / "templates")

    # ─────────────────────────────────────────────────────────────────────
    # SITE IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    site_url: str = "https://www.programming-books.io"
    """Absolute base used for sitemap entries and canonical links."""

    books_prefix: str = "/essential"
    """Every book lives under <books_prefix>/<short>/"""

    # ─────────────────────────────────────────────────────────────────────
    # FETCHING
    # ─────────────────────────────────────────────────────────────────────

    source_url: str = "http://127.0.0.1:9010"
    cache_policy: CachePolicy = CachePolicy.DOWNLOAD_IF_NEWER
    fetch_fail_fast: bool = False
    fetch_timeout: float = 30.0

    # ─────────────────────────────────────────────────────────────────────
    # BUILD
    # ─────────────────────────────────────────────────────────────────────

    eval_snippets: bool = True
    snippet_timeout: float = 10.0

    max_parallel_books: int = field(default_factory=_default_parallelism)
    """Size of the book builder slot limiter. Defaults to the CPU count."""

    build_timeout: float = 600.0
    """Upper bound on any barrier wait before reporting stuck builders."""

    reload_templates: bool = False

    # ─────────────────────────────────────────────────────────────────────
    # PUBLISHING
    # ─────────────────────────────────────────────────────────────────────

    preview_upload_url: str = "https://www.instantpreview.dev/upload"

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"
    server_name: str = "booksite/1.0"

    @classmethod
    def from_env(cls) -> "SiteConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        BOOKSITE_HOST           Server host (default: 127.0.0.1)
        BOOKSITE_PORT           Server port (default: 9003)
        BOOKSITE_WORKERS        Max worker threads (default: 16)
        BOOKSITE_BOOKS_FILE     Book catalog path (default: books.json)
        BOOKSITE_BOOKS_DIR      Cache root (default: books)
        BOOKSITE_SITE_URL       Absolute site URL for the sitemap
        BOOKSITE_SOURCE_URL     Page source base URL
        BOOKSITE_CACHE_POLICY   always | if-newer | cache-only
        BOOKSITE_BUILD_TIMEOUT  Barrier wait bound in seconds
        BOOKSITE_LOG_LEVEL      Logging level (default: INFO)

        =====================================================================
        """
        defaults = cls()
        policy = os.getenv("BOOKSITE_CACHE_POLICY", defaults.cache_policy.value)
        try:
            cache_policy = CachePolicy(policy)
        except ValueError:
            raise ConfigError(f"Invalid BOOKSITE_CACHE_POLICY: {policy}")

        return cls(
            host=os.getenv("BOOKSITE_HOST", defaults.host),
            port=int(os.getenv("BOOKSITE_PORT", str(defaults.port))),
            max_workers=int(os.getenv("BOOKSITE_WORKERS", str(defaults.max_workers))),
            books_file=os.getenv("BOOKSITE_BOOKS_FILE", defaults.books_file),
            books_dir=os.getenv("BOOKSITE_BOOKS_DIR", defaults.books_dir),
            site_url=os.getenv("BOOKSITE_SITE_URL", defaults.site_url),
            source_url=os.getenv("BOOKSITE_SOURCE_URL", defaults.source_url),
            cache_policy=cache_policy,
            build_timeout=float(os.getenv("BOOKSITE_BUILD_TIMEOUT", str(defaults.build_timeout))),
            log_level=os.getenv("BOOKSITE_LOG_LEVEL", defaults.log_level),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Runs once at startup. A bad value aborts the run with ConfigError
        before any book builder has been launched.
        """
        if not 0 <= self.port < 65536:
            raise ConfigError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ConfigError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ConfigError("max_workers must be >= min_workers")

        if self.buffer_size < 1024:
            raise ConfigError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError("timeout must be > 0")

        if self.max_parallel_books < 1:
            raise ConfigError("max_parallel_books must be >= 1")

        if self.build_timeout <= 0:
            raise ConfigError("build_timeout must be > 0")

        if self.shutdown_grace < 0:
            raise ConfigError("shutdown_grace must be >= 0")

        if not self.books_prefix.startswith("/") or self.books_prefix.endswith("/"):
            raise ConfigError(
                f"books_prefix must start with '/' and not end with one: {self.books_prefix!r}"
            )

        if self.log_format not in ("text", "json"):
            raise ConfigError(f"log_format must be 'text' or 'json', got {self.log_format!r}")

        if not isinstance(self.cache_policy, CachePolicy):
            raise ConfigError(f"Invalid cache policy: {self.cache_policy!r}")

    @property
    def downloads_allowed(self) -> bool:
        """False when every page must come from the local cache."""
        return self.cache_policy is not CachePolicy.CACHE_ONLY


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# 1. SiteConfig: typed configuration with grouped settings
# 2. CachePolicy: always-download / download-if-newer / cache-only
# 3. from_env(): BOOKSITE_* environment overrides
# 4. validate(): fail-fast with ConfigError at startup
# =============================================================================
