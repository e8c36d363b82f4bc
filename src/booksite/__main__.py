"""
=============================================================================
BOOKSITE CLI ENTRY POINT
=============================================================================

    # Preview the Go book locally
    python -m booksite --preview --book go

    # Export every book to a directory / a zip archive
    python -m booksite --gen-dir www --book all
    python -m booksite --zip site.zip --book all

    # Zip, upload and print a preview URL
    python -m booksite --upload-preview --book go

    # Refresh the page cache only (no snippet evaluation, no HTML)
    python -m booksite --download-only --book all --no-cache

    # Refresh the page cache and commit it
    python -m booksite --download-commit --book all

Exactly one mode flag is expected. Without one, usage is printed and the
exit status is 1.

=============================================================================
EXIT STATUS
=============================================================================

    0   success
    1   no mode given, or a fatal error (bad config, failed build, ...)
    2   invalid command-line arguments (argparse)

=============================================================================
"""

import argparse
import logging
import shutil
import sys
import tempfile
import threading
from pathlib import Path
from typing import List, Optional

from . import __version__
from .books.catalog import load_books, select_books
from .config import CachePolicy, SiteConfig
from .errors import SiteError
from .export import write_to_dir, write_to_zip
from .middleware import LoggingMiddleware
from .publish import commit_paths, upload_preview
from .server import HTTPServer
from .site import Site, build_site


logger = logging.getLogger("booksite")


MODES = ("preview", "gen_dir", "zip", "upload_preview", "download_only", "download_commit")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="booksite",
        description="Build, preview and export the programming books website",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m booksite --preview --book go          # Serve one book locally
  python -m booksite --gen-dir www --book all     # Static export to ./www
  python -m booksite --zip site.zip               # Static export to a zip
  python -m booksite --download-only --no-cache   # Re-download every page
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # MODE ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--preview", action="store_true",
                        help="Serve the site locally while books build")
    parser.add_argument("--gen-dir", metavar="DIR", default=None,
                        help="Export the whole site into DIR")
    parser.add_argument("--zip", metavar="FILE", default=None,
                        help="Export the whole site into a zip archive")
    parser.add_argument("--upload-preview", action="store_true",
                        help="Export to a zip and upload it for an online preview")
    parser.add_argument("--download-only", action="store_true",
                        help="Only fetch pages into the cache (no eval, no HTML)")
    parser.add_argument("--download-commit", action="store_true",
                        help="Fetch pages into the cache, then git commit and push it")

    # ─────────────────────────────────────────────────────────────────────
    # BOOK SELECTION / FETCHING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--book", "-b", default="all",
                        help="Comma-separated book short names, or 'all' (default: all)")
    parser.add_argument("--books-file", default=None,
                        help="Book catalog JSON (default: books.json)")
    parser.add_argument("--no-cache", action="store_true",
                        help="Ignore the page cache and download everything")
    parser.add_argument("--no-download", action="store_true",
                        help="Never touch the network, use cached pages only")
    parser.add_argument("--clean", action="store_true",
                        help="Remove the --gen-dir directory before exporting")

    # ─────────────────────────────────────────────────────────────────────
    # SERVER / SITE
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--host", "-H", default=None, help="Preview host (default: 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, default=None, help="Preview port (default: 9003)")
    parser.add_argument("--site-url", default=None, help="Absolute site URL used in the sitemap")
    parser.add_argument("--log-level", "-l", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        default=None, help="Logging level (default: INFO)")
    parser.add_argument("--version", "-v", action="version", version=f"booksite {__version__}")

    return parser


def setup_logging(level_name: str):
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("booksite").setLevel(level)
    # One log line per request is plenty
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def config_from_args(args: argparse.Namespace) -> SiteConfig:
    """Environment first, then command-line overrides."""
    config = SiteConfig.from_env()

    if args.host:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.books_file:
        config.books_file = args.books_file
    if args.site_url:
        config.site_url = args.site_url
    if args.log_level:
        config.log_level = args.log_level

    if args.no_cache and args.no_download:
        raise SiteError("--no-cache and --no-download cannot be combined", fatal=True)
    if args.no_cache:
        config.cache_policy = CachePolicy.ALWAYS_DOWNLOAD
    if args.no_download:
        config.cache_policy = CachePolicy.CACHE_ONLY

    if args.download_only or args.download_commit:
        config.eval_snippets = False
    if args.preview:
        config.reload_templates = True

    config.validate()
    return config


def selected_modes(args: argparse.Namespace) -> List[str]:
    return [mode for mode in MODES if getattr(args, mode)]


# =============================================================================
# MODES
# =============================================================================


def run_preview(site: Site, config: SiteConfig) -> int:
    server = HTTPServer(config, site.router)
    server.use(LoggingMiddleware(log_format=config.log_format, skip_paths=["/favicon.ico"]))

    threading.Thread(target=site.log_when_ready, name="Readiness", daemon=True).start()
    server.run()
    return 0


def run_export(site: Site, config: SiteConfig, args: argparse.Namespace) -> int:
    site.wait_ready()
    site.raise_fatal()

    if args.gen_dir:
        dest = Path(args.gen_dir)
        if args.clean and dest.exists():
            logger.info(f"Removing {dest}")
            shutil.rmtree(dest)
        stats = write_to_dir(site, dest)
        return 1 if stats.failures else 0

    if args.zip:
        stats = write_to_zip(site, args.zip)
        return 1 if stats.failures else 0

    with tempfile.TemporaryDirectory(prefix="booksite-") as tmp:
        zip_path = Path(tmp) / "site.zip"
        stats = write_to_zip(site, zip_path)
        print(upload_preview(zip_path, config.preview_upload_url))
    return 1 if stats.failures else 0


def run_download(site: Site, config: SiteConfig, commit: bool) -> int:
    site.wait_ready()
    site.raise_fatal()

    for builder in site.builders:
        logger.info(
            f"{builder.name}: {builder.pages_count} pages, "
            f"downloaded: {builder.client.downloaded_count}, "
            f"from cache: {builder.client.from_cache_count}"
        )

    if commit:
        paths = [book.cache_dir.parent for book in site.books]
        commit_paths(paths, "update books cache")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    modes = selected_modes(args)
    if not modes:
        parser.print_help()
        return 1
    if len(modes) > 1:
        parser.error(f"Only one mode can be given, got: {', '.join(modes)}")

    try:
        config = config_from_args(args)
        setup_logging(config.log_level)

        books = select_books(load_books(config.books_file, config), args.book)
        logger.info(f"Books: {', '.join(book.short for book in books)}")
        site = build_site(books, config)

        if args.preview:
            return run_preview(site, config)
        if args.download_only or args.download_commit:
            return run_download(site, config, commit=args.download_commit)
        return run_export(site, config, args)

    except SiteError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
