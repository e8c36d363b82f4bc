"""
Unit tests for site assembly: handler order, barriers and the sitemap.
"""

import threading

import pytest

from booksite.errors import BuildTimeoutError, ConfigError, FetchError
from booksite.handlers import produce
from booksite.render import TemplateRenderer
from booksite.site import SITE_PAGES, Site, build_site

from conftest import FakePageSource, fake_client_factory, make_book, make_pages


class TestSitemap:
    """Tests for robots.txt and sitemap.txt."""

    def test_two_book_sitemap(self, sample_site):
        """Test the exact sitemap of a two-book site."""
        body, content_type = produce(sample_site.router.find_handler("/sitemap.txt"))

        assert content_type == "text/plain; charset=utf-8"
        assert body.decode().split("\n") == [
            "https://example.com/essential/alpha/",
            "https://example.com/essential/alpha/alpha-p1-chapter-1.html",
            "https://example.com/essential/alpha/alpha-p2-chapter-2.html",
            "https://example.com/essential/alpha/index.html",
            "https://example.com/essential/beta/",
            "https://example.com/essential/beta/beta-p1-chapter-1.html",
            "https://example.com/essential/beta/index.html",
        ]

    def test_robots(self, sample_site):
        body, _ = produce(sample_site.router.find_handler("/robots.txt"))

        assert body == b"User-agent: *\nDisallow:\n\nSitemap: https://example.com/sitemap.txt\n"

    def test_sitemap_absent_until_books_done(self, config, renderer, two_books):
        """Test that the sitemap waits for every builder."""
        gate = threading.Event()
        sources = {
            "alpha": FakePageSource(make_pages("alpha", 1)),
            "beta": FakePageSource(make_pages("beta", 1), gate=gate),
        }
        site = Site(two_books, config, renderer, client_factory=fake_client_factory(sources, config))
        site.start()

        assert site.books_done.wait(timeout=0.2) is False
        assert site.router.find_handler("/sitemap.txt") is None

        gate.set()
        site.wait_ready(timeout=10)
        assert site.router.find_handler("/sitemap.txt") is not None


class TestSite:
    """Tests for Site class."""

    def test_handler_order(self, sample_site):
        names = [h.name for h in sample_site.router.handlers]

        assert names == [
            "static", "covers", "covers_small", "site",
            "book:alpha", "book:beta", "sitemap",
        ]

    def test_site_pages(self, sample_site):
        uris = sample_site.router.all_uris()

        for uri in SITE_PAGES:
            assert uri in uris
        body, _ = produce(sample_site.router.find_handler("/index.html"))
        assert b"Essential Alpha" in body
        assert b"Essential Beta" in body

    def test_static_files(self, sample_site):
        body, content_type = produce(sample_site.router.find_handler("/s/main.css"))

        assert content_type.startswith("text/css")
        assert body

    def test_covers(self, config, renderer, two_books, two_book_sources, tmp_path):
        """Test that covers are served, retina variants excluded."""
        covers = tmp_path / "covers"
        covers.mkdir()
        (covers / "alpha.png").write_bytes(b"png")
        (covers / "alpha@2x.png").write_bytes(b"png2")
        site = Site(two_books, config, renderer,
                    client_factory=fake_client_factory(two_book_sources, config))
        site.start()
        site.wait_ready(timeout=10)

        uris = site.router.all_uris()

        assert "/covers/alpha.png" in uris
        assert "/covers/alpha@2x.png" not in uris

    def test_book_uri_sets_disjoint(self, sample_site):
        """Test that no two handlers claim the same URI."""
        uris = sample_site.router.all_uris()

        assert len(uris) == len(set(uris))

    def test_every_uri_resolves(self, sample_site):
        for uri in sample_site.router.all_uris():
            assert sample_site.router.find_handler(uri) is not None, uri

    def test_start_twice(self, sample_site):
        with pytest.raises(RuntimeError):
            sample_site.start()

    def test_stats(self, sample_site):
        stats = sample_site.stats

        assert [b["book"] for b in stats["books"]] == ["alpha", "beta"]
        assert stats["books_done"]["pending"] == 0
        assert stats["handlers"] == 7


class TestReadiness:
    """Tests for wait_ready() and error reporting."""

    def test_wait_ready_timeout(self, config, renderer, two_books):
        gate = threading.Event()
        sources = {
            "alpha": FakePageSource(make_pages("alpha", 1)),
            "beta": FakePageSource(make_pages("beta", 1), gate=gate),
        }
        site = Site(two_books, config, renderer, client_factory=fake_client_factory(sources, config))
        site.start()

        try:
            with pytest.raises(BuildTimeoutError) as exc_info:
                site.wait_ready(timeout=0.3)
            assert exc_info.value.pending == ["beta"]
        finally:
            gate.set()
        site.wait_ready(timeout=10)

    def test_sitemap_gave_up_is_reported(self, config, renderer, two_books):
        """Test that a sitemap timeout fails a later wait_ready()."""
        config.build_timeout = 0.2
        gate = threading.Event()
        sources = {
            "alpha": FakePageSource(make_pages("alpha", 1)),
            "beta": FakePageSource(make_pages("beta", 1), gate=gate),
        }
        site = Site(two_books, config, renderer, client_factory=fake_client_factory(sources, config))
        site.start()

        try:
            assert site.server_done.wait(timeout=5) is True
        finally:
            gate.set()
        assert site.books_done.wait(timeout=10) is True

        with pytest.raises(BuildTimeoutError) as exc_info:
            site.wait_ready(timeout=10)

        assert exc_info.value.pending == ["beta"]
        assert site.router.find_handler("/sitemap.txt") is None
        assert site.router.find_handler("/robots.txt") is None

    def test_non_fatal_errors_tolerated(self, config, renderer, two_books):
        """Test that a book without a root page does not stop the site."""
        sources = {
            "alpha": FakePageSource(make_pages("alpha", 1)),
            "beta": FakePageSource({}),
        }
        site = Site(two_books, config, renderer, client_factory=fake_client_factory(sources, config))
        site.start()
        site.wait_ready(timeout=10)

        assert [b.name for b, _ in site.errors] == ["beta"]
        site.raise_fatal()
        assert site.router.find_handler("/sitemap.txt") is not None

    def test_fatal_error_raised(self, config, renderer, two_books):
        sources = {
            "alpha": FakePageSource(make_pages("alpha", 2), failing=["alpha-p2"]),
            "beta": FakePageSource(make_pages("beta", 1)),
        }
        factory = fake_client_factory(sources, config, fail_fast=True)
        site = Site(two_books, config, renderer, client_factory=factory)
        site.start()
        site.wait_ready(timeout=10)

        with pytest.raises(FetchError):
            site.raise_fatal()

    def test_many_books_few_slots(self, config, renderer):
        """Test N books through a 2-slot limiter, some failing."""
        shorts = [f"b{i}" for i in range(6)]
        books = [make_book(short, config) for short in shorts]
        sources = {short: FakePageSource(make_pages(short, 2)) for short in shorts}
        sources["b2"] = FakePageSource({})
        sources["b4"] = FakePageSource({})
        site = Site(books, config, renderer, client_factory=fake_client_factory(sources, config))
        site.start()

        site.wait_ready(timeout=10)

        assert sorted(b.name for b, _ in site.errors) == ["b2", "b4"]
        assert site.books_done.stats["finished"] == 6


class TestBuildSite:
    """Tests for build_site()."""

    def test_missing_template(self, config, two_books, tmp_path):
        templates = tmp_path / "templates"
        templates.mkdir()
        (templates / "index.html").write_text("hi")

        with pytest.raises(ConfigError):
            build_site(two_books, config, renderer=TemplateRenderer(templates))

    def test_starts_site(self, config, renderer, two_books, two_book_sources):
        site = build_site(two_books, config, renderer=renderer,
                          client_factory=fake_client_factory(two_book_sources, config))
        site.wait_ready(timeout=10)

        assert len(site.books_done.pending) == 0
