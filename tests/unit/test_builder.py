"""
Unit tests for the per-book builder.
"""

import json
import threading

import pytest

from booksite.builder import BookBuilder
from booksite.core.sync import Barrier
from booksite.errors import FetchError
from booksite.handlers import produce

from conftest import FakePageSource, fake_client_factory, make_book, make_pages


def make_builder(config, renderer, source, short="go", fail_fast=False, limiter=None, barrier=None):
    book = make_book(short, config)
    client = fake_client_factory({short: source}, config, fail_fast=fail_fast)(book)
    return BookBuilder(
        book,
        config,
        renderer,
        client,
        limiter or threading.BoundedSemaphore(1),
        barrier or Barrier("books"),
    )


class TestBeforeBuild:
    """Tests for a builder that has not run yet."""

    def test_fixed_uris_listed_from_start(self, config, renderer):
        builder = make_builder(config, renderer, FakePageSource({}))

        assert builder.list_uris() == [
            "/essential/go/index.html",
            "/essential/go/404.html",
            "/essential/go/overview.html",
        ]

    def test_book_index_renders_empty(self, config, renderer):
        """Test that the book index works before any page arrived."""
        builder = make_builder(config, renderer, FakePageSource({}))

        body, content_type = produce(builder.resolve("/essential/go/index.html"))

        assert content_type == "text/html; charset=utf-8"
        assert b"Essential Go" in body
        assert b"no chapters yet" in body

    def test_other_books_not_claimed(self, config, renderer):
        builder = make_builder(config, renderer, FakePageSource({}))

        assert builder.resolve("/essential/rust/index.html") is None
        assert builder.resolve("/index.html") is None


class TestBuild:
    """Tests for BookBuilder.build()."""

    def test_publishes_pages(self, config, renderer):
        builder = make_builder(config, renderer, FakePageSource(make_pages("go", 2)))

        builder.build()

        uris = builder.list_uris()
        assert builder.pages_count == 2
        page_uris = [u for u in uris if u.startswith("/essential/go/go-p")]
        assert page_uris == [
            "/essential/go/go-p1-chapter-1.html",
            "/essential/go/go-p2-chapter-2.html",
        ]
        assert "/essential/go/toc.json" in uris
        assert len(uris) == len(set(uris))

    def test_page_renders(self, config, renderer):
        builder = make_builder(config, renderer, FakePageSource(make_pages("go", 2)))
        builder.build()

        body, _ = produce(builder.resolve("/essential/go/go-p1-chapter-1.html"))

        assert b"<h1>Chapter 1</h1>" in body
        assert b'id="gop1h"' in body
        assert b"Text of chapter 1" in body
        assert b"https://example.com/essential/go/go-p1-chapter-1.html" in body

    def test_book_index_lists_chapters(self, config, renderer):
        builder = make_builder(config, renderer, FakePageSource(make_pages("go", 2)))
        builder.build()

        body, _ = produce(builder.resolve("/essential/go/index.html"))

        assert b"/essential/go/go-p1-chapter-1.html" in body
        assert b"Chapter 2" in body

    def test_overview_lists_articles(self, config, renderer):
        pages = make_pages("go", 1)
        pages["go-p1"]["children"] = ["go-a1"]
        pages["go-a1"] = {"id": "go-a1", "title": "Maps", "blocks": []}
        builder = make_builder(config, renderer, FakePageSource(pages))
        builder.build()

        body, _ = produce(builder.resolve("/essential/go/overview.html"))

        assert b"1 chapters, 2 pages" in body
        assert b"/essential/go/go-a1-maps.html" in body

    def test_book_data_is_a_snapshot(self, config, renderer):
        """Test that template data does not follow later tree changes."""
        pages = make_pages("go", 1)
        pages["go-p1"]["children"] = ["go-a1"]
        pages["go-a1"] = {"id": "go-a1", "title": "Maps", "blocks": []}
        builder = make_builder(config, renderer, FakePageSource(pages))
        builder.build()

        data = builder._book_data()
        builder.book.chapters()[0].children.clear()
        builder.book.root_page.children.append(builder.book.chapters()[0])

        assert data["chapters_count"] == 1
        assert [a.id for a in data["articles"]["go-p1"]] == ["go-a1"]

    def test_every_listed_uri_resolves(self, config, renderer):
        """Test that list and resolve agree for every URI."""
        pages = make_pages("go", 2, extra_blocks={
            "go-p1": [{"id": "img", "type": "image", "url": "https://cdn.test/a.png"}],
        })
        builder = make_builder(config, renderer, FakePageSource(pages))
        builder.build()

        for uri in builder.list_uris():
            assert builder.resolve(uri) is not None, uri

    def test_images_served(self, config, renderer):
        pages = make_pages("go", 1, extra_blocks={
            "go-p1": [{"id": "img", "type": "image", "url": "https://cdn.test/a.png"}],
        })
        builder = make_builder(config, renderer, FakePageSource(pages))
        builder.build()

        image_uris = [u for u in builder.list_uris() if "/img/" in u]
        assert len(image_uris) == 1
        body, content_type = produce(builder.resolve(image_uris[0]))
        assert body == b"image:https://cdn.test/a.png"
        assert content_type == "image/png"

    def test_unwritable_image_dir_skips_image(self, config, renderer):
        """Test that a disk error saving an image keeps the book."""
        pages = make_pages("go", 1, extra_blocks={
            "go-p1": [{"id": "img", "type": "image", "url": "https://cdn.test/a.png"}],
        })
        barrier = Barrier("books")
        builder = make_builder(config, renderer, FakePageSource(pages), barrier=barrier)
        builder.book.img_dir.parent.mkdir(parents=True, exist_ok=True)
        builder.book.img_dir.write_text("not a directory")

        builder.start()

        assert barrier.wait(timeout=10) is True
        assert builder.error is None
        assert builder.pages_count == 1
        assert not any("/img/" in uri for uri in builder.list_uris())
        assert builder.resolve("/essential/go/go-p1-chapter-1.html") is not None

    def test_unwritable_image_dir_fail_fast(self, config, renderer):
        pages = make_pages("go", 1, extra_blocks={
            "go-p1": [{"id": "img", "type": "image", "url": "https://cdn.test/a.png"}],
        })
        builder = make_builder(config, renderer, FakePageSource(pages), fail_fast=True)
        builder.book.img_dir.parent.mkdir(parents=True, exist_ok=True)
        builder.book.img_dir.write_text("not a directory")

        with pytest.raises(FetchError) as exc_info:
            builder.build()

        assert exc_info.value.fatal is True

    def test_toc_json(self, config, renderer):
        builder = make_builder(config, renderer, FakePageSource(make_pages("go", 1)))
        builder.build()

        body, _ = produce(builder.resolve("/essential/go/toc.json"))
        entries = json.loads(body)

        assert {"title": "Chapter 1", "url": "/essential/go/go-p1-chapter-1.html", "parent": "go-root"} in entries
        assert {"title": "Intro 1", "url": "/essential/go/go-p1-chapter-1.html#gop1h", "parent": "go-p1"} in entries

    def test_sitemap_urls(self, config, renderer):
        builder = make_builder(config, renderer, FakePageSource(make_pages("go", 1)))
        builder.build()

        assert builder.book.sitemap_urls() == [
            "https://example.com/essential/go/",
            "https://example.com/essential/go/go-p1-chapter-1.html",
            "https://example.com/essential/go/index.html",
        ]

    def test_failed_page_omitted(self, config, renderer):
        source = FakePageSource(make_pages("go", 3), failing=["go-p2"])
        builder = make_builder(config, renderer, source)

        builder.build()

        assert builder.pages_count == 2
        assert not any("go-p2" in uri for uri in builder.list_uris())

    def test_missing_root(self, config, renderer):
        builder = make_builder(config, renderer, FakePageSource({}))

        with pytest.raises(FetchError) as exc_info:
            builder.build()

        assert exc_info.value.fatal is False
        assert builder.pages_count == 0


class TestBuildThread:
    """Tests for the background lifecycle."""

    def test_success_releases_barrier(self, config, renderer):
        barrier = Barrier("books")
        builder = make_builder(config, renderer, FakePageSource(make_pages("go", 1)), barrier=barrier)

        builder.start()

        assert barrier.wait(timeout=10) is True
        assert builder.error is None
        assert builder.finished.is_set()

    def test_failure_releases_barrier_and_slot(self, config, renderer):
        """Test that a fatal failure still counts down and frees the slot."""
        barrier = Barrier("books")
        limiter = threading.BoundedSemaphore(1)
        source = FakePageSource(make_pages("go", 2), failing=["go-p1"])
        builder = make_builder(config, renderer, source, fail_fast=True,
                               limiter=limiter, barrier=barrier)

        builder.start()

        assert barrier.wait(timeout=10) is True
        assert isinstance(builder.error, FetchError)
        assert builder.error.fatal is True
        assert limiter.acquire(blocking=False) is True
        limiter.release()

    def test_limiter_bounds_parallel_builds(self, config, renderer):
        """Test that a single slot serializes two builders."""
        barrier = Barrier("books")
        limiter = threading.BoundedSemaphore(1)
        gate = threading.Event()
        first = make_builder(config, renderer, FakePageSource(make_pages("go", 1), gate=gate),
                             short="go", limiter=limiter, barrier=barrier)
        second = make_builder(config, renderer, FakePageSource(make_pages("rust", 1)),
                              short="rust", limiter=limiter, barrier=barrier)

        first.start()
        assert barrier.wait(timeout=0.2) is False
        second.start()

        assert second.wait(timeout=0.3) is False
        gate.set()
        assert barrier.wait(timeout=10) is True
        assert first.error is None and second.error is None

    def test_stats(self, config, renderer):
        builder = make_builder(config, renderer, FakePageSource(make_pages("go", 2)))
        builder.build()

        stats = builder.stats

        assert stats["book"] == "go"
        assert stats["pages"] == 2
        assert stats["downloaded"] == 3
