"""
Tests for the command-line entry point.
"""

import json

import pytest

from booksite.__main__ import build_parser, config_from_args, main, selected_modes
from booksite.config import CachePolicy
from booksite.errors import SiteError
from booksite.export import read_zip

from conftest import make_pages


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """A books.json plus a filled page cache for book "alpha"."""
    monkeypatch.chdir(tmp_path)
    for name in ("BOOKSITE_PORT", "BOOKSITE_CACHE_POLICY", "BOOKSITE_BOOKS_DIR", "BOOKSITE_BOOKS_FILE"):
        monkeypatch.delenv(name, raising=False)

    (tmp_path / "books.json").write_text(json.dumps([
        {"title": "Alpha", "short": "alpha", "root_page_id": "alpha-root"},
    ]))
    cache = tmp_path / "books" / "alpha" / "cache"
    cache.mkdir(parents=True)
    for page_id, page in make_pages("alpha", 2).items():
        (cache / f"{page_id}.json").write_text(json.dumps({"etag": "", "page": page}))
    return tmp_path


class TestArguments:
    """Tests for argument handling."""

    def test_modes(self):
        args = build_parser().parse_args(["--zip", "site.zip", "--book", "go"])

        assert selected_modes(args) == ["zip"]
        assert args.book == "go"

    def test_no_mode_prints_usage(self, capsys):
        assert main([]) == 1
        assert "usage:" in capsys.readouterr().out

    def test_two_modes_rejected(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["--preview", "--zip", "site.zip"])

        assert exc_info.value.code == 2

    def test_cache_flags(self, monkeypatch):
        monkeypatch.delenv("BOOKSITE_CACHE_POLICY", raising=False)
        parser = build_parser()

        config = config_from_args(parser.parse_args(["--zip", "x.zip", "--no-cache"]))
        assert config.cache_policy is CachePolicy.ALWAYS_DOWNLOAD

        config = config_from_args(parser.parse_args(["--zip", "x.zip", "--no-download"]))
        assert config.cache_policy is CachePolicy.CACHE_ONLY

        with pytest.raises(SiteError):
            config_from_args(parser.parse_args(["--zip", "x.zip", "--no-cache", "--no-download"]))

    def test_download_mode_skips_snippets(self):
        config = config_from_args(build_parser().parse_args(["--download-only"]))

        assert config.eval_snippets is False

    def test_overrides(self):
        args = build_parser().parse_args([
            "--preview", "-p", "9100", "-H", "0.0.0.0", "--site-url", "https://books.test",
        ])

        config = config_from_args(args)

        assert config.port == 9100
        assert config.host == "0.0.0.0"
        assert config.site_url == "https://books.test"
        assert config.reload_templates is True


class TestMain:
    """End-to-end runs of main() from a cached page set."""

    def test_zip_from_cache(self, workspace):
        assert main(["--zip", "site.zip", "--no-download", "--site-url", "https://example.com"]) == 0

        entries = read_zip(workspace / "site.zip")
        assert "index.html" in entries
        assert "essential/alpha/alpha-p2-chapter-2.html" in entries
        assert entries["sitemap.txt"].decode().split("\n") == [
            "https://example.com/essential/alpha/",
            "https://example.com/essential/alpha/alpha-p1-chapter-1.html",
            "https://example.com/essential/alpha/alpha-p2-chapter-2.html",
            "https://example.com/essential/alpha/index.html",
        ]

    def test_gen_dir_clean(self, workspace):
        out = workspace / "www"
        out.mkdir()
        (out / "stale.html").write_text("old")

        assert main(["--gen-dir", "www", "--clean", "--no-download"]) == 0

        assert not (out / "stale.html").exists()
        assert (out / "essential" / "alpha" / "index.html").exists()

    def test_download_only_from_cache(self, workspace):
        assert main(["--download-only", "--no-download"]) == 0

    def test_unknown_book(self, workspace):
        assert main(["--zip", "site.zip", "--book", "gamma", "--no-download"]) == 1

    def test_missing_catalog(self, workspace):
        assert main(["--zip", "site.zip", "--books-file", "missing.json", "--no-download"]) == 1

    def test_missing_root_page_not_fatal(self, workspace):
        """Test that a book without its root page still exports the rest of the site."""
        for path in (workspace / "books" / "alpha" / "cache").iterdir():
            path.unlink()

        assert main(["--zip", "site.zip", "--no-download"]) == 0
        assert "index.html" in read_zip(workspace / "site.zip")
