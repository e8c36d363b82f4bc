"""
Unit tests for HTTP request parsing.
"""

import pytest

from booksite.http.request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Test parsing a simple GET request."""
        parser = RequestParser()
        request = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/essential/go/index.html"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)

    def test_parse_headers(self, sample_get_request: bytes):
        """Test that headers are parsed correctly."""
        request = RequestParser().parse(sample_get_request)

        assert request.host == "localhost:9003"
        assert request.user_agent == "pytest"
        assert request.headers["accept"] == "text/html"
        assert request.is_keep_alive is True

    def test_parse_query_params(self, sample_get_request: bytes):
        """Test that the query string is kept apart from the path."""
        request = RequestParser().parse(sample_get_request)

        assert request.path == "/essential/go/index.html"
        assert request.query_params == {"ref": ["nav"], "x": ["1"]}

    def test_parse_head(self):
        raw = b"HEAD /s/main.css HTTP/1.1\r\nHost: test\r\n\r\n"
        request = RequestParser().parse(raw)

        assert request.is_head is True
        assert request.path == "/s/main.css"

    def test_parse_path_with_special_chars(self):
        """Test URL-encoded path parsing."""
        raw = b"GET /essential/go/a%20b.html HTTP/1.1\r\nHost: test\r\n\r\n"
        request = RequestParser().parse(raw)

        assert request.path == "/essential/go/a b.html"

    def test_parse_invalid_method(self):
        """Test that invalid methods are rejected."""
        raw = b"INVALID /path HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            RequestParser().parse(raw)

        assert exc_info.value.status_code == 405

    def test_parse_invalid_request_line(self):
        """Test handling of malformed request line."""
        raw = b"GET\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError):
            RequestParser().parse(raw)

    def test_parse_unsupported_version(self):
        raw = b"GET / HTTP/2.0\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            RequestParser().parse(raw)

        assert exc_info.value.status_code == 505

    def test_parse_missing_headers(self):
        """Test parsing request with no headers."""
        raw = b"GET / HTTP/1.1\r\n\r\n"
        request = RequestParser().parse(raw)

        assert request.method == "GET"
        assert request.path == "/"
        assert len(request.headers) == 0

    def test_parse_incomplete(self):
        with pytest.raises(HTTPParseError):
            RequestParser().parse(b"GET / HTTP/1.1\r\nHost: test\r\n")

    def test_parse_path_traversal_blocked(self):
        """Test that path traversal attempts are blocked."""
        raw = b"GET /../../../etc/passwd HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            RequestParser().parse(raw)

        assert "path" in str(exc_info.value).lower()

    def test_parse_request_too_large(self):
        """Test that oversized requests are rejected."""
        parser = RequestParser(max_request_size=100)
        raw = b"GET / HTTP/1.1\r\n" + b"X-Large: " + b"A" * 200 + b"\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parser.parse(raw)

        assert exc_info.value.status_code == 413

    def test_http_version_parsing(self):
        """Test HTTP/1.0 and HTTP/1.1 version handling."""
        # HTTP/1.0 (Connection: close by default)
        raw_10 = b"GET / HTTP/1.0\r\nHost: test\r\n\r\n"
        request_10 = RequestParser().parse(raw_10)
        assert request_10.version == "HTTP/1.0"
        assert request_10.is_keep_alive is False

        # HTTP/1.1 (keep-alive by default)
        raw_11 = b"GET / HTTP/1.1\r\nHost: test\r\nConnection: close\r\n\r\n"
        request_11 = RequestParser().parse(raw_11)
        assert request_11.version == "HTTP/1.1"
        assert request_11.is_keep_alive is False

    def test_repeated_and_folded_headers(self):
        raw = (
            b"GET / HTTP/1.1\r\n"
            b"Accept: text/html\r\n"
            b"Accept: text/plain\r\n"
            b"X-Long: one\r\n"
            b"  two\r\n"
            b"\r\n"
        )
        request = RequestParser().parse(raw)

        assert request.get_header("accept") == "text/html, text/plain"
        assert request.get_header("X-Long") == "one two"

    def test_case_insensitive_headers(self):
        """Test that header names are case-insensitive."""
        raw = b"GET / HTTP/1.1\r\nCONTENT-TYPE: text/html\r\n\r\n"
        request = RequestParser().parse(raw)

        assert request.get_header("Content-Type") == "text/html"
        assert request.get_header("content-type") == "text/html"


class TestHTTPRequest:
    """Tests for HTTPRequest dataclass."""

    def test_get_header_default(self):
        """Test get_header with default value."""
        request = HTTPRequest(method="GET", path="/")

        assert request.get_header("X-Missing") == ""
        assert request.get_header("X-Missing", "default") == "default"
