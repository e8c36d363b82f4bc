"""
Unit tests for the middleware pipeline and request logging.
"""

import json
import logging

import pytest

from booksite.http.request import HTTPRequest
from booksite.http.response import HTTPResponse, HTTPStatus
from booksite.middleware import LoggingMiddleware, Middleware, MiddlewarePipeline


class Recorder(Middleware):
    def __init__(self, label, calls):
        self.label = label
        self.calls = calls

    def __call__(self, request, next):
        self.calls.append(f"{self.label}:in")
        response = next(request)
        self.calls.append(f"{self.label}:out")
        return response


def ok_handler(request):
    return HTTPResponse(status=HTTPStatus.OK, body=b"hello")


class TestMiddlewarePipeline:
    """Tests for MiddlewarePipeline class."""

    def test_order(self):
        """Test that the first-added middleware is outermost."""
        calls = []
        pipeline = MiddlewarePipeline()
        pipeline.add(Recorder("one", calls)).add(Recorder("two", calls))

        pipeline.wrap(ok_handler)(HTTPRequest(method="GET", path="/"))

        assert calls == ["one:in", "two:in", "two:out", "one:out"]
        assert len(pipeline) == 2

    def test_empty_pipeline(self):
        handler = MiddlewarePipeline().wrap(ok_handler)

        assert handler(HTTPRequest(method="GET", path="/")).body == b"hello"


class TestLoggingMiddleware:
    """Tests for LoggingMiddleware class."""

    def test_text_log(self, caplog):
        middleware = LoggingMiddleware()
        request = HTTPRequest(method="GET", path="/index.html", client_address=("10.0.0.1", 1234))

        with caplog.at_level(logging.INFO, logger="booksite.access"):
            response = middleware(request, ok_handler)

        assert len(response.headers["X-Request-ID"]) == 8
        assert '10.0.0.1 - - [' in caplog.text
        assert '"GET /index.html" 200 5' in caplog.text

    def test_json_log(self, caplog):
        middleware = LoggingMiddleware(log_format="json", include_request_id=False)

        with caplog.at_level(logging.INFO, logger="booksite.access"):
            response = middleware(HTTPRequest(method="HEAD", path="/s/main.css"), ok_handler)

        entry = json.loads(caplog.records[-1].getMessage())
        assert entry["method"] == "HEAD"
        assert entry["status_code"] == 200
        assert entry["client_ip"] == "-"
        assert "X-Request-ID" not in response.headers

    def test_skip_paths(self, caplog):
        middleware = LoggingMiddleware(skip_paths=["/favicon.ico"])

        with caplog.at_level(logging.INFO, logger="booksite.access"):
            middleware(HTTPRequest(method="GET", path="/favicon.ico"), ok_handler)

        assert caplog.records == []

    def test_failure_logged_and_raised(self, caplog):
        def broken(request):
            raise RuntimeError("boom")

        with caplog.at_level(logging.ERROR, logger="booksite.access"):
            with pytest.raises(RuntimeError):
                LoggingMiddleware()(HTTPRequest(method="GET", path="/x.html"), broken)

        assert "RuntimeError: boom" in caplog.text
