"""
=============================================================================
HTTP RESPONSE BUILDING
=============================================================================

    HTTP/1.1 200 OK\r\n                         status line
    Content-Type: text/html; charset=utf-8\r\n
    Content-Length: 5120\r\n                    always set (keep-alive needs it)
    Date: Mon, 19 Oct 2026 12:00:00 GMT\r\n
    Server: booksite/1.0\r\n
    \r\n
    <!doctype html>...                          omitted for HEAD

Router builds responses from whatever a content producer wrote into a
BufferWriter; the server builds its own for parse errors, timeouts and
overload. Both go through ResponseBuilder:

    response = (ResponseBuilder()
        .status(HTTPStatus.OK)
        .content(body, "text/html; charset=utf-8")
        .no_cache()
        .build())

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict

from .status_codes import HTTPStatus


@dataclass
class HTTPResponse:
    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    @property
    def content_type(self) -> str:
        return self.headers.get("Content-Type", "")

    def to_bytes(self, server_name: str = "booksite/1.0", include_body: bool = True) -> bytes:
        """
        Serialize for socket.sendall().

        Content-Length, Date and Server are filled in unless already set.
        With include_body=False (HEAD) the headers still describe the
        full body, but the body itself is left out.
        """
        response_headers = dict(self.headers)
        response_headers.setdefault("Content-Length", str(len(self.body)))
        response_headers.setdefault("Date", format_http_date(datetime.now(timezone.utc)))
        response_headers.setdefault("Server", server_name)

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        if not include_body:
            return header_bytes
        return header_bytes + self.body


class ResponseBuilder:
    """Fluent builder for HTTPResponse. Every method but build() returns self."""

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def content(self, body: bytes, content_type: str) -> "ResponseBuilder":
        """Body plus its Content-Type in one call."""
        self._body = body
        self._headers["Content-Type"] = content_type
        return self

    def text(self, text: str, content_type: str = "text/plain; charset=utf-8") -> "ResponseBuilder":
        return self.content(text.encode("utf-8"), content_type)

    def no_cache(self) -> "ResponseBuilder":
        """
        Preview content changes while books are still building, so it
        must never be cached by the browser.
        """
        self._headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
        self._headers["Pragma"] = "no-cache"
        self._headers["Expires"] = "0"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(status=self._status, headers=self._headers, body=self._body)


def format_http_date(dt: datetime) -> str:
    """
    RFC 7231 HTTP-date, always GMT.

        >>> format_http_date(datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc))
        'Mon, 19 Oct 2026 12:00:00 GMT'
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


def error_response(status: HTTPStatus, message: str = "") -> HTTPResponse:
    """Plain-text error response: '404 Not Found' plus an optional detail line."""
    text = f"{int(status)} {status.phrase}"
    if message:
        text += f"\n{message}"
    return ResponseBuilder().status(status).text(text + "\n").build()


def not_found(message: str = "") -> HTTPResponse:
    return error_response(HTTPStatus.NOT_FOUND, message)


def method_not_allowed(allowed: str = "GET, HEAD") -> HTTPResponse:
    response = error_response(HTTPStatus.METHOD_NOT_ALLOWED)
    response.headers["Allow"] = allowed
    return response
