"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

Turns the raw bytes read by Connection into an HTTPRequest.

    "GET /essential/go/index.html?x=1 HTTP/1.1\r\n"      request line
    "Host: localhost:9003\r\n"                           headers
    "\r\n"                                               separator
    ""                                                   body (usually none)

The preview server only serves content, so the interesting parts are the
path (which becomes the routing URI), the Connection header (keep-alive)
and whether it is a HEAD request (same headers, no body).

=============================================================================
SECURITY
=============================================================================

- Requests over max_request_size are rejected with 413.
- Paths containing ".." are rejected with 400 before they get anywhere
  near a file-backed handler.

=============================================================================
"""

import re
from dataclasses import dataclass, field
from typing import Dict
from urllib.parse import parse_qs, urlparse, unquote


class HTTPParseError(Exception):
    """
    Raised when a request cannot be parsed.

    Attributes:
        status_code: HTTP status to send back (400, 405, 413, 505).
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Header names are stored lowercase; HTTP headers are case-insensitive.
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list] = field(default_factory=dict)
    body: bytes = b""
    client_address: tuple = ("", 0)
    raw: bytes = b""

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def is_head(self) -> bool:
        return self.method == "HEAD"

    @property
    def is_keep_alive(self) -> bool:
        """
        HTTP/1.1 keeps the connection open unless told "close";
        HTTP/1.0 closes it unless told "keep-alive".
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def get_header(self, name: str, default: str = "") -> str:
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

    Parsing steps:
        1. size check                  → 413
        2. split headers / body        → 400 if no \\r\\n\\r\\n
        3. request line                → 400 / 405 / 505
        4. headers (lowercased names, repeated headers comma-joined)
        5. body by Content-Length
    """

    VALID_METHODS = {"GET", "HEAD", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "TRACE", "CONNECT"}

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(self, data: bytes, client_address: tuple = ("", 0)) -> HTTPRequest:
        """
        Parse one request.

        Raises:
            HTTPParseError: If the request is malformed or too large.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(f"Request too large: {len(data)} bytes", status_code=413)

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")

        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body[:content_length],
            client_address=client_address,
            raw=data,
        )

    def _parse_request_line(self, line: str):
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, uri, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(f"Unsupported HTTP version: {version}", status_code=505)

        parsed = urlparse(uri)
        path = unquote(parsed.path) or "/"
        query_params = parse_qs(parsed.query, keep_blank_values=True)

        if ".." in path:
            raise HTTPParseError("Invalid path: contains ..", status_code=400)

        return method, path, query_params, version

    def _parse_headers(self, lines: list) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            # Obsolete line folding: continuation of the previous header
            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers
