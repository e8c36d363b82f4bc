"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The preview server only ever answers with a handful of codes:

    200 OK                      content found and produced
    400 Bad Request             malformed request line / path
    404 Not Found               no handler claims the URI
    405 Method Not Allowed      anything but GET / HEAD
    408 Request Timeout         client connected but never sent a request
    413 Payload Too Large       request exceeds max_request_size
    500 Internal Server Error   a content producer raised
    503 Service Unavailable     worker pool queue is full
    505 HTTP Version Not Supported

IntEnum keeps them usable as plain integers (HTTPStatus.OK == 200).

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    OK = 200
    NOT_MODIFIED = 304
    BAD_REQUEST = 400
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    PAYLOAD_TOO_LARGE = 413
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line, e.g. 'Not Found'."""
        return _STATUS_PHRASES.get(self, "Unknown")


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.NOT_MODIFIED: "Not Modified",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}


def status_from_code(code: int) -> HTTPStatus:
    """
    Map an integer to HTTPStatus, falling back to 500 for codes we never send.

    HTTPParseError carries plain ints; this turns them back into the enum.
    """
    try:
        return HTTPStatus(code)
    except ValueError:
        return HTTPStatus.INTERNAL_SERVER_ERROR
