"""
=============================================================================
HTTP LAYER
=============================================================================

    raw bytes ──► RequestParser ──► HTTPRequest
                                         │
                                         ▼
                                   Router.handle()
                                         │
                                         ▼
    raw bytes ◄── HTTPResponse.to_bytes() ◄── HTTPResponse

Router lives in booksite.http.router and is imported from there: it
depends on the content handlers, which themselves use mime_types.

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError
from .response import (
    HTTPResponse,
    ResponseBuilder,
    error_response,
    format_http_date,
    method_not_allowed,
    not_found,
)
from .status_codes import HTTPStatus, status_from_code
from .mime_types import get_mime_type, get_content_type

__all__ = [
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "HTTPResponse",
    "ResponseBuilder",
    "error_response",
    "format_http_date",
    "method_not_allowed",
    "not_found",
    "HTTPStatus",
    "status_from_code",
    "get_mime_type",
    "get_content_type",
]
