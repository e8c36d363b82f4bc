"""
=============================================================================
ACCESS LOG MIDDLEWARE
=============================================================================

One line per request on the "booksite.access" logger:

    text:  127.0.0.1 - - [19/Oct/2026:12:00:00 +0000] "GET /essential/go/" 200 5120 3.12ms
    json:  {"request_id": "a1b2c3d4", "method": "GET", "path": "/essential/go/", ...}

A request whose handler raises is logged at ERROR with its duration and
the exception is re-raised untouched. Turning it into a 500 is the
server's job.

=============================================================================
"""

import json
import logging
import time
import uuid
from dataclasses import dataclass, asdict
from typing import Optional

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("booksite.access")


@dataclass
class RequestLog:
    request_id: str
    method: str
    path: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Logs every request with status, size and duration.

    Args:
        log_format: "text" (combined-log style) or "json".
        include_request_id: Echo the generated id as X-Request-ID.
        log_level: Level for successful requests.
        skip_paths: Paths not worth logging (e.g. "/favicon.ico").
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[list] = None,
    ):
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = uuid.uuid4().hex[:8]
        start_time = time.time()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        if self.include_request_id:
            response.headers["X-Request-ID"] = request_id

        if request.path in self.skip_paths:
            return response

        entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            client_ip=request.client_address[0] or "-",
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())

        return response
