"""
=============================================================================
MIDDLEWARE PIPELINE
=============================================================================

Cross-cutting request handling (access logging) wraps the router's
handle() without the router knowing about it:

        ┌──────────────────────────────────────────┐
        │  LoggingMiddleware                       │
        │  ┌────────────────────────────────────┐  │
        │  │        Router.handle(request)      │  │
        │  └────────────────────────────────────┘  │
        └──────────────────────────────────────────┘

Middleware added first is outermost: it sees the request first and the
response last.

=============================================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, List

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    A request/response interceptor.

    Implementations call ``next(request)`` to continue the chain and may
    inspect or modify the response on the way back out.
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        pass

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the chain around ``handler``.

        Wrapping happens in reverse so the first-added middleware ends
        up outermost: [MW1, MW2] gives MW1 → MW2 → handler.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._bind(middleware, current)
        return current

    @staticmethod
    def _bind(middleware: Middleware, next_handler: NextHandler) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)
