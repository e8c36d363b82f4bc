"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Every failure the site builder can hit falls into one of a few buckets,
and each bucket has a different blast radius:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        FAILURE CLASSES                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   FetchError        One page failed to download                      │
    │                     └── logged, page omitted, build continues        │
    │                     └── unless the fetch client is fail-fast         │
    │                                                                      │
    │   (None)            URI not known to any handler                     │
    │                     └── NOT an exception: 404 / skipped in export    │
    │                                                                      │
    │   OSError           Disk failure while exporting one file            │
    │                     └── logged with the path, export continues       │
    │                                                                      │
    │   ConfigError       Bad books.json, missing required template        │
    │                     └── fatal, abort at startup                      │
    │                                                                      │
    │   RenderError       A template blew up for one page                  │
    │                     └── fatal only for required top-level pages      │
    │                                                                      │
    │   BuildTimeoutError Barrier wait exceeded the build timeout          │
    │                     └── reports which builders never finished        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Exceptions carry a ``fatal`` flag, the same way HTTPParseError carries a
status code: callers decide what to do from metadata on the exception
instead of from its message.

=============================================================================
"""

from typing import Iterable, Optional


class SiteError(Exception):
    """
    Base class for all site builder errors.

    Attributes:
        fatal: True if the error must abort the whole run rather than
               just the current page, request or export item.
    """

    fatal = False

    def __init__(self, message: str, fatal: Optional[bool] = None):
        super().__init__(message)
        if fatal is not None:
            self.fatal = fatal


class ConfigError(SiteError):
    """Invalid configuration or book catalog. Always fatal."""

    fatal = True


class FetchError(SiteError):
    """
    A page or file could not be retrieved.

    Attributes:
        page_id: Identifier of the page that failed, if known.
    """

    def __init__(self, message: str, page_id: str = "", fatal: Optional[bool] = None):
        super().__init__(message, fatal=fatal)
        self.page_id = page_id


class RenderError(SiteError):
    """
    A template failed to render.

    Attributes:
        template: Name of the template that failed.
    """

    def __init__(self, message: str, template: str = "", fatal: Optional[bool] = None):
        super().__init__(message, fatal=fatal)
        self.template = template


class BuildTimeoutError(SiteError):
    """
    Background generation did not converge in time.

    Attributes:
        pending: Names of the tasks that were still outstanding.
    """

    fatal = True

    def __init__(self, message: str, pending: Iterable[str] = ()):
        self.pending = sorted(pending)
        if self.pending:
            message = f"{message} (still running: {', '.join(self.pending)})"
        super().__init__(message)
