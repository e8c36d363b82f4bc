"""
Static in-memory content: a fixed URI → bytes map.

Used for content that is computed once and never changes afterwards,
such as robots.txt / sitemap.txt (built after every book finished) and
each book's toc.json.
"""

from typing import Dict, List, Optional

from ..http.mime_types import get_content_type
from .base import ContentWriter, Handler, Producer


class ContentHandler(Handler):
    """
    Serves a fixed set of in-memory documents.

    Args:
        name: Handler name for logs and diagnostics.
        content: URI → body. Copied at construction; later changes to the
                 caller's dict are not seen.
        content_types: Optional URI → Content-Type overrides. By default
                       the type is derived from the URI's extension.
    """

    def __init__(
        self,
        name: str,
        content: Dict[str, bytes],
        content_types: Optional[Dict[str, str]] = None,
    ):
        super().__init__(name)
        self._content = dict(content)
        self._content_types = dict(content_types or {})

    def resolve(self, uri: str) -> Optional[Producer]:
        body = self._content.get(uri)
        if body is None:
            return None

        content_type = self._content_types.get(uri) or get_content_type(uri)

        def producer(writer: ContentWriter, request=None) -> None:
            writer.set_content_type(content_type)
            writer.write(body)

        return producer

    def list_uris(self) -> List[str]:
        return list(self._content)
