"""
=============================================================================
CONTENT HANDLER CONTRACT
=============================================================================

Everything the site can produce, whether a rendered page, a cover image,
sitemap.txt or a stylesheet, is reached through a content handler:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          Handler                                     │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   resolve(uri)  ──►  producer  or  None                              │
    │                         │                                            │
    │                         └──► producer(writer, request)               │
    │                                 writer.set_content_type("text/html") │
    │                                 writer.write(b"...")                 │
    │                                                                      │
    │   list_uris()   ──►  ["/essential/go/index.html", ...]               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The split between *finding* content and *producing* it is what lets one
routing layer drive two very different consumers:

    PREVIEW SERVER                        EXPORTER
    ──────────────                        ────────
    resolve(request.path)                 for uri in sorted(all_uris()):
    producer(BufferWriter(), request)         producer(StreamWriter(f), None)
    → HTTP response                       → file on disk / zip entry

None is "not mine", not an error. The router moves on to the next
handler; at the end of the chain it becomes a 404 (serving) or a skip
(export).

=============================================================================
IDEMPOTENCE
=============================================================================

A producer may be called any number of times: once per HTTP request,
once per export, again when the sitemap reads it. Calling it twice
without new registrations in between must write the same bytes.

=============================================================================
"""

import io
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from ..http.mime_types import get_content_type


class ContentWriter(ABC):
    """Destination a producer writes into."""

    content_type: str = ""

    def set_content_type(self, content_type: str) -> None:
        self.content_type = content_type

    @abstractmethod
    def write(self, data: bytes) -> None:
        pass


class BufferWriter(ContentWriter):
    """Collects produced content in memory (HTTP responses, tests)."""

    def __init__(self):
        self.content_type = ""
        self._buffer = io.BytesIO()

    def write(self, data: bytes) -> None:
        self._buffer.write(data)

    def getvalue(self) -> bytes:
        return self._buffer.getvalue()


class StreamWriter(ContentWriter):
    """
    Writes straight through to a binary file object (export sinks).

    Attributes:
        size: Bytes written so far.
    """

    def __init__(self, fileobj):
        self.content_type = ""
        self._fileobj = fileobj
        self.size = 0

    def write(self, data: bytes) -> None:
        self._fileobj.write(data)
        self.size += len(data)


# producer(writer, request) where request is None during export
Producer = Callable[[ContentWriter, Optional[object]], None]


class Handler(ABC):
    """
    A resolvable, enumerable unit of content.

    Subclasses own a disjoint slice of the URI space; the Router asks
    them in registration order and the first one that answers wins.
    """

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def resolve(self, uri: str) -> Optional[Producer]:
        """Producer for ``uri``, or None if this handler does not own it."""

    @abstractmethod
    def list_uris(self) -> List[str]:
        """Every URI this handler can currently produce."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"


def produce(producer: Producer, request: Optional[object] = None) -> Tuple[bytes, str]:
    """Run a producer into memory and return (body, content_type)."""
    writer = BufferWriter()
    producer(writer, request)
    return writer.getvalue(), writer.content_type


def file_producer(path: Path, chunk_size: int = 64 * 1024) -> Producer:
    """
    Producer that streams a file from disk in chunks.

    The file is opened at production time, not when the producer is
    created. An OSError (file deleted, permission denied) surfaces from
    the producer call and only fails that one request or export item.
    """
    path = Path(path)

    def producer(writer: ContentWriter, request=None) -> None:
        writer.set_content_type(get_content_type(path))
        with open(path, "rb") as f:
            while True:
                chunk = f.read(chunk_size)
                if not chunk:
                    break
                writer.write(chunk)

    return producer
