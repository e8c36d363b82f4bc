"""
=============================================================================
CONTENT HANDLERS
=============================================================================

    ┌───────────────────┬─────────────────────────────────────────────────┐
    │ ContentHandler    │ fixed in-memory URI → bytes                     │
    │ FilesHandler      │ URI → file path, grows via add_file()           │
    │ DirHandler        │ disk subtree under a URI prefix, walked lazily  │
    │ DynamicHandler    │ resolve / list supplied by closures             │
    └───────────────────┴─────────────────────────────────────────────────┘

All of them implement Handler.resolve(uri) and Handler.list_uris().

=============================================================================
"""

from .base import (
    BufferWriter,
    ContentWriter,
    Handler,
    Producer,
    StreamWriter,
    file_producer,
    produce,
)
from .content import ContentHandler
from .files import FilesHandler
from .directory import DirHandler, exclude_retina
from .dynamic import DynamicHandler

__all__ = [
    "BufferWriter",
    "ContentWriter",
    "Handler",
    "Producer",
    "StreamWriter",
    "file_producer",
    "produce",
    "ContentHandler",
    "FilesHandler",
    "DirHandler",
    "exclude_retina",
    "DynamicHandler",
]
