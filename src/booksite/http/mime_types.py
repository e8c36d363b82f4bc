"""
=============================================================================
MIME TYPE DETECTION
=============================================================================

Every URI the site produces ends in an extension (clean URLs are turned
into ".html" before routing), so the content type is derived from the
URI alone. The same table is used when serving and when a handler needs
to label a file it streams.

Unknown extensions fall back to application/octet-stream.

=============================================================================
"""

from pathlib import Path
from typing import Optional, Union


DEFAULT_MIME_TYPE = "application/octet-stream"

MIME_TYPES = {
    # Documents and data
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
    ".mjs": "text/javascript",
    ".json": "application/json",
    ".xml": "application/xml",
    ".txt": "text/plain",       # robots.txt, sitemap.txt
    ".md": "text/markdown",

    # Images (covers, page images, favicons)
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",
    ".avif": "image/avif",

    # Fonts
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".otf": "font/otf",

    # Archives
    ".zip": "application/zip",
    ".gz": "application/gzip",
    ".pdf": "application/pdf",
}

_TEXT_TYPES = {
    "application/json",
    "application/xml",
    "image/svg+xml",
}


def get_mime_type(path: Union[str, Path], default: Optional[str] = None) -> str:
    """
    MIME type for a file name or URI based on its extension.

    Examples:
        >>> get_mime_type("/essential/go/index.html")
        'text/html'
        >>> get_mime_type("sitemap.txt")
        'text/plain'
        >>> get_mime_type("unknown.xyz")
        'application/octet-stream'
    """
    extension = Path(str(path)).suffix.lower()
    return MIME_TYPES.get(extension, default or DEFAULT_MIME_TYPE)


def is_text_type(mime_type: str) -> bool:
    return mime_type.startswith("text/") or mime_type in _TEXT_TYPES


def get_content_type(path: Union[str, Path], charset: str = "utf-8") -> str:
    """
    Full Content-Type header value, with a charset for text types.

        >>> get_content_type("page.html")
        'text/html; charset=utf-8'
        >>> get_content_type("cover.png")
        'image/png'
    """
    mime_type = get_mime_type(path)
    if is_text_type(mime_type):
        return f"{mime_type}; charset={charset}"
    return mime_type
