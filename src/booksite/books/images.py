"""
Image collection for fetched pages.

Every image block is downloaded into the book's img/ directory under a
name derived from its source URL, so the same URL always lands on the
same file and a re-run finds it already there:

    https://cdn.example.com/x/diagram.png  →  books/go/img/5d41402a.png
                                           →  /essential/go/img/5d41402a.png
"""

import hashlib
import logging
import posixpath
from pathlib import Path
from urllib.parse import urlparse

from ..errors import FetchError
from .fetch import CachingClient
from .model import Page


logger = logging.getLogger(__name__)


DEFAULT_IMAGE_EXT = ".png"


def image_file_name(url: str) -> str:
    """Stable local file name for an image URL."""
    digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:8]
    ext = posixpath.splitext(urlparse(url).path)[1].lower()
    return digest + (ext or DEFAULT_IMAGE_EXT)


def collect_images(page: Page, client: CachingClient, img_dir: Path) -> int:
    """
    Download the page's images and record them on the page.

    Sets block.image_uri and appends (uri, path) to page.images for each
    image that is available locally afterwards.

    Returns:
        Number of images recorded.
    """
    recorded = 0
    for block in page.blocks:
        if block.type != "image" or not block.url:
            continue

        name = image_file_name(block.url)
        dest = Path(img_dir) / name
        try:
            client.download_file(block.url, dest)
        except (FetchError, OSError) as e:
            if client.fail_fast:
                raise FetchError(str(e), page_id=page.id, fatal=True)
            logger.warning(f"Page {page.id}: image {block.url} unavailable: {e}")
            continue

        uri = page.image_url(name)
        block.image_uri = uri
        page.images.append((uri, dest))
        recorded += 1

    return recorded
