"""
=============================================================================
PAGE FETCHING
=============================================================================

Pages come from a remote page source and are cached per book on disk:

    ┌──────────────┐  GET /pages/<id>.json   ┌───────────────────────────┐
    │ CachingClient│ ──────────────────────► │ PageSource (requests)     │
    │              │ ◄────────────────────── │   200 + ETag / 304        │
    │              │                         └───────────────────────────┘
    │              │
    │              │  books/<short>/cache/<id>.json
    │              │ ◄─────────────────────► { "etag": "...", "page": {...} }
    └──────────────┘

=============================================================================
CACHE POLICIES
=============================================================================

    ALWAYS_DOWNLOAD     unconditional GET, cache rewritten
    DOWNLOAD_IF_NEWER   GET with If-None-Match; 304 → cached copy
                        network failure with a cached copy → cached copy
    CACHE_ONLY          cache read only; a miss is a FetchError

=============================================================================
TREE WALK
=============================================================================

fetch_page_tree() walks breadth-first from the root id. Every page that
arrives is handed to on_page() before its children are fetched, so the
caller can publish pages while the walk is still running.

A page that fails is logged and left out together with the subtree only
it leads to. With fail_fast the first failure aborts the walk instead,
as a fatal FetchError.

=============================================================================
"""

import json
import logging
import os
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

import requests

from ..config import CachePolicy
from ..errors import FetchError
from .model import page_child_ids


logger = logging.getLogger(__name__)


PageCallback = Callable[[dict], None]


class PageSource:
    """
    HTTP access to the page source.

    Args:
        source_url: Base URL, pages live at <source_url>/pages/<id>.json
        timeout: Per-request timeout in seconds.
        session: Optional requests.Session to share connections.
    """

    def __init__(
        self,
        source_url: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.source_url = source_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def page_url(self, page_id: str) -> str:
        return f"{self.source_url}/pages/{page_id}.json"

    def get_page(self, page_id: str, etag: str = "") -> Tuple[Optional[dict], str]:
        """
        Fetch one page document.

        Returns:
            (page, etag). page is None when ``etag`` was given and the
            source answered 304 Not Modified.

        Raises:
            FetchError: Network error, non-2xx status or invalid JSON.
        """
        headers = {"If-None-Match": etag} if etag else {}
        url = self.page_url(page_id)

        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
            if response.status_code == 304:
                return None, etag
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise FetchError(f"GET {url} failed: {e}", page_id=page_id)
        except ValueError as e:
            raise FetchError(f"GET {url} returned invalid JSON: {e}", page_id=page_id)

        if not isinstance(data, dict) or "id" not in data:
            raise FetchError(f"GET {url} returned no page document", page_id=page_id)

        return data, response.headers.get("ETag", "")

    def download(self, url: str, dest: Path) -> int:
        """Stream ``url`` into ``dest``. Returns the number of bytes written."""
        tmp = dest.with_name(dest.name + ".tmp")
        size = 0
        try:
            with self.session.get(url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()
                dest.parent.mkdir(parents=True, exist_ok=True)
                with open(tmp, "wb") as f:
                    for chunk in response.iter_content(chunk_size=64 * 1024):
                        f.write(chunk)
                        size += len(chunk)
            os.replace(tmp, dest)
        except requests.RequestException as e:
            raise FetchError(f"Download of {url} failed: {e}")
        except OSError as e:
            raise FetchError(f"Saving {url} to {dest} failed: {e}")
        finally:
            if tmp.exists():
                tmp.unlink()
        return size

    def close(self) -> None:
        self.session.close()


class CachingClient:
    """
    Fetches page trees through the on-disk cache of one book.

    Attributes:
        downloaded_count: Pages fetched from the network (200 responses).
        from_cache_count: Pages served from the cache, 304s included.
        failures: FetchErrors of pages that were left out.
    """

    def __init__(
        self,
        source: Optional[PageSource],
        cache_dir: Union[str, Path],
        policy: CachePolicy = CachePolicy.DOWNLOAD_IF_NEWER,
        fail_fast: bool = False,
    ):
        if source is None and policy is not CachePolicy.CACHE_ONLY:
            raise ValueError(f"A page source is required for cache policy {policy.value!r}")

        self.source = source
        self.cache_dir = Path(cache_dir)
        self.policy = policy
        self.fail_fast = fail_fast

        self.downloaded_count = 0
        self.from_cache_count = 0
        self.failures: List[FetchError] = []

    # ─────────────────────────────────────────────────────────────────────
    # CACHE FILES
    # ─────────────────────────────────────────────────────────────────────

    def cache_path(self, page_id: str) -> Path:
        return self.cache_dir / f"{page_id}.json"

    def read_cached(self, page_id: str) -> Tuple[Optional[dict], str]:
        path = self.cache_path(page_id)
        try:
            with open(path, "r", encoding="utf-8") as f:
                entry = json.load(f)
        except FileNotFoundError:
            return None, ""
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache file {path}: {e}")
            return None, ""
        return entry.get("page"), entry.get("etag", "")

    def write_cached(self, page_id: str, page: dict, etag: str) -> None:
        path = self.cache_path(page_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump({"etag": etag, "page": page}, f, indent=2, sort_keys=True)
        os.replace(tmp, path)

    # ─────────────────────────────────────────────────────────────────────
    # FETCHING
    # ─────────────────────────────────────────────────────────────────────

    def get_page(self, page_id: str) -> dict:
        """
        One page according to the cache policy.

        Raises:
            FetchError: The page is not available.
        """
        if self.policy is CachePolicy.CACHE_ONLY:
            page, _ = self.read_cached(page_id)
            if page is None:
                raise FetchError(f"Page {page_id} is not in the cache {self.cache_dir}", page_id=page_id)
            self.from_cache_count += 1
            return page

        cached, etag = (None, "")
        if self.policy is CachePolicy.DOWNLOAD_IF_NEWER:
            cached, etag = self.read_cached(page_id)

        try:
            page, new_etag = self.source.get_page(page_id, etag if cached is not None else "")
        except FetchError as e:
            if cached is None:
                raise
            logger.warning(f"{e}; using cached copy of {page_id}")
            self.from_cache_count += 1
            return cached

        if page is None:
            self.from_cache_count += 1
            return cached

        self.write_cached(page_id, page, new_etag)
        self.downloaded_count += 1
        return page

    def fetch_page_tree(self, root_id: str, on_page: Optional[PageCallback] = None) -> Dict[str, dict]:
        """
        Fetch the tree below ``root_id``.

        Args:
            root_id: Identifier of the book's root page.
            on_page: Called with each page document as it arrives.

        Returns:
            page id → page document for every page that was fetched.

        Raises:
            FetchError: Only with fail_fast (fatal=True).
        """
        pages: Dict[str, dict] = {}
        queue = [root_id]
        queued = {root_id}

        while queue:
            page_id = queue.pop(0)
            try:
                page = self.get_page(page_id)
            except FetchError as e:
                if self.fail_fast:
                    raise FetchError(str(e), page_id=page_id, fatal=True)
                logger.warning(f"Skipping page {page_id}: {e}")
                self.failures.append(e)
                continue

            pages[page_id] = page
            if on_page is not None:
                on_page(page)

            for child_id in page_child_ids(page):
                if child_id not in queued:
                    queued.add(child_id)
                    queue.append(child_id)

        return pages

    def download_file(self, url: str, dest: Union[str, Path]) -> bool:
        """
        Make sure ``dest`` holds the file at ``url``.

        An existing file is kept unless the policy is ALWAYS_DOWNLOAD.

        Returns:
            True if the file was downloaded, False if it was already there.

        Raises:
            FetchError: Missing under CACHE_ONLY, or the download failed.
        """
        dest = Path(dest)
        if dest.exists() and self.policy is not CachePolicy.ALWAYS_DOWNLOAD:
            return False
        if self.policy is CachePolicy.CACHE_ONLY:
            raise FetchError(f"{dest} is missing and downloads are disabled")

        size = self.source.download(url, dest)
        logger.debug(f"Downloaded {url} → {dest} ({size} bytes)")
        return True
