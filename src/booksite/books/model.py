"""
=============================================================================
BOOK AND PAGE MODEL
=============================================================================

    Book "Essential Go"  (short: "go", url: /essential/go/)
     └── root Page           ──► /essential/go/index.html (book index)
          ├── chapter Page   ──► /essential/go/a1b2c3-getting-started.html
          │    ├── article   ──► /essential/go/d4e5f6-hello-world.html
          │    └── article
          └── chapter Page
               └── article

Pages form a strict tree: a parent owns its children. The child → parent
link is a plain back-reference used for breadcrumbs. It is (re)assigned
by Book.all_pages() in one breadth-first pass, never kept up to date
incrementally.

A page's content is a flat list of typed blocks as delivered by the page
source:

    header / sub_header / sub_sub_header   → headings (table of contents)
    text                                   → paragraph
    code                                   → code snippet (maybe evaluated)
    image                                  → downloaded into the book img dir
    page                                   → link to a child page

=============================================================================
"""

import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import urljoin


HEADING_TYPES = ("header", "sub_header", "sub_sub_header")


def slugify(text: str) -> str:
    """
    URL-safe slug.

        >>> slugify("Hello, World!")
        'hello-world'
    """
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug or "page"


def ensure_html_suffix(uri: str) -> str:
    return uri if uri.endswith(".html") else uri + ".html"


def absolute_url(site_url: str, uri: str) -> str:
    """Join a site-relative URI onto the site URL; full URLs pass through."""
    if uri.startswith(("http://", "https://")):
        return uri
    return urljoin(site_url.rstrip("/") + "/", uri.lstrip("/"))


def page_child_ids(data: dict) -> List[str]:
    """
    Child page ids of a raw page document, in order.

    Listed children come first; page-link blocks add any child the list
    does not already name.
    """
    child_ids = [str(c) for c in data.get("children", [])]
    for block in data.get("blocks", []):
        page_id = str(block.get("page_id", ""))
        if block.get("type") == "page" and page_id and page_id not in child_ids:
            child_ids.append(page_id)
    return child_ids


@dataclass
class HeadingInfo:
    text: str
    id: str


@dataclass
class Block:
    """One content block of a page."""

    id: str
    type: str
    text: str = ""
    language: str = ""
    eval: bool = False
    url: str = ""
    page_id: str = ""
    output: str = ""
    """Captured output of an evaluated code block."""
    image_uri: str = ""
    """Site URI of a downloaded image block."""

    @classmethod
    def from_dict(cls, data: dict) -> "Block":
        return cls(
            id=str(data.get("id", "")),
            type=str(data.get("type", "text")),
            text=str(data.get("text", "")),
            language=str(data.get("language", "")),
            eval=bool(data.get("eval", False)),
            url=str(data.get("url", "")),
            page_id=str(data.get("page_id", "")),
        )

    @property
    def is_heading(self) -> bool:
        return self.type in HEADING_TYPES


@dataclass(eq=False)
class Page:
    """
    One node of a book's page tree.

    Attributes:
        id: External page identifier.
        title: Page title.
        blocks: Content blocks in display order.
        child_ids: Child page ids in the order the source lists them.
        children: Linked child pages (filled by link_page_tree).
        parent: Non-owning back-reference (filled by Book.all_pages).
        images: (uri, path on disk) for every downloaded image.
        headings: Computed from heading blocks.
    """

    id: str
    title: str
    book: "Book" = field(repr=False)
    blocks: List[Block] = field(default_factory=list, repr=False)
    child_ids: List[str] = field(default_factory=list, repr=False)
    children: List["Page"] = field(default_factory=list, repr=False)
    parent: Optional["Page"] = field(default=None, repr=False)
    images: List[tuple] = field(default_factory=list, repr=False)
    headings: List[HeadingInfo] = field(default_factory=list, repr=False)

    @classmethod
    def from_dict(cls, data: dict, book: "Book") -> "Page":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            book=book,
            blocks=[Block.from_dict(b) for b in data.get("blocks", [])],
            child_ids=page_child_ids(data),
        )

    @property
    def url(self) -> str:
        """Site URI without the .html suffix: /essential/go/<id>-<slug>"""
        return f"{self.book.url}{self.id}-{slugify(self.title)}"

    @property
    def html_url(self) -> str:
        return ensure_html_suffix(self.url)

    @property
    def canonical_url(self) -> str:
        return absolute_url(self.book.site_url, self.html_url)

    def image_url(self, name: str) -> str:
        return f"{self.book.url}img/{name}"

    def breadcrumbs(self) -> List["Page"]:
        """Ancestors from the first chapter down to the parent, root excluded."""
        crumbs = []
        node = self.parent
        while node is not None and node.parent is not None:
            crumbs.append(node)
            node = node.parent
        crumbs.reverse()
        return crumbs

    def compute_headings(self) -> List[HeadingInfo]:
        self.headings = [
            HeadingInfo(text=block.text, id=block.id.replace("-", ""))
            for block in self.blocks
            if block.is_heading
        ]
        return self.headings


@dataclass(eq=False)
class Book:
    """
    One documentation book.

    Created from the catalog at startup; its BookBuilder fills in
    root_page and sitemap URLs while building. Treat it as read-only
    once the build has finished.
    """

    title: str
    title_long: str
    short: str
    root_page_id: str
    cover_image: str = ""
    summary: str = ""

    books_prefix: str = "/essential"
    site_url: str = "https://www.programming-books.io"
    books_dir: str = "books"

    root_page: Optional[Page] = field(default=None, repr=False)

    _sitemap_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _sitemap_urls: set = field(default_factory=set, repr=False)

    def __post_init__(self):
        if not self.summary:
            self.summary = (
                f"<b>{self.title_long}</b> is a free book about "
                f"{self.title} programming language."
            )

    # ─────────────────────────────────────────────────────────────────────
    # LOCATIONS
    # ─────────────────────────────────────────────────────────────────────

    @property
    def url(self) -> str:
        return f"{self.books_prefix}/{self.short}/"

    @property
    def canonical_url(self) -> str:
        return absolute_url(self.site_url, self.url)

    @property
    def cache_dir(self) -> Path:
        return Path(self.books_dir) / self.short / "cache"

    @property
    def img_dir(self) -> Path:
        return Path(self.books_dir) / self.short / "img"

    @property
    def cover_url(self) -> str:
        return f"/covers/{self.cover_image}" if self.cover_image else ""

    @property
    def cover_small_url(self) -> str:
        return f"/covers_small/{self.cover_image}" if self.cover_image else ""

    # ─────────────────────────────────────────────────────────────────────
    # PAGE TREE
    # ─────────────────────────────────────────────────────────────────────

    def chapters(self) -> List[Page]:
        return list(self.root_page.children) if self.root_page else []

    def all_pages(self) -> List[Page]:
        """
        Every page, breadth-first from the root, assigning parent links.

        A page reachable twice is visited once, so a malformed source
        cannot send this into a loop.
        """
        if self.root_page is None:
            return []

        self.root_page.parent = None
        queued = {id(self.root_page)}
        pages = [self.root_page]
        i = 0
        while i < len(pages):
            page = pages[i]
            i += 1
            for child in page.children:
                if id(child) in queued:
                    continue
                queued.add(id(child))
                child.parent = page
                pages.append(child)
        return pages

    @property
    def pages_count(self) -> int:
        return max(len(self.all_pages()) - 1, 0)

    @property
    def chapters_count(self) -> int:
        return len(self.chapters())

    # ─────────────────────────────────────────────────────────────────────
    # SITEMAP
    # ─────────────────────────────────────────────────────────────────────

    def add_sitemap_url(self, uri: str) -> None:
        """Record an absolute URL for sitemap.txt; duplicates collapse."""
        url = absolute_url(self.site_url, uri)
        with self._sitemap_lock:
            self._sitemap_urls.add(url)

    def sitemap_urls(self) -> List[str]:
        with self._sitemap_lock:
            return sorted(self._sitemap_urls)


def link_page_tree(book: Book, pages: Dict[str, Page]) -> Optional[Page]:
    """
    Turn fetched pages into a tree rooted at book.root_page_id.

    Child ids that never arrived (failed or omitted fetches) are dropped.
    Each page is attached at most once, to the first parent that lists it.

    Returns:
        The root page, or None if it was not fetched.
    """
    root = pages.get(book.root_page_id)
    book.root_page = root
    if root is None:
        return None

    attached = {root.id}
    for page in pages.values():
        page.children = []

    queue = [root]
    while queue:
        page = queue.pop(0)
        for child_id in page.child_ids:
            child = pages.get(child_id)
            if child is None or child_id in attached:
                continue
            attached.add(child_id)
            page.children.append(child)
            queue.append(child)

    book.all_pages()
    return root
