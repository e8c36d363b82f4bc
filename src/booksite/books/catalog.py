"""
Book catalog: the static list of books the site is built from.

books.json is a list of objects:

    [
        {
            "title": "Go",
            "title_long": "Essential Go",
            "short": "go",
            "root_page_id": "a1b2c3",
            "cover_image": "go.png",
            "summary": ""
        },
        ...
    ]

A catalog problem is a configuration problem and aborts startup.
"""

import json
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ..config import SiteConfig
from ..errors import ConfigError
from .model import Book


logger = logging.getLogger(__name__)


REQUIRED_FIELDS = ("title", "short", "root_page_id")


def book_from_dict(data: dict, config: SiteConfig) -> Book:
    missing = [name for name in REQUIRED_FIELDS if not data.get(name)]
    if missing:
        raise ConfigError(f"Book entry {data!r} is missing: {', '.join(missing)}")

    return Book(
        title=str(data["title"]),
        title_long=str(data.get("title_long") or f"Essential {data['title']}"),
        short=str(data["short"]),
        root_page_id=str(data["root_page_id"]),
        cover_image=str(data.get("cover_image", "")),
        summary=str(data.get("summary", "")),
        books_prefix=config.books_prefix,
        site_url=config.site_url,
        books_dir=config.books_dir,
    )


def load_books(path: Union[str, Path], config: SiteConfig) -> List[Book]:
    """
    Read the catalog file.

    Raises:
        ConfigError: File missing or not JSON, an entry without a
                     required field, or two books sharing a short name.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            entries = json.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read book catalog {path}: {e}")
    except ValueError as e:
        raise ConfigError(f"Book catalog {path} is not valid JSON: {e}")

    if not isinstance(entries, list):
        raise ConfigError(f"Book catalog {path} must be a JSON list")

    books = [book_from_dict(entry, config) for entry in entries]

    seen = set()
    for book in books:
        if book.short in seen:
            raise ConfigError(f"Duplicate book short name: {book.short!r}")
        seen.add(book.short)

    logger.debug(f"Loaded {len(books)} books from {path}")
    return books


def find_book(books: Iterable[Book], short: str) -> Optional[Book]:
    short = short.strip().lower()
    for book in books:
        if book.short.lower() == short:
            return book
    return None


def select_books(books: List[Book], selection: str) -> List[Book]:
    """
    Pick books by a comma-separated list of short names, or "all".

        select_books(books, "go,rust")
        select_books(books, "all")

    Raises:
        ConfigError: An unknown short name, or nothing selected.
    """
    if not selection or selection.strip().lower() == "all":
        return list(books)

    selected = []
    for short in selection.split(","):
        if not short.strip():
            continue
        book = find_book(books, short)
        if book is None:
            known = ", ".join(b.short for b in books)
            raise ConfigError(f"Unknown book {short.strip()!r}. Known books: {known}")
        if book not in selected:
            selected.append(book)

    if not selected:
        raise ConfigError(f"No books selected by {selection!r}")
    return selected
