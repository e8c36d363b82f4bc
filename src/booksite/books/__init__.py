"""
Books: the catalog, the page model and everything that fetches and
decorates pages before a BookBuilder publishes them.
"""

from .model import Block, Book, HeadingInfo, Page, link_page_tree, slugify
from .catalog import load_books, find_book, select_books
from .fetch import CachingClient, PageSource
from .images import collect_images
from .snippets import SnippetRunner

__all__ = [
    "Block",
    "Book",
    "HeadingInfo",
    "Page",
    "link_page_tree",
    "slugify",
    "load_books",
    "find_book",
    "select_books",
    "CachingClient",
    "PageSource",
    "collect_images",
    "SnippetRunner",
]
