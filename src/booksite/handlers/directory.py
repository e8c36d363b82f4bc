"""
=============================================================================
DIRECTORY-MIRRORING HANDLER
=============================================================================

Serves a disk subtree through a URI prefix:

    DirHandler("covers", root="covers", url_prefix="/covers",
               include=lambda rel: "@2x" not in rel)

    /covers/go.png            ──►  covers/go.png
    /covers/go@2x.png         ──►  None (filtered out)
    /covers/../secret.txt     ──►  None (outside the root)

The tree is walked when list_uris() is called, not at construction, so
files that show up on disk later (cover images produced while the
server is running) are picked up.

=============================================================================
PATH TRAVERSAL
=============================================================================

The URI suffix is joined onto the root and resolved; if the result is
not inside the root it is refused. Path.resolve() also follows symlinks,
so a link pointing outside the root is refused too.

=============================================================================
"""

import os
from pathlib import Path
from typing import Callable, List, Optional, Union

from .base import Handler, Producer, file_producer


Include = Callable[[str], bool]


class DirHandler(Handler):
    """
    Mirrors ``root`` under ``url_prefix``.

    Args:
        name: Handler name.
        root: Directory to serve. It may not exist yet.
        url_prefix: URI prefix, e.g. "/covers".
        include: Optional predicate over POSIX-style paths relative to
                 root ("sub/file.png"). Files it rejects are neither
                 listed nor served.
    """

    def __init__(
        self,
        name: str,
        root: Union[str, Path],
        url_prefix: str,
        include: Optional[Include] = None,
    ):
        super().__init__(name)
        self.root = Path(root)
        self.url_prefix = "/" + url_prefix.strip("/")
        self.include = include

    def _allowed(self, rel: str) -> bool:
        return self.include is None or self.include(rel)

    def resolve(self, uri: str) -> Optional[Producer]:
        prefix = self.url_prefix + "/"
        if not uri.startswith(prefix):
            return None

        rel = uri[len(prefix):]
        if not rel or not self._allowed(rel):
            return None

        try:
            root = self.root.resolve()
            full_path = (root / rel).resolve()
            full_path.relative_to(root)
        except (OSError, ValueError):
            return None

        if not full_path.is_file():
            return None

        return file_producer(full_path)

    def list_uris(self) -> List[str]:
        if not self.root.is_dir():
            return []

        uris = []
        for dirpath, _, filenames in os.walk(self.root):
            for filename in filenames:
                rel = (Path(dirpath) / filename).relative_to(self.root).as_posix()
                if self._allowed(rel):
                    uris.append(f"{self.url_prefix}/{rel}")
        return uris


def exclude_retina(rel: str) -> bool:
    """Filter for cover directories: skip the "@2x" high-density variants."""
    return "@2x" not in rel
