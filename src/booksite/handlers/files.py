"""
=============================================================================
FILE-MAPPED HANDLER
=============================================================================

Pairs URIs with paths on disk, one add_file() call at a time:

    handler.add_file("/essential/go/img/3f2a9c1b.png", "books/go/img/3f2a9c1b.png")
    handler.add_file("/s/main.css", "static/main.css")

A book builder adds image files as pages arrive, so the map grows while
the router is already reading it. A lock guards every read and write.

Being empty is normal. Before a book has fetched its first page its
FilesHandler lists no URIs, and that is not an error.

=============================================================================
"""

import logging
import os
import threading
from pathlib import Path
from typing import Dict, List, Optional, Union

from .base import Handler, Producer, file_producer


logger = logging.getLogger(__name__)


class FilesHandler(Handler):
    """Serves individually registered files."""

    def __init__(self, name: str):
        super().__init__(name)
        self._lock = threading.Lock()
        self._files: Dict[str, Path] = {}

    def add_file(self, uri: str, path: Union[str, Path]) -> None:
        """
        Map ``uri`` to ``path``.

        Re-adding the same URI replaces the old path. The file does not
        have to exist yet; it is opened when the URI is produced.
        """
        with self._lock:
            previous = self._files.get(uri)
            self._files[uri] = Path(path)

        if previous is not None and previous != Path(path):
            logger.debug(f"{self.name}: {uri} remapped from {previous} to {path}")

    def add_files_in_dir(self, directory: Union[str, Path], url_prefix: str) -> int:
        """
        Register every file currently under ``directory`` below ``url_prefix``.

        This is a one-time snapshot; use DirHandler to track a directory
        that keeps changing.

        Returns:
            Number of files added.
        """
        directory = Path(directory)
        url_prefix = url_prefix.rstrip("/")
        added = 0

        for dirpath, _, filenames in os.walk(directory):
            for filename in filenames:
                path = Path(dirpath) / filename
                rel = path.relative_to(directory).as_posix()
                self.add_file(f"{url_prefix}/{rel}", path)
                added += 1

        return added

    def resolve(self, uri: str) -> Optional[Producer]:
        with self._lock:
            path = self._files.get(uri)
        if path is None:
            return None
        return file_producer(path)

    def list_uris(self) -> List[str]:
        with self._lock:
            return list(self._files)

    def __len__(self) -> int:
        with self._lock:
            return len(self._files)
