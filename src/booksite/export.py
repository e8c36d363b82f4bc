"""
=============================================================================
STATIC EXPORT
=============================================================================

Both exporters run the same loop over the router:

    site.wait_ready()                       books_done, then server_done
    for uri in sorted(set(all_uris())):
        producer = router.find_handler(uri)
        producer(writer, None)   ──►  DIRECTORY   out/essential/go/index.html
                                 ──►  ZIP         essential/go/index.html

Paths mirror URIs 1:1 with the leading "/" stripped.

=============================================================================
FAILURES
=============================================================================

Files are independent. An OSError or a non-fatal SiteError while writing
one URI is logged with its path and counted, and the export goes on. A
fatal SiteError (a required page failed to render) aborts the export.

=============================================================================
"""

import io
import logging
import os
import time
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, List, Union

from .errors import SiteError
from .handlers.base import BufferWriter, StreamWriter
from .site import Site


logger = logging.getLogger(__name__)


DIR_PROGRESS_EVERY = 256
ZIP_PROGRESS_EVERY = 128

# Fixed timestamp for zip entries so identical content gives identical archives
ZIP_DATE_TIME = (1980, 1, 1, 0, 0, 0)


@dataclass
class ExportStats:
    files: int = 0
    bytes: int = 0
    failures: int = 0
    skipped: int = 0
    duration: float = 0.0

    def summary(self) -> str:
        text = f"{self.files} files, {format_size(self.bytes)} in {self.duration:.2f}s"
        if self.failures:
            text += f", {self.failures} failed"
        if self.skipped:
            text += f", {self.skipped} skipped"
        return text


def format_size(size: int) -> str:
    """
    Human-readable byte count.

        >>> format_size(1536)
        '1.5 kB'
    """
    value = float(size)
    for unit in ("bytes", "kB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            if unit == "bytes":
                return f"{int(value)} bytes"
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} bytes"


def export_uris(site: Site) -> List[str]:
    """
    Final, sorted URI set of the site.

    Blocks until both barriers are reached.
    """
    site.wait_ready()
    uris = site.router.all_uris()
    unique = sorted(set(uris))
    if len(unique) != len(uris):
        logger.warning(f"{len(uris) - len(unique)} URIs are claimed by more than one handler")
    return unique


def _export(site: Site, write_one: Callable[[str, Callable], int], progress_every: int, label: str) -> ExportStats:
    stats = ExportStats()
    start = time.time()

    for uri in export_uris(site):
        producer = site.router.find_handler(uri)
        if producer is None:
            logger.warning(f"{uri} is listed but no handler resolves it")
            stats.skipped += 1
            continue

        try:
            stats.bytes += write_one(uri, producer)
        except SiteError as e:
            if e.fatal:
                raise
            logger.error(f"Exporting {uri} failed: {e}")
            stats.failures += 1
            continue
        except OSError as e:
            logger.error(f"Writing {uri} failed: {e}")
            stats.failures += 1
            continue

        stats.files += 1
        if stats.files % progress_every == 0:
            logger.info(f"{label}: {stats.files} files, {format_size(stats.bytes)}")

    stats.duration = time.time() - start
    logger.info(f"{label} done: {stats.summary()}")
    return stats


def write_to_dir(site: Site, dest: Union[str, Path]) -> ExportStats:
    """
    Write every URI of the site below ``dest``.

    Each file is streamed from its producer straight to disk. Directory
    creation is remembered so a directory is only created once.
    """
    dest = Path(dest)
    created = set()

    def write_one(uri: str, producer) -> int:
        path = dest / uri.lstrip("/")
        parent = path.parent
        if parent not in created:
            parent.mkdir(parents=True, exist_ok=True)
            created.add(parent)

        try:
            with open(path, "wb") as f:
                writer = StreamWriter(f)
                producer(writer, None)
        except (OSError, SiteError):
            if path.exists():
                os.remove(path)
            raise
        return writer.size

    logger.info(f"Writing site to {dest}")
    return _export(site, write_one, DIR_PROGRESS_EVERY, f"Export to {dest}")


def write_to_zip(site: Site, target: Union[str, Path, BinaryIO]) -> ExportStats:
    """
    Write every URI of the site into a zip archive.

    ``target`` is a path or a writable binary file object. Entries are
    deflated at level 9. An entry is produced in memory first, so a
    producer that fails leaves no partial entry behind.
    """
    name = target if isinstance(target, (str, Path)) else "<stream>"

    with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:

        def write_one(uri: str, producer) -> int:
            writer = BufferWriter()
            producer(writer, None)
            data = writer.getvalue()

            info = zipfile.ZipInfo(uri.lstrip("/"), date_time=ZIP_DATE_TIME)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o644 << 16
            zf.writestr(info, data, compresslevel=9)
            return len(data)

        logger.info(f"Writing site to {name}")
        return _export(site, write_one, ZIP_PROGRESS_EVERY, f"Zip {name}")


def read_zip(data: Union[bytes, str, Path]) -> dict:
    """name → bytes of every entry; used to compare exports."""
    source = io.BytesIO(data) if isinstance(data, bytes) else data
    with zipfile.ZipFile(source) as zf:
        return {info.filename: zf.read(info) for info in zf.infolist()}
