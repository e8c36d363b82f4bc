"""
Publishing: preview uploads and committing fetched content.

    --upload-preview    zip the site, POST it, log the preview URL
    --download-commit   fetch pages, then git add / commit / push the
                        book cache directories
"""

import logging
import subprocess
from pathlib import Path
from typing import List, Sequence, Union

import requests

from .errors import SiteError


logger = logging.getLogger(__name__)


def upload_preview(zip_path: Union[str, Path], url: str, timeout: float = 300.0) -> str:
    """
    Upload a site zip and return the preview URL the service answers with.

    Raises:
        SiteError: The upload failed (fatal).
    """
    zip_path = Path(zip_path)
    logger.info(f"Uploading {zip_path} to {url}")

    try:
        with open(zip_path, "rb") as f:
            response = requests.post(
                url,
                data=f,
                headers={"Content-Type": "application/zip"},
                timeout=timeout,
            )
        response.raise_for_status()
    except (OSError, requests.RequestException) as e:
        raise SiteError(f"Preview upload to {url} failed: {e}", fatal=True)

    preview_url = response.text.strip()
    logger.info(f"Preview: {preview_url}")
    return preview_url


def git(*args: str, cwd: Union[str, Path, None] = None, check: bool = True) -> str:
    """Run a git command and return its stdout."""
    result = subprocess.run(
        ["git"] + list(args),
        cwd=cwd,
        capture_output=True,
        text=True,
        encoding="utf-8",
        timeout=120,
    )
    if check and result.returncode != 0:
        raise SiteError(f"git {' '.join(args)} failed: {result.stderr.strip()}", fatal=True)
    return result.stdout.strip()


def commit_paths(paths: Sequence[Union[str, Path]], message: str, push: bool = True,
                 cwd: Union[str, Path, None] = None) -> bool:
    """
    Stage ``paths`` and commit them if anything changed.

    Returns:
        True if a commit was made.
    """
    existing: List[str] = [str(p) for p in paths if Path(cwd or ".", p).exists()]
    if not existing:
        logger.info("Nothing to commit")
        return False

    git("add", "--", *existing, cwd=cwd)
    staged = subprocess.run(
        ["git", "diff", "--cached", "--quiet"],
        cwd=cwd,
        capture_output=True,
        timeout=30,
    )
    if staged.returncode == 0:
        logger.info("No changes to commit")
        return False

    git("commit", "-m", message, cwd=cwd)
    logger.info(f"Committed {git('rev-parse', '--short', 'HEAD', cwd=cwd)}: {message}")
    if push:
        git("push", cwd=cwd)
        logger.info("Pushed")
    return True
