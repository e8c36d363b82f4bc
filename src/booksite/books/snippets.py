"""
Code snippet evaluation.

Code blocks marked ``eval`` are run and their output is shown under the
snippet. Runs are cached by a hash of (language, code), so an unchanged
snippet is only ever run once per cache directory:

    books/go/cache/snippets/<sha1>.txt
"""

import hashlib
import logging
import subprocess
import sys
from pathlib import Path
from typing import Dict, List, Optional, Union

from .model import Block, Page


logger = logging.getLogger(__name__)


INTERPRETERS: Dict[str, List[str]] = {
    "python": [sys.executable, "-c"],
    "py": [sys.executable, "-c"],
    "sh": ["sh", "-c"],
    "bash": ["bash", "-c"],
}


class SnippetRunner:
    """
    Runs evaluable code blocks in a subprocess.

    Args:
        cache_dir: Directory for cached outputs.
        timeout: Seconds a single snippet may run.
    """

    def __init__(self, cache_dir: Union[str, Path], timeout: float = 10.0):
        self.cache_dir = Path(cache_dir)
        self.timeout = timeout
        self.runs = 0
        self.cache_hits = 0

    @staticmethod
    def cache_key(block: Block) -> str:
        return hashlib.sha1(f"{block.language}\n{block.text}".encode("utf-8")).hexdigest()

    def cache_path(self, block: Block) -> Path:
        return self.cache_dir / f"{self.cache_key(block)}.txt"

    def run(self, block: Block) -> Optional[str]:
        """
        Output of one snippet, from the cache when possible.

        Returns:
            The combined stdout/stderr, or None if the language has no
            interpreter or the run timed out.
        """
        path = self.cache_path(block)
        if path.exists():
            self.cache_hits += 1
            return path.read_text(encoding="utf-8")

        command = INTERPRETERS.get(block.language.lower())
        if command is None:
            logger.debug(f"No interpreter for {block.language!r} snippet {block.id}")
            return None

        try:
            result = subprocess.run(
                command + [block.text],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"Snippet {block.id} timed out after {self.timeout}s")
            return None
        except OSError as e:
            logger.warning(f"Snippet {block.id} could not be started: {e}")
            return None

        self.runs += 1
        output = result.stdout + result.stderr
        if result.returncode != 0:
            logger.info(f"Snippet {block.id} exited with status {result.returncode}")

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(output, encoding="utf-8")
        return output

    def evaluate_page(self, page: Page) -> int:
        """Fill block.output for every evaluable code block. Returns the count."""
        evaluated = 0
        for block in page.blocks:
            if block.type != "code" or not block.eval:
                continue
            output = self.run(block)
            if output is not None:
                block.output = output
                evaluated += 1
        return evaluated
