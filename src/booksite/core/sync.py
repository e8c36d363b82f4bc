"""
=============================================================================
COMPLETION BARRIERS
=============================================================================

Background work (book builders, sitemap assembly) runs on its own
threads. Consumers that need the *final* URI set, such as exporters or
the readiness logger, have to know when that work has converged.

A Barrier is a counter of outstanding tasks:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          BARRIER LIFECYCLE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   launcher          add("go")     count = 1                          │
    │   launcher          add("rust")   count = 2                          │
    │                                                                      │
    │   builder "go"      done("go")    count = 1                          │
    │   builder "rust"    done("rust")  count = 0  ──► wake ALL waiters    │
    │                                                                      │
    │   exporter          wait()        returns immediately from now on    │
    │   readiness log     wait()        returns immediately from now on    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Unlike threading.Barrier (which wants a fixed number of *waiting*
parties), this one counts *tasks*. Any number of threads can wait on it
and none of them affects the count.

Tasks are tracked by name so a timed-out wait can say which builders
never finished.

=============================================================================
"""

import logging
import threading
import time
from collections import Counter
from typing import List, Optional


logger = logging.getLogger(__name__)


class Barrier:
    """
    Counter of outstanding background tasks that threads can wait on.

    Usage:
        books_done = Barrier("books")

        books_done.add("go")
        threading.Thread(target=build, args=("go",)).start()

        def build(name):
            try:
                ...
            finally:
                books_done.done(name)    # every exit path!

        if not books_done.wait(timeout=600):
            print("stuck:", books_done.pending)
    """

    def __init__(self, name: str):
        self.name = name
        self._cond = threading.Condition()
        self._pending: Counter = Counter()
        self._started = 0
        self._finished = 0

    def add(self, task: str) -> None:
        """Register one more outstanding task."""
        with self._cond:
            self._pending[task] += 1
            self._started += 1

    def done(self, task: str) -> None:
        """
        Mark one instance of ``task`` as finished.

        Raises:
            RuntimeError: If ``task`` is not outstanding. Completing a task
                          twice would let waiters through too early.
        """
        with self._cond:
            if self._pending[task] <= 0:
                del self._pending[task]
                raise RuntimeError(f"Barrier {self.name!r}: task {task!r} is not outstanding")

            self._pending[task] -= 1
            if self._pending[task] == 0:
                del self._pending[task]
            self._finished += 1

            if not self._pending:
                self._cond.notify_all()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until no tasks are outstanding.

        Args:
            timeout: Maximum seconds to wait. None waits forever.

        Returns:
            True if the barrier reached zero, False on timeout.
        """
        start = time.time()
        with self._cond:
            reached = self._cond.wait_for(lambda: not self._pending, timeout=timeout)

        if reached:
            logger.debug(f"Barrier {self.name!r} passed after {time.time() - start:.3f}s")
        return reached

    @property
    def count(self) -> int:
        with self._cond:
            return sum(self._pending.values())

    @property
    def pending(self) -> List[str]:
        """Sorted names of tasks still outstanding."""
        with self._cond:
            return sorted(self._pending.elements())

    @property
    def stats(self) -> dict:
        with self._cond:
            return {
                "started": self._started,
                "finished": self._finished,
                "pending": sum(self._pending.values()),
            }

    def __repr__(self) -> str:
        return f"Barrier({self.name!r}, pending={self.count})"
