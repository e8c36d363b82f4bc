"""
=============================================================================
WORKER THREAD POOL
=============================================================================

The preview server handles each connection on a worker thread taken from
a bounded pool:

    ┌──────────────┐   submit()   ┌──────────────────┐   get()   ┌─────────┐
    │ accept loop  │ ───────────► │   task queue     │ ────────► │ Worker  │
    └──────────────┘              │ (bounded, FIFO)  │           │ Worker  │
                                  └──────────────────┘           │ Worker  │
                                                                 └─────────┘

- min_workers threads start with the pool; more are added (up to
  max_workers) when every worker is busy and tasks are queueing.
- A full queue makes submit() return False; the server answers 503.
- A task that raises is logged with its traceback and the worker moves
  on. This is where request handler failures, re-raised by the HTTP
  layer after the 500 went out, become visible.
- Workers exit on a poison pill (None) put on the queue.

=============================================================================
DRAINING
=============================================================================

Graceful shutdown needs "wait until everything in flight is done, but not
forever". drain(timeout) waits for the queue to empty AND for every
worker to go idle, and reports whether it got there before the deadline.

=============================================================================
"""

import threading
import queue
import time
import logging
from typing import Callable, Optional, Any
from dataclasses import dataclass, field
from enum import Enum


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """A deferred call: func(*args, **kwargs)."""

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """Pulls tasks off the shared queue until it receives a poison pill."""

    def __init__(self, task_queue: queue.Queue, worker_id: int, idle_timeout: float = 1.0):
        super().__init__(name=f"Worker-{worker_id}", daemon=True)
        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout

        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()

        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while not self._shutdown.is_set():
            try:
                task = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            if task is None:
                self.task_queue.task_done()
                break

            try:
                self._execute_task(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        self.state = WorkerState.BUSY
        start_time = time.time()

        try:
            task.func(*task.args, **task.kwargs)
            self.tasks_completed += 1
            logger.debug(f"Worker {self.worker_id} completed task in {time.time() - start_time:.3f}s")

        except Exception as e:
            elapsed = time.time() - start_time
            logger.exception(f"Worker {self.worker_id} task failed after {elapsed:.3f}s: {e}")
            self.tasks_failed += 1

        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        self._shutdown.set()


class ThreadPool:
    """
    Bounded, auto-scaling pool of worker threads.

    Usage:
        pool = ThreadPool(min_workers=4, max_workers=16)
        pool.start()
        pool.submit(handle_connection, args=(conn,))
        ...
        drained = pool.drain(timeout=5.0)
        pool.shutdown()
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        max_queue_size: int = 100,
        idle_timeout: float = 1.0,
    ):
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.max_queue_size = max_queue_size
        self.idle_timeout = idle_timeout

        self._task_queue: queue.Queue = queue.Queue(maxsize=max_queue_size)
        self._workers: list = []
        self._lock = threading.Lock()

        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

    def start(self):
        if self._started:
            return

        logger.info(f"Starting thread pool with {self.min_workers} workers")
        with self._lock:
            for _ in range(self.min_workers):
                self._add_worker()
        self._shutdown = False
        self._started = True

    def _add_worker(self) -> Worker:
        # Caller holds self._lock
        worker = Worker(
            task_queue=self._task_queue,
            worker_id=self._next_worker_id,
            idle_timeout=self.idle_timeout,
        )
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        block: bool = False,
        queue_timeout: Optional[float] = None,
    ) -> bool:
        """
        Queue a task.

        Returns:
            True if queued, False if the queue was full.

        Raises:
            RuntimeError: If the pool is not running.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        task = Task(func=func, args=args, kwargs=kwargs or {})

        try:
            self._task_queue.put(task, block=block, timeout=queue_timeout)
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        with self._lock:
            alive = [w for w in self._workers if w.state != WorkerState.STOPPED]
            busy = sum(1 for w in alive if w.state == WorkerState.BUSY)

            if busy == len(alive) and len(alive) < self.max_workers and self._task_queue.qsize() > 0:
                logger.debug(f"Scaling up: {len(alive)} -> {len(alive) + 1} workers")
                self._add_worker()

    def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until no task is queued or running.

        Args:
            timeout: Maximum seconds to wait. None waits forever.

        Returns:
            True if the pool went idle, False if the deadline passed first.
        """
        deadline = None if timeout is None else time.time() + timeout

        while self._task_queue.unfinished_tasks > 0 or self.busy_workers > 0:
            if deadline is not None and time.time() >= deadline:
                return False
            time.sleep(0.05)
        return True

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop the pool.

        Args:
            wait: Drain queued and running tasks first.
            timeout: Bound on the drain. Workers still busy afterwards are
                     abandoned (they are daemon threads).
        """
        if not self._started:
            return

        logger.info("Shutting down thread pool...")
        self._shutdown = True

        if wait and not self.drain(timeout):
            logger.warning("Thread pool drain timed out, forcing stop")

        for worker in self._workers:
            worker.shutdown()
            try:
                self._task_queue.put_nowait(None)
            except queue.Full:
                pass

        for worker in self._workers:
            worker.join(timeout=2.0)

        self._workers.clear()
        self._started = False
        logger.info("Thread pool shutdown complete")

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def stats(self) -> dict:
        return {
            "workers": {
                "total": len(self._workers),
                "busy": self.busy_workers,
            },
            "tasks": {
                "queued": self._task_queue.qsize(),
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }
