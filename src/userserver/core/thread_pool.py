"""
=============================================================================
THREAD POOL
=============================================================================

Worker threads that process accepted connections, so one slow client does
not hold up the accept loop or anyone else.

=============================================================================
HOW A CONNECTION FLOWS THROUGH THE POOL
=============================================================================

    accept thread                 task queue                 workers
    ─────────────                 ──────────                 ───────

    conn = accept()
    pool.submit(                  ┌───────────┐
        process, (conn,)  ──────► │ Task      │  ──get()──►  Worker-0  busy
        block=False)              │ Task      │  ──get()──►  Worker-1  busy
                                  │ ...       │              Worker-2  idle
                                  └───────────┘              Worker-3  idle
           │
           └─ queue full? submit() returns False and the
              server answers 503 on the accept thread

Workers start at min_workers. When every worker is busy and tasks are
still waiting, submit() adds one more, up to max_workers.

=============================================================================
SHUTDOWN
=============================================================================

    shutdown(wait=True)
        1. refuse new submissions
        2. wait for the queue to drain (bounded by timeout if given)
        3. put one None ("poison pill") per worker on the queue
        4. join each worker

A worker that takes None off the queue leaves its loop.

=============================================================================
"""

import threading
import queue
import time
import logging
from typing import Callable, Optional, Any, Dict, List
from dataclasses import dataclass, field
from enum import Enum


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """
    A deferred call: func(*args, **kwargs).

    If timeout is set and the task sat in the queue longer than that, the
    worker drops it instead of running it, calling on_expired(*args, **kwargs)
    in its place when one is given.
    """

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)
    timeout: Optional[float] = None
    on_expired: Optional[Callable[..., Any]] = None
    submitted_at: float = field(default_factory=time.time)

    @property
    def waited(self) -> float:
        return time.time() - self.submitted_at


class Worker(threading.Thread):
    """
    Pulls tasks off the shared queue until it gets None or is shut down.

    An exception raised by a task is logged with its traceback and counted
    in tasks_failed; the worker itself carries on with the next task.
    """

    def __init__(
        self,
        task_queue: queue.Queue,
        worker_id: int,
        idle_timeout: float = 60.0
    ):
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
            if task.timeout and task.waited > task.timeout:
                logger.warning(
                    f"Task dropped after waiting {task.waited:.2f}s "
                    f"(timeout {task.timeout}s)"
                )
                self.tasks_failed += 1
                if task.on_expired:
                    task.on_expired(*task.args, **task.kwargs)
                return

            task.func(*task.args, **task.kwargs)

            elapsed = time.time() - start_time
            logger.debug(f"Worker {self.worker_id} completed task in {elapsed:.3f}s")
            self.tasks_completed += 1

        except Exception as e:
            elapsed = time.time() - start_time
            logger.exception(
                f"Worker {self.worker_id} task failed after {elapsed:.3f}s: {e}"
            )
            self.tasks_failed += 1

        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        self._shutdown.set()


class ThreadPool:
    """
    Fixed-minimum, bounded-maximum pool of Worker threads.

        pool = ThreadPool(min_workers=4, max_workers=16)
        pool.start()
        if not pool.submit(handle, args=(conn,), block=False):
            ...                                  # queue full
        pool.shutdown(wait=True, timeout=5.0)
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        max_queue_size: int = 100,
        idle_timeout: float = 60.0
    ):
        if min_workers < 1:
            raise ValueError(f"min_workers must be at least 1, got {min_workers}")
        if max_workers < min_workers:
            raise ValueError(
                f"max_workers ({max_workers}) must be >= min_workers ({min_workers})"
            )

        self.min_workers = min_workers
        self.max_workers = max_workers
        self.max_queue_size = max_queue_size
        self.idle_timeout = idle_timeout

        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue(maxsize=max_queue_size)
        self._workers: List[Worker] = []

        # Re-entrant: _maybe_scale_up holds it while calling _add_worker
        self._lock = threading.RLock()

        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

    @property
    def is_running(self) -> bool:
        return self._started and not self._shutdown

    def start(self):
        with self._lock:
            if self._started:
                return

            logger.info(f"Starting thread pool with {self.min_workers} workers")
            self._shutdown = False
            for _ in range(self.min_workers):
                self._add_worker()
            self._started = True

    def _add_worker(self) -> Worker:
        with self._lock:
            if len(self._workers) >= self.max_workers:
                raise RuntimeError("Maximum workers reached")

            worker = Worker(
                task_queue=self._task_queue,
                worker_id=self._next_worker_id,
                idle_timeout=self.idle_timeout
            )
            self._next_worker_id += 1
            self._workers.append(worker)
            worker.start()
            return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
        on_expired: Optional[Callable[..., Any]] = None,
        block: bool = True,
        queue_timeout: Optional[float] = None
    ) -> bool:
        """
        Queue func(*args, **kwargs) for a worker.

        Args:
            timeout: Drop the task if it waits in the queue longer than this.
            on_expired: Called with the same arguments when the task is dropped.
            block: Wait for room when the queue is full.
            queue_timeout: How long to wait for room when block is True.

        Returns:
            True if queued, False if the queue was full.

        Raises:
            RuntimeError: The pool is not running.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        task = Task(func=func, args=args, kwargs=kwargs or {}, timeout=timeout,
                    on_expired=on_expired)

        try:
            self._task_queue.put(task, block=block, timeout=queue_timeout)
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        """Add a worker when all are busy and work is still queued."""
        with self._lock:
            if len(self._workers) >= self.max_workers:
                return
            if self.busy_workers < len(self._workers):
                return
            if self._task_queue.qsize() == 0:
                return

            logger.debug(
                f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers"
            )
            self._add_worker()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop the pool.

        Args:
            wait: Let queued tasks finish first.
            timeout: Upper bound on that wait, in seconds.
        """
        with self._lock:
            if not self._started:
                return
            logger.info("Shutting down thread pool...")
            self._shutdown = True
            workers = list(self._workers)

        if wait:
            if timeout:
                deadline = time.time() + timeout
                while self._task_queue.unfinished_tasks:
                    if time.time() > deadline:
                        logger.warning("Thread pool shutdown timed out, abandoning queued tasks")
                        break
                    time.sleep(0.05)
            else:
                self._task_queue.join()

        for worker in workers:
            worker.shutdown()
            try:
                self._task_queue.put(None, block=False)
            except queue.Full:
                pass  # Worker sees its shutdown flag on the next idle timeout

        for worker in workers:
            worker.join(timeout=2.0)

        with self._lock:
            self._workers.clear()
            self._started = False

        logger.info("Thread pool shutdown complete")

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def worker_count(self) -> int:
        return len(self._workers)

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def idle_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.IDLE)

    @property
    def pending_tasks(self) -> int:
        return self._task_queue.qsize()

    @property
    def stats(self) -> dict:
        return {
            "workers": {
                "total": len(self._workers),
                "busy": self.busy_workers,
                "idle": self.idle_workers,
            },
            "tasks": {
                "queued": self._task_queue.qsize(),
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }
