"""
=============================================================================
THREAD POOL IMPLEMENTATION
=============================================================================

A fixed-bounds pool of worker threads pulling accepted connections from a
shared queue. One worker serves one connection at a time, including its
keep-alive idle periods.

=============================================================================
THREAD POOL ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Thread Pool                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   submit(func, args) ──► ┌──────────────────────────────────────┐   │
    │                          │ TASK QUEUE (bounded, FIFO)            │   │
    │                          │ [Task] [Task] [Task] ...              │   │
    │                          └──────────────────┬───────────────────┘   │
    │                                             │ get()                  │
    │                                             ▼                        │
    │        ┌──────────┐ ┌──────────┐ ┌──────────┐ ┌──────────┐         │
    │        │ Worker 0 │ │ Worker 1 │ │ Worker 2 │ │ Worker 3 │  ...    │
    │        │ (idle)   │ │ (busy)   │ │ (busy)   │ │ (idle)   │         │
    │        └──────────┘ └──────────┘ └──────────┘ └──────────┘         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A full queue is NOT waited on: submit(block=False) returns False and the
HTTP server answers that client with 503 Service Unavailable.

=============================================================================
WORKER LIFECYCLE
=============================================================================

    while not shutdown:
        task = queue.get()      ← waits (with timeout to re-check shutdown)
        if task is None:        ← "poison pill"
            break
        execute(task)           ← exceptions are logged, never kill a worker
        queue.task_done()

=============================================================================
SCALING
=============================================================================

    MIN_WORKERS   started by start(), always present
    MAX_WORKERS   hard limit; a new worker is added on submit() when every
                  existing worker is busy and tasks are waiting

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
    """Worker thread states."""
    IDLE = "idle"        # Waiting for task
    BUSY = "busy"        # Executing task
    STOPPED = "stopped"  # Thread exited


@dataclass
class Task:
    """
    A deferred function call.

    Attributes:
        func: The function to execute.
        args: Positional arguments for the function.
        kwargs: Keyword arguments for the function.
        submitted_at: Time the task was queued.
    """
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """
    Worker thread that processes tasks from the queue.

    Daemon threads: a worker stuck in a slow handler must not keep the
    process alive after the server has given up waiting for it.
    """

    def __init__(self, task_queue: queue.Queue, worker_id: int, poll_interval: float = 1.0):
        super().__init__(name=f"chirpy-worker-{worker_id}", daemon=True)

        self.task_queue = task_queue
        self.worker_id = worker_id
        self.poll_interval = poll_interval

        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while not self._shutdown.is_set():
            try:
                task = self.task_queue.get(timeout=self.poll_interval)
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
            logger.debug(
                f"Worker {self.worker_id} completed task in {time.time() - start_time:.3f}s"
            )
        except Exception as e:
            # One bad task must not take the worker down with it
            logger.exception(
                f"Worker {self.worker_id} task failed after {time.time() - start_time:.3f}s: {e}"
            )
        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        """Signal the worker to stop after its current task."""
        self._shutdown.set()


class ThreadPool:
    """
    Thread pool for concurrent connection handling.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      ThreadPool Usage                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   pool = ThreadPool(min_workers=4, max_workers=64, queue_size=128)  │
    │   pool.start()                                                       │
    │                                                                      │
    │   if not pool.submit(handle_connection, args=(conn,), block=False): │
    │       reject(conn)          # queue full                            │
    │                                                                      │
    │   pool.shutdown(wait=False)                                         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘
    """

    def __init__(self, min_workers: int = 4, max_workers: int = 64, queue_size: int = 128):
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.max_queue_size = queue_size

        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue(maxsize=queue_size)

        self._workers: list[Worker] = []
        self._lock = threading.Lock()  # Protects _workers
        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

    @property
    def is_running(self) -> bool:
        return self._started and not self._shutdown

    def start(self):
        """Start the pool with min_workers threads."""
        if self._started:
            return

        logger.info(f"Starting thread pool with {self.min_workers} workers")
        with self._lock:
            for _ in range(self.min_workers):
                self._add_worker()
        self._started = True

    def _add_worker(self) -> Worker:
        """Create and start one worker. Caller holds _lock."""
        worker = Worker(task_queue=self._task_queue, worker_id=self._next_worker_id)
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        block: bool = True,
        queue_timeout: Optional[float] = None
    ) -> bool:
        """
        Queue a task for execution.

        Args:
            func: The function to execute.
            args: Positional arguments for the function.
            kwargs: Keyword arguments for the function.
            block: Whether to wait for space if the queue is full.
            queue_timeout: How long to wait when blocking.

        Returns:
            True if the task was queued, False if the queue was full.

        Raises:
            RuntimeError: If the pool is not started or is shutting down.
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
        """Add a worker when every worker is busy and tasks are waiting."""
        with self._lock:
            if len(self._workers) >= self.max_workers:
                return
            busy_count = sum(1 for w in self._workers if w.state == WorkerState.BUSY)
            if busy_count == len(self._workers) and self._task_queue.qsize() > 0:
                logger.debug(
                    f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers"
                )
                self._add_worker()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop the pool.

        Args:
            wait: Wait for workers to finish their current task and exit.
            timeout: Upper bound on that wait, per worker.
        """
        if not self._started or self._shutdown:
            return

        logger.info("Shutting down thread pool...")
        self._shutdown = True

        with self._lock:
            workers = list(self._workers)

        for worker in workers:
            worker.shutdown()
            try:
                self._task_queue.put(None, block=False)
            except queue.Full:
                pass  # Workers also notice the shutdown flag on their next poll

        if wait:
            for worker in workers:
                worker.join(timeout=timeout)

        logger.info("Thread pool shutdown complete")
