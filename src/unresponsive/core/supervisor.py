"""
=============================================================================
WORKER SUPERVISOR
=============================================================================

Each held connection needs its own thread: a connection spends almost its
whole life sleeping until its deadline, so a fixed-size pool would simply
run out of workers and hold new clients in a queue for longer than the
configured delay.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Supervisor                                    │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   accept loop                                                        │
    │       │                                                              │
    │       ├──► submit(handler, conn) ──► Worker-7 (new daemon thread)    │
    │       │                                   │                          │
    │       │                                   │ handler(conn)            │
    │       │                                   │                          │
    │       │                                   └─► finished queue         │
    │       │                                            │                 │
    │       └──► reap() ◄────────────────────────────────┘                 │
    │              └── join() + "Reaped Worker-7"                           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REAPING WITHOUT SIGNALS
=============================================================================

A process-per-connection server learns about finished children through
SIGCHLD. Threads don't send signals, so each worker announces its own
exit by putting itself on a queue. reap() drains that queue without
blocking, which makes it safe to call from the accept loop on every
iteration.

=============================================================================
"""

import threading
import queue
import time
import logging
from typing import Callable, Optional, Any
from enum import Enum


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    """
    Worker thread states.

    Used for monitoring and debugging the supervisor.
    """
    STARTING = "starting"  # Created, not yet running
    BUSY = "busy"          # Handling its connection
    FINISHED = "finished"  # Handler returned (or raised)


class Worker(threading.Thread):
    """
    A thread that runs one handler call and reports back when done.

    The worker owns its arguments (for the server: one Connection) for its
    whole lifetime; nothing it touches is shared with other workers.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        args: tuple,
        worker_id: int,
        finished: "queue.Queue[Worker]",
    ):
        # daemon=True: a held connection must not keep the process alive
        super().__init__(name=f"Worker-{worker_id}", daemon=True)

        self.func = func
        self.args = args
        self.worker_id = worker_id
        self._finished = finished

        self.state = WorkerState.STARTING
        self.failed = False

    def run(self):
        self.state = WorkerState.BUSY
        logger.debug(f"{self.name} started")

        try:
            self.func(*self.args)
        except Exception as e:
            # One broken connection must never take the server down
            self.failed = True
            logger.exception(f"{self.name} failed: {e}")
        finally:
            # Drop the reference so the connection can be collected
            self.args = ()
            self.state = WorkerState.FINISHED
            self._finished.put(self)


class WorkerSupervisor:
    """
    Starts a worker per task and reaps the finished ones.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   supervisor = WorkerSupervisor()                                    │
    │   supervisor.submit(responder.handle, args=(conn,))                  │
    │   supervisor.reap()                   # non-blocking, any time       │
    │   supervisor.shutdown(timeout=30)     # join what's still running    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘
    """

    def __init__(self):
        self._workers: dict[int, Worker] = {}
        self._finished: "queue.Queue[Worker]" = queue.Queue()
        self._lock = threading.Lock()  # Protects _workers
        self._next_worker_id = 0
        self._shutdown = False

        # Metrics
        self.tasks_completed = 0
        self.tasks_failed = 0

    def submit(self, func: Callable[..., Any], args: tuple = ()) -> Worker:
        """
        Run func(*args) on a new worker thread.

        Raises:
            RuntimeError: If the supervisor is shutting down.
        """
        if self._shutdown:
            raise RuntimeError("Supervisor is shutting down")

        with self._lock:
            worker = Worker(func, args, self._next_worker_id, self._finished)
            self._next_worker_id += 1
            self._workers[worker.worker_id] = worker

        worker.start()
        return worker

    def reap(self) -> int:
        """
        Join every worker that has finished since the last call.

        Never blocks on a running worker.

        Returns:
            Number of workers reaped.
        """
        reaped = 0
        while True:
            try:
                worker = self._finished.get_nowait()
            except queue.Empty:
                break

            # The worker queued itself as its last act; join() is immediate
            worker.join()

            with self._lock:
                self._workers.pop(worker.worker_id, None)

            if worker.failed:
                self.tasks_failed += 1
            else:
                self.tasks_completed += 1

            logger.info(f"Reaped {worker.name}")
            reaped += 1

        return reaped

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop accepting tasks and (optionally) wait for running workers.

        Args:
            wait: Join running workers before returning.
            timeout: Maximum total time to wait. Workers still running
                     after that are abandoned (they are daemon threads).
        """
        self._shutdown = True

        if wait:
            deadline = None if timeout is None else time.monotonic() + timeout
            for worker in self.workers:
                remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
                worker.join(remaining)

            still_running = self.active_workers
            if still_running:
                logger.warning(f"Shutdown timeout, abandoning {still_running} connection(s)")

        self.reap()

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def workers(self) -> list[Worker]:
        """Snapshot of workers not yet reaped."""
        with self._lock:
            return list(self._workers.values())

    @property
    def active_workers(self) -> int:
        """Workers whose handler is still running."""
        return sum(1 for w in self.workers if w.is_alive())

    @property
    def stats(self) -> dict:
        return {
            "workers": {
                "tracked": len(self.workers),
                "active": self.active_workers,
            },
            "tasks": {
                "completed": self.tasks_completed,
                "failed": self.tasks_failed,
            },
        }
