"""Fixed-size worker pool on top of concurrent.futures.ThreadPoolExecutor.

`submit()` hands a zero-argument task to the executor and returns at once.
`shutdown()` waits for every queued and in-flight task (drain, never cancel).
Tasks are fire-and-forget: there is no result channel, outcomes are observed
through side effects (events, filesystem). A task that raises is logged and
the worker stays available for the next task.
"""

import concurrent.futures
import logging
import threading
from typing import Callable

from comva.domain.errors import InvalidConfigurationError

Task = Callable[[], None]


class WorkerPool:
    def __init__(self, size: int, name: str = "comva-worker"):
        if size < 1:
            raise InvalidConfigurationError(f"Worker pool size must be >= 1, got {size}")
        self.size = size
        self.name = name
        self.logger = logging.getLogger(__name__)
        self._executor = concurrent.futures.ThreadPoolExecutor(max_workers=size, thread_name_prefix=name)
        self._lock = threading.Lock()
        self._closed = False

    def _log_failure(self, task: Task):
        def callback(future: concurrent.futures.Future):
            exc = future.exception()
            if exc is not None:
                self.logger.exception(f"Task {task!r} raised: {exc}", exc_info=exc)
        return callback

    def submit(self, task: Task) -> None:
        """Schedules task on exactly one worker. Returns immediately."""
        with self._lock:
            if self._closed:
                raise RuntimeError("Cannot submit to a worker pool that has been shut down")
            future = self._executor.submit(task)
        future.add_done_callback(self._log_failure(task))

    def shutdown(self) -> None:
        """Stops accepting tasks and blocks until every submitted task has finished."""
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "WorkerPool":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.shutdown()
        return False
