from __future__ import annotations

import logging
import threading
from queue import Queue
from typing import Callable

log = logging.getLogger(__name__)


class BaseQueue:
    def enqueue(self, job_id: str) -> None: ...  # pragma: no cover


class LocalQueue(BaseQueue):
    """FIFO queue drained by exactly one daemon thread.

    A job body runs to completion before the next id is taken off the queue,
    so at most one job is ever being processed per process.
    """

    def __init__(self, processor: Callable[[str], None]) -> None:
        self._processor = processor
        self._queue: Queue[str] = Queue()
        self._thread = threading.Thread(target=self._run, name="video-job-worker", daemon=True)
        self._thread.start()

    def enqueue(self, job_id: str) -> None:
        self._queue.put(job_id)

    def join(self) -> None:
        """Block until every enqueued job has been processed."""
        self._queue.join()

    def _run(self) -> None:
        while True:
            job_id = self._queue.get()
            try:
                self._processor(job_id)
            except Exception:
                log.exception("video job worker crashed", extra={"job_id": job_id})
            finally:
                self._queue.task_done()
