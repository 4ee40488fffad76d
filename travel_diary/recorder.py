from __future__ import annotations

import logging
import queue
import threading

from travel_diary.store import AccessStore

logger = logging.getLogger(__name__)

_STOP = object()


class AccessRecorder:
    """Fire-and-forget visit recording on a background thread.

    Requests hand visits over with submit() and return immediately; the
    geolocation lookup and the access log write happen on the worker.
    The queue is bounded: when it is full new visits are dropped.
    """

    def __init__(self, store: AccessStore, maxsize: int = 1000) -> None:
        self.store = store
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._thread: threading.Thread | None = None
        self.dropped = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._thread = threading.Thread(target=self._run, name="access-recorder", daemon=True)
        self._thread.start()

    def submit(self, ip: str, user_agent: str, path: str) -> bool:
        try:
            self._queue.put_nowait((ip, user_agent, path))
        except queue.Full:
            self.dropped += 1
            logger.warning("Record queue full, dropping visit from %s to %s", ip, path)
            return False
        return True

    def join(self) -> None:
        """Block until every submitted visit has been recorded."""
        self._queue.join()

    def stop(self, timeout: float | None = None) -> None:
        """Record everything still queued, then stop the worker."""
        if not self.running:
            return
        self._queue.put(_STOP)
        assert self._thread is not None
        self._thread.join(timeout)
        self._thread = None

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self.store.record(*item)
            except Exception:
                logger.exception("Failed to record visit %r", item)
            finally:
                self._queue.task_done()
