"""Single-in-flight frame worker that keeps only the newest pending frame."""
from __future__ import annotations

import logging
import threading
from queue import Empty, Full, Queue
from typing import Callable, Optional

from .runtime import SsdPipeline
from .types import Frame, FrameResult

logger = logging.getLogger(__name__)

_STOP = object()


def _offer_latest(queue_obj: Queue, item) -> bool:
    """
    Put without blocking, evicting the pending item if the queue is full.

    The item always lands: if the consumer takes the pending item first, the
    put is retried. Callers must be the only producer. Returns True when
    something was evicted.
    """
    evicted = False
    while True:
        try:
            queue_obj.put_nowait(item)
            return evicted
        except Full:
            try:
                queue_obj.get_nowait()
                evicted = True
            except Empty:
                pass


class FrameWorker:
    """
    Runs `pipeline` on its own thread, one frame at a time.

    `submit` never blocks: a frame still waiting when a newer one arrives is
    dropped. Every processed frame produces one `on_result` call on the
    worker thread, with `None` for frames the pipeline could not handle.
    """

    def __init__(
        self,
        pipeline: SsdPipeline,
        on_result: Callable[[Optional[FrameResult]], None],
        *,
        name: str = "ssd-frame-worker",
    ):
        self.pipeline = pipeline
        self.on_result = on_result
        self._inbox: Queue = Queue(maxsize=1)
        self._thread = threading.Thread(target=self._loop, name=name, daemon=True)
        self._lock = threading.Lock()
        self._dropped = 0
        self._processed = 0
        self._stopping = threading.Event()
        self.error: Optional[BaseException] = None

    @property
    def dropped(self) -> int:
        with self._lock:
            return self._dropped

    @property
    def processed(self) -> int:
        with self._lock:
            return self._processed

    @property
    def is_running(self) -> bool:
        return self._thread.is_alive()

    def start(self) -> "FrameWorker":
        self._thread.start()
        return self

    def submit(self, frame: Frame) -> bool:
        """Queue `frame`; returns False if the worker has stopped."""
        # The lock keeps a late submit from evicting the stop sentinel.
        with self._lock:
            if self._stopping.is_set() or not self._thread.is_alive():
                return False
            if _offer_latest(self._inbox, frame):
                self._dropped += 1
        return True

    def stop(self, timeout: Optional[float] = None) -> None:
        """Discard any pending frame, wait for the current one, and join."""
        with self._lock:
            self._stopping.set()
            alive = self._thread.is_alive()
            if alive:
                _offer_latest(self._inbox, _STOP)
        if alive:
            self._thread.join(timeout)
        if self.error is not None:
            raise RuntimeError("Frame worker failed") from self.error

    def __enter__(self) -> "FrameWorker":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def _loop(self) -> None:
        while True:
            item = self._inbox.get()
            if item is _STOP:
                return
            try:
                result = self.pipeline.run(item)
                with self._lock:
                    self._processed += 1
                self.on_result(result)
            except Exception as exc:
                logger.exception("Frame processing raised; stopping worker")
                self.error = exc
                return
