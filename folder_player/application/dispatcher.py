"""Main-thread message queue and the periodic position ticker."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class MainThreadDispatcher:
    """Single-consumer queue of callbacks.

    Worker threads and transport listeners post here; only the thread that
    drains the queue mutates session state.
    """

    def __init__(self, logger_instance=None) -> None:
        self.logger = logger_instance or logger
        self._queue: "queue.Queue[Callable[[], None] | None]" = queue.Queue()
        self._closed = False

    def post(self, callback: Callable[[], None]) -> None:
        if self._closed:
            self.logger.debug("Dropping callback posted after close")
            return
        self._queue.put(callback)

    def run_pending(self, *, wait_seconds: float = 0.0) -> int:
        """Run queued callbacks until the queue is empty; returns how many ran."""
        processed = 0
        block = wait_seconds > 0
        while True:
            try:
                if block:
                    callback = self._queue.get(timeout=wait_seconds)
                    block = False
                else:
                    callback = self._queue.get_nowait()
            except queue.Empty:
                return processed
            if callback is None:
                return processed
            self._invoke(callback)
            processed += 1

    def run_forever(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            callback = self._queue.get()
            if callback is None:
                return
            self._invoke(callback)

    def close(self) -> None:
        self._closed = True
        # Wakes a blocked run_forever.
        self._queue.put(None)

    def _invoke(self, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            self.logger.exception("Main-thread callback failed")


class PositionTicker:
    """Posts ``on_tick`` to the dispatcher at a fixed interval."""

    def __init__(
        self,
        dispatcher: MainThreadDispatcher,
        on_tick: Callable[[], None],
        interval_ms: int = 500,
    ) -> None:
        self.dispatcher = dispatcher
        self.on_tick = on_tick
        self.interval_seconds = max(1, int(interval_ms)) / 1000.0
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="position-ticker",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float | None = 1.0) -> None:
        self._stop.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _run(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            self.dispatcher.post(self.on_tick)
