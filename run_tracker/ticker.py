"""Once-per-interval timer running on a daemon thread."""

from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class ThreadTicker:
    """Calls ``callback()`` every ``interval_s`` seconds until stopped.

    The callback runs on the ticker thread; the session serialises it with sample
    processing through its own lock.
    """

    def __init__(self, interval_s: float = 1.0) -> None:
        if interval_s <= 0:
            raise ValueError(f"interval_s 必须大于 0，当前值：{interval_s!r}")
        self._interval_s = interval_s
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, callback: Callable[[], None]) -> None:
        """Start ticking. Restarts if already running."""

        self.stop()
        stop = threading.Event()
        self._stop = stop

        def _loop() -> None:
            while not stop.wait(self._interval_s):
                try:
                    callback()
                except Exception:
                    # A failing tick must not kill the timer thread silently.
                    logger.exception("tick 回调异常")

        self._thread = threading.Thread(target=_loop, name="run-tracker-ticker", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self._interval_s * 2)
