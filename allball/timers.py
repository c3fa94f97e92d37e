from __future__ import annotations

import logging
import threading
from typing import Any, Callable

LOGGER = logging.getLogger(__name__)


class Ticker:
    """
    Call `callback` every `interval` seconds on a daemon thread.

    `stop()` is idempotent and joins the thread; once it returns the callback
    will not run again. Usable as a context manager.
    """

    def __init__(self, interval: float, callback: Callable[[], Any], *, name: str = "allball-ticker") -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self.callback = callback
        self._stopped = threading.Event()
        self._lock = threading.Lock()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._started = False

    def start(self) -> "Ticker":
        if self._stopped.is_set():
            raise RuntimeError("Ticker has been stopped")
        if not self._started:
            self._started = True
            self._thread.start()
        return self

    @property
    def running(self) -> bool:
        return self._started and not self._stopped.is_set()

    def _run(self) -> None:
        while not self._stopped.wait(self.interval):
            with self._lock:
                if self._stopped.is_set():
                    break
                try:
                    self.callback()
                except Exception:  # noqa: BLE001 - keep ticking after a bad callback
                    LOGGER.exception("Ticker callback failed")

    def stop(self) -> None:
        self._stopped.set()
        # Wait for an in-flight callback to finish.
        with self._lock:
            pass
        if self._started and threading.current_thread() is not self._thread:
            self._thread.join()

    def __enter__(self) -> "Ticker":
        return self.start()

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


class Debouncer:
    """
    Deliver only the latest of a burst of values after `delay` seconds of quiet.

    Each `push()` cancels the pending delivery. `flush()` delivers immediately,
    `cancel()` drops the pending value and `close()` also refuses further pushes.
    """

    def __init__(self, delay: float, callback: Callable[[Any], Any]) -> None:
        if delay < 0:
            raise ValueError("delay cannot be negative")
        self.delay = delay
        self.callback = callback
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._generation = 0
        self._value: Any = None
        self._closed = False

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def push(self, value: Any) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError("Debouncer is closed")
            self._cancel_locked()
            self._generation += 1
            self._value = value
            timer = threading.Timer(self.delay, self._fire, args=(self._generation,))
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._timer is None:
                return
            self._timer = None
            value = self._value
        self.callback(value)

    def flush(self) -> bool:
        """Deliver the pending value now. Returns False when nothing was pending."""
        with self._lock:
            if self._timer is None:
                return False
            self._cancel_locked()
            self._generation += 1
            value = self._value
        self.callback(value)
        return True

    def cancel(self) -> None:
        with self._lock:
            self._cancel_locked()
            self._generation += 1

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._cancel_locked()
            self._generation += 1

    def __enter__(self) -> "Debouncer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
