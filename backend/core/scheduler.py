# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Background maintenance.

Two kinds of work run outside the request cycle:

* ``defer`` – fire-and-forget, fixed-delay tasks (removing a served backup
  file, dropping the safety copy after a restore).  Best-effort: a failure is
  logged and never escalated.
* ``PeriodicTask`` – a daemon thread calling a function every N seconds
  (the hourly expired-session sweep).
"""

import threading
from pathlib import Path
from typing import Callable

from core.logger import logger


def defer(delay: float, func: Callable, *args) -> threading.Timer:
    """Run ``func(*args)`` once, *delay* seconds from now, on a daemon timer."""

    def _run():
        try:
            func(*args)
        except Exception:
            logger.exception("Deferred task %s failed", getattr(func, "__name__", func))

    timer = threading.Timer(delay, _run)
    timer.daemon = True
    timer.start()
    return timer


def remove_file(path: Path) -> None:
    """Delete *path* if it still exists.  Used as a deferred task."""
    path = Path(path)
    if path.exists():
        path.unlink()
        logger.info("Removed temporary file %s", path.name)


def remove_file_later(path: Path, delay: float) -> threading.Timer:
    return defer(delay, remove_file, path)


class PeriodicTask:
    """Call *func* every *interval* seconds until ``stop()`` is called."""

    def __init__(self, name: str, interval: float, func: Callable[[], object]):
        self.name = name
        self.interval = interval
        self.func = func
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()
        logger.info("Started periodic task %s (every %ss)", self.name, self.interval)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None

    def _loop(self) -> None:
        # wait() returns True once stop() was called
        while not self._stop.wait(self.interval):
            try:
                self.func()
            except Exception:
                logger.exception("Periodic task %s failed", self.name)
