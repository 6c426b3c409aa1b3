"""Background sweeper for expired sessions and OAuth states."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class CleanupWorker:
    """Runs ``AuthService.cleanup`` on a fixed interval in a daemon thread."""

    def __init__(
        self,
        sweep: Callable[[Session], Dict[str, int]],
        session_factory: Callable[[], Session],
        interval_seconds: float = 3600.0,
    ) -> None:
        self._sweep = sweep
        self._session_factory = session_factory
        self.interval_seconds = max(1.0, interval_seconds)
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._heartbeat: float = 0.0
        self._runs: int = 0
        self._last_result: Dict[str, int] = {}
        self._lock = threading.Lock()

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="cleanup-worker", daemon=True)
        self._thread.start()
        logger.info("Cleanup worker started (interval=%.0fs)", self.interval_seconds)

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)
        logger.info("Cleanup worker stopped")

    def status(self) -> dict:
        with self._lock:
            return {
                "running": self.is_running(),
                "last_heartbeat": self._heartbeat,
                "runs": self._runs,
                "last_result": dict(self._last_result),
            }

    def run_once(self) -> Dict[str, int]:
        db = self._session_factory()
        try:
            result = self._sweep(db)
        finally:
            db.close()
        with self._lock:
            self._runs += 1
            self._last_result = result
            self._heartbeat = time.time()
        return result

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                # The sweep logs its own store failures; this catches session setup errors.
                logger.exception("Cleanup run failed")
            self._stop_event.wait(self.interval_seconds)
