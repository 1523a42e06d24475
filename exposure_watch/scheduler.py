"""Scheduler - Drives the recurring exposure checks.

Runs one cycle at start-up, then one every fetch interval on a background
thread. Cycles in this process never overlap: a lock skips a manual run
that races the timer. Across instances the orchestrator's Firestore
lease keeps the registry and checkpoint single-writer.
"""

import logging
import threading

from exposure_watch.orchestrator import CycleResult, Orchestrator


logger = logging.getLogger(__name__)


class Scheduler:
    """Periodic trigger for Orchestrator.run_cycle."""

    def __init__(self, orchestrator: Orchestrator, interval_seconds: float) -> None:
        """Initialize scheduler.

        Args:
            orchestrator: Orchestrator whose cycle is run
            interval_seconds: Period between cycles
        """
        self.orchestrator = orchestrator
        self.interval_seconds = interval_seconds
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def run_once(self, ignore_throttle: bool = False) -> CycleResult | None:
        """Run one cycle unless another one is in progress.

        Returns:
            CycleResult, or None if a cycle was already running
        """
        if not self._lock.acquire(blocking=False):
            logger.warning("Exposure check already running, skipping trigger")
            return None

        try:
            return self.orchestrator.run_cycle(ignore_throttle=ignore_throttle)
        except Exception:
            logger.exception("Unexpected error in exposure check cycle")
            return None
        finally:
            self._lock.release()

    def _loop(self) -> None:
        self.run_once()
        while not self._stop.wait(self.interval_seconds):
            self.run_once()

    def start(self) -> None:
        """Run a cycle now, then every interval, on a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        logger.info("Starting exposure checks every %s seconds", self.interval_seconds)
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="exposure-scheduler", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Stop the background loop after the current cycle."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
