"""
Background reaper for tiercache.

Periodically drops expired entries from every tier of a
:class:`CacheManager`, independent of request traffic.  Runs in its own
daemon thread.  Sweeps record no statistics: expiry cleanup is not
eviction and changes no caller-visible outcome.
"""

import logging
import threading
import time
from typing import Any, Dict, Optional

from tiercache.cache.manager import CacheManager
from tiercache.config import get_settings
from tiercache.exceptions import CacheError

logger = logging.getLogger(__name__)


class CacheReaper:
    """Daemon thread that sweeps expired entries on a fixed interval.

    Args:
        manager: The cache manager whose tiers are swept.
        interval_seconds: Seconds between sweeps.  Defaults to
            ``cache.cleanup_interval_seconds`` from settings.

    Raises:
        ValueError: If *interval_seconds* is not positive.
    """

    def __init__(
        self,
        manager: CacheManager,
        interval_seconds: Optional[float] = None,
    ) -> None:
        if interval_seconds is None:
            interval_seconds = get_settings().cache.cleanup_interval_seconds
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self._manager = manager
        self._interval_s = float(interval_seconds)

        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._stats_lock = threading.Lock()

        self._sweeps: int = 0
        self._entries_removed: int = 0
        self._sweep_errors: int = 0
        self._last_sweep_at: Optional[float] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the reaper background thread.

        Raises:
            CacheError: If the reaper is already running.
        """
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                raise CacheError("CacheReaper is already running")

            self._stop.clear()
            self._thread = threading.Thread(
                target=self._run_loop,
                name="tiercache-reaper",
                daemon=True,
            )
            self._thread.start()
            logger.info(
                "CacheReaper started",
                extra={"interval_seconds": self._interval_s},
            )

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the reaper and wait for the thread to exit.

        The thread handle is released only once the thread has exited, so
        :meth:`start` refuses to launch a second loop while a slow sweep
        is still finishing.

        Args:
            timeout: Maximum seconds to wait for the thread to finish.
        """
        with self._lock:
            thread = self._thread
            if thread is None:
                return
            self._stop.set()

        thread.join(timeout=timeout)
        if thread.is_alive():
            logger.warning(
                "CacheReaper did not stop within timeout",
                extra={"timeout_seconds": timeout},
            )
            return

        with self._lock:
            if self._thread is thread:
                self._thread = None
        logger.info("CacheReaper stopped")

    @property
    def is_running(self) -> bool:
        """Whether the reaper loop is active."""
        thread = self._thread
        return thread is not None and thread.is_alive()

    def __enter__(self) -> "CacheReaper":
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def sweep_once(self) -> int:
        """Run a single sweep over all tiers.

        Returns:
            Number of expired entries removed.
        """
        removed = self._manager.purge_expired()
        with self._stats_lock:
            self._sweeps += 1
            self._entries_removed += removed
            self._last_sweep_at = time.time()
        if removed:
            logger.debug("Reaper sweep removed entries", extra={"count": removed})
        return removed

    def stats(self) -> Dict[str, Any]:
        """Return reaper statistics.

        Returns:
            Dict with sweep count, entries removed, errors, interval and
            running state.
        """
        with self._stats_lock:
            return {
                "running": self.is_running,
                "interval_seconds": self._interval_s,
                "sweeps": self._sweeps,
                "entries_removed": self._entries_removed,
                "sweep_errors": self._sweep_errors,
                "last_sweep_at": self._last_sweep_at,
            }

    # ------------------------------------------------------------------
    # Internal loop
    # ------------------------------------------------------------------

    def _run_loop(self) -> None:
        """Main loop running in a daemon thread; exits only when stopped."""
        logger.debug("Reaper loop started")
        while not self._stop.wait(self._interval_s):
            try:
                self.sweep_once()
            except Exception as exc:
                with self._stats_lock:
                    self._sweep_errors += 1
                logger.error(
                    "Reaper sweep failed",
                    extra={"error": str(exc)},
                    exc_info=True,
                )
        logger.debug("Reaper loop exited")
