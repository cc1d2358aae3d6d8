"""Maintenance Scheduler - periodic housekeeping on a background thread."""

from datetime import datetime, timezone
import logging
import threading
from typing import Dict, Optional

from shieldwatch.alerts.correlator import AlertCorrelator
from shieldwatch.common.constants import MaintenanceConstants
from shieldwatch.models.behavior.store import BehaviorModelStore

logger = logging.getLogger(__name__)


class MaintenanceScheduler:
    """Sweeps expired throttle records and purges stale behavior models.

    Example:
        >>> scheduler = MaintenanceScheduler(correlator, store, interval_seconds=3600)
        >>> scheduler.start()
        >>> scheduler.stop()
    """

    def __init__(
        self,
        correlator: AlertCorrelator,
        store: BehaviorModelStore,
        interval_seconds: float = MaintenanceConstants.INTERVAL_SECONDS,
    ):
        self.correlator = correlator
        self.store = store
        self.interval_seconds = interval_seconds

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.last_run: Optional[datetime] = None

    def run_once(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """Run one maintenance pass.

        Args:
            now: Reference time for both components. When omitted each one
                ages its data against the newest event time it has seen.

        Returns:
            Counts of swept records and purged models
        """
        swept = self.correlator.sweep(now=now)
        purged = self.store.purge_stale(now=now)
        self.last_run = now or datetime.now(timezone.utc)

        logger.debug(f"Maintenance pass: {swept} throttle records swept, {purged} models purged")
        return {"swept_records": swept, "purged_models": purged}

    def _loop(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.run_once()
            except Exception as e:
                logger.error(f"Maintenance pass failed: {type(e).__name__}: {e}")

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="Maintenance", daemon=True)
        self._thread.start()
        logger.info(f"Maintenance scheduler started (every {self.interval_seconds:g}s)")

    def stop(self, timeout: float = 5.0) -> None:
        if not self.is_running:
            return
        self._stop_event.set()
        self._thread.join(timeout=timeout)
        self._thread = None
        logger.info("Maintenance scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
