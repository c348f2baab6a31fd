"""Background scheduler for periodic GitHub -> Jira poll cycles."""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from app.core.errors import ConfigurationError
from app.core.issue_sync import IssueSyncEngine
from app.models import CycleStats


logger = logging.getLogger(__name__)


class SyncScheduler:
    """
    Runs a poll cycle at startup and then every ``interval_seconds``.

    Cycles never overlap: the periodic loop and manual triggers share one
    lock, and a manual trigger is refused while a cycle is in flight. The
    interval is measured from the start of a cycle; a cycle that overruns
    is followed immediately by the next one.
    """

    def __init__(self, engine: IssueSyncEngine, interval_seconds: float = 60):
        self.engine = engine
        self.interval_seconds = interval_seconds
        self.running = False
        self.task: Optional[asyncio.Task] = None
        self.shutdown_event = asyncio.Event()
        self.fatal_error: Optional[BaseException] = None
        self._cycle_lock = asyncio.Lock()
        self._cycles_completed = 0
        self._last_cycle_started_at: Optional[datetime] = None
        self._last_cycle_completed_at: Optional[datetime] = None

    @property
    def cycle_in_progress(self) -> bool:
        return self._cycle_lock.locked()

    async def start(self):
        """Start the scheduler."""
        if self.running:
            logger.warning("Sync scheduler is already running")
            return

        self.running = True
        self.fatal_error = None
        self.shutdown_event.clear()
        self.task = asyncio.create_task(self._run())
        logger.info(f"Sync scheduler started (interval: {self.interval_seconds}s)")

    async def stop(self):
        """Stop the scheduler, interrupting a cycle in flight."""
        if not self.running:
            return

        logger.info("Stopping sync scheduler...")
        self.running = False
        self.shutdown_event.set()

        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass

        logger.info("Sync scheduler stopped")

    async def trigger(self) -> Optional[CycleStats]:
        """
        Run a cycle now unless one is already in flight.

        Returns:
            The cycle stats, or None if a cycle was already running.
        """
        if self.cycle_in_progress:
            logger.info("Manual sync requested while a cycle is in progress, skipping")
            return None
        return await self._run_cycle()

    async def _run_cycle(self) -> CycleStats:
        async with self._cycle_lock:
            self._last_cycle_started_at = datetime.utcnow()
            try:
                return await self.engine.poll_once()
            finally:
                self._last_cycle_completed_at = datetime.utcnow()
                self._cycles_completed += 1

    async def _run(self):
        """Main scheduler loop."""
        loop = asyncio.get_running_loop()
        while self.running:
            started = loop.time()
            try:
                await self._run_cycle()
            except ConfigurationError as e:
                logger.critical(f"Sync scheduler stopped by configuration error: {e}")
                self.fatal_error = e
                self.running = False
                break
            except Exception as e:
                logger.error(f"Error in sync scheduler loop: {e}", exc_info=True)

            # Interruptible sleep until next cycle
            delay = max(0.0, self.interval_seconds - (loop.time() - started))
            try:
                await asyncio.wait_for(self.shutdown_event.wait(), timeout=delay)
                break  # Shutdown requested
            except asyncio.TimeoutError:
                pass  # Normal: interval elapsed, run next cycle

    def get_status(self) -> dict:
        """Return scheduler status for API consumption."""
        return {
            "running": self.running,
            "cycle_in_progress": self.cycle_in_progress,
            "interval_seconds": self.interval_seconds,
            "cycles_completed": self._cycles_completed,
            "last_cycle_started_at": (
                self._last_cycle_started_at.isoformat() + "Z"
                if self._last_cycle_started_at
                else None
            ),
            "last_cycle_completed_at": (
                self._last_cycle_completed_at.isoformat() + "Z"
                if self._last_cycle_completed_at
                else None
            ),
            "fatal_error": str(self.fatal_error) if self.fatal_error else None,
        }
