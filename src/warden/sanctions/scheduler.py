"""Reconciliation scheduler.

One asyncio task per sanction kind polls the store on a fixed interval and
lifts every record whose expiry has passed. Each record is processed on its
own, so one failure never stops the rest of the pass.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from warden.datatypes.sanction_datatypes import ReversalReport, SanctionKind
from warden.sanctions.errors import PersistenceError
from warden.sanctions.reversal import SanctionReverser
from warden.services.sanction_store import SanctionStore
from warden.util.logger import get_logger
from warden.util.timestamps import utcnow

logger = get_logger("reconciliation")

DEFAULT_INTERVAL_SECONDS = 30.0


class ReconciliationScheduler:
    """
    Periodic sweep of expired records for one sanction kind.

    Args:
        kind: Sanction kind this scheduler is responsible for.
        store: Store to read expired records from.
        reverser: Lifts each expired record and clears it.
        interval: Seconds between passes.
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        kind: SanctionKind,
        store: SanctionStore,
        reverser: SanctionReverser,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.kind = kind
        self.store = store
        self.reverser = reverser
        self.interval = interval
        self.clock = clock
        self._task: asyncio.Task | None = None
        self._stopping: asyncio.Task | None = None
        self._last_pass: Optional[datetime] = None
        self._processed = 0
        self._name = f"RECONCILIATION {kind}"

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_pass(self) -> List[ReversalReport]:
        """Lift every record of this kind that has expired as of now."""
        now = self.clock()
        try:
            expired = await self.store.list_expired(self.kind, now)
        except PersistenceError as exc:
            logger.error("[%s] Could not read expired records: %s", self._name, exc.message)
            return []

        reports: List[ReversalReport] = []
        for record in expired:
            try:
                reports.append(await self.reverser.reverse(record, automatic=True))
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error(
                    "[%s] Failed to process record for %s in guild %s: %s",
                    self._name, record.user_id, record.guild_id, exc,
                )

        self._last_pass = now
        self._processed += len(reports)
        if expired:
            logger.info("[%s] Processed %d expired record(s)", self._name, len(reports))
        return reports

    async def _run_loop(self, interval: float) -> None:
        logger.info("[%s] Starting reconciliation (interval=%.1fs)", self._name, interval)
        try:
            while True:
                try:
                    await self.run_pass()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.error("[%s] Unexpected error during pass: %s", self._name, exc)
                await asyncio.sleep(interval)
        except asyncio.CancelledError:
            logger.info("[%s] Reconciliation cancelled", self._name)
            raise

    def start(self, interval: Optional[float] = None) -> None:
        """Start the background task if it is not already running."""
        if self.is_running:
            logger.debug("[%s] Already running", self._name)
            return
        if interval is not None:
            self.interval = interval
        self._task = asyncio.create_task(self._run_loop(self.interval))

    def stop(self) -> None:
        """Cancel the background task. Safe to call when already stopped."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            self._stopping = task

    async def shutdown(self) -> None:
        """Cancel the task and wait for it to finish."""
        self.stop()
        task, self._stopping = self._stopping, None
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("[%s] Scheduler shutdown complete", self._name)

    def status(self) -> Dict[str, Any]:
        return {
            "kind": str(self.kind),
            "running": self.is_running,
            "interval": self.interval,
            "last_pass": self._last_pass,
            "processed": self._processed,
        }
