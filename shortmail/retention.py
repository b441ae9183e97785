"""Age-based retention sweep for stored mail."""

from __future__ import annotations

import asyncio
import time
from typing import Protocol

import structlog

logger = structlog.get_logger()

SECONDS_PER_DAY = 24 * 60 * 60


class ExpiringStore(Protocol):
    async def delete_older_than(self, cutoff: int) -> int: ...


class RetentionSweeper:
    """Periodically delete mail older than ``retention_days``."""

    def __init__(
        self,
        store: ExpiringStore,
        *,
        retention_days: int = 7,
        interval_seconds: float = 3600.0,
    ) -> None:
        self._store = store
        self._retention_days = retention_days
        self._interval_seconds = interval_seconds
        self._shutdown_event = asyncio.Event()

    async def run_once(self, now: float | None = None) -> int:
        now = time.time() if now is None else now
        cutoff = int(now) - self._retention_days * SECONDS_PER_DAY
        deleted = await self._store.delete_older_than(cutoff)
        logger.info("retention_sweep_complete", cutoff=cutoff, deleted=deleted)
        return deleted

    async def run(self) -> None:
        """Sweep every ``interval_seconds`` until :meth:`stop` is called."""
        while not self._shutdown_event.is_set():
            try:
                await self.run_once()
            except Exception:
                logger.exception("retention_sweep_failed")
            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=self._interval_seconds)
            except TimeoutError:
                continue

    def stop(self) -> None:
        self._shutdown_event.set()
