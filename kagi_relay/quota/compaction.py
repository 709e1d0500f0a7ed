"""Periodic retention compaction for the quota ledger."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from kagi_relay.quota.engine import QuotaEngine

logger = logging.getLogger(__name__)


class QuotaCompactor:
    """Runs ``QuotaEngine.compact`` on a fixed interval in the background.

    The loop is independent of request traffic. Each pass runs in a worker
    thread because compaction may rewrite the usage file.
    """

    def __init__(self, engine: QuotaEngine, *, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._engine = engine
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="quota-compactor")
        logger.info("quota.compactor_started", extra={"interval_s": self._interval})

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("quota.compactor_stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await asyncio.to_thread(self._engine.compact)
            except Exception as exc:
                logger.error(
                    "quota.compaction_failed",
                    extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
                )
