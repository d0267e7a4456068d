"""Periodic sweep of the analysis job table."""
import asyncio
import contextlib
import logging

from app.services.jobs import JobRegistry

log = logging.getLogger(__name__)


class JobJanitor:
    """
    Every `interval` seconds evicts jobs older than `retention` seconds.

    Eviction latency is therefore bounded by the interval, not exact. A job still
    pending when it expires is evicted too; its executor keeps running and the
    late outcome is dropped by the registry.
    """

    def __init__(self, registry: JobRegistry, interval: float, retention: float) -> None:
        self.registry = registry
        self.interval = interval
        self.retention = retention
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="analysis-job-janitor")
        log.info("job janitor started: interval=%ss retention=%ss", self.interval, self.retention)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        log.info("job janitor stopped")

    def sweep_once(self) -> int:
        evicted = self.registry.evict_older_than(self.retention)
        if evicted:
            log.info("job janitor evicted %s job(s), %s remaining", len(evicted), len(self.registry))
        return len(evicted)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.sweep_once()
            except Exception:
                log.exception("job janitor sweep failed")
