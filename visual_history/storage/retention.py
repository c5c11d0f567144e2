"""Retention scheduler that prunes history older than the configured age."""

from __future__ import annotations

import asyncio
import contextlib

from ..config import RetentionConfig
from ..logging_utils import get_logger
from ..settings_store import SettingsStore
from .engine import StorageEngine


class RetentionScheduler:
    def __init__(
        self,
        config: RetentionConfig,
        engine: StorageEngine,
        settings: SettingsStore,
    ) -> None:
        self._config = config
        self._engine = engine
        self._settings = settings
        self._log = get_logger("retention")
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        """Delete entries older than the persisted ``daysToKeep``."""

        await self._engine.ensure_ready()
        stored = await self._settings.get(["daysToKeep"])
        days = stored.get("daysToKeep") or self._config.default_days_to_keep
        deleted = await self._engine.clean_old_entries(int(days))
        self._log.info("Cleaned up {} old entries", deleted)
        return deleted

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="retention-scheduler")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _loop(self) -> None:
        if not self._config.run_on_start:
            await asyncio.sleep(self._config.interval_s)
        while True:
            try:
                await self.run_once()
            except Exception as exc:
                self._log.warning("Retention enforcement failed: {}", exc)
            await asyncio.sleep(self._config.interval_s)
