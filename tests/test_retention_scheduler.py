from __future__ import annotations

import asyncio

import pytest

from visual_history.config import DatabaseConfig, RetentionConfig
from visual_history.settings_store import SettingsStore
from visual_history.storage.engine import DAY_MS, StorageEngine
from visual_history.storage.models import PageRecord
from visual_history.storage.retention import RetentionScheduler

NOW = 1_700_000_000_000


def _record(age_days: int) -> PageRecord:
    return PageRecord(
        url=f"https://example.com/{age_days}",
        title=f"{age_days} days old",
        domain="example.com",
        timestamp=NOW - age_days * DAY_MS,
        dominant_r=1,
        dominant_g=1,
        dominant_b=1,
        text_content="",
        has_images=False,
        has_videos=False,
        has_code=False,
    )


@pytest.fixture
def clocked_engine(db_config: DatabaseConfig, settings_store: SettingsStore) -> StorageEngine:
    return StorageEngine(db_config, settings_store, clock=lambda: NOW)


@pytest.mark.anyio
async def test_run_once_uses_persisted_days(
    clocked_engine: StorageEngine, settings_store: SettingsStore
) -> None:
    await clocked_engine.ensure_ready()
    for age in (3, 8, 40):
        await clocked_engine.save(_record(age))
    await settings_store.set({"daysToKeep": 7})
    scheduler = RetentionScheduler(RetentionConfig(), clocked_engine, settings_store)

    assert await scheduler.run_once() == 2
    assert [page.title for page in await clocked_engine.search({})] == ["3 days old"]


@pytest.mark.anyio
async def test_run_once_falls_back_to_default_days(
    clocked_engine: StorageEngine, settings_store: SettingsStore
) -> None:
    await clocked_engine.ensure_ready()
    await clocked_engine.save(_record(29))
    await clocked_engine.save(_record(31))
    scheduler = RetentionScheduler(
        RetentionConfig(default_days_to_keep=30), clocked_engine, settings_store
    )

    assert await scheduler.run_once() == 1


@pytest.mark.anyio
async def test_scheduler_loop_runs_and_stops(
    clocked_engine: StorageEngine, settings_store: SettingsStore
) -> None:
    await clocked_engine.ensure_ready()
    await clocked_engine.save(_record(90))
    scheduler = RetentionScheduler(
        RetentionConfig(interval_s=0.01), clocked_engine, settings_store
    )

    scheduler.start()
    assert scheduler.running
    for _ in range(100):
        if (await clocked_engine.get_stats())["totalPages"] == 0:
            break
        await asyncio.sleep(0.01)
    await scheduler.stop()

    assert not scheduler.running
    assert (await clocked_engine.get_stats())["totalPages"] == 0


@pytest.mark.anyio
async def test_scheduler_survives_failures(
    clocked_engine: StorageEngine, settings_store: SettingsStore, monkeypatch
) -> None:
    calls: list[int] = []

    async def _failing_clean(days: int) -> int:
        calls.append(days)
        raise RuntimeError("locked")

    await clocked_engine.ensure_ready()
    monkeypatch.setattr(clocked_engine, "clean_old_entries", _failing_clean)
    scheduler = RetentionScheduler(
        RetentionConfig(interval_s=0.01), clocked_engine, settings_store
    )

    scheduler.start()
    for _ in range(100):
        if len(calls) >= 2:
            break
        await asyncio.sleep(0.01)
    await scheduler.stop()

    assert len(calls) >= 2
