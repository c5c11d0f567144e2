"""Encrypted local storage engine for page visits and screenshots.

Lifecycle: ``UNINITIALIZED -> KEY_READY -> OPEN -> READY``. Every operation
other than :meth:`StorageEngine.ensure_ready` raises ``NotInitializedError``
before ``READY``. The hosting process may be restarted between events, so
entry points call ``ensure_ready()`` instead of trusting in-memory state.

Only screenshot blobs are encrypted. Page metadata (url, title, text excerpt)
stays in plaintext so it can be searched without decrypting every record.
"""

from __future__ import annotations

import asyncio
import enum
import time
from typing import Any, Callable, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from ..config import DatabaseConfig
from ..encryption import EncryptedPayload, EncryptionManager
from ..errors import InitializationError, NotInitializedError, StorageError
from ..logging_utils import get_logger
from ..settings_store import SettingsStore
from .database import DatabaseManager
from .models import PageRecord, ScreenshotBlob
from .search import COLOR_THRESHOLD, SearchFilter, filter_pages

DAY_MS = 86_400_000


class EngineState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    KEY_READY = "key_ready"
    OPEN = "open"
    READY = "ready"


def now_ms() -> int:
    return int(time.time() * 1000)


class StorageEngine:
    def __init__(
        self,
        db_config: DatabaseConfig,
        settings: SettingsStore,
        *,
        encryption: EncryptionManager | None = None,
        color_threshold: float = COLOR_THRESHOLD,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._db_config = db_config
        self._settings = settings
        self._encryption = encryption or EncryptionManager(settings)
        self._color_threshold = color_threshold
        self._clock = clock
        self._db: DatabaseManager | None = None
        self._state = EngineState.UNINITIALIZED
        self._init_lock = asyncio.Lock()
        self._log = get_logger("storage")

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def encryption(self) -> EncryptionManager:
        return self._encryption

    async def ensure_ready(self) -> None:
        """Import/generate the key and open the store; safe to call repeatedly."""

        if self._state is EngineState.READY and self._encryption.ready:
            return
        # Serialized so concurrent first calls cannot mint two keys.
        async with self._init_lock:
            if self._state is EngineState.READY and self._encryption.ready:
                return
            if not self._encryption.ready:
                self._state = EngineState.UNINITIALIZED
                await self._encryption.init_key()
            self._state = EngineState.KEY_READY
            if self._db is None:
                try:
                    self._db = await asyncio.to_thread(DatabaseManager, self._db_config)
                except (SQLAlchemyError, OSError) as exc:
                    raise InitializationError(f"Failed to open store: {exc}") from exc
            self._state = EngineState.OPEN
            self._state = EngineState.READY
            self._log.info("Storage engine ready (encrypted screenshots)")

    async def save(self, page: PageRecord, screenshot: Optional[bytes] = None) -> str:
        """Insert ``page`` and, when given, its encrypted screenshot.

        The page row commits before the screenshot is encrypted and written. A
        failure in the second step leaves the page without a blob and raises
        ``StorageError`` carrying the committed ``page_id``.
        """

        db = self._require_ready()

        def _insert_page(session) -> str:
            session.add(page)
            session.flush()
            return page.id

        try:
            page_id = await asyncio.to_thread(db.transaction, _insert_page)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to insert page record: {exc}") from exc

        if screenshot is None:
            return page_id

        try:
            payload = await self._encryption.encrypt(screenshot)

            def _insert_blob(session) -> None:
                session.add(
                    ScreenshotBlob(
                        page_id=page_id,
                        nonce=payload.nonce,
                        ciphertext=payload.ciphertext,
                    )
                )

            await asyncio.to_thread(db.transaction, _insert_blob)
        except Exception as exc:
            self._log.warning("Screenshot not stored for page {}: {}", page_id, exc)
            raise StorageError(
                f"Page {page_id} saved without screenshot: {exc}", page_id=page_id
            ) from exc
        return page_id

    async def search(self, query: SearchFilter | dict[str, Any] | None = None) -> list[PageRecord]:
        db = self._require_ready()
        if query is None:
            query = SearchFilter()
        elif isinstance(query, dict):
            query = SearchFilter.model_validate(query)

        def _scan(session) -> list[PageRecord]:
            return list(session.execute(select(PageRecord)).scalars().all())

        records = await self._run(db, _scan, "search pages")
        return filter_pages(records, query, color_threshold=self._color_threshold)

    async def get_page(self, page_id: str) -> PageRecord | None:
        db = self._require_ready()
        return await self._run(db, lambda session: session.get(PageRecord, page_id), "get page")

    async def get_screenshot(self, page_id: str) -> bytes | None:
        """Decrypted screenshot bytes, or ``None`` when no blob exists."""

        db = self._require_ready()

        def _load(session) -> EncryptedPayload | None:
            blob = session.get(ScreenshotBlob, page_id)
            if blob is None:
                return None
            return EncryptedPayload(nonce=bytes(blob.nonce), ciphertext=bytes(blob.ciphertext))

        payload = await self._run(db, _load, "get screenshot")
        if payload is None:
            return None
        return await self._encryption.decrypt(payload)

    async def clean_old_entries(self, days_to_keep: int) -> int:
        """Delete pages (and blobs) with ``timestamp <= now - days``; return the page count."""

        db = self._require_ready()
        cutoff = self._clock() - int(days_to_keep) * DAY_MS

        def _purge(session) -> int:
            page_ids = list(
                session.execute(
                    select(PageRecord.id).where(PageRecord.timestamp <= cutoff)
                ).scalars()
            )
            if not page_ids:
                return 0
            session.execute(delete(ScreenshotBlob).where(ScreenshotBlob.page_id.in_(page_ids)))
            session.execute(delete(PageRecord).where(PageRecord.id.in_(page_ids)))
            return len(page_ids)

        deleted = await self._run(db, _purge, "clean old entries")
        if deleted:
            self._log.info("Cleaned up {} old entries (days_to_keep={})", deleted, days_to_keep)
        return deleted

    async def get_stats(self) -> dict[str, Any]:
        db = self._require_ready()

        def _stats(session) -> dict[str, Any]:
            total_pages = session.execute(select(func.count()).select_from(PageRecord)).scalar_one()
            total_screenshots = session.execute(
                select(func.count()).select_from(ScreenshotBlob)
            ).scalar_one()
            oldest = session.execute(select(func.min(PageRecord.timestamp))).scalar_one()
            return {
                "totalPages": int(total_pages),
                "totalScreenshots": int(total_screenshots),
                "oldestTimestamp": int(oldest) if oldest is not None else None,
            }

        return await self._run(db, _stats, "get stats")

    async def delete_all_data(self) -> None:
        """Destroy the store and the persisted key material; irreversible.

        The engine drops back to ``UNINITIALIZED`` even when a step fails, so
        the next ``ensure_ready()`` reopens the store instead of reusing a
        destroyed one.
        """

        db = self._require_ready()
        try:
            await asyncio.to_thread(db.destroy)
            await self._settings.clear()
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError(f"Failed to destroy store: {exc}") from exc
        finally:
            self._encryption.forget_key()
            self._db = None
            self._state = EngineState.UNINITIALIZED
        self._log.warning("All history data and key material deleted")

    async def close(self) -> None:
        if self._db is not None:
            await asyncio.to_thread(self._db.dispose)
        self._db = None
        self._state = EngineState.UNINITIALIZED

    def _require_ready(self) -> DatabaseManager:
        if self._state is not EngineState.READY or self._db is None:
            raise NotInitializedError(
                f"Storage engine is {self._state.value}; call ensure_ready() first"
            )
        return self._db

    async def _run(self, db: DatabaseManager, fn, action: str):
        try:
            return await asyncio.to_thread(db.transaction, fn)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to {action}: {exc}") from exc
