"""Navigation-driven page capture orchestration."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from ..config import CaptureConfig
from ..errors import CaptureAbortedError, StorageError
from ..image_utils import dominant_color
from ..logging_utils import get_logger
from ..settings_store import SettingsStore
from ..storage.engine import StorageEngine, now_ms
from ..storage.models import PageRecord
from .collaborators import NavigationEvent, PageDataSource, ScreenshotSource
from .policy import CapturePolicy


class CaptureOrchestrator:
    """Gate, settle, capture and persist one navigation at a time.

    Failures never escape :meth:`handle_navigation`; a failed capture is a
    missing history entry. There is no retry, and each event is independent.
    """

    def __init__(
        self,
        engine: StorageEngine,
        settings: SettingsStore,
        screenshots: ScreenshotSource,
        page_data: PageDataSource,
        config: CaptureConfig | None = None,
        *,
        policy: CapturePolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._engine = engine
        self._settings = settings
        self._screenshots = screenshots
        self._page_data = page_data
        self._config = config or CaptureConfig()
        self._policy = policy or CapturePolicy()
        self._sleep = sleep
        self._clock = clock
        self._log = get_logger("capture")

    async def handle_navigation(self, event: NavigationEvent) -> Optional[str]:
        """Capture ``event``; return the new page id or ``None`` when nothing was stored."""

        try:
            return await self._capture(event)
        except CaptureAbortedError as exc:
            self._log.debug("Skipped {}: {}", event.url, exc.reason)
            return None
        except StorageError as exc:
            self._log.warning("Capture of {} partially stored: {}", event.url, exc)
            return exc.page_id
        except Exception:
            self._log.exception("Error capturing page {}", event.url)
            return None

    async def _capture(self, event: NavigationEvent) -> str:
        settings = await self._settings.load_settings()
        decision = self._policy.evaluate(event, settings)
        if not decision.allowed:
            raise CaptureAbortedError(decision.reason or "policy")
        await self._engine.ensure_ready()

        # Fixed settle delay; not a readiness signal, rendering may still be in flight.
        await self._sleep(settings.capture_interval / 1000.0)

        screenshot = await self._screenshots.capture_visible(
            event.window_id,
            fmt=self._config.screenshot_format,
            quality=self._config.screenshot_quality,
        )

        try:
            page_data = await self._page_data.get_page_data(event.tab_id)
        except Exception as exc:
            self._log.warning("Could not get page data for {}: {}", event.url, exc)
            raise CaptureAbortedError("page_data_unavailable") from exc
        if page_data is None:
            self._log.warning("Could not get page data for {}", event.url)
            raise CaptureAbortedError("page_data_unavailable")

        color = await asyncio.to_thread(
            dominant_color, screenshot, self._config.sample_half_width
        )
        record = PageRecord(
            url=event.url,
            title=event.title or "Untitled",
            domain=decision.domain,
            timestamp=self._clock(),
            dominant_r=color.r,
            dominant_g=color.g,
            dominant_b=color.b,
            text_content=(page_data.text_content or "")[: self._config.text_limit],
            has_images=bool(page_data.has_images),
            has_videos=bool(page_data.has_videos),
            has_code=bool(page_data.has_code),
        )
        page_id = await self._engine.save(record, screenshot)
        self._log.info("Captured: {}", record.title)
        return page_id
