"""Action-tagged request/response protocol over the storage engine."""

from __future__ import annotations

from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ConfigDict, Field

from ..image_utils import encode_data_url
from ..logging_utils import get_logger
from ..storage.engine import StorageEngine
from ..storage.search import DEFAULT_LIMIT, SearchFilter

UNKNOWN_ACTION = "Unknown action"

Handler = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


class ScreenshotRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    page_id: str = Field(alias="pageId")


class CleanupRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    days_to_keep: int = Field(30, alias="daysToKeep", ge=0)


class CommandDispatcher:
    """Route ``{"action": ...}`` messages to storage operations.

    Unknown actions answer ``{"error": ...}``. Any other failure propagates to
    the caller, which reports it as a rejected response.
    """

    def __init__(
        self,
        engine: StorageEngine,
        screenshot_mime: str = "image/jpeg",
        default_limit: int = DEFAULT_LIMIT,
    ) -> None:
        self._engine = engine
        self._screenshot_mime = screenshot_mime
        self._default_limit = default_limit
        self._log = get_logger("api.dispatch")
        self._handlers: dict[str, Handler] = {
            "search": self._search,
            "getScreenshot": self._get_screenshot,
            "getStats": self._get_stats,
            "cleanOldEntries": self._clean_old_entries,
            "deleteAllData": self._delete_all_data,
        }

    @property
    def actions(self) -> list[str]:
        return sorted(self._handlers)

    async def handle(self, message: Any) -> dict[str, Any]:
        action = message.get("action") if isinstance(message, dict) else None
        handler = self._handlers.get(action) if isinstance(action, str) else None
        if handler is None:
            self._log.debug("Rejected message with action {!r}", action)
            return {"error": UNKNOWN_ACTION}
        await self._engine.ensure_ready()
        return await handler(message)

    async def _search(self, message: dict[str, Any]) -> dict[str, Any]:
        raw = message.get("query")
        if raw is None:
            raw = {key: value for key, value in message.items() if key != "action"}
        if isinstance(raw, dict) and "limit" not in raw:
            raw = {**raw, "limit": self._default_limit}
        query = SearchFilter.model_validate(raw)
        records = await self._engine.search(query)
        return {"results": [record.to_dict() for record in records]}

    async def _get_screenshot(self, message: dict[str, Any]) -> dict[str, Any]:
        request = ScreenshotRequest.model_validate(message)
        image = await self._engine.get_screenshot(request.page_id)
        if image is None:
            return {"screenshot": None}
        return {"screenshot": encode_data_url(image, self._screenshot_mime)}

    async def _get_stats(self, message: dict[str, Any]) -> dict[str, Any]:
        return {"stats": await self._engine.get_stats()}

    async def _clean_old_entries(self, message: dict[str, Any]) -> dict[str, Any]:
        request = CleanupRequest.model_validate(message)
        deleted = await self._engine.clean_old_entries(request.days_to_keep)
        return {"deleted": deleted}

    async def _delete_all_data(self, message: dict[str, Any]) -> dict[str, Any]:
        await self._engine.delete_all_data()
        return {"success": True}
