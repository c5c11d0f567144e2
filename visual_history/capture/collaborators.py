"""Contracts for the browser-side collaborators the orchestrator depends on."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class NavigationEvent:
    """A tab finished loading ``url``."""

    url: str
    title: str | None
    window_id: int
    tab_id: int
    incognito: bool = False


@dataclass(frozen=True)
class PageData:
    text_content: str = ""
    has_images: bool = False
    has_videos: bool = False
    has_code: bool = False


class ScreenshotSource(Protocol):
    async def capture_visible(self, window_id: int, *, fmt: str, quality: int) -> bytes:
        """Return a compressed image of the window's visible tab."""


class PageDataSource(Protocol):
    async def get_page_data(self, tab_id: int) -> PageData | None:
        """Return extracted page metadata; raise when the page cannot answer."""
