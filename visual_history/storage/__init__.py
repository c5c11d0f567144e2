"""Storage, search and retention helpers."""

from .database import DatabaseManager
from .engine import EngineState, StorageEngine
from .models import Base, PageRecord, ScreenshotBlob
from .retention import RetentionScheduler
from .search import SearchFilter, color_distance, filter_pages

__all__ = [
    "DatabaseManager",
    "EngineState",
    "StorageEngine",
    "Base",
    "PageRecord",
    "ScreenshotBlob",
    "RetentionScheduler",
    "SearchFilter",
    "color_distance",
    "filter_pages",
]
