"""Capture subsystem entry points and helpers."""

from .collaborators import NavigationEvent, PageData, PageDataSource, ScreenshotSource
from .orchestrator import CaptureOrchestrator
from .policy import CapturePolicy, PolicyDecision

__all__ = [
    "CaptureOrchestrator",
    "CapturePolicy",
    "PolicyDecision",
    "NavigationEvent",
    "PageData",
    "PageDataSource",
    "ScreenshotSource",
]
