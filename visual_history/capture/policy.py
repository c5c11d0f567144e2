"""Capture policy evaluation for navigation events."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlsplit

from ..logging_utils import get_logger
from ..settings_store import CaptureSettings
from .collaborators import NavigationEvent

_ALLOWED_SCHEMES = {"http", "https"}


@dataclass(frozen=True)
class PolicyDecision:
    allowed: bool
    reason: str | None = None
    domain: str | None = None


class CapturePolicy:
    def __init__(self) -> None:
        self._log = get_logger("capture.policy")

    def evaluate(self, event: NavigationEvent, settings: CaptureSettings) -> PolicyDecision:
        if not settings.enabled:
            return PolicyDecision(False, reason="disabled")
        if settings.exclude_incognito and event.incognito:
            return PolicyDecision(False, reason="incognito")
        try:
            parts = urlsplit(event.url or "")
            hostname = parts.hostname
        except ValueError as exc:
            self._log.debug("Unparseable url {}: {}", event.url, exc)
            return PolicyDecision(False, reason="invalid_url")
        if parts.scheme.lower() not in _ALLOWED_SCHEMES:
            return PolicyDecision(False, reason="scheme")
        if not hostname:
            return PolicyDecision(False, reason="invalid_url")
        excluded = {domain.lower() for domain in settings.exclude_domains}
        if hostname in excluded:
            return PolicyDecision(False, reason="excluded_domain", domain=hostname)
        return PolicyDecision(True, domain=hostname)
