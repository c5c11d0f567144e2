"""Persistence helpers for settings.json.

The settings file is the installation's key-value store: user preferences
(``enabled``, ``daysToKeep``, ``excludeIncognito``, ``excludeDomains``,
``captureInterval``) and the exported encryption key live side by side in it.
"""

from __future__ import annotations

import asyncio
import json
import os
import re
import uuid
from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import SettingsError
from .logging_utils import get_logger

ENCRYPTION_KEY = "encryptionKey"

_DOMAIN_RE = re.compile(r"^([a-z0-9]+(-[a-z0-9]+)*\.)+[a-z]{2,}$", re.IGNORECASE)


class CaptureSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = True
    days_to_keep: int = Field(30, alias="daysToKeep", ge=1)
    exclude_incognito: bool = Field(True, alias="excludeIncognito")
    exclude_domains: list[str] = Field(default_factory=list, alias="excludeDomains")
    capture_interval: int = Field(3000, alias="captureInterval", ge=0)

    def to_store(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def read_settings(path: Path) -> dict[str, Any]:
    """Return the stored mapping; ``{}`` only when the file does not exist.

    An unreadable or corrupt file raises ``SettingsError`` so callers never
    mistake it for a fresh install and overwrite the key material in it.
    """

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as exc:
        raise SettingsError(f"Cannot read settings file {path}: {exc}") from exc
    try:
        raw = json.loads(text)
    except ValueError as exc:
        raise SettingsError(f"Settings file {path} is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise SettingsError(f"Settings file {path} does not hold a JSON object")
    return raw


def write_settings(path: Path, settings: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".tmp-{path.name}-{uuid.uuid4().hex}")
    try:
        with tmp_path.open("w", encoding="utf-8") as handle:
            handle.write(_safe_json(settings))
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    finally:
        tmp_path.unlink(missing_ok=True)



def _safe_json(value: dict[str, Any]) -> str:
    return json.dumps(value, ensure_ascii=False, indent=2)


def normalize_domain(domain: str) -> str:
    value = (domain or "").strip().lower()
    if not value:
        raise ValueError("Please enter a domain")
    if not _DOMAIN_RE.match(value):
        raise ValueError(f"Invalid domain: {value!r} (expected e.g. example.com)")
    return value


class SettingsStore:
    """Async key-value facade over a JSON settings file."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._log = get_logger("settings")

    @property
    def path(self) -> Path:
        return self._path

    async def get(self, keys: Optional[Iterable[str]] = None) -> dict[str, Any]:
        data = await asyncio.to_thread(read_settings, self._path)
        if keys is None:
            return data
        return {key: data[key] for key in keys if key in data}

    async def set(self, values: dict[str, Any]) -> None:
        def _update() -> None:
            current = read_settings(self._path)
            current.update(values)
            write_settings(self._path, current)

        await asyncio.to_thread(_update)

    async def remove(self, keys: Iterable[str]) -> None:
        names = list(keys)

        def _update() -> None:
            current = read_settings(self._path)
            for name in names:
                current.pop(name, None)
            write_settings(self._path, current)

        await asyncio.to_thread(_update)

    async def clear(self) -> None:
        await asyncio.to_thread(self._path.unlink, missing_ok=True)
        self._log.info("Settings store cleared")

    async def install_defaults(self) -> CaptureSettings:
        """Write default preferences for keys not already present."""

        defaults = CaptureSettings().to_store()
        stored = await self.get()
        missing = {key: value for key, value in defaults.items() if key not in stored}
        if missing:
            await self.set(missing)
            self._log.info("Installed default settings: {}", sorted(missing))
        return CaptureSettings.model_validate({**defaults, **stored})

    async def load_settings(self) -> CaptureSettings:
        stored = await self.get(CaptureSettings().to_store().keys())
        return CaptureSettings.model_validate(stored)

    async def update_preferences(
        self,
        *,
        enabled: bool | None = None,
        days_to_keep: int | None = None,
        exclude_incognito: bool | None = None,
    ) -> CaptureSettings:
        current = await self.load_settings()
        updates: dict[str, Any] = {}
        if enabled is not None:
            updates["enabled"] = enabled
        if days_to_keep is not None:
            updates["daysToKeep"] = days_to_keep
        if exclude_incognito is not None:
            updates["excludeIncognito"] = exclude_incognito
        merged = CaptureSettings.model_validate({**current.to_store(), **updates})
        if updates:
            await self.set(updates)
        return merged

    async def add_excluded_domain(self, domain: str) -> list[str]:
        value = normalize_domain(domain)
        current = await self.load_settings()
        if value in current.exclude_domains:
            raise ValueError(f"Domain already excluded: {value}")
        domains = [*current.exclude_domains, value]
        await self.set({"excludeDomains": domains})
        self._log.info("{} will no longer be captured", value)
        return domains

    async def remove_excluded_domain(self, domain: str) -> list[str]:
        value = (domain or "").strip().lower()
        current = await self.load_settings()
        domains = [item for item in current.exclude_domains if item != value]
        await self.set({"excludeDomains": domains})
        return domains
