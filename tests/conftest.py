from __future__ import annotations

import io
import sys
from pathlib import Path

import httpx
import pytest
from PIL import Image

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from visual_history.config import AppConfig, DatabaseConfig  # noqa: E402
from visual_history.settings_store import SettingsStore  # noqa: E402
from visual_history.storage.engine import StorageEngine  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def async_client_factory():
    def _factory(app):
        transport = httpx.ASGITransport(app=app)
        return httpx.AsyncClient(transport=transport, base_url="http://testserver")

    return _factory


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    return AppConfig(data_dir=tmp_path)


@pytest.fixture
def settings_store(tmp_path: Path) -> SettingsStore:
    return SettingsStore(tmp_path / "settings.json")


@pytest.fixture
def db_config(tmp_path: Path) -> DatabaseConfig:
    return DatabaseConfig(url=f"sqlite:///{tmp_path / 'history.db'}")


@pytest.fixture
def engine(db_config: DatabaseConfig, settings_store: SettingsStore) -> StorageEngine:
    return StorageEngine(db_config, settings_store)


@pytest.fixture
def image_factory():
    def _make(color=(10, 20, 30), size=(64, 48), fmt: str = "PNG") -> bytes:
        buffer = io.BytesIO()
        Image.new("RGB", size, color).save(buffer, format=fmt)
        return buffer.getvalue()

    return _make
