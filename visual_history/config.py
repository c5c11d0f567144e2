"""Configuration loading and validation using Pydantic models."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, model_validator


def _default_data_dir() -> Path:
    base = os.environ.get("VISUAL_HISTORY_HOME")
    if base:
        return Path(base)
    return Path.home() / ".visual_history"


class DatabaseConfig(BaseModel):
    url: Optional[str] = Field(
        None,
        description="SQLAlchemy URL; defaults to a SQLite file under data_dir.",
    )
    echo: bool = False


class KeyStoreConfig(BaseModel):
    settings_path: Optional[Path] = Field(
        None,
        description="JSON key-value store holding preferences and exported key material.",
    )


class CaptureConfig(BaseModel):
    screenshot_format: str = Field("jpeg", description="Compressed screenshot format.")
    screenshot_quality: int = Field(60, ge=1, le=100)
    text_limit: int = Field(5000, ge=1, description="Maximum stored text excerpt length.")
    sample_half_width: int = Field(
        50, ge=1, description="Half-width of the centered dominant color window."
    )


class RetentionConfig(BaseModel):
    interval_s: float = Field(86400.0, gt=0, description="Scheduled cleanup period.")
    default_days_to_keep: int = Field(30, ge=1)
    run_on_start: bool = True


class SearchConfig(BaseModel):
    default_limit: int = Field(50, ge=0, description="Result cap when a query names no limit.")
    color_threshold: float = Field(
        50.0, gt=0, description="Euclidean RGB distance below which colors match."
    )


class APIConfig(BaseModel):
    host: str = Field("127.0.0.1")
    port: int = Field(5274, ge=1024, le=65535)


class LoggingConfig(BaseModel):
    level: str = Field("INFO")
    log_dir: Optional[Path] = None


class AppConfig(BaseModel):
    data_dir: Path = Field(default_factory=_default_data_dir)
    database: DatabaseConfig = DatabaseConfig()
    keystore: KeyStoreConfig = KeyStoreConfig()
    capture: CaptureConfig = CaptureConfig()
    retention: RetentionConfig = RetentionConfig()
    search: SearchConfig = SearchConfig()
    api: APIConfig = APIConfig()
    logging: LoggingConfig = LoggingConfig()

    @model_validator(mode="after")
    def _derive_paths(self) -> "AppConfig":
        if self.database.url is None:
            self.database.url = f"sqlite:///{self.data_dir / 'history.db'}"
        if self.keystore.settings_path is None:
            self.keystore.settings_path = self.data_dir / "settings.json"
        return self


def load_config(path: Path | str | None) -> AppConfig:
    """Load YAML configuration from disk; a missing file yields defaults."""

    if path is None:
        return AppConfig()
    config_path = Path(path)
    if not config_path.exists():
        return AppConfig()
    with config_path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    return AppConfig.model_validate(data)
