"""Visual browsing history: encrypted screenshots plus searchable page metadata."""

from __future__ import annotations

from .config import AppConfig, load_config
from .logging_utils import configure_logging, get_logger

__version__ = "0.1.0"

__all__ = [
    "AppConfig",
    "load_config",
    "configure_logging",
    "get_logger",
]
