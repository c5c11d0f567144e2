"""Image helper utilities for dominant color sampling and data URLs."""

from __future__ import annotations

import base64
import binascii
import io
import math
import re
from dataclasses import dataclass
from typing import Any, Mapping

import numpy as np
from PIL import Image

from .logging_utils import get_logger

_HEX_RE = re.compile(r"^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$", re.IGNORECASE)
_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w/+.-]+)?(?:;[\w=.-]+)*;base64,(?P<data>.*)$", re.DOTALL)

_log = get_logger("image")


@dataclass(frozen=True)
class RGB:
    r: int
    g: int
    b: int

    def to_dict(self) -> dict[str, int]:
        return {"r": self.r, "g": self.g, "b": self.b}


NEUTRAL_GRAY = RGB(128, 128, 128)


def ensure_rgb(image: np.ndarray) -> np.ndarray:
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError("Expected RGB image with shape HxWx3")
    if image.dtype != np.uint8:
        image = image.astype(np.uint8)
    return np.ascontiguousarray(image)


def decode_image(data: bytes) -> np.ndarray:
    """Decode compressed image bytes into an HxWx3 uint8 array."""

    with Image.open(io.BytesIO(data)) as img:
        img.load()
        rgb = img.convert("RGB")
    return ensure_rgb(np.asarray(rgb))


def center_window(pixels: np.ndarray, half_width: int = 50) -> np.ndarray:
    """Return the square window centered on the image, clipped to its bounds."""

    height, width = pixels.shape[:2]
    cx, cy = width // 2, height // 2
    top, bottom = max(0, cy - half_width), min(height, cy + half_width)
    left, right = max(0, cx - half_width), min(width, cx + half_width)
    return pixels[top:bottom, left:right]


def dominant_color(data: bytes, half_width: int = 50) -> RGB:
    """Mean RGB color of the centered sample window.

    Undecodable input yields the neutral gray sentinel instead of an error.
    """

    try:
        pixels = decode_image(data)
    except Exception as exc:
        _log.debug("Dominant color fallback; image not decodable: {}", exc)
        return NEUTRAL_GRAY
    window = center_window(pixels, half_width)
    if window.size == 0:
        return NEUTRAL_GRAY
    means = window.reshape(-1, 3).mean(axis=0)
    r, g, b = (_round_half_up(value) for value in means)
    return RGB(r, g, b)


def parse_color(value: Any) -> RGB:
    """Accept ``{r, g, b}`` mappings, ``RGB`` or ``#rrggbb`` strings."""

    if isinstance(value, RGB):
        return value
    if isinstance(value, str):
        match = _HEX_RE.match(value.strip())
        if not match:
            raise ValueError(f"Invalid hex color: {value!r}")
        r, g, b = (int(part, 16) for part in match.groups())
        return RGB(r, g, b)
    if isinstance(value, Mapping):
        try:
            channels = [int(value[name]) for name in ("r", "g", "b")]
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Invalid color mapping: {value!r}") from exc
        if any(channel < 0 or channel > 255 for channel in channels):
            raise ValueError(f"Color channels must be within 0-255: {value!r}")
        return RGB(*channels)
    raise ValueError(f"Unsupported color value: {value!r}")


def encode_data_url(data: bytes, mime: str = "image/jpeg") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def decode_data_url(value: str) -> bytes:
    match = _DATA_URL_RE.match(value or "")
    if not match:
        raise ValueError("Expected a base64 data URL")
    try:
        return base64.b64decode(match.group("data"), validate=True)
    except binascii.Error as exc:
        raise ValueError("Data URL payload is not valid base64") from exc


def _round_half_up(value: float) -> int:
    return max(0, min(255, int(math.floor(float(value) + 0.5))))
