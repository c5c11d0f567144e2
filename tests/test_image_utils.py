from __future__ import annotations

import io

import numpy as np
import pytest
from PIL import Image

from visual_history.image_utils import (
    NEUTRAL_GRAY,
    RGB,
    center_window,
    decode_data_url,
    dominant_color,
    encode_data_url,
    parse_color,
)


def _png(array: np.ndarray) -> bytes:
    buffer = io.BytesIO()
    Image.fromarray(array).save(buffer, format="PNG")
    return buffer.getvalue()


def test_solid_image_returns_its_color(image_factory) -> None:
    assert dominant_color(image_factory(color=(200, 100, 50), size=(300, 200))) == RGB(200, 100, 50)


def test_undecodable_image_returns_gray_sentinel() -> None:
    assert dominant_color(b"definitely not an image") == RGB(128, 128, 128)
    assert dominant_color(b"") == NEUTRAL_GRAY


def test_truncated_jpeg_returns_gray_sentinel(image_factory) -> None:
    jpeg = image_factory(color=(0, 0, 0), size=(200, 200), fmt="JPEG")
    assert dominant_color(jpeg[: len(jpeg) // 3]) == NEUTRAL_GRAY


def test_samples_center_window_only() -> None:
    pixels = np.zeros((400, 400, 3), dtype=np.uint8)
    pixels[150:250, 150:250] = (255, 255, 255)

    assert dominant_color(_png(pixels)) == RGB(255, 255, 255)


def test_window_is_clipped_to_small_images() -> None:
    pixels = np.zeros((10, 20, 3), dtype=np.uint8)
    pixels[:, :10] = (100, 0, 0)
    pixels[:, 10:] = (200, 0, 0)

    assert center_window(pixels, 50).shape == (10, 20, 3)
    assert dominant_color(_png(pixels)) == RGB(150, 0, 0)


def test_mean_rounds_half_up() -> None:
    pixels = np.zeros((2, 2, 3), dtype=np.uint8)
    pixels[0, :] = (0, 1, 3)
    pixels[1, :] = (1, 2, 4)

    assert dominant_color(_png(pixels)) == RGB(1, 2, 4)


def test_parse_color_variants() -> None:
    assert parse_color("#1e90ff") == RGB(30, 144, 255)
    assert parse_color("1E90FF") == RGB(30, 144, 255)
    assert parse_color({"r": 1, "g": 2, "b": 3}) == RGB(1, 2, 3)
    for bad in ("#12345", {"r": 1, "g": 2}, {"r": 300, "g": 0, "b": 0}, 42):
        with pytest.raises(ValueError):
            parse_color(bad)


def test_data_url_helpers(image_factory) -> None:
    image = image_factory()
    url = encode_data_url(image)

    assert url.startswith("data:image/jpeg;base64,")
    assert decode_data_url(url) == image
    with pytest.raises(ValueError):
        decode_data_url("https://example.com/image.png")
