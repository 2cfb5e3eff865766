from __future__ import annotations

import io

import pytest
from PIL import Image, UnidentifiedImageError

from src.datatypes import ImageFormat
from src.frame_extract.render import encoders


@pytest.mark.parametrize(
    ("quality", "expected"),
    [(1.0, 100), (0.9, 90), (0.005, 1), (0.004, 1), (0.554, 55)],
)
def test_map_quality(quality: float, expected: int) -> None:
    assert encoders.map_quality(quality) == expected


def test_target_dimensions_floors_and_keeps_one_pixel() -> None:
    assert encoders.target_dimensions(1920, 1080, 1.0) == (1920, 1080)
    assert encoders.target_dimensions(1920, 1080, 0.5) == (960, 540)
    assert encoders.target_dimensions(101, 51, 0.5) == (50, 25)
    assert encoders.target_dimensions(64, 36, 0.01) == (1, 1)


@pytest.mark.parametrize(
    ("fmt", "pil_format"),
    [(ImageFormat.JPEG, "JPEG"), (ImageFormat.PNG, "PNG"), (ImageFormat.WEBP, "WEBP")],
)
def test_encode_image_round_trips_through_pillow(fmt: ImageFormat, pil_format: str) -> None:
    image = Image.new("RGB", (40, 20), (200, 30, 60))
    data = encoders.encode_image(image, fmt, 0.8)
    with Image.open(io.BytesIO(data)) as decoded:
        assert decoded.format == pil_format
        assert decoded.size == (40, 20)


def test_encode_jpeg_converts_alpha_images() -> None:
    image = Image.new("RGBA", (8, 8), (10, 20, 30, 128))
    data = encoders.encode_image(image, ImageFormat.JPEG, 0.9)
    assert encoders.decode_image(data).mode == "RGB"


def test_png_ignores_quality() -> None:
    image = Image.new("RGB", (16, 16), (1, 2, 3))
    assert encoders.encode_image(image, ImageFormat.PNG, 0.1) == encoders.encode_image(
        image, ImageFormat.PNG, 1.0
    )


def test_signature_is_stable_for_identical_rasters() -> None:
    first = Image.new("RGB", (32, 18), (90, 90, 90))
    second = Image.new("RGB", (32, 18), (90, 90, 90))
    assert encoders.signature_for(first) == encoders.signature_for(second)


def test_signature_differs_for_distinct_rasters() -> None:
    first = Image.new("RGB", (32, 18), (0, 0, 0))
    second = Image.new("RGB", (32, 18), (255, 255, 255))
    assert encoders.signature_for(first) != encoders.signature_for(second)


def test_decode_image_rejects_garbage() -> None:
    with pytest.raises(UnidentifiedImageError):
        encoders.decode_image(b"not an image")
