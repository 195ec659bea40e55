from __future__ import annotations

import io

import pytest
from conftest import make_image_bytes
from PIL import Image

from upload_api.core.errors import TransformError
from upload_api.services.images import ImageTransformer, content_type_for_format


def _open(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


def test_resize_forces_both_dimensions() -> None:
    out = ImageTransformer().resize_and_encode(
        make_image_bytes(width=120, height=30), width=300, height=300, format="PNG"
    )
    image = _open(out)
    assert image.format == "PNG"
    assert image.size == (300, 300)


def test_transparency_survives_png_encoding() -> None:
    out = ImageTransformer().resize_and_encode(
        make_image_bytes(mode="RGBA"), width=300, height=300, format="PNG"
    )
    assert _open(out).mode == "RGBA"


def test_jpeg_output_drops_alpha() -> None:
    out = ImageTransformer().resize_and_encode(
        make_image_bytes(mode="RGBA"), width=20, height=20, format="jpg"
    )
    image = _open(out)
    assert image.format == "JPEG"
    assert image.mode == "RGB"


def test_undecodable_bytes_raise_transform_error() -> None:
    with pytest.raises(TransformError):
        ImageTransformer().resize_and_encode(b"\x89PNG garbage", width=300, height=300, format="PNG")


def test_content_type_for_format() -> None:
    assert content_type_for_format("PNG") == "image/png"
    assert content_type_for_format("jpg") == "image/jpeg"
