from __future__ import annotations

import io

from PIL import Image, UnidentifiedImageError

from upload_api.core.errors import TransformError

# Modes Pillow can write as PNG without conversion.
_PNG_MODES = {"1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA"}


class ImageTransformer:
    def resize_and_encode(self, data: bytes, *, width: int, height: int, format: str) -> bytes:
        """Force ``data`` to ``width`` x ``height`` and re-encode it as ``format``.

        Aspect ratio is not preserved. Raises ``TransformError`` when the bytes
        cannot be decoded as an image.
        """
        try:
            with Image.open(io.BytesIO(data)) as image:
                image.load()
                resized = image.resize((width, height))
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise TransformError(f"Image could not be processed: {e}") from e

        fmt = "JPEG" if format.upper() == "JPG" else format.upper()
        if fmt == "PNG" and resized.mode not in _PNG_MODES:
            resized = resized.convert("RGBA")
        elif fmt == "JPEG" and resized.mode != "RGB":
            resized = resized.convert("RGB")

        buffer = io.BytesIO()
        try:
            resized.save(buffer, format=fmt)
        except (OSError, ValueError, KeyError) as e:
            raise TransformError(f"Image could not be encoded as {fmt}: {e}") from e
        return buffer.getvalue()


def content_type_for_format(format: str) -> str:
    fmt = format.lower()
    if fmt == "jpg":
        fmt = "jpeg"
    return f"image/{fmt}"
