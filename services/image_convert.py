"""Image normalisation for the variation endpoint.

The variation API only accepts square PNG files with an alpha channel,
so incoming chat images (usually JPEG) are converted before upload.

Public class: `VariationImageConverter`

Example:
    converter = VariationImageConverter()
    png_bytes = converter.to_square_png(raw_jpeg_bytes)
"""
from __future__ import annotations

import base64
import io

from PIL import Image

MAX_VARIATION_BYTES = 4 * 1024 * 1024


class VariationImageConverter:
    """Convert arbitrary image bytes into a square RGBA PNG.

    Args:
        max_side: Longest side of the output image in pixels.
    """

    def __init__(self, max_side: int = 1024):
        self.max_side = max_side

    def to_square_png(self, data: bytes) -> bytes:
        """Return PNG bytes of the image centred on a transparent square canvas.

        Raises:
            ValueError: If the bytes are not an image, or the result exceeds
                the 4 MB limit of the variation endpoint.
        """
        try:
            src = Image.open(io.BytesIO(data))
            src.load()
        except Exception as exc:
            raise ValueError("Unable to parse image, please send the original image and try again") from exc

        src = src.convert("RGBA")
        src.thumbnail((self.max_side, self.max_side), Image.LANCZOS)

        side = max(src.size)
        canvas = Image.new("RGBA", (side, side), (0, 0, 0, 0))
        canvas.paste(src, ((side - src.width) // 2, (side - src.height) // 2))

        out_io = io.BytesIO()
        canvas.save(out_io, format="PNG", optimize=True)
        out_bytes = out_io.getvalue()
        if len(out_bytes) > MAX_VARIATION_BYTES:
            raise ValueError("Image is larger than 4 MB after conversion")
        return out_bytes


def to_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("utf-8")
