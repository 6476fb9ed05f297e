"""Image generation and variation through the OpenAI images API."""

import logging
import time
from typing import Optional

from openai import AsyncOpenAI

from models.session_models import PicResolution, PicStyle

VARIATION_MODEL = "dall-e-2"
# Variations are only produced by dall-e-2, which knows square sizes only.
VARIATION_SIZES = {PicResolution.R256.value, PicResolution.R512.value, PicResolution.R1024.value}


class ImageService:
    """Create images from prompts or from an existing picture."""

    def __init__(self, client: AsyncOpenAI, model: str = "dall-e-3") -> None:
        if client is None:
            raise ValueError("OpenAI client must be provided.")
        self.client = client
        self.model = model

    async def generate_image(self, prompt: str, resolution: PicResolution, style: Optional[PicStyle] = None) -> str:
        """Generate one image and return it base64-encoded.

        Args:
            prompt: Text describing the picture.
            resolution: Requested size, e.g. ``1024x1024``.
            style: ``vivid`` or ``natural``; only sent to models supporting it.

        Returns:
            The base64 PNG payload returned by the API.
        """
        if not prompt.strip():
            raise ValueError("An image prompt is required.")
        start = time.time()
        params = {
            "model": self.model,
            "prompt": prompt,
            "size": PicResolution(resolution).value,
            "n": 1,
            "response_format": "b64_json",
        }
        if style is not None and self.model.startswith("dall-e-3"):
            params["style"] = PicStyle(style).value
        try:
            response = await self.client.images.generate(**params)
        except Exception as exc:
            logging.error("OpenAI image generation failed: %s", exc)
            raise
        logging.info("Image generation latency: %.3fs", time.time() - start)
        return self._first_b64(response)

    async def generate_image_variation(self, png_bytes: bytes, resolution: PicResolution) -> str:
        """Return a base64 variation of a square RGBA PNG."""
        if not png_bytes:
            raise ValueError("png_bytes must contain image data.")
        size = PicResolution(resolution).value
        if size not in VARIATION_SIZES:
            size = PicResolution.R1024.value
        try:
            response = await self.client.images.create_variation(
                model=VARIATION_MODEL,
                image=("image.png", png_bytes, "image/png"),
                n=1,
                size=size,
                response_format="b64_json",
            )
        except Exception as exc:
            logging.error("OpenAI image variation failed: %s", exc)
            raise
        return self._first_b64(response)

    @staticmethod
    def _first_b64(response) -> str:
        data = getattr(response, "data", None) or []
        if not data or not getattr(data[0], "b64_json", None):
            raise RuntimeError("Image response did not include image data.")
        return data[0].b64_json
