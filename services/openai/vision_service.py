"""Image reasoning via multimodal chat completions."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Sequence

from openai import AsyncOpenAI

from models.session_models import VisionDetail
from services.openai.prompts import vision_default_question

LOGGER = logging.getLogger(__name__)


def to_image_data_url(image_b64: str) -> str:
    """Wrap base64 image data into a data URL suitable for vision input."""
    return f"data:image/jpeg;base64,{image_b64}"


def build_vision_messages(question: str, images_b64: Sequence[str], detail: VisionDetail) -> List[Dict[str, Any]]:
    """Compose one user message holding the question and every image."""
    content: List[Dict[str, Any]] = [{"type": "text", "text": question or vision_default_question()}]
    for image_b64 in images_b64:
        content.append(
            {
                "type": "image_url",
                "image_url": {"url": to_image_data_url(image_b64), "detail": VisionDetail(detail).value},
            }
        )
    return [{"role": "user", "content": content}]


class VisionService:
    """Ask the vision model about one or more images."""

    def __init__(self, client: AsyncOpenAI, model: str, max_tokens: int = 2000) -> None:
        if client is None:
            raise ValueError("AsyncOpenAI client is required.")
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    async def analyze(self, question: str, images_b64: Sequence[str], detail: VisionDetail) -> str:
        """Return the model's answer about the supplied images."""
        if not images_b64:
            raise ValueError("At least one image is required for vision analysis.")
        start = time.time()
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=build_vision_messages(question, images_b64, detail),
                max_tokens=self.max_tokens,
            )
        except Exception as exc:
            LOGGER.error("OpenAI vision request failed: %s", exc)
            raise
        if not response.choices:
            raise RuntimeError("Vision response did not include any choices.")
        LOGGER.info("Vision latency: %.3fs", time.time() - start)
        return response.choices[0].message.content or ""
