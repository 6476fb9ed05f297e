"""Chat completion helpers built on the OpenAI chat completions API."""

from __future__ import annotations

import logging
import time
from typing import AsyncIterator, Dict, List

from openai import AsyncOpenAI

from models.session_models import SessionMessage

LOGGER = logging.getLogger(__name__)


def _payload(messages: List[SessionMessage]) -> List[Dict[str, str]]:
    return [message.to_payload() for message in messages]


class ChatService:
    """Send conversation histories to the chat model, whole or streamed."""

    def __init__(self, client: AsyncOpenAI, model: str, max_tokens: int = 2000) -> None:
        if client is None:
            raise ValueError("OpenAI AsyncOpenAI client is required.")
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    async def complete_chat(self, messages: List[SessionMessage], temperature: float) -> SessionMessage:
        """Return the assistant reply for a conversation history.

        Args:
            messages: Full history, system prompt and latest user turn included.
            temperature: Sampling temperature taken from the session AI mode.

        Returns:
            The assistant message.

        Raises:
            RuntimeError: If the backend returns no choices.
        """
        start = time.time()
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=_payload(messages),
                max_tokens=self.max_tokens,
                temperature=temperature,
                top_p=1,
                frequency_penalty=0,
                presence_penalty=0,
            )
        except Exception as exc:
            LOGGER.error("OpenAI chat completion failed: %s", exc)
            raise

        if not response.choices:
            raise RuntimeError("openai request failed: no choices returned")
        message = response.choices[0].message
        LOGGER.info("Chat completion latency: %.3fs", time.time() - start)
        return SessionMessage(role=message.role or "assistant", content=message.content or "")

    async def stream_chat(self, messages: List[SessionMessage], temperature: float) -> AsyncIterator[str]:
        """Yield answer fragments in the order the backend emits them."""
        stream = await self.client.chat.completions.create(
            model=self.model,
            messages=_payload(messages),
            max_tokens=self.max_tokens,
            temperature=temperature,
            top_p=1,
            stream=True,
        )
        async for chunk in stream:
            if not chunk.choices:
                continue
            fragment = chunk.choices[0].delta.content
            if fragment:
                yield fragment
