"""Audio transcription helper built on OpenAI's transcription models."""

import logging
from pathlib import Path

from openai import AsyncOpenAI

TRANSCRIBE_MODEL = "whisper-1"


class DictationService:
    """Create text transcriptions from audio recordings."""

    def __init__(self, client: AsyncOpenAI, model: str = TRANSCRIBE_MODEL) -> None:
        """Initialize the service with a shared OpenAI client."""
        if client is None:
            raise ValueError("OpenAI client is required for dictation.")
        self.client = client
        self.model = model

    async def transcribe(self, audio_path: str) -> str:
        """Transcribe an audio file on disk into whitespace-trimmed text."""
        path = Path(audio_path)
        if not path.is_file():
            raise FileNotFoundError(f"Audio file not found: {audio_path}")

        with path.open("rb") as fh:
            try:
                response = await self.client.audio.transcriptions.create(
                    model=self.model,
                    file=fh,
                )
            except Exception as exc:
                logging.error("OpenAI transcription request failed: %s", exc)
                raise

        transcript = getattr(response, "text", None)
        if not transcript:
            raise RuntimeError("Transcription response did not include text.")
        return transcript.strip()
