"""Prompt helpers for chat and vision requests."""

from __future__ import annotations

import time
from typing import List, Optional

from models.session_models import SessionMessage, has_system_role


def default_system_prompt(today: Optional[str] = None) -> str:
    """Return the system prompt used when a conversation has none."""
    today = today or time.strftime("%Y%m%d")
    return (
        "You are ChatGPT, a large language model trained by OpenAI. "
        "Answer as concisely as possible. Knowledge cutoff: 20230601 "
        f"Current date {today}"
    )


def with_default_prompt(messages: List[SessionMessage]) -> List[SessionMessage]:
    """Return the history with the default system prompt first, when absent."""
    if has_system_role(messages):
        return list(messages)
    return [SessionMessage(role="system", content=default_system_prompt()), *messages]


def vision_default_question() -> str:
    """Return the question asked when an image arrives without text."""
    return "Describe the content of this image in detail."
