"""State of one streaming request/response cycle."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Outcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"


@dataclass
class StreamingExchange:
    """Accumulated answer, card handle and completion signal of one exchange.

    ``finish`` is the only way to set the completion signal and only its
    first call has any effect, so the exchange reaches exactly one outcome.
    """

    card_id: str
    new_topic: bool
    answer: str = ""
    outcome: Optional[Outcome] = None
    done: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def finished(self) -> bool:
        return self.done.is_set()

    def append(self, fragment: str) -> None:
        if not self.finished:
            self.answer += fragment

    def finish(self, outcome: Outcome) -> bool:
        """Record the terminal outcome; return False if one was already set."""
        if self.done.is_set():
            return False
        self.outcome = outcome
        self.done.set()
        return True
