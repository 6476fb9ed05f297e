"""Session domain models for chat conversations."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class SessionMode(str, Enum):
	"""Behavioral interpretation of a session."""

	CHAT = "chat"
	PICTURE_CREATE = "picture_create"
	VISION = "vision"
	ROLE_PLAY = "role_play"


class PicResolution(str, Enum):
	"""Image sizes accepted by the image generation endpoints."""

	R256 = "256x256"
	R512 = "512x512"
	R1024 = "1024x1024"
	R1792_WIDE = "1792x1024"
	R1792_TALL = "1024x1792"


class PicStyle(str, Enum):
	VIVID = "vivid"
	NATURAL = "natural"


class VisionDetail(str, Enum):
	HIGH = "high"
	LOW = "low"


# Sampling temperatures behind the user-facing "AI mode" names.
AI_MODES: Dict[str, float] = {
	"Rigorous": 0.1,
	"Concise": 0.7,
	"Standard": 1.2,
	"Creative": 1.7,
}
AI_MODE_NAMES: List[str] = list(AI_MODES.keys())
DEFAULT_AI_MODE = AI_MODES["Standard"]


@dataclass
class SessionMessage:
	"""One entry of a conversation history."""

	role: str
	content: str
	created_at: float = field(default_factory=lambda: time.time())

	def to_payload(self) -> Dict[str, str]:
		"""Return the role/content mapping sent to the chat backend."""
		return {"role": self.role, "content": self.content}


@dataclass
class SessionSettings:
	"""Mode-specific settings kept per session."""

	pic_resolution: PicResolution = PicResolution.R256
	pic_style: PicStyle = PicStyle.VIVID
	vision_detail: VisionDetail = VisionDetail.LOW
	ai_mode: float = DEFAULT_AI_MODE


@dataclass
class SessionState:
	"""In-memory state of one conversation thread."""

	session_id: str
	mode: SessionMode = SessionMode.CHAT
	messages: List[SessionMessage] = field(default_factory=list)
	settings: SessionSettings = field(default_factory=SessionSettings)
	updated_at: float = field(default_factory=lambda: time.time())


def has_system_role(messages: List[SessionMessage]) -> bool:
	"""Return True when any message in the history is a system prompt."""
	return any(msg.role == "system" for msg in messages)


def ai_mode_name(temperature: float) -> Optional[str]:
	"""Return the AI mode name for a temperature, if it is a known one."""
	for name, value in AI_MODES.items():
		if value == temperature:
			return name
	return None
