"""Shared types of the message policy chain."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from services.audio_transcoder import AudioTranscoder
from services.image_convert import VariationImageConverter
from services.message_cache import MessageCache
from services.role_catalog import RoleCatalog
from services.session_store import SessionStore


class PolicyResult(str, Enum):
	"""Whether the chain moves on to the next policy."""

	CONTINUE = "continue"
	HALT = "halt"


@dataclass
class HandlerDeps:
	"""Collaborators handed to every policy and card action.

	Built once in the application lifespan; tests assemble one from fakes.
	The messenger and model services are typed loosely so in-memory fakes
	can stand in for the Lark and OpenAI clients.
	"""

	store: SessionStore
	message_cache: MessageCache
	messenger: Any
	chat: Any
	images: Any
	vision: Any
	dictation: Any
	balance: Any
	orchestrator: Any
	roles: RoleCatalog
	transcoder: AudioTranscoder
	image_converter: VariationImageConverter
	bot_name: str = ""
	stream_mode: bool = True
	azure_on: bool = False
