"""In-memory stand-ins for the Lark messenger and the OpenAI services."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from controllers.deps import HandlerDeps
from models.message_context import ChatType, MessageContext, MessageType
from models.session_models import SessionMessage
from services.audio_transcoder import AudioTranscoder
from services.image_convert import VariationImageConverter
from services.message_cache import MessageCache
from services.openai.balance_service import Balance
from services.role_catalog import Role, RoleCatalog
from services.session_store import SessionStore
from services.streaming.orchestrator import StreamingOrchestrator


def card_text(card: Dict[str, Any]) -> str:
    """Return the content of the first text block of a card."""
    for element in card.get("elements", []):
        for field in element.get("fields", []):
            return field["text"]["content"]
    return ""


class FakeMessenger:
    def __init__(self, patch_delay: float = 0.0) -> None:
        self.texts: List[Tuple[str, str]] = []
        self.replies: List[Tuple[str, str]] = []
        self.cards: List[Tuple[str, Dict[str, Any]]] = []
        self.patches: List[Tuple[str, Dict[str, Any]]] = []
        self.uploads: List[bytes] = []
        self.attachments: Dict[str, bytes] = {}
        self.fail_reply_card = False
        self.fail_fetch = False
        self.patch_delay = patch_delay
        self._in_flight = 0
        self.max_concurrent_patches = 0

    async def send_text(self, chat_id: str, text: str) -> None:
        self.texts.append((chat_id, text))

    async def reply_text(self, msg_id: str, text: str) -> None:
        self.replies.append((msg_id, text))

    async def reply_card(self, msg_id: str, card: Dict[str, Any]) -> str:
        if self.fail_reply_card:
            raise RuntimeError("reply rejected")
        self.cards.append((msg_id, card))
        return f"card-{len(self.cards)}"

    async def patch_card(self, card_id: str, card: Dict[str, Any]) -> None:
        self._in_flight += 1
        self.max_concurrent_patches = max(self.max_concurrent_patches, self._in_flight)
        try:
            if self.patch_delay:
                await asyncio.sleep(self.patch_delay)
            self.patches.append((card_id, card))
        finally:
            self._in_flight -= 1

    async def fetch_attachment(self, msg_id: str, file_key: str, kind: str) -> bytes:
        if self.fail_fetch:
            raise RuntimeError("download failed")
        return self.attachments.get(file_key, b"attachment")

    async def download_image(self, image_key: str) -> bytes:
        return self.attachments.get(image_key, b"image")

    async def upload_image(self, image_bytes: bytes) -> str:
        self.uploads.append(image_bytes)
        return f"img-{len(self.uploads)}"


class FakeChat:
    """Chat backend replaying scripted fragments.

    Args:
        fragments: Pieces yielded by ``stream_chat``.
        delay: Seconds slept before each fragment and before the error.
        error: Raised by ``stream_chat`` after the fragments, if set.
    """

    def __init__(self, fragments: Sequence[str] = (), delay: float = 0.0,
                 error: Optional[Exception] = None, reply: str = "Hi there") -> None:
        self.fragments = list(fragments)
        self.delay = delay
        self.error = error
        self.reply = reply
        self.calls: List[Tuple[List[SessionMessage], float]] = []

    async def complete_chat(self, messages: List[SessionMessage], temperature: float) -> SessionMessage:
        self.calls.append((list(messages), temperature))
        if self.error is not None:
            raise self.error
        return SessionMessage(role="assistant", content=self.reply)

    async def stream_chat(self, messages: List[SessionMessage], temperature: float):
        self.calls.append((list(messages), temperature))
        for fragment in self.fragments:
            if self.delay:
                await asyncio.sleep(self.delay)
            yield fragment
        if self.error is not None:
            if self.delay:
                await asyncio.sleep(self.delay)
            raise self.error


class FakeImages:
    def __init__(self) -> None:
        self.prompts: List[Tuple[str, Any, Any]] = []
        self.variations: List[Tuple[bytes, Any]] = []

    async def generate_image(self, prompt, resolution, style=None) -> str:
        self.prompts.append((prompt, resolution, style))
        return "aW1hZ2U="

    async def generate_image_variation(self, png_bytes, resolution) -> str:
        self.variations.append((png_bytes, resolution))
        return "dmFyaWF0aW9u"


class FakeVision:
    def __init__(self, answer: str = "A cat on a sofa") -> None:
        self.answer = answer
        self.calls: List[Tuple[str, List[str], Any]] = []

    async def analyze(self, question, images_b64, detail) -> str:
        self.calls.append((question, list(images_b64), detail))
        return self.answer


class FakeDictation:
    def __init__(self, text: str = "hello from audio", error: Optional[Exception] = None) -> None:
        self.text = text
        self.error = error

    async def transcribe(self, audio_path: str) -> str:
        if self.error is not None:
            raise self.error
        return self.text


class FakeBalance:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error

    async def get_balance(self) -> Balance:
        if self.error is not None:
            raise self.error
        return Balance(
            total_granted=18.0,
            total_used=3.5,
            total_available=14.5,
            effective_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            expires_at=datetime(2024, 4, 1, tzinfo=timezone.utc),
        )


class FakeTranscoder(AudioTranscoder):
    """Skips ffmpeg and hands the raw bytes' temp path straight through."""

    async def _run_ffmpeg(self, source: str, target: str) -> None:
        with open(source, "rb") as src, open(target, "wb") as dst:
            dst.write(src.read())


ROLES = RoleCatalog(
    [
        Role(title="Code Reviewer", content="You review code.", tags=["Programming"]),
        Role(title="Translator", content="You translate text.", tags=["Language", "Writing"]),
    ]
)


def make_deps(
    messenger: Optional[FakeMessenger] = None,
    chat: Optional[FakeChat] = None,
    stream_mode: bool = True,
    bot_name: str = "ChatBot",
    azure_on: bool = False,
    render_interval: float = 0.01,
    first_fragment_timeout: float = 1.0,
    **overrides: Any,
) -> HandlerDeps:
    messenger = messenger or FakeMessenger()
    chat = chat or FakeChat(["Hel", "lo"])
    store = overrides.pop("store", None) or SessionStore()
    deps = HandlerDeps(
        store=store,
        message_cache=MessageCache(),
        messenger=messenger,
        chat=chat,
        images=FakeImages(),
        vision=FakeVision(),
        dictation=FakeDictation(),
        balance=FakeBalance(),
        orchestrator=StreamingOrchestrator(
            messenger,
            chat,
            store,
            render_interval=render_interval,
            first_fragment_timeout=first_fragment_timeout,
        ),
        roles=ROLES,
        transcoder=FakeTranscoder(),
        image_converter=VariationImageConverter(),
        bot_name=bot_name,
        stream_mode=stream_mode,
        azure_on=azure_on,
    )
    for name, value in overrides.items():
        setattr(deps, name, value)
    return deps


def make_context(
    text: str = "",
    message_id: str = "om_1",
    session_id: Optional[str] = None,
    chat_type: ChatType = ChatType.P2P,
    message_type: MessageType = MessageType.TEXT,
    **fields: Any,
) -> MessageContext:
    return MessageContext(
        message_id=message_id,
        chat_id="oc_1",
        session_id=session_id or message_id,
        chat_type=chat_type,
        message_type=message_type,
        text=text,
        **fields,
    )
