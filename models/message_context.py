from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional


class ChatType(str, Enum):
    GROUP = "group"
    P2P = "p2p"


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"
    POST = "post"


@dataclass
class Mention:
    """A single @mention carried by an inbound message.

    Attributes:
        key: Placeholder used inside the text payload (e.g. ``@_user_1``).
        name: Display name of the mentioned user or bot.
        open_id: Platform identifier of the mentioned user, when provided.
    """

    key: str
    name: str
    open_id: Optional[str] = None


@dataclass
class InboundEvent:
    """Platform-neutral view of a received message event."""

    message_id: str
    chat_id: str
    chat_type: str
    message_type: str
    content: str
    root_id: Optional[str] = None
    mentions: List[Mention] = field(default_factory=list)


@dataclass
class MessageContext:
    """Per-message context handed to every policy of the dispatch chain.

    ``text`` is the only field a policy may rewrite (audio transcription
    replaces it with the transcript before command matching).
    """

    message_id: str
    chat_id: str
    session_id: str
    chat_type: ChatType
    message_type: MessageType
    text: str = ""
    file_key: str = ""
    image_key: str = ""
    image_keys: List[str] = field(default_factory=list)
    mentions: List[Mention] = field(default_factory=list)

    @property
    def is_group(self) -> bool:
        return self.chat_type == ChatType.GROUP


@dataclass
class CardActionRequest:
    """A button or menu callback posted back for a card the bot sent.

    ``value`` is what the button carried; ``option`` is the entry picked in
    a select menu.
    """

    kind: str
    session_id: str
    msg_id: str = ""
    value: Any = None
    option: str = ""
    chat_type: str = ""
    open_message_id: str = ""
