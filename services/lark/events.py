"""Translation of lark-oapi event and card payloads into local models."""

from __future__ import annotations

from typing import Any, List, Optional

from models.message_context import CardActionRequest, InboundEvent, Mention


def _mentions(raw_mentions: Optional[List[Any]]) -> List[Mention]:
    mentions: List[Mention] = []
    for raw in raw_mentions or []:
        user_id = getattr(raw, "id", None)
        mentions.append(
            Mention(
                key=getattr(raw, "key", "") or "",
                name=getattr(raw, "name", "") or "",
                open_id=getattr(user_id, "open_id", None) if user_id else None,
            )
        )
    return mentions


def inbound_event_from_lark(data: Any) -> InboundEvent:
    """Build an InboundEvent from a ``P2ImMessageReceiveV1`` payload."""
    message = data.event.message
    return InboundEvent(
        message_id=message.message_id or "",
        chat_id=message.chat_id or "",
        chat_type=message.chat_type or "",
        message_type=message.message_type or "",
        content=message.content or "",
        root_id=message.root_id or None,
        mentions=_mentions(message.mentions),
    )


def card_action_from_lark(data: Any) -> CardActionRequest:
    """Build a CardActionRequest from a ``lark.Card`` callback payload."""
    action = getattr(data, "action", None)
    value = dict(getattr(action, "value", None) or {})
    return CardActionRequest(
        kind=str(value.get("kind", "")),
        session_id=str(value.get("sessionId", "")),
        msg_id=str(value.get("msgId", "") or ""),
        value=value.get("value"),
        option=getattr(action, "option", None) or "",
        chat_type=str(value.get("chatType", "") or ""),
        open_message_id=getattr(data, "open_message_id", None) or "",
    )
