"""Bridge between lark-oapi's synchronous dispatchers and the asyncio app."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import lark_oapi as lark
from lark_oapi.core.model import RawRequest, RawResponse

from config import Settings
from models.message_context import CardActionRequest, InboundEvent
from services.lark.events import card_action_from_lark, inbound_event_from_lark

LOGGER = logging.getLogger(__name__)

CARD_REPLY_TIMEOUT = 2.5

EventCallback = Callable[[InboundEvent], Awaitable[Any]]
CardCallback = Callable[[CardActionRequest], Awaitable[Optional[Dict[str, Any]]]]


def canonical_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Restore ``X-Lark-Signature`` style casing; ASGI lower-cases header names."""
    return {"-".join(part.capitalize() for part in key.split("-")): value for key, value in headers.items()}


def to_raw_request(uri: str, body: bytes, headers: Mapping[str, str]) -> RawRequest:
    req = RawRequest()
    req.uri = uri
    req.body = body
    req.headers = canonical_headers(headers)
    return req


class LarkCallbacks:
    """Verify and decode platform callbacks, then hand them to the event loop.

    lark-oapi dispatchers are synchronous, so they run in the default
    executor; their callbacks schedule coroutines back on ``loop``. Message
    events are fire-and-forget; card actions wait up to
    ``card_timeout`` seconds for a replacement card.
    """

    def __init__(
        self,
        settings: Settings,
        loop: asyncio.AbstractEventLoop,
        on_event: EventCallback,
        on_card: CardCallback,
        card_timeout: float = CARD_REPLY_TIMEOUT,
    ) -> None:
        self.loop = loop
        self.on_event = on_event
        self.on_card = on_card
        self.card_timeout = card_timeout
        self.event_handler = (
            lark.EventDispatcherHandler.builder(
                settings.app_encrypt_key,
                settings.app_verification_token,
                lark.LogLevel.WARNING,
            )
            .register_p2_im_message_receive_v1(self._on_message)
            .build()
        )
        self.card_handler = (
            lark.CardActionHandler.builder(
                settings.app_encrypt_key,
                settings.app_verification_token,
                lark.LogLevel.WARNING,
            )
            .register(self._on_card)
            .build()
        )

    def _on_message(self, data: Any) -> None:
        event = inbound_event_from_lark(data)
        LOGGER.info("Received %s message %s in %s", event.message_type, event.message_id, event.chat_type)
        asyncio.run_coroutine_threadsafe(self.on_event(event), self.loop)

    def _on_card(self, data: Any) -> Any:
        req = card_action_from_lark(data)
        LOGGER.info("Card action %s for session %s", req.kind, req.session_id)
        future = asyncio.run_coroutine_threadsafe(self.on_card(req), self.loop)
        try:
            return future.result(timeout=self.card_timeout)
        except Exception:
            LOGGER.exception("Card action %s failed", req.kind)
            return None

    async def dispatch_event(self, req: RawRequest) -> RawResponse:
        return await self.loop.run_in_executor(None, self.event_handler.do, req)

    async def dispatch_card(self, req: RawRequest) -> RawResponse:
        return await self.loop.run_in_executor(None, self.card_handler.do, req)
