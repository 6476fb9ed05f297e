"""Messaging-platform client: send, reply, patch and upload through lark-oapi."""

from __future__ import annotations

import asyncio
import io
import json
import logging
import uuid
from typing import Any, Callable, Dict

import lark_oapi as lark
from lark_oapi.api.im.v1 import (
    CreateImageRequest,
    CreateImageRequestBody,
    CreateMessageRequest,
    CreateMessageRequestBody,
    GetImageRequest,
    GetMessageResourceRequest,
    PatchMessageRequest,
    PatchMessageRequestBody,
    ReplyMessageRequest,
    ReplyMessageRequestBody,
)

from config import Settings

LOGGER = logging.getLogger(__name__)


class MessengerError(RuntimeError):
    """Raised when the Lark open platform rejects a call."""


def build_lark_client(settings: Settings) -> lark.Client:
    return (
        lark.Client.builder()
        .app_id(settings.app_id)
        .app_secret(settings.app_secret)
        .domain(settings.lark_base_url)
        .log_level(lark.LogLevel.INFO)
        .build()
    )


class LarkMessenger:
    """Async facade over the blocking lark-oapi IM client.

    Every SDK call runs in the default executor so the event loop keeps
    serving webhooks and streaming exchanges.
    """

    def __init__(self, client: lark.Client) -> None:
        if client is None:
            raise ValueError("Lark client is required.")
        self.client = client

    async def _call(self, action: str, fn: Callable[[Any], Any], request: Any) -> Any:
        loop = asyncio.get_running_loop()
        resp = await loop.run_in_executor(None, fn, request)
        if not resp.success():
            detail = f"{action} failed: code={resp.code}, msg={resp.msg}, log_id={resp.get_log_id()}"
            LOGGER.error(detail)
            raise MessengerError(resp.msg or detail)
        return resp

    async def _reply(self, msg_id: str, msg_type: str, content: str) -> str:
        req = (
            ReplyMessageRequest.builder()
            .message_id(msg_id)
            .request_body(
                ReplyMessageRequestBody.builder()
                .msg_type(msg_type)
                .content(content)
                .uuid(str(uuid.uuid4()))
                .build()
            )
            .build()
        )
        resp = await self._call("Reply", self.client.im.v1.message.reply, req)
        if not resp.data or not resp.data.message_id:
            raise MessengerError(f"Reply to {msg_id} returned no message_id")
        return resp.data.message_id

    async def send_text(self, chat_id: str, text: str) -> None:
        req = (
            CreateMessageRequest.builder()
            .receive_id_type("chat_id")
            .request_body(
                CreateMessageRequestBody.builder()
                .receive_id(chat_id)
                .msg_type("text")
                .content(json.dumps({"text": text.strip()}))
                .build()
            )
            .build()
        )
        await self._call("Send", self.client.im.v1.message.create, req)

    async def reply_text(self, msg_id: str, text: str) -> None:
        await self._reply(msg_id, "text", json.dumps({"text": text.strip()}))

    async def reply_card(self, msg_id: str, card: Dict[str, Any]) -> str:
        """Reply with an interactive card and return the new message id."""
        return await self._reply(msg_id, "interactive", json.dumps(card))

    async def patch_card(self, card_id: str, card: Dict[str, Any]) -> None:
        req = (
            PatchMessageRequest.builder()
            .message_id(card_id)
            .request_body(PatchMessageRequestBody.builder().content(json.dumps(card)).build())
            .build()
        )
        await self._call("Patch", self.client.im.v1.message.patch, req)

    async def fetch_attachment(self, msg_id: str, file_key: str, kind: str) -> bytes:
        """Download a message resource; ``kind`` is ``image`` or ``file``."""
        req = GetMessageResourceRequest.builder().message_id(msg_id).file_key(file_key).type(kind).build()
        resp = await self._call("Resource download", self.client.im.v1.message_resource.get, req)
        if not getattr(resp, "file", None):
            raise MessengerError(f"Resource {file_key} returned no content")
        return resp.file.read()

    async def download_image(self, image_key: str) -> bytes:
        """Download an image this app uploaded earlier."""
        req = GetImageRequest.builder().image_key(image_key).build()
        resp = await self._call("Image download", self.client.im.v1.image.get, req)
        if not getattr(resp, "file", None):
            raise MessengerError(f"Image {image_key} returned no content")
        return resp.file.read()

    async def upload_image(self, image_bytes: bytes) -> str:
        req = (
            CreateImageRequest.builder()
            .request_body(
                CreateImageRequestBody.builder()
                .image_type("message")
                .image(io.BytesIO(image_bytes))
                .build()
            )
            .build()
        )
        resp = await self._call("Image upload", self.client.im.v1.image.create, req)
        if not resp.data or not resp.data.image_key:
            raise MessengerError("Image upload returned no image_key")
        return resp.data.image_key
