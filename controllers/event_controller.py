"""Entry point for inbound message events."""

from __future__ import annotations

import logging
from typing import Optional

from controllers.chain import run_chain
from controllers.deps import HandlerDeps
from models.message_context import ChatType, InboundEvent, MessageContext, MessageType
from services.lark import content_parser

LOGGER = logging.getLogger(__name__)


def build_context(event: InboundEvent) -> Optional[MessageContext]:
	"""Turn an inbound event into a policy context.

	The session is the topic root, or the message itself when it opens a
	new topic. Returns None for chat or message types the bot ignores.
	"""
	try:
		chat_type = ChatType(event.chat_type)
	except ValueError:
		LOGGER.info("Ignoring message %s from unknown chat type %r", event.message_id, event.chat_type)
		return None
	try:
		message_type = MessageType(event.message_type)
	except ValueError:
		LOGGER.info("Ignoring message %s of unknown type %r", event.message_id, event.message_type)
		return None

	content = event.content
	return MessageContext(
		message_id=event.message_id,
		chat_id=event.chat_id,
		session_id=event.root_id or event.message_id,
		chat_type=chat_type,
		message_type=message_type,
		text=content_parser.parse_text(content, message_type.value),
		file_key=content_parser.parse_file_key(content),
		image_key=content_parser.parse_image_key(content),
		image_keys=content_parser.parse_post_image_keys(content) if message_type == MessageType.POST else [],
		mentions=list(event.mentions),
	)


async def handle_event(event: InboundEvent, deps: HandlerDeps) -> bool:
	"""Run the policy chain for one event; errors are logged, never raised.

	Returns:
		True when a policy handled the message.
	"""
	ctx = build_context(event)
	if ctx is None:
		return False
	try:
		return await run_chain(ctx, deps)
	except Exception:
		LOGGER.exception("Handling message %s failed", event.message_id)
		return False
