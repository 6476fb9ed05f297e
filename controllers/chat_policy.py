"""Plain chat policies, synchronous and streamed."""

from __future__ import annotations

import logging
from typing import List, Tuple

from controllers.deps import HandlerDeps, PolicyResult
from models.message_context import MessageContext
from models.session_models import SessionMessage, has_system_role
from services.lark import cards
from services.openai.prompts import with_default_prompt

LOGGER = logging.getLogger(__name__)

CHAT_ERROR = "🤖️: The message bot encountered an error, please try again later~\nError info: {error}"


def prepare_turn(ctx: MessageContext, deps: HandlerDeps) -> Tuple[List[SessionMessage], List[SessionMessage]]:
	"""Return the history to send and the turns to commit once answered.

	The history gains the default system prompt when it has none, followed
	by the user turn. Nothing is written to the store here.
	"""
	stored = deps.store.get_messages(ctx.session_id)
	history = with_default_prompt(stored)
	user = SessionMessage(role="user", content=ctx.text)
	pending: List[SessionMessage] = []
	if not has_system_role(stored):
		pending.append(history[0])
	pending.append(user)
	history.append(user)
	return history, pending


async def complete_chat(ctx: MessageContext, deps: HandlerDeps) -> PolicyResult:
	if deps.stream_mode or not ctx.text:
		return PolicyResult.CONTINUE

	history, pending = prepare_turn(ctx, deps)
	temperature = deps.store.get_ai_mode(ctx.session_id)
	try:
		reply = await deps.chat.complete_chat(history, temperature)
	except Exception as exc:
		LOGGER.error("Chat completion for %s failed: %s", ctx.session_id, exc)
		await deps.messenger.reply_text(ctx.message_id, CHAT_ERROR.format(error=exc))
		return PolicyResult.HALT

	committed = deps.store.append_messages(ctx.session_id, [*pending, reply])
	new_topic = len(committed) == 3
	await deps.messenger.reply_card(ctx.message_id, cards.topic_card(reply.content, new_topic))
	return PolicyResult.HALT


async def stream_chat(ctx: MessageContext, deps: HandlerDeps) -> PolicyResult:
	if not deps.stream_mode:
		return PolicyResult.CONTINUE

	history, pending = prepare_turn(ctx, deps)
	temperature = deps.store.get_ai_mode(ctx.session_id)
	await deps.orchestrator.run(ctx.message_id, ctx.session_id, history, pending, temperature)
	return PolicyResult.HALT
