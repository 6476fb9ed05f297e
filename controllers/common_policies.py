"""Delivery guards and text command policies of the message chain."""

from __future__ import annotations

import logging

from controllers.deps import HandlerDeps, PolicyResult
from models.message_context import MessageContext
from models.session_models import SessionMessage, SessionMode
from services.lark import cards
from utils.text_match import either_cut_prefix, either_trim_equal

LOGGER = logging.getLogger(__name__)

EMPTY_PROMPT = "🤖️: What would you like to know?~"
BALANCE_FAILED = "Failed to query balance, please try again later"
TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


async def deduplicate(ctx: MessageContext, deps: HandlerDeps) -> PolicyResult:
	if not deps.message_cache.check_and_tag(ctx.message_id):
		LOGGER.info("Skipping duplicate delivery of %s", ctx.message_id)
		return PolicyResult.HALT
	return PolicyResult.CONTINUE


async def mention_gate(ctx: MessageContext, deps: HandlerDeps) -> PolicyResult:
	"""In group chats only answer when the bot itself is mentioned."""
	if not ctx.is_group:
		return PolicyResult.CONTINUE
	if any(mention.name == deps.bot_name for mention in ctx.mentions):
		return PolicyResult.CONTINUE
	return PolicyResult.HALT


async def clear_command(ctx: MessageContext, deps: HandlerDeps) -> PolicyResult:
	if either_trim_equal(ctx.text, "/clear", "clear"):
		await deps.messenger.reply_card(ctx.message_id, cards.clear_check_card(ctx.session_id))
		return PolicyResult.HALT
	return PolicyResult.CONTINUE


async def ai_mode_command(ctx: MessageContext, deps: HandlerDeps) -> PolicyResult:
	if either_cut_prefix(ctx.text, "/ai_mode", "ai mode") is not None:
		await deps.messenger.reply_card(ctx.message_id, cards.ai_mode_card(ctx.session_id))
		return PolicyResult.HALT
	return PolicyResult.CONTINUE


async def roles_command(ctx: MessageContext, deps: HandlerDeps) -> PolicyResult:
	if either_trim_equal(ctx.text, "/roles", "roles"):
		tags = deps.roles.unique_tags()
		await deps.messenger.reply_card(ctx.message_id, cards.role_tags_card(ctx.session_id, tags))
		return PolicyResult.HALT
	return PolicyResult.CONTINUE


async def help_command(ctx: MessageContext, deps: HandlerDeps) -> PolicyResult:
	if either_trim_equal(ctx.text, "/help", "help"):
		await deps.messenger.reply_card(ctx.message_id, cards.help_card(ctx.session_id))
		return PolicyResult.HALT
	return PolicyResult.CONTINUE


async def balance_command(ctx: MessageContext, deps: HandlerDeps) -> PolicyResult:
	if not either_trim_equal(ctx.text, "/balance", "balance"):
		return PolicyResult.CONTINUE
	try:
		balance = await deps.balance.get_balance()
	except Exception as exc:
		LOGGER.error("Balance query for %s failed: %s", ctx.session_id, exc)
		await deps.messenger.reply_text(ctx.message_id, BALANCE_FAILED)
		return PolicyResult.HALT

	effective = balance.effective_at.strftime(TIME_FORMAT) if balance.effective_at else "-"
	expires = balance.expires_at.strftime(TIME_FORMAT) if balance.expires_at else "-"
	await deps.messenger.reply_card(
		ctx.message_id,
		cards.balance_card(balance.total_granted, balance.total_used, balance.total_available, effective, expires),
	)
	return PolicyResult.HALT


async def role_play_command(ctx: MessageContext, deps: HandlerDeps) -> PolicyResult:
	"""``/system <prompt>`` restarts the topic with a custom system prompt."""
	system = either_cut_prefix(ctx.text, "/system ", "role play ")
	if system is None:
		return PolicyResult.CONTINUE
	deps.store.clear(ctx.session_id)
	deps.store.set_mode(ctx.session_id, SessionMode.ROLE_PLAY)
	deps.store.set_messages(ctx.session_id, [SessionMessage(role="system", content=system)])
	await deps.messenger.reply_card(ctx.message_id, cards.system_instruction_card(system))
	return PolicyResult.HALT


async def empty_guard(ctx: MessageContext, deps: HandlerDeps) -> PolicyResult:
	if not ctx.text:
		LOGGER.info("Message %s has no text", ctx.message_id)
		await deps.messenger.send_text(ctx.chat_id, EMPTY_PROMPT)
		return PolicyResult.HALT
	return PolicyResult.CONTINUE
