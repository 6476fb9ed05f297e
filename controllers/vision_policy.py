"""Image analysis mode."""

from __future__ import annotations

import logging
from typing import List

from controllers.deps import HandlerDeps, PolicyResult
from models.message_context import MessageContext, MessageType
from models.session_models import SessionMode, VisionDetail
from services.image_convert import to_base64
from services.lark import cards
from services.openai.prompts import vision_default_question
from utils.text_match import either_trim_equal, is_command

LOGGER = logging.getLogger(__name__)

SEND_IMAGE_PROMPT = "🤖️: Please send an image to analyze~"


async def _analyze(ctx: MessageContext, deps: HandlerDeps, image_keys: List[str], question: str) -> PolicyResult:
	try:
		images = [
			to_base64(await deps.messenger.fetch_attachment(ctx.message_id, key, "image"))
			for key in image_keys
		]
		detail = deps.store.get_vision_detail(ctx.session_id)
		answer = await deps.vision.analyze(question or vision_default_question(), images, detail)
	except Exception as exc:
		LOGGER.error("Vision analysis for %s failed: %s", ctx.message_id, exc)
		await deps.messenger.reply_text(
			ctx.message_id,
			f"🤖️: Image analysis failed, please try again later. Error message: {exc}",
		)
		return PolicyResult.HALT
	await deps.messenger.reply_card(ctx.message_id, cards.vision_result_card(answer))
	return PolicyResult.HALT


async def vision(ctx: MessageContext, deps: HandlerDeps) -> PolicyResult:
	if deps.azure_on:
		return PolicyResult.CONTINUE

	session_id = ctx.session_id
	if either_trim_equal(ctx.text, "/vision", "vision"):
		deps.store.clear(session_id)
		deps.store.set_mode(session_id, SessionMode.VISION)
		deps.store.set_vision_detail(session_id, VisionDetail.LOW)
		await deps.messenger.reply_card(ctx.message_id, cards.vision_instruction_card(session_id))
		return PolicyResult.HALT

	mode = deps.store.get_mode(session_id)
	if ctx.message_type == MessageType.IMAGE:
		if mode == SessionMode.VISION:
			return await _analyze(ctx, deps, [ctx.image_key], "")
		if mode == SessionMode.PICTURE_CREATE:
			return PolicyResult.CONTINUE
		await deps.messenger.reply_card(ctx.message_id, cards.image_mode_check_card(session_id))
		return PolicyResult.HALT

	if mode != SessionMode.VISION:
		return PolicyResult.CONTINUE
	if ctx.message_type == MessageType.POST and ctx.image_keys:
		return await _analyze(ctx, deps, ctx.image_keys, ctx.text)
	if is_command(ctx.text):
		return PolicyResult.CONTINUE
	await deps.messenger.reply_text(ctx.message_id, SEND_IMAGE_PROMPT)
	return PolicyResult.HALT
