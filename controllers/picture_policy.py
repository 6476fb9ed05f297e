"""Image creation mode: text-to-image and image variations."""

from __future__ import annotations

import base64
import logging

from controllers.deps import HandlerDeps, PolicyResult
from models.message_context import MessageContext, MessageType
from models.session_models import PicResolution, SessionMode
from services.lark import cards
from utils.text_match import either_trim_equal, is_command

LOGGER = logging.getLogger(__name__)

GENERATION_FAILED = "🤖️: Image generation failed, please try again later. Error message: {error}"
UNREADABLE_IMAGE = "🤖️: Unable to parse image, please send original image and try again~"


async def reply_generated_image(deps: HandlerDeps, msg_id: str, session_id: str, prompt: str) -> None:
	"""Generate a picture for ``prompt`` and reply with it as an image card."""
	settings = deps.store.get_settings(session_id)
	image_b64 = await deps.images.generate_image(prompt, settings.pic_resolution, settings.pic_style)
	image_key = await deps.messenger.upload_image(base64.b64decode(image_b64))
	await deps.messenger.reply_card(msg_id, cards.image_card(image_key, session_id, msg_id, prompt))


async def reply_variation(deps: HandlerDeps, msg_id: str, session_id: str, png_bytes: bytes) -> None:
	"""Request a variation of a normalised PNG and reply with it."""
	resolution = deps.store.get_pic_resolution(session_id)
	image_b64 = await deps.images.generate_image_variation(png_bytes, resolution)
	image_key = await deps.messenger.upload_image(base64.b64decode(image_b64))
	await deps.messenger.reply_card(msg_id, cards.variation_card(image_key, session_id, msg_id))


async def picture(ctx: MessageContext, deps: HandlerDeps) -> PolicyResult:
	if deps.azure_on:
		return PolicyResult.CONTINUE

	session_id = ctx.session_id
	if either_trim_equal(ctx.text, "/picture", "picture"):
		deps.store.clear(session_id)
		deps.store.set_mode(session_id, SessionMode.PICTURE_CREATE)
		deps.store.set_pic_resolution(session_id, PicResolution.R1024)
		await deps.messenger.reply_card(ctx.message_id, cards.pic_instruction_card(session_id))
		return PolicyResult.HALT

	if deps.store.get_mode(session_id) != SessionMode.PICTURE_CREATE:
		return PolicyResult.CONTINUE

	if ctx.message_type == MessageType.IMAGE:
		try:
			raw = await deps.messenger.fetch_attachment(ctx.message_id, ctx.image_key, "image")
			png_bytes = deps.image_converter.to_square_png(raw)
		except ValueError as exc:
			LOGGER.warning("Unusable image in %s: %s", ctx.message_id, exc)
			await deps.messenger.reply_text(ctx.message_id, UNREADABLE_IMAGE)
			return PolicyResult.HALT
		except Exception as exc:
			LOGGER.error("Image download for %s failed: %s", ctx.message_id, exc)
			await deps.messenger.reply_text(
				ctx.message_id,
				f"🤖️: Image download failed, please try again later. Error message: {exc}",
			)
			return PolicyResult.HALT
		try:
			await reply_variation(deps, ctx.message_id, session_id, png_bytes)
		except Exception as exc:
			LOGGER.error("Image variation for %s failed: %s", ctx.message_id, exc)
			await deps.messenger.reply_text(ctx.message_id, GENERATION_FAILED.format(error=exc))
		return PolicyResult.HALT

	if not ctx.text or is_command(ctx.text):
		return PolicyResult.CONTINUE
	try:
		await reply_generated_image(deps, ctx.message_id, session_id, ctx.text)
	except Exception as exc:
		LOGGER.error("Image generation for %s failed: %s", ctx.message_id, exc)
		await deps.messenger.reply_text(ctx.message_id, GENERATION_FAILED.format(error=exc))
	return PolicyResult.HALT
