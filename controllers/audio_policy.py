"""Voice message transcription ahead of command matching."""

from __future__ import annotations

import logging

from controllers.deps import HandlerDeps, PolicyResult
from models.message_context import MessageContext, MessageType

LOGGER = logging.getLogger(__name__)


async def transcribe_audio(ctx: MessageContext, deps: HandlerDeps) -> PolicyResult:
	"""Replace the text of a private voice message with its transcript.

	Any failure along the way is reported to the user and stops the chain.
	"""
	if deps.azure_on or ctx.is_group or ctx.message_type != MessageType.AUDIO:
		return PolicyResult.CONTINUE

	try:
		ogg_bytes = await deps.messenger.fetch_attachment(ctx.message_id, ctx.file_key, "file")
		async with deps.transcoder.mp3_file(ogg_bytes) as mp3_path:
			text = await deps.dictation.transcribe(mp3_path)
	except Exception as exc:
		LOGGER.error("Audio transcription for %s failed: %s", ctx.message_id, exc)
		await deps.messenger.reply_text(
			ctx.message_id,
			f"🤖️: Audio conversion failed, please try again later. Error message: {exc}",
		)
		return PolicyResult.HALT

	await deps.messenger.reply_text(ctx.message_id, f"🤖️：{text}")
	ctx.text = text
	return PolicyResult.CONTINUE
