"""Handlers for button and menu callbacks on cards sent by the bot."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Optional, Set

from controllers.deps import HandlerDeps
from controllers.picture_policy import reply_generated_image, reply_variation
from models.message_context import CardActionRequest
from models.session_models import AI_MODES, PicResolution, SessionMessage, SessionMode, VisionDetail
from services.lark import cards
from services.lark.cards import CANCEL, CONFIRM, Card, CardKind

LOGGER = logging.getLogger(__name__)


class CardActionController:
	"""Apply card callbacks to the session store and answer them.

	Callbacks must be answered quickly, so ``handle`` only does store
	updates inline and returns the replacement card, if any. Work that calls
	the model or sends new messages is started as a background task.
	"""

	def __init__(self, deps: HandlerDeps) -> None:
		self.deps = deps
		self._tasks: Set[asyncio.Task] = set()

	def _spawn(self, coro: Awaitable[None], description: str) -> None:
		async def runner() -> None:
			try:
				await coro
			except Exception:
				LOGGER.exception("Card action %s failed", description)

		task = asyncio.get_running_loop().create_task(runner())
		self._tasks.add(task)
		task.add_done_callback(self._tasks.discard)

	async def drain(self) -> None:
		"""Wait for background work started by earlier callbacks."""
		while self._tasks:
			await asyncio.gather(*list(self._tasks))

	async def handle(self, req: CardActionRequest) -> Optional[Card]:
		"""Dispatch one callback by its card kind; returns the card to show instead."""
		try:
			kind = CardKind(req.kind)
		except ValueError:
			LOGGER.warning("Unknown card action kind %r", req.kind)
			return None

		store = self.deps.store
		session_id = req.session_id
		reply_to = req.msg_id or session_id

		if kind is CardKind.CLEAR:
			if req.value == CONFIRM:
				store.clear(session_id, reset_mode=True)
				return cards.clear_done_card()
			if req.value == CANCEL:
				return cards.context_kept_card("🆑 Bot Reminder")
			return None

		if kind is CardKind.PIC_MODE_CHANGE:
			if req.value == CONFIRM:
				store.clear(session_id)
				store.set_mode(session_id, SessionMode.PICTURE_CREATE)
				store.set_pic_resolution(session_id, PicResolution.R1024)
				return cards.pic_instruction_card(session_id)
			return cards.context_kept_card() if req.value == CANCEL else None

		if kind is CardKind.VISION_MODE_CHANGE:
			if req.value == CONFIRM:
				store.clear(session_id)
				store.set_mode(session_id, SessionMode.VISION)
				store.set_vision_detail(session_id, VisionDetail.LOW)
				return cards.vision_instruction_card(session_id)
			return cards.context_kept_card() if req.value == CANCEL else None

		if kind is CardKind.PIC_RESOLUTION:
			store.set_pic_resolution(session_id, PicResolution(req.option))
			self._spawn(self.deps.messenger.reply_text(reply_to, f"Image resolution updated to {req.option}"), kind.value)
			return None

		if kind is CardKind.PIC_STYLE:
			store.set_pic_style(session_id, req.option)
			self._spawn(self.deps.messenger.reply_text(reply_to, f"Image style updated to {req.option}"), kind.value)
			return None

		if kind is CardKind.VISION_STYLE:
			store.set_vision_detail(session_id, req.option)
			self._spawn(self.deps.messenger.reply_text(reply_to, f"Image resolution adjusted to: {req.option}"), kind.value)
			return None

		if kind is CardKind.AI_MODE_CHOOSE:
			temperature = AI_MODES.get(req.option)
			if temperature is None:
				LOGGER.warning("Unknown AI mode %r", req.option)
				return None
			store.set_ai_mode(session_id, temperature)
			return cards.ai_mode_selected_card(req.option)

		if kind is CardKind.PIC_TEXT_MORE:
			prompt = str(req.value or "")
			self._spawn(reply_generated_image(self.deps, reply_to, session_id, prompt), kind.value)
			return None

		if kind is CardKind.PIC_VAR_MORE:
			self._spawn(self._vary_again(reply_to, session_id, str(req.value or "")), kind.value)
			return None

		if kind is CardKind.ROLE_TAGS_CHOOSE:
			titles = self.deps.roles.titles_for_tag(req.option)
			self._spawn(
				self.deps.messenger.reply_card(reply_to, cards.role_list_card(session_id, req.option, titles)),
				kind.value,
			)
			return None

		if kind is CardKind.ROLE_CHOOSE:
			role = self.deps.roles.find_by_title(req.option)
			if role is None:
				LOGGER.warning("Unknown role %r", req.option)
				return None
			store.clear(session_id)
			store.set_mode(session_id, SessionMode.ROLE_PLAY)
			store.set_messages(session_id, [SessionMessage(role="system", content=role.content)])
			self._spawn(
				self.deps.messenger.reply_card(reply_to, cards.system_instruction_card(role.content)),
				kind.value,
			)
			return None

		return None

	async def _vary_again(self, msg_id: str, session_id: str, image_key: str) -> None:
		raw = await self.deps.messenger.download_image(image_key)
		png_bytes = self.deps.image_converter.to_square_png(raw)
		await reply_variation(self.deps, msg_id, session_id, png_bytes)
