"""Ordered policy chain applied to every inbound message."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, List, Sequence

from controllers import audio_policy, chat_policy, common_policies, picture_policy, vision_policy
from controllers.deps import HandlerDeps, PolicyResult
from models.message_context import MessageContext

LOGGER = logging.getLogger(__name__)

Policy = Callable[[MessageContext, HandlerDeps], Awaitable[PolicyResult]]

# Order is precedence: delivery guards, audio, commands, then chat.
POLICY_CHAIN: List[Policy] = [
	common_policies.deduplicate,
	common_policies.mention_gate,
	audio_policy.transcribe_audio,
	common_policies.clear_command,
	vision_policy.vision,
	picture_policy.picture,
	common_policies.ai_mode_command,
	common_policies.roles_command,
	common_policies.help_command,
	common_policies.balance_command,
	common_policies.role_play_command,
	chat_policy.complete_chat,
	common_policies.empty_guard,
	chat_policy.stream_chat,
]


async def run_chain(ctx: MessageContext, deps: HandlerDeps, policies: Sequence[Policy] = POLICY_CHAIN) -> bool:
	"""Apply policies in order until one halts.

	Returns:
		True if a policy handled the message, False if every policy let it
		through.
	"""
	for policy in policies:
		if await policy(ctx, deps) is PolicyResult.HALT:
			LOGGER.debug("Message %s handled by %s", ctx.message_id, policy.__name__)
			return True
	return False
