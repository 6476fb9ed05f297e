"""Streaming chat replies rendered progressively into a single card."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, List, Optional, Set

from models.session_models import SessionMessage
from services.lark import cards
from services.streaming.exchange import Outcome, StreamingExchange

LOGGER = logging.getLogger(__name__)

RENDER_INTERVAL = 0.7
FIRST_FRAGMENT_TIMEOUT = 10.0

_STREAM_END = object()


class _StreamFailure:
    def __init__(self, error: BaseException) -> None:
        self.error = error


class StreamingOrchestrator:
    """Run one streaming exchange per call.

    Three tasks cooperate for each exchange: the caller consumes fragments
    from a queue, a producer task drains the backend stream into that queue,
    and a render task patches the card with the answer so far every
    ``render_interval`` seconds. If no fragment arrives within
    ``first_fragment_timeout`` the exchange ends as a timeout; the producer
    is then left to finish in the background and its output is ignored.

    Args:
        messenger: Messaging client with ``reply_card`` and ``patch_card``.
        chat_service: Backend exposing ``stream_chat(messages, temperature)``.
        store: Session store receiving the committed turns.
    """

    def __init__(
        self,
        messenger: Any,
        chat_service: Any,
        store: Any,
        render_interval: float = RENDER_INTERVAL,
        first_fragment_timeout: float = FIRST_FRAGMENT_TIMEOUT,
    ) -> None:
        self.messenger = messenger
        self.chat_service = chat_service
        self.store = store
        self.render_interval = render_interval
        self.first_fragment_timeout = first_fragment_timeout
        self._background: Set[asyncio.Task] = set()

    async def run(
        self,
        msg_id: str,
        session_id: str,
        history: List[SessionMessage],
        pending: List[SessionMessage],
        temperature: float,
    ) -> Optional[Outcome]:
        """Stream a reply to ``history`` and commit ``pending`` plus the answer.

        Args:
            msg_id: Message the placeholder card replies to.
            session_id: Session whose history receives the new turns.
            history: Full conversation sent to the backend, user turn included.
            pending: Turns not yet stored (system prompt if injected, user turn).
            temperature: Sampling temperature of the session AI mode.

        Returns:
            The terminal outcome, or None when the placeholder card could not
            be sent and no exchange was started.
        """
        new_topic = len(history) <= 3
        try:
            card_id = await self.messenger.reply_card(msg_id, cards.processing_card(new_topic))
        except Exception as exc:
            LOGGER.error("Could not send placeholder card for %s: %s", msg_id, exc)
            return None

        exchange = StreamingExchange(card_id=card_id, new_topic=new_topic)
        queue: asyncio.Queue = asyncio.Queue()
        start = time.time()

        producer = asyncio.create_task(self._produce(history, temperature, queue))
        self._background.add(producer)
        producer.add_done_callback(self._background.discard)
        renderer = asyncio.create_task(self._render_periodically(exchange))

        try:
            await self._consume(exchange, queue)
        finally:
            exchange.finish(Outcome.FAILURE)
            await renderer

        outcome = exchange.outcome
        LOGGER.info("Streaming exchange for %s ended with %s after %.3fs", session_id, outcome.value, time.time() - start)

        if outcome is Outcome.SUCCESS:
            final_text = exchange.answer
        elif outcome is Outcome.TIMEOUT:
            final_text = cards.TIMEOUT_TEXT
        else:
            final_text = cards.FAILURE_TEXT

        try:
            await self.messenger.patch_card(card_id, cards.final_card(final_text, new_topic))
        except Exception as exc:
            LOGGER.error("Final render of card %s failed: %s", card_id, exc)
            return outcome

        if outcome is Outcome.SUCCESS:
            self.store.append_messages(
                session_id,
                [*pending, SessionMessage(role="assistant", content=exchange.answer)],
            )
        return outcome

    async def _produce(self, history: List[SessionMessage], temperature: float, queue: asyncio.Queue) -> None:
        # Exactly one terminal item is queued, whatever ends the stream.
        terminal: Any = None
        try:
            async for fragment in self.chat_service.stream_chat(history, temperature):
                queue.put_nowait(fragment)
            terminal = _STREAM_END
        except Exception as exc:
            LOGGER.error("Streaming chat failed: %s", exc)
            terminal = _StreamFailure(exc)
        finally:
            if terminal is None:
                LOGGER.error("Streaming chat aborted without a result")
                terminal = _StreamFailure(RuntimeError("stream aborted"))
            queue.put_nowait(terminal)

    async def _consume(self, exchange: StreamingExchange, queue: asyncio.Queue) -> None:
        try:
            item = await asyncio.wait_for(queue.get(), timeout=self.first_fragment_timeout)
        except asyncio.TimeoutError:
            LOGGER.warning("No content within %.1fs for card %s", self.first_fragment_timeout, exchange.card_id)
            exchange.finish(Outcome.TIMEOUT)
            return

        while True:
            if item is _STREAM_END:
                exchange.finish(Outcome.SUCCESS)
                return
            if isinstance(item, _StreamFailure):
                exchange.finish(Outcome.FAILURE)
                return
            exchange.append(item)
            item = await queue.get()

    async def _render_periodically(self, exchange: StreamingExchange) -> None:
        rendered = ""
        while True:
            try:
                await asyncio.wait_for(exchange.done.wait(), timeout=self.render_interval)
                return
            except asyncio.TimeoutError:
                pass
            if exchange.finished:
                return
            answer = exchange.answer
            if not answer or answer == rendered:
                continue
            try:
                await self.messenger.patch_card(exchange.card_id, cards.update_card(answer, exchange.new_topic))
            except Exception as exc:
                LOGGER.warning("Progress render of card %s failed, stopping updates: %s", exchange.card_id, exc)
                return
            rendered = answer
