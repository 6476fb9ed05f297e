"""Behaviour of the inbound message policy chain."""

from __future__ import annotations

import asyncio
import io

from PIL import Image

from controllers import chat_policy, common_policies, picture_policy, vision_policy
from controllers.chain import run_chain
from models.message_context import ChatType, Mention, MessageType
from models.session_models import PicResolution, SessionMessage, SessionMode, VisionDetail
from services.lark import cards
from services.lark.cards import CardKind
from fakes import FakeBalance, FakeChat, FakeDictation, card_text, make_context, make_deps


def _buttons(card):
    return [
        item
        for element in card["elements"]
        if element.get("tag") == "action"
        for item in element["actions"]
    ]


def _jpeg_bytes() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (40, 20), (255, 0, 0)).save(buf, format="JPEG")
    return buf.getvalue()


def test_clear_keyword_variants_show_confirmation() -> None:
    for text in ("clear", "/clear", "  clear  "):
        deps = make_deps()
        handled = asyncio.run(run_chain(make_context(text), deps))
        assert handled
        msg_id, card = deps.messenger.cards[0]
        assert msg_id == "om_1"
        kinds = {button["value"]["kind"] for button in _buttons(card)}
        assert kinds == {CardKind.CLEAR.value}


def test_reset_is_not_the_clear_command() -> None:
    deps = make_deps()
    asyncio.run(run_chain(make_context("reset"), deps))
    kinds = {
        button["value"]["kind"]
        for _, card in deps.messenger.cards
        for button in _buttons(card)
    }
    assert CardKind.CLEAR.value not in kinds


def test_duplicate_delivery_is_processed_once() -> None:
    deps = make_deps()

    async def scenario() -> None:
        await run_chain(make_context("/help"), deps)
        await run_chain(make_context("/help"), deps)

    asyncio.run(scenario())
    assert len(deps.messenger.cards) == 1


def test_group_message_without_bot_mention_is_ignored() -> None:
    deps = make_deps()
    ctx = make_context("hello", chat_type=ChatType.GROUP, mentions=[Mention(key="@_user_1", name="Someone")])
    assert asyncio.run(run_chain(ctx, deps)) is True
    assert deps.messenger.cards == []
    assert deps.chat.calls == []


def test_group_message_mentioning_bot_is_answered() -> None:
    deps = make_deps()
    ctx = make_context("hello", chat_type=ChatType.GROUP, mentions=[Mention(key="@_user_1", name="ChatBot")])
    asyncio.run(run_chain(ctx, deps))
    assert len(deps.chat.calls) == 1


def test_first_turn_injects_default_system_prompt_once() -> None:
    deps = make_deps(chat=FakeChat(["Hi"]))

    async def scenario() -> None:
        await run_chain(make_context("hello", message_id="om_1", session_id="s1"), deps)
        await run_chain(make_context("again", message_id="om_2", session_id="s1"), deps)

    asyncio.run(scenario())

    history = deps.store.get_messages("s1")
    assert [m.role for m in history] == ["system", "user", "assistant", "user", "assistant"]
    assert [m.content for m in history[1:]] == ["hello", "Hi", "again", "Hi"]
    sent, temperature = deps.chat.calls[0]
    assert sent[0].role == "system"
    assert temperature == deps.store.get_ai_mode("s1")


def test_empty_text_gets_prompt_instead_of_model_call() -> None:
    deps = make_deps()
    asyncio.run(run_chain(make_context(""), deps))
    assert deps.messenger.texts == [("oc_1", common_policies.EMPTY_PROMPT)]
    assert deps.chat.calls == []


def test_non_streaming_chat_replies_with_topic_card() -> None:
    deps = make_deps(chat=FakeChat(reply="Sure"), stream_mode=False)
    asyncio.run(run_chain(make_context("hello", session_id="s1"), deps))

    _, card = deps.messenger.cards[0]
    assert card_text(card) == "Sure"
    assert card["header"]["title"]["content"] == cards.NEW_TOPIC_TITLE
    assert [m.role for m in deps.store.get_messages("s1")] == ["system", "user", "assistant"]


def test_non_streaming_chat_error_is_reported_and_not_stored() -> None:
    deps = make_deps(chat=FakeChat(error=RuntimeError("boom")), stream_mode=False)
    asyncio.run(run_chain(make_context("hello", session_id="s1"), deps))

    assert deps.messenger.replies == [("om_1", chat_policy.CHAT_ERROR.format(error="boom"))]
    assert deps.store.get_messages("s1") == []


def test_role_play_command_replaces_history_with_system_prompt() -> None:
    deps = make_deps()
    deps.store.append_messages("s1", [SessionMessage(role="user", content="old")])

    asyncio.run(run_chain(make_context("/system You are a pirate", session_id="s1"), deps))

    assert deps.store.get_mode("s1") is SessionMode.ROLE_PLAY
    history = deps.store.get_messages("s1")
    assert [(m.role, m.content) for m in history] == [("system", "You are a pirate")]
    assert deps.chat.calls == []


def test_ai_mode_and_roles_commands_reply_with_menus() -> None:
    deps = make_deps()

    async def scenario() -> None:
        await run_chain(make_context("/ai_mode", message_id="om_1"), deps)
        await run_chain(make_context("roles", message_id="om_2"), deps)

    asyncio.run(scenario())

    ai_card, roles_card = (card for _, card in deps.messenger.cards)
    ai_menu = _buttons(ai_card)[0]
    assert ai_menu["value"]["kind"] == CardKind.AI_MODE_CHOOSE.value
    roles_menu = _buttons(roles_card)[0]
    assert [opt["value"] for opt in roles_menu["options"]] == ["Programming", "Language", "Writing"]


def test_balance_command_formats_dates() -> None:
    deps = make_deps()
    asyncio.run(run_chain(make_context("balance"), deps))
    _, card = deps.messenger.cards[0]
    rendered = str(card)
    assert "2024-01-01 00:00:00" in rendered
    assert "2024-04-01 00:00:00" in rendered


def test_balance_failure_replies_with_text() -> None:
    deps = make_deps(balance=FakeBalance(error=RuntimeError("401")))
    asyncio.run(run_chain(make_context("/balance"), deps))
    assert deps.messenger.replies == [("om_1", common_policies.BALANCE_FAILED)]


def test_private_audio_is_transcribed_then_chatted() -> None:
    deps = make_deps(dictation=FakeDictation(text="what time is it"))
    ctx = make_context(message_type=MessageType.AUDIO, file_key="file_1", session_id="s1")

    asyncio.run(run_chain(ctx, deps))

    assert deps.messenger.replies[0] == ("om_1", "🤖️：what time is it")
    assert ctx.text == "what time is it"
    assert deps.chat.calls[0][0][-1].content == "what time is it"


def test_transcribed_command_is_executed() -> None:
    deps = make_deps(dictation=FakeDictation(text="clear"))
    ctx = make_context(message_type=MessageType.AUDIO, file_key="file_1")
    asyncio.run(run_chain(ctx, deps))
    assert {b["value"]["kind"] for b in _buttons(deps.messenger.cards[0][1])} == {CardKind.CLEAR.value}


def test_audio_failure_halts_with_error_reply() -> None:
    deps = make_deps(dictation=FakeDictation(error=RuntimeError("bad audio")))
    ctx = make_context(message_type=MessageType.AUDIO, file_key="file_1")
    asyncio.run(run_chain(ctx, deps))
    assert deps.messenger.replies[0][1].startswith("🤖️: Audio conversion failed")
    assert deps.chat.calls == []


def test_vision_command_enters_vision_mode() -> None:
    deps = make_deps()
    asyncio.run(run_chain(make_context("/vision", session_id="s1"), deps))
    assert deps.store.get_mode("s1") is SessionMode.VISION
    assert deps.store.get_vision_detail("s1") is VisionDetail.LOW


def test_image_in_vision_mode_is_analyzed() -> None:
    deps = make_deps()
    deps.store.set_mode("s1", SessionMode.VISION)
    deps.messenger.attachments["img_1"] = b"\x89PNG"
    ctx = make_context(message_type=MessageType.IMAGE, image_key="img_1", session_id="s1")

    asyncio.run(run_chain(ctx, deps))

    _, images, detail = deps.vision.calls[0]
    assert images == ["iVBORw=="]
    assert detail is VisionDetail.LOW
    assert card_text(deps.messenger.cards[0][1]) == "A cat on a sofa"


def test_text_in_vision_mode_asks_for_an_image() -> None:
    deps = make_deps()
    deps.store.set_mode("s1", SessionMode.VISION)
    asyncio.run(run_chain(make_context("what is this", session_id="s1"), deps))
    assert deps.messenger.replies == [("om_1", vision_policy.SEND_IMAGE_PROMPT)]
    assert deps.chat.calls == []


def test_image_in_chat_mode_offers_mode_choice() -> None:
    deps = make_deps()
    ctx = make_context(message_type=MessageType.IMAGE, image_key="img_1", session_id="s1")
    asyncio.run(run_chain(ctx, deps))
    kinds = {b["value"]["kind"] for b in _buttons(deps.messenger.cards[0][1])}
    assert kinds == {CardKind.VISION_MODE_CHANGE.value, CardKind.PIC_MODE_CHANGE.value}
    assert deps.store.get_mode("s1") is SessionMode.CHAT


def test_picture_mode_generates_image_from_text() -> None:
    deps = make_deps()

    async def scenario() -> None:
        await run_chain(make_context("picture", message_id="om_1", session_id="s1"), deps)
        await run_chain(make_context("a red fox", message_id="om_2", session_id="s1"), deps)

    asyncio.run(scenario())

    assert deps.store.get_mode("s1") is SessionMode.PICTURE_CREATE
    prompt, resolution, _ = deps.images.prompts[0]
    assert prompt == "a red fox"
    assert resolution is PicResolution.R1024
    assert deps.messenger.uploads == [b"image"]
    image_card = deps.messenger.cards[-1][1]
    assert any(element.get("img_key") == "img-1" for element in image_card["elements"])
    assert deps.chat.calls == []


def test_picture_mode_turns_image_into_variation() -> None:
    deps = make_deps()
    deps.store.set_mode("s1", SessionMode.PICTURE_CREATE)
    deps.messenger.attachments["img_1"] = _jpeg_bytes()
    ctx = make_context(message_type=MessageType.IMAGE, image_key="img_1", session_id="s1")

    asyncio.run(run_chain(ctx, deps))

    png_bytes, _ = deps.images.variations[0]
    with Image.open(io.BytesIO(png_bytes)) as converted:
        assert converted.format == "PNG"
        assert converted.size == (40, 40)
        assert converted.mode == "RGBA"


def test_unreadable_image_in_picture_mode_is_reported() -> None:
    deps = make_deps()
    deps.store.set_mode("s1", SessionMode.PICTURE_CREATE)
    deps.messenger.attachments["img_1"] = b"not an image"
    ctx = make_context(message_type=MessageType.IMAGE, image_key="img_1", session_id="s1")

    asyncio.run(run_chain(ctx, deps))

    assert deps.messenger.replies == [("om_1", picture_policy.UNREADABLE_IMAGE)]
    assert deps.images.variations == []


def test_commands_still_work_in_picture_mode() -> None:
    deps = make_deps()
    deps.store.set_mode("s1", SessionMode.PICTURE_CREATE)
    asyncio.run(run_chain(make_context("/help", session_id="s1"), deps))
    assert deps.images.prompts == []
    assert len(deps.messenger.cards) == 1


def test_image_modes_are_disabled_with_azure() -> None:
    deps = make_deps(azure_on=True)
    asyncio.run(run_chain(make_context("/picture", session_id="s1"), deps))
    assert deps.store.get_mode("s1") is SessionMode.CHAT
    assert len(deps.chat.calls) == 1
