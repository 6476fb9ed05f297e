"""OpenAI service wrappers exercised against a recording stub client."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any, Dict, List

import pytest

from models.session_models import PicResolution, PicStyle, SessionMessage, VisionDetail
from services.openai.chat_service import ChatService
from services.openai.dictation_service import DictationService
from services.openai.image_service import ImageService
from services.openai.vision_service import VisionService, build_vision_messages


class _Recorder:
    """Async callable returning a canned response and keeping the kwargs."""

    def __init__(self, response: Any) -> None:
        self.response = response
        self.calls: List[Dict[str, Any]] = []

    async def __call__(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        return self.response


class _ChunkStream:
    def __init__(self, fragments: List[Any]) -> None:
        self._chunks = [
            SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=fragment))])
            for fragment in fragments
        ]

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self._chunks:
            yield chunk


def _chat_client(response: Any) -> SimpleNamespace:
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=_Recorder(response))))


def _history() -> List[SessionMessage]:
    return [SessionMessage(role="system", content="be brief"), SessionMessage(role="user", content="hi")]


def test_services_require_a_client() -> None:
    for factory in (
        lambda: ChatService(None, "gpt"),
        lambda: ImageService(None),
        lambda: VisionService(None, "gpt-4o"),
        lambda: DictationService(None),
    ):
        with pytest.raises(ValueError):
            factory()


def test_complete_chat_sends_history_and_temperature() -> None:
    reply = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(role="assistant", content="hello"))])
    client = _chat_client(reply)
    service = ChatService(client, "gpt-3.5-turbo", max_tokens=100)

    message = asyncio.run(service.complete_chat(_history(), 1.7))

    assert (message.role, message.content) == ("assistant", "hello")
    call = client.chat.completions.create.calls[0]
    assert call["messages"] == [{"role": "system", "content": "be brief"}, {"role": "user", "content": "hi"}]
    assert call["temperature"] == 1.7
    assert call["max_tokens"] == 100


def test_complete_chat_without_choices_raises() -> None:
    service = ChatService(_chat_client(SimpleNamespace(choices=[])), "gpt-3.5-turbo")
    with pytest.raises(RuntimeError):
        asyncio.run(service.complete_chat(_history(), 0.7))


def test_stream_chat_yields_non_empty_fragments_in_order() -> None:
    client = _chat_client(_ChunkStream(["Hel", None, "", "lo"]))
    service = ChatService(client, "gpt-3.5-turbo")

    async def collect() -> List[str]:
        return [fragment async for fragment in service.stream_chat(_history(), 0.7)]

    assert asyncio.run(collect()) == ["Hel", "lo"]
    assert client.chat.completions.create.calls[0]["stream"] is True


def test_generate_image_sends_style_to_dalle3_only() -> None:
    response = SimpleNamespace(data=[SimpleNamespace(b64_json="abc")])
    dalle3 = SimpleNamespace(images=SimpleNamespace(generate=_Recorder(response)))
    dalle2 = SimpleNamespace(images=SimpleNamespace(generate=_Recorder(response)))

    assert asyncio.run(ImageService(dalle3).generate_image("fox", PicResolution.R1024, PicStyle.NATURAL)) == "abc"
    asyncio.run(ImageService(dalle2, model="dall-e-2").generate_image("fox", PicResolution.R256, PicStyle.NATURAL))

    assert dalle3.images.generate.calls[0]["style"] == "natural"
    assert dalle3.images.generate.calls[0]["size"] == "1024x1024"
    assert "style" not in dalle2.images.generate.calls[0]


def test_variation_falls_back_to_square_size() -> None:
    response = SimpleNamespace(data=[SimpleNamespace(b64_json="var")])
    client = SimpleNamespace(images=SimpleNamespace(create_variation=_Recorder(response)))

    result = asyncio.run(ImageService(client).generate_image_variation(b"png", PicResolution.R1792_WIDE))

    call = client.images.create_variation.calls[0]
    assert result == "var"
    assert call["size"] == "1024x1024"
    assert call["model"] == "dall-e-2"


def test_image_response_without_data_raises() -> None:
    client = SimpleNamespace(images=SimpleNamespace(generate=_Recorder(SimpleNamespace(data=[]))))
    with pytest.raises(RuntimeError):
        asyncio.run(ImageService(client).generate_image("fox", PicResolution.R1024))


def test_vision_messages_carry_every_image_with_detail() -> None:
    messages = build_vision_messages("", ["aaa", "bbb"], VisionDetail.HIGH)
    content = messages[0]["content"]
    assert content[0]["type"] == "text"
    assert content[0]["text"]
    assert [part["image_url"]["url"] for part in content[1:]] == [
        "data:image/jpeg;base64,aaa",
        "data:image/jpeg;base64,bbb",
    ]
    assert {part["image_url"]["detail"] for part in content[1:]} == {"high"}


def test_vision_analyze_returns_answer() -> None:
    reply = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="two cats"))])
    client = _chat_client(reply)
    answer = asyncio.run(VisionService(client, "gpt-4o").analyze("how many?", ["aaa"], VisionDetail.LOW))
    assert answer == "two cats"
    with pytest.raises(ValueError):
        asyncio.run(VisionService(client, "gpt-4o").analyze("how many?", [], VisionDetail.LOW))


def test_transcribe_strips_text(tmp_path) -> None:
    audio = tmp_path / "clip.mp3"
    audio.write_bytes(b"ID3")
    client = SimpleNamespace(
        audio=SimpleNamespace(transcriptions=SimpleNamespace(create=_Recorder(SimpleNamespace(text="  hi there \n"))))
    )
    assert asyncio.run(DictationService(client).transcribe(str(audio))) == "hi there"
    with pytest.raises(FileNotFoundError):
        asyncio.run(DictationService(client).transcribe(str(tmp_path / "missing.mp3")))
