"""
Tests for friday.gemini_client with the google.generativeai SDK mocked out.
"""

from dataclasses import replace
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from google.generativeai import protos

from friday.config import load_settings
from friday.errors import ImageRefusedError
from friday.gemini_client import GeminiClient, GeminiChat, _extract_image, _normalize_model_name
from friday.models import ChatTurn

from .conftest import PNG_BYTES


class _AsyncChunks:
    def __init__(self, texts):
        self._texts = list(texts)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._texts:
            raise StopAsyncIteration
        return _response(parts=[SimpleNamespace(text=self._texts.pop(0))])


def _response(parts=None, finish_reason=None, safety_ratings=None):
    candidate = SimpleNamespace(
        content=SimpleNamespace(parts=parts or []),
        finish_reason=finish_reason,
        safety_ratings=safety_ratings or [],
    )
    return SimpleNamespace(candidates=[candidate])


@pytest.fixture
def settings(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    return load_settings()


@pytest.fixture
def genai():
    with patch("friday.gemini_client.genai") as mocked:
        yield mocked


def test_missing_api_key_raises(genai):
    with pytest.raises(ValueError):
        GeminiClient(replace(load_settings(), gemini_api_key=""))


def test_configures_sdk_and_caches_chat_model(settings, genai):
    client = GeminiClient(settings)
    genai.configure.assert_called_once_with(api_key="test-key")
    client.start_chat([])
    client.start_chat([])
    assert genai.GenerativeModel.call_count == 1


@pytest.mark.asyncio
async def test_chat_streams_chunk_text(settings, genai):
    session = MagicMock()
    session.send_message_async = AsyncMock(return_value=_AsyncChunks(["Hel", "lo"]))
    genai.GenerativeModel.return_value.start_chat.return_value = session

    chat = GeminiClient(settings).start_chat([ChatTurn.of("user", "hi"), ChatTurn.of("model", "hey")])
    fragments = [fragment async for fragment in chat.send_message_stream("again")]

    assert fragments == ["Hel", "lo"]
    history = genai.GenerativeModel.return_value.start_chat.call_args.kwargs["history"]
    assert history == [
        {"role": "user", "parts": [{"text": "hi"}]},
        {"role": "model", "parts": [{"text": "hey"}]},
    ]
    session.send_message_async.assert_awaited_once_with("again", stream=True)


@pytest.mark.asyncio
async def test_generate_reply_returns_text(settings, genai):
    session = MagicMock()
    session.send_message_async = AsyncMock(return_value=_response(parts=[SimpleNamespace(text="answer")]))
    genai.GenerativeModel.return_value.start_chat.return_value = session
    assert await GeminiClient(settings).generate_reply([], "question") == "answer"


@pytest.mark.asyncio
async def test_generate_image_requests_image_modality(settings, genai):
    inline = SimpleNamespace(mime_type="image/jpeg", data=PNG_BYTES)
    model = genai.GenerativeModel.return_value
    model.generate_content_async = AsyncMock(return_value=_response(parts=[SimpleNamespace(inline_data=inline)]))

    result = await GeminiClient(settings).generate_image("a fox")

    assert result.mime_type == "image/jpeg"
    assert result.data == PNG_BYTES
    assert result.prompt == "a fox"
    kwargs = model.generate_content_async.call_args.kwargs
    assert kwargs["generation_config"] == {"response_modalities": ["IMAGE"]}


class _ProtoStream:
    def __init__(self, chunks):
        self._chunks = list(chunks)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._chunks:
            raise StopAsyncIteration
        return self._chunks.pop(0)


@pytest.mark.asyncio
async def test_chat_stream_tolerates_finish_only_chunk():
    chunks = [
        protos.GenerateContentResponse(
            candidates=[protos.Candidate(content=protos.Content(role="model", parts=[protos.Part(text="Hello")]))]
        ),
        protos.GenerateContentResponse(
            candidates=[protos.Candidate(finish_reason=protos.Candidate.FinishReason.STOP, content=protos.Content(parts=[]))]
        ),
    ]
    session = MagicMock()
    session.send_message_async = AsyncMock(return_value=_ProtoStream(chunks))

    fragments = [fragment async for fragment in GeminiChat(session).send_message_stream("hi")]

    assert fragments == ["Hello", ""]


def test_extract_image_skips_text_parts():
    parts = [SimpleNamespace(text="here you go", inline_data=None), SimpleNamespace(inline_data=SimpleNamespace(mime_type="image/png", data=PNG_BYTES))]
    assert _extract_image(_response(parts=parts), "p").data == PNG_BYTES


def test_extract_image_refusal_carries_reason():
    ratings = [SimpleNamespace(category="HARM_CATEGORY_DANGEROUS_CONTENT", probability="HIGH")]
    with pytest.raises(ImageRefusedError) as info:
        _extract_image(_response(finish_reason=SimpleNamespace(name="SAFETY"), safety_ratings=ratings), "p")
    assert info.value.finish_reason == "SAFETY"
    assert info.value.safety_ratings == ratings
    assert "blocked for safety" in info.value.message


def test_extract_image_without_candidates_uses_prompt_feedback():
    response = SimpleNamespace(candidates=[], prompt_feedback=SimpleNamespace(block_reason="OTHER"))
    with pytest.raises(ImageRefusedError) as info:
        _extract_image(response, "p")
    assert info.value.finish_reason == "OTHER"


def test_normalize_model_name():
    assert _normalize_model_name(" models/gemini-2.5-flash ") == "gemini-2.5-flash"
    assert _normalize_model_name(None) == ""
