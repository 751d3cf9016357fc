from __future__ import annotations

import base64
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import google.generativeai as genai
from google.generativeai import types as genai_types

from .config import Settings
from .errors import ImageRefusedError
from .models import ChatTurn, ImageResult

logger = logging.getLogger("friday.gemini")

DEFAULT_SAFETY_SETTINGS = [
    {
        "category": genai_types.HarmCategory.HARM_CATEGORY_HARASSMENT,
        "threshold": genai_types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    },
    {
        "category": genai_types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
        "threshold": genai_types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    },
    {
        "category": genai_types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
        "threshold": genai_types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    },
    {
        "category": genai_types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
        "threshold": genai_types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    },
]

IMAGE_GENERATION_CONFIG = {"response_modalities": ["IMAGE"]}


class GeminiChat:
    """Chat handle around a Gemini ChatSession; history grows with every send."""

    def __init__(self, session: Any) -> None:
        self._session = session

    async def send_message_stream(self, text: str) -> AsyncIterator[str]:
        """Purpose: Send one user turn and stream the reply as text fragments.
        Inputs/Outputs: Input is the user text; yields fragment strings in order.
        Side Effects / State: The underlying ChatSession records both turns on success.
        Dependencies: Uses ChatSession.send_message_async(stream=True).
        Failure Modes: Transport and provider errors propagate to the caller.
        If Removed: The conversation session has no live text capability.
        Testing Notes: Mock the session with an async iterable of chunks.
        """
        # Await the streaming response, then relay chunk text as it arrives.
        response = await self._session.send_message_async(text, stream=True)
        async for chunk in response:
            yield _response_text(chunk)


class GeminiClient:
    """Thin wrapper around the Gemini SDK with model caching and safety settings."""

    def __init__(self, settings: Settings) -> None:
        """Purpose: Configure the Gemini SDK and initialize the model cache.
        Inputs/Outputs: Input is Settings; no return value.
        Side Effects / State: Configures the SDK global API key and caches model instances.
        Dependencies: Uses google.generativeai and Settings from config.
        Failure Modes: Raises ValueError if the API key or chat model name is missing.
        If Removed: Neither the proxy nor a direct client can reach the provider.
        Testing Notes: Validate a missing key raises ValueError and models are cached.
        """
        # Configure API key and seed the chat model cache.
        self._settings = settings
        if not settings.gemini_api_key:
            raise ValueError("GEMINI_API_KEY is required")
        genai.configure(api_key=settings.gemini_api_key)
        self._models: Dict[str, genai.GenerativeModel] = {}
        self._chat_model = _normalize_model_name(settings.chat_model)
        self._image_model = _normalize_model_name(settings.image_model)
        if not self._chat_model:
            raise ValueError("Gemini chat model name is required")
        self._model(self._chat_model)

    def _model(self, name: str) -> genai.GenerativeModel:
        if name not in self._models:
            self._models[name] = genai.GenerativeModel(name, safety_settings=DEFAULT_SAFETY_SETTINGS)
        return self._models[name]

    def start_chat(self, history: Sequence[ChatTurn]) -> GeminiChat:
        """Open a chat seeded with prior role-tagged turns."""
        contents = [turn.model_dump() for turn in history]
        return GeminiChat(self._model(self._chat_model).start_chat(history=contents))

    async def generate_reply(self, history: Sequence[ChatTurn], message: str) -> str:
        """Purpose: Produce one complete (non-streamed) reply for the HTTP proxy.
        Inputs/Outputs: Inputs are prior turns and the new message; returns reply text.
        Side Effects / State: Creates a throwaway ChatSession per call.
        Dependencies: Uses ChatSession.send_message_async.
        Failure Modes: Provider errors propagate to the route handler.
        If Removed: POST /api/chat has no backend.
        Testing Notes: Mock GenerativeModel.start_chat and check history forwarding.
        """
        contents = [turn.model_dump() for turn in history]
        session = self._model(self._chat_model).start_chat(history=contents)
        response = await session.send_message_async(message)
        return _response_text(response)

    async def generate_image(self, prompt: str) -> ImageResult:
        """Purpose: Generate one image for a prompt with image-only response modality.
        Inputs/Outputs: Input is the prompt; returns ImageResult with MIME type and bytes.
        Side Effects / State: May add the image model to the cache.
        Dependencies: Uses GenerativeModel.generate_content_async and _extract_image.
        Failure Modes: Raises ImageRefusedError when no inline data is returned.
        If Removed: Image requests cannot be served.
        Testing Notes: Return a candidate without inline_data and expect a refusal.
        """
        # Request image output, then pull the first inline blob out of the candidate.
        if not self._image_model:
            raise ValueError("Gemini image model name is required")
        response = await self._model(self._image_model).generate_content_async(
            prompt,
            generation_config=IMAGE_GENERATION_CONFIG,
        )
        return _extract_image(response, prompt)


def _response_text(response: Any) -> str:
    # Joins the first candidate's text parts; finish-only chunks carry no parts.
    candidates = getattr(response, "candidates", None)
    if not candidates:
        return ""
    content = getattr(candidates[0], "content", None)
    parts = getattr(content, "parts", None) or []
    return "".join(getattr(part, "text", None) or "" for part in parts)


def _extract_image(response: Any, prompt: str) -> ImageResult:
    """Purpose: Pull inline image bytes from a generate_content response.
    Inputs/Outputs: Inputs are the SDK response and prompt; output is ImageResult.
    Side Effects / State: Logs a warning with finish reason and safety ratings on refusal.
    Dependencies: Reads candidates[0].content.parts[*].inline_data.
    Failure Modes: Raises ImageRefusedError when no part carries inline data.
    If Removed: Safety blocks would surface as attribute errors instead of refusals.
    Testing Notes: Feed SimpleNamespace responses with and without inline_data.
    """
    candidates = getattr(response, "candidates", None) or []
    candidate = candidates[0] if candidates else None
    content = getattr(candidate, "content", None)
    for part in getattr(content, "parts", None) or []:
        inline = getattr(part, "inline_data", None)
        data = getattr(inline, "data", None) if inline is not None else None
        if data:
            if isinstance(data, str):
                data = base64.b64decode(data)
            mime_type = getattr(inline, "mime_type", None) or "image/png"
            return ImageResult(mime_type=mime_type, data=data, prompt=prompt)

    finish_reason = _enum_name(getattr(candidate, "finish_reason", None))
    if finish_reason is None:
        feedback = getattr(response, "prompt_feedback", None)
        finish_reason = _enum_name(getattr(feedback, "block_reason", None))
    safety_ratings: List[Any] = list(getattr(candidate, "safety_ratings", None) or [])
    logger.warning(
        "image generation might be blocked finish_reason=%s safety_ratings=%s",
        finish_reason,
        safety_ratings,
    )
    raise ImageRefusedError(finish_reason=finish_reason, safety_ratings=safety_ratings)


def _enum_name(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(getattr(value, "name", value))


def _normalize_model_name(name: Optional[str]) -> str:
    """Purpose: Normalize model names by stripping prefix and whitespace.
    Inputs/Outputs: Input is a model name string; output is normalized name.
    Side Effects / State: None.
    Dependencies: None; used by GeminiClient.
    Failure Modes: Returns empty string for falsy input.
    If Removed: Model caching may key the same model under two names.
    Testing Notes: Ensure "models/foo" becomes "foo" and whitespace is trimmed.
    """
    # Strip "models/" prefix and whitespace.
    if not name:
        return ""
    cleaned = name.strip()
    if cleaned.startswith("models/"):
        return cleaned.split("/", 1)[1]
    return cleaned
