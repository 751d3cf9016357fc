"""HTTP client for the FRIDAY proxy, exposing the same capabilities as GeminiClient."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import httpx

from .errors import TransportError
from .models import ChatTurn, ImageResult
from .utils import parse_data_uri

logger = logging.getLogger("friday.proxy_client")


class ProxyChat:
    """Client-side chat handle; the proxy is stateless so the turns live here."""

    def __init__(self, client: "ProxyClient", history: Sequence[ChatTurn]) -> None:
        self._client = client
        self._history: List[ChatTurn] = list(history)

    @property
    def history(self) -> List[ChatTurn]:
        return list(self._history)

    async def send_message_stream(self, text: str) -> AsyncIterator[str]:
        """Purpose: Post one turn to /api/chat and yield the whole reply as one fragment.
        Inputs/Outputs: Input is the user text; yields the reply string.
        Side Effects / State: Appends the user and model turns after a successful call.
        Dependencies: Uses ProxyClient.post_json.
        Failure Modes: Raises TransportError on network errors or non-2xx statuses.
        If Removed: The assistant cannot use the private proxy for chat.
        Testing Notes: Use httpx.MockTransport and verify the history sent on the second call.
        """
        payload = {
            "history": [turn.model_dump() for turn in self._history],
            "message": text,
        }
        data = await self._client.post_json("/api/chat", payload)
        reply = data.get("reply")
        if not isinstance(reply, str):
            raise TransportError("Proxy chat response is missing a reply")
        self._history.append(ChatTurn.of("user", text))
        self._history.append(ChatTurn.of("model", reply))
        yield reply


class ProxyClient:
    """Async httpx client against POST /api/chat and POST /api/image."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 90.0,
        style: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._style = style
        self._http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    def start_chat(self, history: Sequence[ChatTurn]) -> ProxyChat:
        return ProxyChat(self, history)

    async def generate_image(self, prompt: str) -> ImageResult:
        """Purpose: Ask the proxy for an image and decode the returned data URI.
        Inputs/Outputs: Input is the prompt; returns ImageResult.
        Side Effects / State: None beyond the HTTP call.
        Dependencies: Uses post_json and utils.parse_data_uri.
        Failure Modes: TransportError on HTTP failures, refusals, or undecodable URLs.
        If Removed: The assistant cannot use the private proxy for images.
        Testing Notes: Mock a 500 {"error": ...} reply and check the error message.
        """
        data = await self.post_json("/api/image", {"prompt": prompt, "style": self._style})
        image_url = data.get("imageUrl")
        if not isinstance(image_url, str):
            raise TransportError("Proxy image response is missing imageUrl")
        try:
            mime_type, raw = parse_data_uri(image_url)
        except ValueError as exc:
            raise TransportError(f"Proxy returned an unreadable image: {exc}") from exc
        return ImageResult(mime_type=mime_type, data=raw, prompt=prompt)

    async def post_json(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        # Map transport failures and {"error": ...} bodies to TransportError.
        try:
            response = await self._http.post(path, json=payload)
        except httpx.HTTPError as exc:
            logger.error("proxy path=%s request failed: %s", path, exc)
            raise TransportError(f"Proxy request failed: {exc}") from exc
        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        if response.is_error:
            detail = data.get("error") or f"Proxy returned HTTP {response.status_code}"
            logger.error("proxy path=%s status=%s error=%s", path, response.status_code, detail)
            raise TransportError(str(detail))
        return data

    async def aclose(self) -> None:
        await self._http.aclose()
