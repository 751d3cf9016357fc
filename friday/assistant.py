"""Headless assistant controller: composer, routing, retry, export, and wiring.

The controller is the only entry point a UI needs. It owns the message log,
rebuilds the conversation session whenever the log generation changes, and
turns every flow failure into the last-error slot instead of raising.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from .capabilities import ChatBackend, ImageBackend
from .config import Settings
from .conversation import ConversationSession
from .errors import CapabilityUnavailableError
from .history_store import HistoryStore
from .image_flow import ImageGenerationFlow
from .intent import Intent, classify
from .message_log import MessageLog
from .models import Message
from .storage import LocalStorage
from .utils import extension_for_mime, new_message_id, now_ms, parse_data_uri
from .voice import RecognizerFactory, VoiceCaptureAdapter

logger = logging.getLogger("friday.assistant")


class Composer:
    """Text the user is about to send."""

    def __init__(self) -> None:
        self.text = ""

    def set(self, text: str) -> None:
        self.text = text

    def clear(self) -> None:
        self.text = ""

    def append_transcript(self, transcript: str) -> None:
        self.text = f"{self.text} {transcript}" if self.text else transcript


class Assistant:
    """Conversation state machine shared by text chat and image generation."""

    def __init__(
        self,
        log: MessageLog,
        chat_backend: ChatBackend,
        image_flow: ImageGenerationFlow,
        recognizer_factory: Optional[RecognizerFactory] = None,
        speech_lang: str = "en-IN",
    ) -> None:
        """Purpose: Wire the log, chat backend, image flow, and voice adapter.
        Inputs/Outputs: Inputs are collaborators and voice settings; no return value.
        Side Effects / State: Starts a conversation session for the current log.
        Dependencies: Uses ConversationSession and VoiceCaptureAdapter.
        Failure Modes: Backend errors while opening a chat propagate.
        If Removed: There is no single entry point for the UI.
        Testing Notes: Build with fake backends from tests/conftest.py.
        """
        self.log = log
        self.composer = Composer()
        self.last_error: Optional[str] = None
        self._chat_backend = chat_backend
        self._image_flow = image_flow
        self._session: Optional[ConversationSession] = None
        self.voice = VoiceCaptureAdapter(
            recognizer_factory,
            on_transcript=self.composer.append_transcript,
            lang=speech_lang,
        )
        self._ensure_session()

    @property
    def session(self) -> ConversationSession:
        return self._ensure_session()

    @property
    def is_thinking(self) -> bool:
        return self._session is not None and self._session.busy

    @property
    def is_generating(self) -> bool:
        return self._image_flow.is_generating

    @property
    def busy(self) -> bool:
        return self.is_thinking or self.is_generating

    @property
    def progress(self) -> int:
        return self._image_flow.progress

    @property
    def listening(self) -> bool:
        return self.voice.listening

    def dismiss_error(self) -> None:
        self.last_error = None

    def _ensure_session(self) -> ConversationSession:
        # A reset or full replacement of the log invalidates the remote context.
        if self._session is None or self._session.generation != self.log.generation:
            session = ConversationSession(self._chat_backend, generation=self.log.generation)
            session.start(self.log.messages)
            self._session = session
        return self._session

    async def submit(self) -> bool:
        """Purpose: Send the composer text through the classifier to chat or image.
        Inputs/Outputs: No inputs; returns True when the text was accepted.
        Side Effects / State: Appends the user turn, clears the composer, runs one flow,
            and records any failure in last_error.
        Dependencies: Uses classify, ConversationSession.reply_into, ImageGenerationFlow.
        Failure Modes: Empty input or a busy flow rejects the submit (False); flow errors
            never raise out of here.
        If Removed: Nothing turns user input into conversation turns.
        Testing Notes: Submit "draw a cat" and "hello" and check which backend was used.
        """
        text = self.composer.text.strip()
        if not text or self.busy:
            return False
        self.last_error = None
        session = self._ensure_session()
        intent = classify(text)
        logger.info("submit intent=%s chars=%s", intent.value, len(text))

        self.log.append(Message(id=new_message_id(), sender="user", text=text, timestamp=now_ms()))
        self.composer.clear()

        if intent is Intent.IMAGE:
            outcome = await self._image_flow.generate(text)
        else:
            outcome = await session.reply_into(self.log, text)
        if outcome.error is not None:
            self.last_error = outcome.error.message
        return True

    async def retry_last(self) -> bool:
        """Resubmit the most recent user turn as if it were freshly typed."""
        last_user = self.log.last_user_message()
        if last_user is None:
            return False
        self.composer.set(last_user.text)
        return await self.submit()

    def clear_history(self) -> None:
        self.log.reset()
        self._ensure_session()

    def toggle_listening(self) -> None:
        try:
            self.voice.toggle()
        except CapabilityUnavailableError as exc:
            self.last_error = exc.message

    def export_history(self, directory: Union[str, Path]) -> Path:
        """Purpose: Write the whole log as indented JSON to a timestamped file.
        Inputs/Outputs: Input is the target directory; returns the written path.
        Side Effects / State: Creates the directory if needed and writes one file.
        Dependencies: Uses MessageLog.to_json.
        Failure Modes: OSError propagates to the caller.
        If Removed: Users cannot take their history off the device.
        Testing Notes: Export to tmp_path and parse the file back with MessageLog.from_json.
        """
        target_dir = Path(directory)
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / f"friday_history_{now_ms()}.json"
        path.write_text(self.log.to_json(), encoding="utf-8")
        return path

    def save_image(self, message_id: str, directory: Union[str, Path]) -> Path:
        """Decode an image message's data URI into a timestamped file."""
        message = self.log.get(message_id)
        if message is None or not message.image:
            raise KeyError(f"Message {message_id} has no image")
        mime_type, data = parse_data_uri(message.image)
        target_dir = Path(directory)
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / f"friday_image_{now_ms()}.{extension_for_mime(mime_type)}"
        path.write_bytes(data)
        return path


def build_assistant(
    settings: Settings,
    recognizer_factory: Optional[RecognizerFactory] = None,
    chat_backend: Optional[ChatBackend] = None,
    image_backend: Optional[ImageBackend] = None,
) -> Assistant:
    """Purpose: Assemble storage, history, log, backends, and the controller.
    Inputs/Outputs: Inputs are Settings and optional overrides; returns an Assistant.
    Side Effects / State: Reads the history file; may configure the Gemini SDK.
    Dependencies: Uses ProxyClient when settings.proxy_url is set, else GeminiClient.
    Failure Modes: GeminiClient raises ValueError without an API key.
    If Removed: Every caller would repeat the wiring.
    Testing Notes: Pass fake backends and a tmp history path.
    """
    storage = LocalStorage(settings.history_path, max_bytes=settings.storage_max_bytes)
    history = HistoryStore(storage, key=settings.history_key, welcome_text=settings.welcome_text)
    log = MessageLog(history)

    if chat_backend is None or image_backend is None:
        if settings.proxy_url:
            from .proxy_client import ProxyClient

            remote = ProxyClient(settings.proxy_url, timeout=settings.proxy_timeout)
        else:
            from .gemini_client import GeminiClient

            remote = GeminiClient(settings)
        chat_backend = chat_backend or remote
        image_backend = image_backend or remote

    image_flow = ImageGenerationFlow(image_backend, log)
    return Assistant(
        log,
        chat_backend,
        image_flow,
        recognizer_factory=recognizer_factory,
        speech_lang=settings.speech_lang,
    )
