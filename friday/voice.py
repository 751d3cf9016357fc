"""Start/stop wrapper around an external continuous speech-to-text capability."""

from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol

from .errors import CapabilityUnavailableError

logger = logging.getLogger("friday.voice")

UNSUPPORTED_NOTICE = "Voice not supported"


class SpeechRecognizer(Protocol):
    """Host speech capability; it invokes the callbacks once start() is called."""

    lang: str
    interim_results: bool
    max_alternatives: int
    on_start: Optional[Callable[[], None]]
    on_result: Optional[Callable[[str, bool], None]]
    on_error: Optional[Callable[[str], None]]
    on_end: Optional[Callable[[], None]]

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...


RecognizerFactory = Callable[[], SpeechRecognizer]


class VoiceCaptureAdapter:
    """Feeds final transcripts into the composer and tracks the listening state."""

    def __init__(
        self,
        recognizer_factory: Optional[RecognizerFactory],
        on_transcript: Callable[[str], None],
        lang: str = "en-IN",
        on_listening: Optional[Callable[[bool], None]] = None,
    ) -> None:
        self._factory = recognizer_factory
        self._on_transcript = on_transcript
        self._lang = lang
        self._on_listening = on_listening
        self._recognizer: Optional[SpeechRecognizer] = None
        self._listening = False

    @property
    def listening(self) -> bool:
        return self._listening

    @property
    def available(self) -> bool:
        return self._factory is not None

    def _set_listening(self, value: bool) -> None:
        if self._listening == value:
            return
        self._listening = value
        if self._on_listening is not None:
            self._on_listening(value)

    def toggle(self) -> None:
        if self._recognizer is not None:
            self.stop()
        else:
            self.start()

    def start(self) -> None:
        """Purpose: Begin one continuous recognition session.
        Inputs/Outputs: No inputs; no return value.
        Side Effects / State: Creates and starts a recognizer bound to this adapter.
        Dependencies: Uses the injected recognizer factory.
        Failure Modes: Raises CapabilityUnavailableError when no factory is available
            or the capability refuses to start; a second call while a session is
            active is ignored.
        If Removed: Voice input cannot reach the composer.
        Testing Notes: Call start twice and verify only one recognizer was created.
        """
        if self._recognizer is not None:
            return
        if self._factory is None:
            raise CapabilityUnavailableError(UNSUPPORTED_NOTICE)
        recognizer = self._factory()
        recognizer.lang = self._lang
        recognizer.interim_results = False
        recognizer.max_alternatives = 1
        recognizer.on_start = lambda: self._handle_start(recognizer)
        recognizer.on_result = lambda transcript, final: self._handle_result(recognizer, transcript, final)
        recognizer.on_error = lambda error: self._handle_error(recognizer, error)
        recognizer.on_end = lambda: self._handle_end(recognizer)
        self._recognizer = recognizer
        try:
            recognizer.start()
        except Exception as exc:
            logger.warning("voice start failed: %s", exc)
            self._recognizer = None
            self._set_listening(False)
            raise CapabilityUnavailableError(str(exc) or UNSUPPORTED_NOTICE) from exc

    def stop(self) -> None:
        """Stop listening; idempotent, capability errors are logged and dropped."""
        recognizer = self._recognizer
        self._recognizer = None
        if recognizer is not None:
            try:
                recognizer.stop()
            except Exception as exc:
                logger.warning("voice stop failed: %s", exc)
        self._set_listening(False)

    # Events from a recognizer that is no longer current are ignored.

    def _handle_start(self, recognizer: SpeechRecognizer) -> None:
        if recognizer is self._recognizer:
            self._set_listening(True)

    def _handle_result(self, recognizer: SpeechRecognizer, transcript: str, final: bool) -> None:
        if recognizer is not self._recognizer or not final:
            return
        text = (transcript or "").strip()
        if text:
            self._on_transcript(text)

    def _handle_error(self, recognizer: SpeechRecognizer, error: str) -> None:
        if recognizer is not self._recognizer:
            return
        logger.warning("voice recognition error=%s", error)
        self._recognizer = None
        self._set_listening(False)

    def _handle_end(self, recognizer: SpeechRecognizer) -> None:
        if recognizer is not self._recognizer:
            return
        self._recognizer = None
        self._set_listening(False)
