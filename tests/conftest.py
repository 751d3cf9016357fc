"""Shared fakes for the remote capabilities, storage, and speech recognition."""

import asyncio
from typing import List, Optional, Sequence

import pytest

from friday.errors import ImageRefusedError
from friday.history_store import HistoryStore
from friday.message_log import MessageLog
from friday.models import ChatTurn, ImageResult
from friday.storage import LocalStorage

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"


class FakeChatHandle:
    """Replays scripted fragments; an Exception in the script is raised in place."""

    def __init__(self, backend: "FakeChatBackend", history: Sequence[ChatTurn]) -> None:
        self.backend = backend
        self.history = list(history)
        self.sent: List[str] = []

    async def send_message_stream(self, text):
        self.sent.append(text)
        script = self.backend.scripts.pop(0) if self.backend.scripts else ["ok"]
        if self.backend.gate is not None:
            await self.backend.gate.wait()
        for item in script:
            if isinstance(item, BaseException):
                raise item
            await asyncio.sleep(0)
            yield item


class FakeChatBackend:
    def __init__(self, scripts: Optional[List[list]] = None) -> None:
        self.scripts = list(scripts or [])
        self.handles: List[FakeChatHandle] = []
        self.gate: Optional[asyncio.Event] = None

    def start_chat(self, history):
        handle = FakeChatHandle(self, history)
        self.handles.append(handle)
        return handle


class FakeImageBackend:
    def __init__(self, result=None, error: Optional[BaseException] = None, delay: float = 0.0) -> None:
        self.result = result
        self.error = error
        self.delay = delay
        self.prompts: List[str] = []

    async def generate_image(self, prompt):
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result or ImageResult(mime_type="image/png", data=PNG_BYTES, prompt=prompt)


class FakeRecognizer:
    def __init__(self, fail_on_stop: bool = False, start_error: Optional[BaseException] = None, auto_start: bool = True) -> None:
        self.lang = ""
        self.interim_results = True
        self.max_alternatives = 0
        self.on_start = None
        self.on_result = None
        self.on_error = None
        self.on_end = None
        self.started = 0
        self.stopped = 0
        self.fail_on_stop = fail_on_stop
        self.start_error = start_error
        self.auto_start = auto_start

    def start(self):
        self.started += 1
        if self.start_error is not None:
            raise self.start_error
        if self.auto_start and self.on_start:
            self.on_start()

    def stop(self):
        self.stopped += 1
        if self.fail_on_stop:
            raise RuntimeError("recognizer already stopped")
        if self.on_end:
            self.on_end()


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(tmp_path / "history.json")


@pytest.fixture
def history(storage):
    return HistoryStore(storage, key="test_history", welcome_text="FRIDAY online. Secure channel active.")


@pytest.fixture
def log(history):
    return MessageLog(history)


@pytest.fixture
def refusal():
    return ImageRefusedError(finish_reason="SAFETY")
