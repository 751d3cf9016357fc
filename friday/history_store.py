from __future__ import annotations

import json
import logging
from typing import List, Sequence

from pydantic import ValidationError

from .config import DEFAULT_HISTORY_KEY, DEFAULT_WELCOME_TEXT
from .errors import AssistantError
from .models import Message
from .storage import LocalStorage
from .utils import new_message_id

logger = logging.getLogger("friday.history")


class HistoryStore:
    """Durable snapshot of the message log under a single storage key."""

    def __init__(
        self,
        storage: LocalStorage,
        key: str = DEFAULT_HISTORY_KEY,
        welcome_text: str = DEFAULT_WELCOME_TEXT,
    ) -> None:
        self._storage = storage
        self._key = key
        self._welcome_text = welcome_text

    @property
    def welcome_text(self) -> str:
        return self._welcome_text

    def welcome_message(self) -> Message:
        """Build the synthetic first assistant message (no timestamp)."""
        return Message(id=new_message_id(), sender="assistant", text=self._welcome_text)

    def load(self) -> List[Message]:
        """Purpose: Read the persisted log once at startup.
        Inputs/Outputs: No inputs; returns a non-empty list of Message.
        Side Effects / State: Reads from local storage.
        Dependencies: Uses json.loads and Message validation.
        Failure Modes: Absent, corrupt, or invalid payloads fall back to a fresh welcome log.
        If Removed: Every start would lose the previous conversation.
        Testing Notes: Seed garbage under the key and verify a single welcome message.
        """
        # Decode the stored list and validate each record.
        raw = self._storage.get(self._key)
        if not raw:
            return [self.welcome_message()]
        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                raise ValueError("history payload is not a list")
            messages = [Message.model_validate(item) for item in data]
        except (ValueError, ValidationError) as exc:
            logger.warning("history key=%s unreadable, reseeding: %s", self._key, exc)
            return [self.welcome_message()]
        return messages or [self.welcome_message()]

    def save(self, messages: Sequence[Message]) -> None:
        """Purpose: Overwrite the stored snapshot with the current log.
        Inputs/Outputs: Input is the message list; no return value.
        Side Effects / State: Writes to local storage.
        Dependencies: Uses Message.to_record and LocalStorage.set.
        Failure Modes: Quota and IO errors are logged and swallowed.
        If Removed: The log is never mirrored to disk.
        Testing Notes: Use a tiny quota and verify save does not raise.
        """
        payload = json.dumps([message.to_record() for message in messages], ensure_ascii=False)
        try:
            self._storage.set(self._key, payload)
        except AssistantError as exc:
            logger.warning("history key=%s save failed: %s", self._key, exc)

    def clear(self) -> None:
        try:
            self._storage.remove(self._key)
        except AssistantError as exc:
            logger.warning("history key=%s clear failed: %s", self._key, exc)
