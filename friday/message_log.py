from __future__ import annotations

import json
import logging
from typing import Callable, Iterable, List, Optional

from .history_store import HistoryStore
from .models import Message

logger = logging.getLogger("friday.log")

Mutator = Callable[[Message], Message]


class MessageLog:
    """Ordered conversation log; single source of truth for rendering and AI context."""

    def __init__(self, history: HistoryStore, messages: Optional[Iterable[Message]] = None) -> None:
        """Purpose: Initialize the log from explicit messages or the persisted snapshot.
        Inputs/Outputs: Inputs are a HistoryStore and optional seed messages; no return.
        Side Effects / State: Reads the history store when no seed is given.
        Dependencies: Uses HistoryStore.load / welcome_message.
        Failure Modes: None; an empty seed is replaced by the welcome message.
        If Removed: Nothing owns message order or the never-empty invariant.
        Testing Notes: Build with an empty seed and verify one welcome message.
        """
        # Hydrate from disk once; never start empty.
        self._history = history
        seed = list(messages) if messages is not None else history.load()
        self._messages: List[Message] = seed or [history.welcome_message()]
        self._generation = 0

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    @property
    def generation(self) -> int:
        """Counter bumped whenever the whole log is replaced or reset."""
        return self._generation

    def __len__(self) -> int:
        return len(self._messages)

    def get(self, message_id: str) -> Optional[Message]:
        for message in self._messages:
            if message.id == message_id:
                return message
        return None

    def last_user_message(self) -> Optional[Message]:
        for message in reversed(self._messages):
            if message.sender == "user":
                return message
        return None

    def append(self, message: Message) -> None:
        """Purpose: Add a message at the end of the log.
        Inputs/Outputs: Input is a Message; no return value.
        Side Effects / State: Mutates the log and writes a history snapshot.
        Dependencies: Uses _snapshot.
        Failure Modes: Raises ValueError when the id is already present.
        If Removed: No new turns can be recorded.
        Testing Notes: Append two messages and verify order and persistence.
        """
        if self.get(message.id) is not None:
            raise ValueError(f"Duplicate message id {message.id}")
        self._messages.append(message)
        self._snapshot()

    def update_by_id(self, message_id: str, mutator: Mutator) -> bool:
        """Purpose: Replace one message with the mutator's result, in place.
        Inputs/Outputs: Inputs are a message id and a Message -> Message callable;
            returns True when a message was updated.
        Side Effects / State: Mutates the targeted entry and writes a history snapshot.
        Dependencies: Uses _snapshot.
        Failure Modes: Unknown ids and image-bearing messages are left untouched (False).
        If Removed: Streaming replies cannot grow their placeholder message.
        Testing Notes: Update a missing id and compare the log before/after.
        """
        # Locate the target, refuse finalized image messages, keep the id stable.
        for index, current in enumerate(self._messages):
            if current.id != message_id:
                continue
            if current.image:
                logger.warning("message=%s is a finalized image message; update ignored", message_id)
                return False
            updated = mutator(current)
            if updated.id != message_id:
                updated = updated.model_copy(update={"id": message_id})
            self._messages[index] = updated
            self._snapshot()
            return True
        return False

    def set_text(self, message_id: str, text: str) -> bool:
        return self.update_by_id(message_id, lambda message: message.model_copy(update={"text": text}))

    def replace_all(self, messages: Iterable[Message]) -> None:
        """Replace the whole log; an empty list reseeds the welcome message."""
        replacement = list(messages)
        ids = [message.id for message in replacement]
        if len(ids) != len(set(ids)):
            raise ValueError("Duplicate message ids in replacement log")
        self._messages = replacement or [self._history.welcome_message()]
        self._generation += 1
        self._snapshot()

    def reset(self) -> None:
        """Purpose: Return to the single-welcome state and clear the stored history.
        Inputs/Outputs: No inputs; no return value.
        Side Effects / State: Replaces the log, bumps generation, removes the storage key.
        Dependencies: Uses HistoryStore.welcome_message and HistoryStore.clear.
        Failure Modes: Storage failures are swallowed by the history store.
        If Removed: Users cannot clear history and the session is never rebuilt.
        Testing Notes: Reset a long log and verify one assistant welcome message.
        """
        self._messages = [self._history.welcome_message()]
        self._generation += 1
        self._history.clear()
        logger.info("log reset generation=%s", self._generation)

    def to_json(self) -> str:
        return json.dumps([message.to_record() for message in self._messages], ensure_ascii=False, indent=2)

    @staticmethod
    def from_json(payload: str) -> List[Message]:
        data = json.loads(payload)
        if not isinstance(data, list):
            raise ValueError("Message log JSON must be a list")
        return [Message.model_validate(item) for item in data]

    def _snapshot(self) -> None:
        self._history.save(self._messages)
