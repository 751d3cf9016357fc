from __future__ import annotations

import logging
from typing import AsyncIterator, List, Optional, Sequence

from .capabilities import ChatBackend, ChatHandle
from .errors import SessionBusyError, as_assistant_error
from .message_log import MessageLog
from .models import ChatOutcome, ChatTurn, Message
from .utils import new_message_id, now_ms

logger = logging.getLogger("friday.session")

ERROR_PREFIX = "FRIDAY couldn't reach the AI. "


def build_turns(messages: Sequence[Message]) -> List[ChatTurn]:
    """Purpose: Translate the message log into the remote context window.
    Inputs/Outputs: Input is the ordered log; output is role-tagged ChatTurn list.
    Side Effects / State: None; pure function.
    Dependencies: Uses ChatTurn; called when a session is (re)built.
    Failure Modes: None; alternation between roles is not enforced.
    If Removed: A rebuilt session would forget the persisted conversation.
    Testing Notes: Verify the welcome entry and image messages are dropped.
    """
    # Drop the leading synthetic welcome (assistant, no timestamp) and image turns.
    entries = list(messages)
    if entries and entries[0].sender == "assistant" and entries[0].timestamp is None:
        entries = entries[1:]
    return [
        ChatTurn.of("user" if message.sender == "user" else "model", message.text)
        for message in entries
        if not message.image
    ]


class ConversationSession:
    """Owns one remote chat context and relays streamed replies into the log."""

    def __init__(self, backend: ChatBackend, generation: int = 0) -> None:
        self._backend = backend
        self._generation = generation
        self._handle: Optional[ChatHandle] = None
        self._in_flight = False

    @property
    def generation(self) -> int:
        """Log generation this session was built from."""
        return self._generation

    @property
    def busy(self) -> bool:
        return self._in_flight

    @property
    def started(self) -> bool:
        return self._handle is not None

    def start(self, prior_turns: Sequence[Message]) -> None:
        """Open the remote chat with every prior plain-text turn of the log."""
        turns = build_turns(prior_turns)
        self._handle = self._backend.start_chat(turns)
        logger.info("session generation=%s started turns=%s", self._generation, len(turns))

    async def send(self, text: str) -> AsyncIterator[str]:
        """Purpose: Send one user turn and yield reply fragments in arrival order.
        Inputs/Outputs: Input is the user text; yields non-empty fragment strings.
        Side Effects / State: Holds the in-flight flag until the stream ends or fails.
        Dependencies: Uses the ChatHandle from start().
        Failure Modes: SessionBusyError if a send is pending; RuntimeError before start();
            transport errors propagate.
        If Removed: No text replies can be streamed.
        Testing Notes: Start two sends concurrently and expect SessionBusyError on the second.
        """
        # Reject overlapping sends before touching the remote chat.
        if self._in_flight:
            raise SessionBusyError()
        if self._handle is None:
            raise RuntimeError("Conversation session has not been started")
        self._in_flight = True
        try:
            async for fragment in self._handle.send_message_stream(text):
                if fragment:
                    yield fragment
        finally:
            self._in_flight = False

    async def reply_into(self, log: MessageLog, text: str) -> ChatOutcome:
        """Purpose: Stream the reply to `text` into one pre-allocated assistant message.
        Inputs/Outputs: Inputs are the log and user text; returns ChatOutcome.
        Side Effects / State: Appends an empty assistant message, then updates it in place.
        Dependencies: Uses send(), MessageLog.append/set_text, as_assistant_error.
        Failure Modes: Transport/provider errors overwrite the partial reply with an
            error line and are returned in the outcome; SessionBusyError is raised
            before anything is appended.
        If Removed: The controller would have to stitch fragments into the log itself.
        Testing Notes: Fragments ["Hel", "lo"] must leave one message reading "Hello".
        """
        if self._in_flight:
            raise SessionBusyError()
        message_id = new_message_id()
        log.append(Message(id=message_id, sender="assistant", text="", timestamp=now_ms()))
        reply = ""
        try:
            async for fragment in self.send(text):
                reply += fragment
                log.set_text(message_id, reply)
        except Exception as exc:
            error = as_assistant_error(exc)
            logger.error("session generation=%s send failed: %s", self._generation, error, exc_info=True)
            log.set_text(message_id, ERROR_PREFIX + error.message)
            return ChatOutcome(message_id=message_id, text=reply, error=error)
        logger.info("session generation=%s reply chars=%s", self._generation, len(reply))
        return ChatOutcome(message_id=message_id, text=reply)
