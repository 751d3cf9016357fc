"""Typed error variants shared by the chat, image, storage, and voice flows."""

from __future__ import annotations

from typing import Any, List, Optional


class AssistantError(Exception):
    """Base error carrying a human-readable message for the last-error banner."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class TransportError(AssistantError):
    """Network or provider failure while talking to a remote capability."""


class ImageRefusedError(AssistantError):
    """Well-formed image response without inline image data (e.g. a safety block)."""

    def __init__(
        self,
        message: str = "No image data was returned. The prompt may have been blocked for safety reasons.",
        finish_reason: Optional[str] = None,
        safety_ratings: Optional[List[Any]] = None,
    ) -> None:
        super().__init__(message)
        self.finish_reason = finish_reason
        self.safety_ratings = safety_ratings or []


class PersistenceError(AssistantError):
    """Local storage could not be read or written."""


class StorageQuotaError(PersistenceError):
    """A write would exceed the local storage quota."""


class CapabilityUnavailableError(AssistantError):
    """A host capability (voice recognition) is missing."""


class BusyError(AssistantError):
    """A flow already has a request in flight."""


class SessionBusyError(BusyError):
    def __init__(self, message: str = "A reply is already streaming for this session.") -> None:
        super().__init__(message)


class ImageFlowBusyError(BusyError):
    def __init__(self, message: str = "An image is already being generated.") -> None:
        super().__init__(message)


def as_assistant_error(exc: BaseException) -> AssistantError:
    """Purpose: Normalize any exception into a typed AssistantError.
    Inputs/Outputs: Input is an exception; output is an AssistantError with a message.
    Side Effects / State: None; pure function.
    Dependencies: Used by the conversation session and image flow boundaries.
    Failure Modes: Exceptions with an empty str() fall back to their class name.
    If Removed: Callers would have to probe arbitrary exception shapes for a message.
    Testing Notes: Pass a ValueError and an ImageRefusedError and compare results.
    """
    # Keep typed errors as-is and wrap everything else as a transport failure.
    if isinstance(exc, AssistantError):
        return exc
    detail = str(exc).strip() or exc.__class__.__name__
    error = TransportError(detail)
    error.__cause__ = exc
    return error
