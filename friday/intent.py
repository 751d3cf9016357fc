"""Keyword and command based routing between text chat and image generation."""

from __future__ import annotations

import re
from enum import Enum

IMAGE_KEYWORDS = (
    "image",
    "generate",
    "create",
    "draw",
    "paint",
    "photo",
    "render",
    "illustrate",
    "picture",
    "design",
)

COMMAND_RE = re.compile(r"^/(?:image|img|photo)\b", re.IGNORECASE)


class Intent(str, Enum):
    TEXT = "text"
    IMAGE = "image"


def classify(raw_text: str) -> Intent:
    """Purpose: Decide whether free text asks for an image or a chat reply.
    Inputs/Outputs: Input is raw user text; output is Intent.IMAGE or Intent.TEXT.
    Side Effects / State: None; pure function.
    Dependencies: Uses IMAGE_KEYWORDS and COMMAND_RE; called by the assistant submit path.
    Failure Modes: Any keyword substring wins, so "design a study plan" routes to IMAGE.
    If Removed: Image requests would be sent to the chat session as plain text.
    Testing Notes: "draw a cat" -> IMAGE, "hello there" -> TEXT, "/img sunset" -> IMAGE.
    """
    # Lower-case once and check substrings, then the leading command token.
    lowered = (raw_text or "").strip().lower()
    if any(keyword in lowered for keyword in IMAGE_KEYWORDS):
        return Intent.IMAGE
    if COMMAND_RE.match(lowered):
        return Intent.IMAGE
    return Intent.TEXT


def strip_command(raw_text: str) -> str:
    """Remove a leading /image, /img or /photo token and trim."""
    return COMMAND_RE.sub("", (raw_text or "").strip(), count=1).strip()


def image_prompt(raw_text: str) -> str:
    """Effective image prompt: the stripped text, or the raw text when nothing is left."""
    return strip_command(raw_text) or raw_text
