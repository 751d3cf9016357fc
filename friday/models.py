from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import AssistantError
from .utils import to_data_uri


class Message(BaseModel):
    """One conversational turn as stored, rendered, and exported."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    sender: Literal["user", "assistant"] = Field(alias="from")
    text: str = ""
    image: Optional[str] = None
    timestamp: Optional[int] = Field(default=None, alias="ts")

    def to_record(self) -> Dict[str, Any]:
        """Serialize with the persisted keys (from/ts), omitting absent fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


class TurnPart(BaseModel):
    text: str


class ChatTurn(BaseModel):
    """Role-tagged turn in the remote context window."""
    role: Literal["user", "model"]
    parts: List[TurnPart]

    @classmethod
    def of(cls, role: str, text: str) -> "ChatTurn":
        return cls(role=role, parts=[TurnPart(text=text)])

    @property
    def text(self) -> str:
        return "".join(part.text for part in self.parts)


class ChatRequest(BaseModel):
    """Request payload for the chat proxy API."""
    history: Optional[List[ChatTurn]] = Field(default=None)
    message: Optional[str] = None


class ChatResponse(BaseModel):
    reply: str


class ImageRequest(BaseModel):
    """Request payload for the image proxy API."""
    prompt: Optional[str] = None
    style: Optional[str] = None


class ImageResponse(BaseModel):
    imageUrl: str


class ErrorResponse(BaseModel):
    error: str


@dataclass(frozen=True)
class ImageResult:
    """Inline image bytes returned by the image capability."""
    mime_type: str
    data: bytes
    prompt: str

    @property
    def data_uri(self) -> str:
        return to_data_uri(self.mime_type, self.data)


@dataclass
class ChatOutcome:
    """Result of streaming one reply into the message log."""
    message_id: str
    text: str
    error: Optional[AssistantError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ImageOutcome:
    """Result of one image generation round trip."""
    message_id: str
    result: Optional[ImageResult] = None
    error: Optional[AssistantError] = None

    @property
    def ok(self) -> bool:
        return self.error is None
