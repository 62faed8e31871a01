from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class Role(str, Enum):
    """Speaker of a chat message."""

    USER = "user"
    ASSISTANT = "assistant"


class MessageStatus(str, Enum):
    """Lifecycle of an assistant message while its reply streams in."""

    PENDING = "pending"
    STREAMING = "streaming"
    COMPLETE = "complete"
    FAILED = "failed"


class Attachment(BaseModel):
    """An image attached to a user message.

    Attributes:
        data: Raw image bytes (never base64, never a data URL).
        media_type: Declared MIME type, e.g. ``image/png``.
    """

    data: bytes
    media_type: str


class TextPart(BaseModel):
    """Textual part of a request sent to the model."""

    text: str


class BinaryPart(BaseModel):
    """Inline binary part of a request sent to the model."""

    data: bytes
    media_type: str


RequestPayload = str | list[TextPart | BinaryPart]


class Message(BaseModel):
    """A single entry in the conversation list.

    Assistant messages start as a pending placeholder and are mutated in
    place while their reply streams in.

    Attributes:
        id: Unique, increasing identifier; never reused.
        role: Who wrote the message.
        text: Message body; grows while streaming.
        attachment: Optional image sent with a user message.
        pending: True until the first visible fragment arrives.
        status: Streaming state of the message.
        created_at: Creation time.
    """

    id: int
    role: Role
    text: str = ""
    attachment: Attachment | None = None
    pending: bool = False
    status: MessageStatus = MessageStatus.COMPLETE
    created_at: datetime = Field(default_factory=datetime.now)


class StreamStatus(str, Enum):
    """Status values for streaming updates."""

    RECEIVED = "received"
    GENERATING = "generating"
    COMPLETE = "complete"
    ERROR = "error"


class ChatRequest(BaseModel):
    """Request payload for the streaming chat endpoint.

    Attributes:
        message: User's question; may be empty when an image is attached.
        image: Optional image as a data URL or bare base64 string.
        media_type: MIME type of the image.
        session_id: Optional session for conversation continuity.
    """

    message: str = ""
    image: str | None = None
    media_type: str | None = None
    session_id: str | None = None

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, v: str) -> str:
        """Strip whitespace from message before validation."""
        if isinstance(v, str):
            return v.strip()
        return v


class StreamChunk(BaseModel):
    """A chunk of streamed response data.

    Attributes:
        content: The text content of this chunk.
        done: Whether this is the final chunk.
        status: Current processing status (received, generating, complete, error).
        session_id: Session the chunk belongs to.
        error: Error message if something went wrong.
    """

    content: str
    done: bool
    status: StreamStatus | None = None
    session_id: str | None = None
    error: str | None = None


class ResetRequest(BaseModel):
    """Request payload for resetting a tutor session."""

    session_id: str = Field(..., min_length=1)


class ResetResponse(BaseModel):
    """Response after a session reset.

    Attributes:
        session_id: The session that was reset.
        generation: Generation number of the fresh remote session.
    """

    session_id: str
    generation: int = Field(ge=1)
