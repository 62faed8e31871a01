"""Pydantic models for the tutor conversation and its API.

Provides type safety, validation, and automatic OpenAPI documentation.

Models:
    - Message: Individual entry in the conversation list
    - Attachment: Image attached to a user message
    - TextPart / BinaryPart: Ordered parts of a model request
    - ChatRequest: Incoming streaming chat request payload
    - StreamChunk: One Server-Sent Events data frame
    - ResetRequest / ResetResponse: Session reset payloads
"""

from src.models.schemas import (
    Attachment,
    BinaryPart,
    ChatRequest,
    Message,
    MessageStatus,
    RequestPayload,
    ResetRequest,
    ResetResponse,
    Role,
    StreamChunk,
    StreamStatus,
    TextPart,
)

__all__ = [
    "Attachment",
    "BinaryPart",
    "ChatRequest",
    "Message",
    "MessageStatus",
    "RequestPayload",
    "ResetRequest",
    "ResetResponse",
    "Role",
    "StreamChunk",
    "StreamStatus",
    "TextPart",
]
