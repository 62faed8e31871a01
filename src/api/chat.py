"""Streaming chat endpoints for headless tutor clients.

Each client-chosen session id maps to its own in-memory TutorService. At most
one reply streams per session, and the least recently used idle sessions are
evicted once the registry is full.
"""

import logging
import os
import uuid
from collections import OrderedDict
from collections.abc import AsyncGenerator, AsyncIterator, Callable
from contextlib import aclosing

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from src.agent.chat_agent import APOLOGY_TEXT, TutorService
from src.errors import (
    EmptyMessageError,
    SessionInitError,
    StreamFailureError,
    UnsupportedAttachmentError,
)
from src.models.schemas import (
    ChatRequest,
    ResetRequest,
    ResetResponse,
    StreamChunk,
    StreamStatus,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

DEFAULT_MAX_SESSIONS = 256


class SessionRegistry:
    """In-memory map from client session id to tutor service.

    Holds at most ``max_sessions`` services. When a new session would exceed
    the cap, the least recently used sessions that are not streaming are
    dropped along with their conversation history.
    """

    def __init__(
        self,
        service_factory: Callable[[], TutorService] = TutorService,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
    ) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self._service_factory = service_factory
        self._max_sessions = max_sessions
        self._services: OrderedDict[str, TutorService] = OrderedDict()
        self._streaming: set[str] = set()

    def __len__(self) -> int:
        return len(self._services)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._services

    def get(self, session_id: str) -> TutorService:
        if session_id in self._services:
            self._services.move_to_end(session_id)
            return self._services[session_id]

        service = self._service_factory()
        self._services[session_id] = service
        self._evict(keep=session_id)
        return service

    def _evict(self, keep: str) -> None:
        idle = [
            sid for sid in self._services if sid != keep and sid not in self._streaming
        ]
        excess = len(self._services) - self._max_sessions
        for session_id in idle[:max(excess, 0)]:
            del self._services[session_id]
            logger.info(f"Evicted idle tutor session {session_id}")

    def is_streaming(self, session_id: str) -> bool:
        return session_id in self._streaming

    def begin_stream(self, session_id: str) -> bool:
        """Mark a session as streaming.

        Returns:
            False if a reply is already streaming for this session.
        """
        if session_id in self._streaming:
            return False
        self._streaming.add(session_id)
        return True

    def end_stream(self, session_id: str) -> None:
        self._streaming.discard(session_id)

    def reset(self, session_id: str) -> int:
        """Reset a session's tutor conversation.

        Returns:
            Generation number of the new remote session.
        """
        service = self.get(session_id)
        service.reset()
        return service.generation

    def clear(self) -> None:
        self._services.clear()
        self._streaming.clear()


# Module-level singleton instance
_session_registry: SessionRegistry | None = None


def get_session_registry() -> SessionRegistry:
    """Get or create the global session registry."""
    global _session_registry
    if _session_registry is None:
        _session_registry = SessionRegistry(
            max_sessions=int(os.getenv("MAX_API_SESSIONS", str(DEFAULT_MAX_SESSIONS)))
        )
    return _session_registry


class SessionStreamResponse(StreamingResponse):
    """SSE response that frees its session once the response is over.

    The session is released however the response ends, including when the
    client disconnects before the body is ever iterated.
    """

    def __init__(
        self,
        content: AsyncGenerator[str],
        registry: SessionRegistry,
        session_id: str,
    ) -> None:
        super().__init__(
            content,
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Session-Id": session_id},
        )
        self._events = content
        self._registry = registry
        self._session_id = session_id

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self._events.aclose()
            self._registry.end_stream(self._session_id)


def _sse(chunk: StreamChunk) -> str:
    return f"data: {chunk.model_dump_json()}\n\n"


async def _event_stream(
    service: TutorService,
    stream: AsyncIterator[str],
    session_id: str,
) -> AsyncGenerator[str]:
    """Format reply fragments as Server-Sent Events.

    Always ends with a ``done`` chunk.
    """
    generation = service.generation
    try:
        yield _sse(
            StreamChunk(content="", done=False, status=StreamStatus.RECEIVED, session_id=session_id)
        )
        async with aclosing(stream):
            async for fragment in stream:
                if not service.sessions.is_current(generation):
                    logger.warning(f"Session {session_id} was reset mid-stream")
                    yield _sse(
                        StreamChunk(
                            content="",
                            done=True,
                            status=StreamStatus.ERROR,
                            session_id=session_id,
                            error="Session was reset while streaming",
                        )
                    )
                    return
                yield _sse(
                    StreamChunk(
                        content=fragment,
                        done=False,
                        status=StreamStatus.GENERATING,
                        session_id=session_id,
                    )
                )
        yield _sse(
            StreamChunk(content="", done=True, status=StreamStatus.COMPLETE, session_id=session_id)
        )
    except StreamFailureError as e:
        yield _sse(
            StreamChunk(
                content=APOLOGY_TEXT,
                done=True,
                status=StreamStatus.ERROR,
                session_id=session_id,
                error=str(e),
            )
        )


@router.post("/stream")
async def chat_stream(
    request: ChatRequest,
    registry: SessionRegistry = Depends(get_session_registry),
) -> StreamingResponse:
    """Stream the tutor's reply to one message.

    Args:
        request: Message text, optional image and session id.
        registry: Session registry dependency.

    Returns:
        ``text/event-stream`` of StreamChunk JSON frames.

    Raises:
        409: A reply is already streaming for this session.
        415: Unsupported or invalid image.
        422: Neither text nor image supplied.
        503: Tutor session could not be created.
    """
    session_id = request.session_id or str(uuid.uuid4())
    if not registry.begin_stream(session_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A reply is already streaming for this session",
        )

    try:
        service = registry.get(session_id)
        stream = service.send(request.message, request.image, request.media_type)
    except EmptyMessageError as e:
        registry.end_stream(session_id)
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        ) from e
    except UnsupportedAttachmentError as e:
        registry.end_stream(session_id)
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail=str(e),
        ) from e
    except SessionInitError as e:
        registry.end_stream(session_id)
        logger.error(f"Could not start tutor session {session_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Tutor session could not be started",
        ) from e

    return SessionStreamResponse(
        _event_stream(service, stream, session_id),
        registry,
        session_id,
    )


@router.post("/reset", response_model=ResetResponse)
async def reset_session(
    request: ResetRequest,
    registry: SessionRegistry = Depends(get_session_registry),
) -> ResetResponse:
    """Discard a session's conversation and start a fresh one."""
    try:
        generation = registry.reset(request.session_id)
    except SessionInitError as e:
        logger.error(f"Could not reset tutor session {request.session_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Tutor session could not be started",
        ) from e

    logger.info(f"Reset tutor session {request.session_id} (generation {generation})")
    return ResetResponse(session_id=request.session_id, generation=generation)
