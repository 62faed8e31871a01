"""Agno tutor service with streaming support.

Core module for the tutor's conversation handling.

Architecture Decisions:

1. **In-memory storage** - Agno only replays history for sessions it can load
   from a db. Each tutor session gets its own ``InMemoryDb`` and session id, so
   multi-turn context works and a reset leaves nothing reachable behind.

2. **Session generations** - The ``SessionManager`` numbers every session it
   creates. Fragments carry no session tag themselves, so consumers compare
   generations to notice that a reset happened mid-stream.

3. **Payload shape** - A lone text part goes out as a plain string; anything
   else goes out as an ordered list, text first and image second, so the model
   reads the text as describing the image.

4. **Eager validation** - ``send`` validates input and ensures a session before
   returning the fragment iterator, so empty messages and session failures are
   raised before any network activity.

5. **Streaming Generator** - Agno returns events with metadata. We yield only
   the content strings and turn every failure into ``StreamFailureError``.
"""

import logging
import uuid
from collections.abc import AsyncGenerator, AsyncIterator

from agno.agent import Agent
from agno.db.in_memory import InMemoryDb
from agno.media import Image
from agno.models.openai import OpenAIChat
from agno.run.agent import RunEvent

from src.agent.config import AgentConfig, get_agent_config
from src.agent.session import ConversationSession, SessionFactory, SessionManager
from src.errors import EmptyMessageError, StreamFailureError
from src.media.attachments import load_attachment
from src.models.schemas import Attachment, BinaryPart, RequestPayload, TextPart

logger = logging.getLogger(__name__)

TUTOR_DESCRIPTION = "You are a compassionate, Socratic AI math tutor."

TUTOR_INSTRUCTIONS = [
    "Your goal is to help the user learn, not just to provide answers.",
    "Acknowledge & Analyze: briefly acknowledge the problem (text or image) to confirm you see it.",
    "Do NOT Solve Immediately: never provide the full solution or the final answer upfront.",
    "Guide Step-by-Step: break the problem down. Ask a guiding question to check "
    "understanding or prompt the user to attempt the first step.",
    "Explain Concepts: if the user is stuck or asks why, explain the underlying concept "
    "clearly, gently, and simply. Use analogies if helpful.",
    "Encourage: be patient, warm, and encouraging. Celebrate small wins.",
    "Format: use clean Markdown with bold for key terms.",
    "Treat this as a collaborative session, sitting next to the student and helping "
    "them find the way.",
]

APOLOGY_TEXT = "I'm sorry, I encountered an error while analyzing that. Please try again."


def build_payload(
    text: str | None,
    attachment: Attachment | bytes | str | None = None,
    media_type: str | None = None,
) -> RequestPayload:
    """Build the request payload for one tutor turn.

    Args:
        text: The user's message; surrounding whitespace is dropped.
        attachment: Optional image as an ``Attachment``, raw bytes, bare
            base64 or a data URL.
        media_type: MIME type for a non-``Attachment`` image.

    Returns:
        The trimmed text when it is the only part, otherwise the ordered
        list of parts (text first, image second).

    Raises:
        EmptyMessageError: If there is neither text nor image data.
        UnsupportedAttachmentError: If the image cannot be accepted.
    """
    parts: list[TextPart | BinaryPart] = []

    stripped = (text or "").strip()
    if stripped:
        parts.append(TextPart(text=stripped))

    if attachment is not None:
        if not isinstance(attachment, Attachment):
            attachment = load_attachment(attachment, media_type)
        if attachment.data:
            parts.append(BinaryPart(data=attachment.data, media_type=attachment.media_type))

    if not parts:
        raise EmptyMessageError("Message must contain text or an image.")

    if len(parts) == 1 and isinstance(parts[0], TextPart):
        return parts[0].text
    return parts


class TutorSession:
    """One Agno-backed conversation with the tutor model.

    Wraps an Agent bound to its own in-memory store and session id.
    """

    def __init__(self, agent: Agent, session_id: str, generation: int) -> None:
        self.agent = agent
        self.session_id = session_id
        self.generation = generation

    async def stream(self, payload: RequestPayload) -> AsyncGenerator[str]:
        """Send one turn and yield reply fragments as they arrive.

        Args:
            payload: Plain text or ordered request parts.

        Yields:
            Response text chunks as they arrive.

        Raises:
            StreamFailureError: If the run reports an error event.
        """
        if isinstance(payload, str):
            message, images = payload, None
        else:
            message = "\n".join(p.text for p in payload if isinstance(p, TextPart))
            images = [
                Image(content=p.data, mime_type=p.media_type)
                for p in payload
                if isinstance(p, BinaryPart)
            ] or None

        response_stream = self.agent.arun(
            message,
            session_id=self.session_id,
            images=images,
            stream=True,
        )

        async for chunk in response_stream:
            event = getattr(chunk, "event", None)
            if event == RunEvent.run_error:
                raise StreamFailureError(getattr(chunk, "content", None) or "Model run failed")
            if event == RunEvent.run_content and isinstance(chunk.content, str):
                yield chunk.content


def create_tutor_session(config: AgentConfig, generation: int) -> TutorSession:
    """Create a fresh tutor session with no prior turns.

    Args:
        config: Model and history settings.
        generation: Generation number assigned by the session manager.

    Returns:
        A new TutorSession.
    """
    session_id = f"tutor-{uuid.uuid4()}"

    model = OpenAIChat(
        id=config.model_name,
        api_key=config.api_key,
        base_url=config.base_url,
        reasoning_effort=config.reasoning_effort,
    )

    agent = Agent(
        model=model,
        db=InMemoryDb(),
        session_id=session_id,
        description=TUTOR_DESCRIPTION,
        instructions=TUTOR_INSTRUCTIONS,
        # Replay earlier turns of this session only
        add_history_to_context=True,
        num_history_runs=config.history_runs,
        markdown=True,
    )

    return TutorSession(agent=agent, session_id=session_id, generation=generation)


class TutorService:
    """Routes one request/response exchange at a time through a tutor session.

    Wraps the session manager with:
    - Input validation and payload building
    - Lazy session creation
    - A clean streaming interface for the UI and SSE endpoint
    - Centralized error handling
    """

    def __init__(
        self,
        config: AgentConfig | None = None,
        session_factory: SessionFactory | None = None,
    ) -> None:
        """Initialize the tutor service.

        Args:
            config: Optional agent configuration.
                    Loaded from environment on first session creation if not provided.
            session_factory: Optional factory replacing the Agno-backed session.
        """
        self._config = config
        self._sessions = SessionManager(session_factory or self._default_factory)

    def _default_factory(self, generation: int) -> TutorSession:
        if self._config is None:
            self._config = get_agent_config()
        return create_tutor_session(self._config, generation)

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    @property
    def generation(self) -> int:
        return self._sessions.generation

    def reset(self) -> None:
        """Start over with a new session; earlier turns are forgotten."""
        self._sessions.reset()

    def validate(
        self,
        text: str | None,
        attachment: Attachment | bytes | str | None = None,
        media_type: str | None = None,
    ) -> Attachment | None:
        """Check that a message can be sent, without sending it.

        Returns:
            The loaded image, or None when there is no usable image.

        Raises:
            EmptyMessageError: If there is neither text nor an image.
            UnsupportedAttachmentError: If the image cannot be accepted.
        """
        if attachment is not None and not isinstance(attachment, Attachment):
            attachment = load_attachment(attachment, media_type)
        if attachment is not None and not attachment.data:
            attachment = None
        if not (text or "").strip() and attachment is None:
            raise EmptyMessageError("Message must contain text or an image.")
        return attachment

    def send(
        self,
        text: str | None,
        attachment: Attachment | bytes | str | None = None,
        media_type: str | None = None,
    ) -> AsyncIterator[str]:
        """Send a message and return its reply as a lazy fragment stream.

        Validation and session creation happen here, before the returned
        iterator is consumed. The iterator must be drained or abandoned
        before the next send.

        Args:
            text: The user's message.
            attachment: Optional image.
            media_type: MIME type when the image is not an ``Attachment``.

        Returns:
            Async iterator of reply fragments.

        Raises:
            EmptyMessageError: If there is neither text nor an image.
            UnsupportedAttachmentError: If the image cannot be accepted.
            SessionInitError: If no session exists and one cannot be created.
        """
        payload = build_payload(text, attachment, media_type)
        session = self._sessions.ensure_session()
        part_count = 1 if isinstance(payload, str) else len(payload)
        logger.info(f"Sending tutor turn (generation {session.generation}, {part_count} part(s))")
        return self._drain(session, payload)

    async def _drain(
        self,
        session: ConversationSession,
        payload: RequestPayload,
    ) -> AsyncGenerator[str]:
        try:
            async for fragment in session.stream(payload):
                yield fragment
        except StreamFailureError as e:
            logger.error(f"Tutor stream failed (generation {session.generation}): {e}")
            raise
        except Exception as e:
            logger.error(f"Tutor stream failed (generation {session.generation}): {e}")
            raise StreamFailureError(f"Response stream failed: {e}") from e
