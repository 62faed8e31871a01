"""Conversation state for one chat page.

Holds the ordered message list and the loading flag, and folds streamed
reply fragments into the assistant placeholder in place. No NiceGUI imports.
"""

import asyncio
import itertools
import logging
from collections.abc import Callable
from contextlib import aclosing

from src.agent.chat_agent import APOLOGY_TEXT, TutorService
from src.errors import TutorError
from src.models.schemas import Attachment, Message, MessageStatus, Role

logger = logging.getLogger(__name__)

GREETING_TEXT = (
    "Hello! I'm your Socratic Math Tutor. \n\n"
    "I'm here to help you understand math, not just solve it. Upload a photo of a "
    "problem or type it out, and we can walk through it together step-by-step."
)
RESET_GREETING_TEXT = "Session cleared. What problem shall we tackle next?"


class ChatState:
    """Manages chat state for a page session.

    Message ids come from one counter for the lifetime of the page and are
    never reused, including across resets.
    """

    def __init__(
        self,
        service: TutorService,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self.service = service
        self.messages: list[Message] = []
        self.is_loading: bool = False
        self._ids = itertools.count(1)
        self._on_change = on_change
        self._turn: asyncio.Task[None] | None = None

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change()

    def _append(self, role: Role, text: str = "", **fields) -> Message:
        message = Message(id=next(self._ids), role=role, text=text, **fields)
        self.messages.append(message)
        return message

    def find(self, message_id: int) -> Message | None:
        for message in reversed(self.messages):
            if message.id == message_id:
                return message
        return None

    def start(self) -> None:
        """Open the first session and show the welcome greeting.

        A failed session creation is logged and retried lazily by the next send.
        """
        self.messages = []
        self._append(Role.ASSISTANT, GREETING_TEXT)
        self._notify()
        try:
            self.service.reset()
        except TutorError as e:
            logger.warning(f"Initial tutor session unavailable: {e}")

    def reset(self) -> None:
        """Replace the whole conversation with a fresh greeting and session.

        A reply still in flight is cancelled and the page stops loading.

        Raises:
            SessionInitError: If the new session cannot be created. The
                greeting is already in place and the next send retries.
        """
        self.messages = []
        self._append(Role.ASSISTANT, RESET_GREETING_TEXT)
        self._end_turn()
        self._notify()
        self.service.reset()

    def _end_turn(self) -> None:
        turn, self._turn = self._turn, None
        self.is_loading = False
        if turn is not None and turn is not asyncio.current_task():
            turn.cancel()

    def apply_fragment(self, message_id: int, fragment: str) -> None:
        """Append a streamed fragment to a placeholder message.

        Empty fragments leave the message pending. The first non-empty one
        moves it to streaming; it never becomes pending again.
        """
        message = self.find(message_id)
        if message is None or message.status in (MessageStatus.COMPLETE, MessageStatus.FAILED):
            return

        message.text += fragment
        if fragment and message.pending:
            message.pending = False
            message.status = MessageStatus.STREAMING
        self._notify()

    def complete(self, message_id: int) -> None:
        message = self.find(message_id)
        if message is None or message.status == MessageStatus.FAILED:
            return
        message.pending = False
        message.status = MessageStatus.COMPLETE
        self._notify()

    def fail(self, message_id: int) -> None:
        """Overwrite a message with the apology text."""
        message = self.find(message_id)
        if message is None:
            return
        message.text = APOLOGY_TEXT
        message.pending = False
        message.status = MessageStatus.FAILED
        self._notify()

    async def submit(
        self,
        text: str | None,
        attachment: Attachment | bytes | str | None = None,
        media_type: str | None = None,
    ) -> Message | None:
        """Send a user message and stream the tutor's reply into the list.

        The reply is drained in its own task so that ``reset`` can end the
        turn even while the remote stream is silent.

        Args:
            text: The user's message.
            attachment: Optional image.
            media_type: MIME type when the image is not an ``Attachment``.

        Returns:
            The assistant message, or None if a send was already in flight.

        Raises:
            EmptyMessageError: If there is neither text nor an image. Nothing
                is added to the list.
            UnsupportedAttachmentError: If the image cannot be accepted.
        """
        if self.is_loading:
            logger.warning("Ignoring send while a reply is still streaming")
            return None

        attachment = self.service.validate(text, attachment, media_type)

        self._append(Role.USER, (text or "").strip(), attachment=attachment)
        reply = self._append(Role.ASSISTANT, pending=True, status=MessageStatus.PENDING)
        self.is_loading = True
        self._notify()

        turn = asyncio.create_task(self._run_turn(reply.id, text, attachment))
        self._turn = turn
        try:
            await asyncio.wait({turn})
        except asyncio.CancelledError:
            turn.cancel()
            raise
        return reply

    async def _run_turn(self, reply_id: int, text: str | None, attachment: Attachment | None) -> None:
        try:
            async with aclosing(self.service.send(text, attachment)) as stream:
                generation = self.service.generation
                async for fragment in stream:
                    if not self.service.sessions.is_current(generation):
                        logger.warning(
                            f"Dropping fragments from discarded session generation {generation}"
                        )
                        break
                    self.apply_fragment(reply_id, fragment)
                else:
                    self.complete(reply_id)
        except TutorError as e:
            logger.error(f"Error sending message: {e}")
            self.fail(reply_id)
        finally:
            # reset() has already cleared loading for a turn it ended
            if self._turn is asyncio.current_task():
                self._turn = None
                self.is_loading = False
                self._notify()
