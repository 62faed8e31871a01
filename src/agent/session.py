"""Ownership of the single remote conversation session.

The manager is the only holder of the session handle. Callers go through
``reset``/``ensure_session``/``current_or_fail`` and never keep the handle
across a reset.
"""

import logging
from collections.abc import AsyncIterator, Callable
from typing import Protocol

from src.errors import SessionInitError
from src.models.schemas import RequestPayload

logger = logging.getLogger(__name__)


class ConversationSession(Protocol):
    """Server-side conversation context (model, instructions, prior turns)."""

    generation: int

    def stream(self, payload: RequestPayload) -> AsyncIterator[str]:
        """Send one turn and yield the reply as text fragments."""
        ...


SessionFactory = Callable[[int], ConversationSession]


class SessionManager:
    """Owns exactly one conversation session at a time.

    Every creation attempt gets a new generation number, so a stream can
    tell whether the session it was opened on is still the current one.
    """

    def __init__(self, factory: SessionFactory) -> None:
        self._factory = factory
        self._session: ConversationSession | None = None
        self._generation = 0

    @property
    def generation(self) -> int:
        """Generation of the most recent creation attempt (0 before any)."""
        return self._generation

    def reset(self) -> ConversationSession:
        """Discard the current session and create a fresh one.

        Returns:
            The new session.

        Raises:
            SessionInitError: If the new session cannot be created. The
                manager then holds no session.
        """
        if self._session is not None:
            logger.info(f"Discarding tutor session generation {self._session.generation}")
        self._session = None
        self._session = self._create()
        return self._session

    def ensure_session(self) -> ConversationSession:
        """Return the current session, creating one if none exists."""
        if self._session is None:
            self._session = self._create()
        return self._session

    def current_or_fail(self) -> ConversationSession:
        """Return the current session without creating one.

        Raises:
            SessionInitError: If no session is alive.
        """
        if self._session is None:
            raise SessionInitError("No active tutor session")
        return self._session

    def is_current(self, generation: int) -> bool:
        """Whether ``generation`` still identifies the live session."""
        return self._session is not None and generation == self._generation

    def _create(self) -> ConversationSession:
        self._generation += 1
        try:
            session = self._factory(self._generation)
        except Exception as e:
            logger.error(f"Failed to create tutor session: {e}")
            raise SessionInitError(f"Failed to create tutor session: {e}") from e

        logger.info(f"Created tutor session generation {self._generation}")
        return session
