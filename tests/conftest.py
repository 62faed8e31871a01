"""Pytest fixtures and shared test configuration.

Provides reusable fixtures for unit and integration tests.

Fixtures:
    - session_factory: Scripted stand-in for remote tutor sessions
    - tutor_service: TutorService wired to the scripted factory
    - registry: SessionRegistry whose services use the scripted factory
    - async_client: HTTPX client for API testing
"""

import asyncio
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from src.agent.chat_agent import TutorService
from src.api import app
from src.api.chat import SessionRegistry, get_session_registry
from src.models.schemas import RequestPayload


class FakeSession:
    """Conversation session that replays the factory's current script."""

    def __init__(self, generation: int, script: "FakeSessionFactory") -> None:
        self.generation = generation
        self.script = script
        self.payloads: list[RequestPayload] = []

    async def stream(self, payload: RequestPayload) -> AsyncGenerator[str]:
        self.payloads.append(payload)
        if self.script.hold is not None:
            await self.script.hold.wait()
        fragments = list(self.script.fragments)
        fail_after = self.script.fail_after
        for i, fragment in enumerate(fragments):
            if fail_after is not None and i == fail_after:
                raise ConnectionError("connection reset by peer")
            yield fragment
        if fail_after is not None and fail_after >= len(fragments):
            raise ConnectionError("connection reset by peer")


class FakeSessionFactory:
    """Creates FakeSessions and records every one it made.

    Attributes:
        fragments: Fragments every session replies with.
        fail_after: Raise after this many fragments (None for never).
        fail_creation: Raise when asked for a new session.
        hold: When set, every stream waits on this event before replying.
        created: Sessions created so far, oldest first.
    """

    def __init__(self) -> None:
        self.fragments: list[str] = ["Let's ", "look at ", "it together."]
        self.fail_after: int | None = None
        self.fail_creation = False
        self.hold: asyncio.Event | None = None
        self.created: list[FakeSession] = []

    def __call__(self, generation: int) -> FakeSession:
        if self.fail_creation:
            raise RuntimeError("model endpoint unavailable")
        session = FakeSession(generation, self)
        self.created.append(session)
        return session

    @property
    def latest(self) -> FakeSession:
        return self.created[-1]


@pytest.fixture
def session_factory() -> FakeSessionFactory:
    """Return a fresh scripted session factory."""
    return FakeSessionFactory()


@pytest.fixture
def tutor_service(session_factory: FakeSessionFactory) -> TutorService:
    """Return a TutorService that talks to scripted sessions."""
    return TutorService(session_factory=session_factory)


@pytest.fixture
def registry(session_factory: FakeSessionFactory) -> SessionRegistry:
    """Return a session registry whose services use the scripted factory."""
    return SessionRegistry(lambda: TutorService(session_factory=session_factory))


@pytest.fixture
async def async_client(registry: SessionRegistry) -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client for API testing.

    Yields:
        Configured AsyncClient for making test requests.
    """
    app.dependency_overrides[get_session_registry] = lambda: registry
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
