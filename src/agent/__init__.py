"""Agno agent logic for the Socratic math tutor.

Handles the remote tutor conversation and its streamed replies.

Responsibilities:
    - Tutor agent initialization with OpenAI models
    - Session lifecycle (create, reset, generation tracking)
    - Request payload building for text and image turns
    - Streaming fragment delivery with uniform failure reporting

Leverages the Agno framework for agent lifecycle management.
Maintains clean separation from the UI and HTTP layers.
"""

from src.agent.chat_agent import TutorService, TutorSession, build_payload, create_tutor_session
from src.agent.config import AgentConfig, get_agent_config
from src.agent.session import SessionManager

__all__ = [
    "AgentConfig",
    "SessionManager",
    "TutorService",
    "TutorSession",
    "build_payload",
    "create_tutor_session",
    "get_agent_config",
]
