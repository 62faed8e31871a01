"""Agent configuration with environment variable loading.

Pydantic-based configuration for the Agno tutor agent.
Supports OpenAI and OpenAI-compatible APIs via custom base URL.
"""

import os
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# Load environment variables from .env file
load_dotenv()

ReasoningEffort = Literal["low", "medium", "high"]


class AgentConfig(BaseModel):
    """Configuration for the Agno tutor agent.

    No output length cap is configured; the tutor may answer at any length.

    Attributes:
        api_key: API key for model access.
        base_url: API base URL (None for OpenAI default).
        model_name: Model identifier to use.
        reasoning_effort: How much internal reasoning the model does before answering.
        history_runs: Number of previous turns replayed into the model context.
    """

    api_key: str = Field(
        default_factory=lambda: os.getenv("LLM_API_KEY", os.getenv("OPENAI_API_KEY", "")),
        description="API key for LLM provider",
    )
    base_url: str | None = Field(
        default_factory=lambda: os.getenv("LLM_BASE_URL") or None,
        description="API base URL (None for OpenAI default)",
    )
    model_name: str = Field(
        default_factory=lambda: os.getenv("LLM_MODEL", "o4-mini"),
        description="Model to use",
    )
    reasoning_effort: ReasoningEffort = Field(
        default_factory=lambda: os.getenv("LLM_REASONING_EFFORT", "high").lower(),
        description="Reasoning effort passed to the model",
    )
    history_runs: int = Field(
        default_factory=lambda: int(os.getenv("LLM_HISTORY_RUNS", "50")),
        ge=1,
        description="Previous turns kept in the model context",
    )

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        """Validate that API key is provided and non-empty."""
        if not v or not v.strip():
            raise ValueError(
                "API key required. Set LLM_API_KEY or OPENAI_API_KEY in .env"
            )
        return v.strip()


def get_agent_config() -> AgentConfig:
    """Create agent configuration from environment.

    Returns:
        Configured AgentConfig instance.

    Raises:
        ValueError: If no API key is set.
    """
    return AgentConfig()
