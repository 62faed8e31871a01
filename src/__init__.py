"""Socratic Math Tutor - step-by-step math help from a reasoning LLM.

Combines NiceGUI for the chat page, Agno for model orchestration,
FastAPI for HTTP streaming, and Pydantic for data validation.

Components:
    - agent: Tutor sessions, payload building and reply streaming
    - media: Image attachment validation and encoding
    - ui: Conversation state and the chat page
    - api: Health, streaming and reset endpoints
    - models: Message and request/response schemas
"""

__version__ = "0.1.0"
