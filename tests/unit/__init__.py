"""Unit tests for individual components in isolation.

Ensures fast execution with minimal dependencies.

Coverage:
    - agent/: Configuration, session lifecycle, payload building, streaming
    - media/: Attachment validation and encoding
    - ui/: Conversation state machine

Uses fake sessions or patched Agno classes instead of a live model.
Leverages pytest-check for multiple assertions per test.
"""
