"""NiceGUI interface - thin visualization layer for the tutor chat.

Delivers a single-page chat with real-time reply streaming.

Responsibilities:
    - Chat message display with a thinking indicator and streaming text
    - Single-image attachment picker with media type checks
    - Session reset behind a confirmation dialog

Conversation state lives in ``state.ChatState`` and is independent of NiceGUI.
"""
