"""FastAPI endpoints for the math tutor.

HTTP and streaming routes with async request handling.
Supports Server-Sent Events for real-time reply streaming.

Endpoints:
    - GET /health: Service health status
    - POST /chat/stream: Stream a tutor reply
    - POST /chat/reset: Start a fresh tutor session
"""

from src.api.app import app, create_app

__all__ = ["app", "create_app"]
