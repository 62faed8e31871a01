"""Integration tests for components working together as a system.

Coverage:
    - API endpoints with real HTTP requests over ASGITransport
    - Full send workflow from request validation to SSE frames

The model session is scripted; everything between the HTTP request and
the session runs for real.
"""
