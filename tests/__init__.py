"""Test package for the Socratic Math Tutor.

Provides test coverage for all components with unit tests for isolated
logic and integration tests for the HTTP streaming workflow.

Structure:
    - unit/: Individual function and class tests
    - integration/: End-to-end API workflow tests

The remote model is replaced by scripted fake sessions, so no API key is needed.
Leverages pytest with pytest-check for soft assertions.
"""
