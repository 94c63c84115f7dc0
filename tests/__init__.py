"""VoiceScribe test suite.

Test structure:
    tests/
    ├── conftest.py          # Shared fixtures for all tests
    ├── unit/                # Unit tests (no database, no network)
    └── integration/         # API and store tests against in-memory SQLite

Run all tests:
    pytest

Run one category:
    pytest -m unit
    pytest -m integration
"""
