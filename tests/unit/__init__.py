"""Unit tests for VoiceScribe core functionality.

Unit tests should:
- Not require external services (database, Google Cloud)
- Test individual functions and classes in isolation
- Use mocks for dependencies
"""
