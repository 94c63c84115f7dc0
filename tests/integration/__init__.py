"""Integration tests for VoiceScribe.

Integration tests run the FastAPI app and the record store against an
in-memory SQLite database with a fake speech provider.
"""
