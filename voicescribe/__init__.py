"""VoiceScribe: audio upload and speech-to-text transcription service."""

__version__ = "1.0.0"
