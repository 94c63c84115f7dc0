"""Speech-to-text providers."""

from voicescribe.core.speech.base import SpeechProvider, TranscriptionResult, TranscriptionWord
from voicescribe.core.speech.errors import SpeechProviderError, map_provider_error
from voicescribe.core.speech.google import GoogleSpeechProvider, build_speech_provider

__all__ = [
    "SpeechProvider",
    "TranscriptionResult",
    "TranscriptionWord",
    "SpeechProviderError",
    "map_provider_error",
    "GoogleSpeechProvider",
    "build_speech_provider",
]
