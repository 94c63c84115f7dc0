"""Transcription records."""

from voicescribe.core.transcriptions.models import (
    Transcription,
    TranscriptionStatus,
    count_words,
)
from voicescribe.core.transcriptions.service import (
    TranscriptionAccessDeniedError,
    TranscriptionNotFoundError,
    TranscriptionService,
    TranscriptionStatistics,
)

__all__ = [
    "Transcription",
    "TranscriptionStatus",
    "count_words",
    "TranscriptionAccessDeniedError",
    "TranscriptionNotFoundError",
    "TranscriptionService",
    "TranscriptionStatistics",
]
