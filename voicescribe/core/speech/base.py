"""Speech provider interface and normalized result types."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass
class TranscriptionWord:
    """Recognized word with time offsets."""

    word: str
    start_time: float  # seconds
    end_time: float  # seconds
    confidence: float = 0.0


@dataclass
class TranscriptionResult:
    """Provider response normalized for storage."""

    text: str
    confidence: float
    language: str
    duration: float = 0.0  # seconds, end of the last recognized word
    words: list[TranscriptionWord] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


class SpeechProvider(ABC):
    """Abstract base class for speech-to-text providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""
        ...

    @property
    @abstractmethod
    def is_ready(self) -> bool:
        """Whether the provider holds a usable client."""
        ...

    @abstractmethod
    async def transcribe(
        self,
        file_path: str | Path,
        language_code: str | None = None,
        sample_rate_hertz: int | None = None,
    ) -> TranscriptionResult:
        """Transcribe a stored audio file with synchronous recognition."""
        ...

    async def transcribe_long_running(
        self,
        file_path: str | Path,
        language_code: str | None = None,
        sample_rate_hertz: int | None = None,
    ) -> TranscriptionResult:
        """Transcribe longer audio through a provider-side operation (optional)."""
        raise NotImplementedError("Long-running recognition not supported by this provider")

    async def close(self) -> None:
        """Release provider resources."""
