"""Google Cloud Speech-to-Text provider."""

import os
from datetime import timedelta
from pathlib import Path
from typing import Any

from google.cloud import speech

from voicescribe.config import Settings
from voicescribe.core.logging import get_logger
from voicescribe.core.speech.base import (
    SpeechProvider,
    TranscriptionResult,
    TranscriptionWord,
)
from voicescribe.core.speech.errors import (
    LongRunningTranscriptionError,
    NoTranscriptionResultsError,
    ProviderNotInitializedError,
    SpeechProviderError,
    map_provider_error,
    provider_error_code,
)

logger = get_logger(__name__)

DEFAULT_ENCODING = "LINEAR16"

# .m4a/.mp4 usually carry AAC, which the API cannot decode; MP3 is what the
# product currently sends for them.
AUDIO_ENCODINGS: dict[str, str] = {
    ".wav": "LINEAR16",
    ".mp3": "MP3",
    ".flac": "FLAC",
    ".ogg": "OGG_OPUS",
    ".webm": "WEBM_OPUS",
    ".m4a": "MP3",
    ".mp4": "MP3",
}


def get_audio_encoding(file_path: str | Path) -> str:
    """Return the wire encoding name for a file, based on its extension."""
    return AUDIO_ENCODINGS.get(Path(file_path).suffix.lower(), DEFAULT_ENCODING)


def offset_seconds(offset: Any) -> float:
    """Convert a word time offset to seconds.

    The client surfaces offsets as ``timedelta``; raw protobuf durations
    expose ``seconds`` and ``nanos`` instead.
    """
    if offset is None:
        return 0.0
    if isinstance(offset, timedelta):
        return offset.total_seconds()
    return float(getattr(offset, "seconds", 0) or 0) + (getattr(offset, "nanos", 0) or 0) / 1e9


def _top_alternatives(results: Any) -> list[Any]:
    return [result.alternatives[0] for result in results if result.alternatives]


def parse_recognize_response(
    response: Any,
    language_code: str,
    metadata: dict[str, Any],
) -> TranscriptionResult:
    """Normalize a synchronous recognition response.

    Raises:
        NoTranscriptionResultsError: If the response carries no results.
    """
    if not response.results:
        raise NoTranscriptionResultsError()

    alternatives = _top_alternatives(response.results)
    text = "\n".join(alt.transcript for alt in alternatives)

    # Alternatives without a confidence are left out of the mean entirely
    confidences = [alt.confidence for alt in alternatives if alt.confidence]
    confidence = sum(confidences) / len(confidences) if confidences else 0.0

    words = [
        TranscriptionWord(
            word=info.word,
            start_time=offset_seconds(info.start_time),
            end_time=offset_seconds(info.end_time),
            confidence=info.confidence or 0.0,
        )
        for alt in alternatives
        for info in alt.words
    ]
    duration = words[-1].end_time if words else 0.0

    return TranscriptionResult(
        text=text,
        confidence=confidence,
        language=language_code,
        duration=duration,
        words=words,
        metadata=metadata,
    )


def parse_long_running_response(response: Any, language_code: str) -> TranscriptionResult:
    """Normalize a long-running recognition response (no word timings)."""
    if not response.results:
        raise NoTranscriptionResultsError()

    alternatives = _top_alternatives(response.results)
    text = "\n".join(alt.transcript for alt in alternatives)
    confidence = sum(alt.confidence or 0.0 for alt in alternatives) / len(response.results)

    return TranscriptionResult(
        text=text,
        confidence=confidence,
        language=language_code,
        duration=0.0,
    )


class GoogleSpeechProvider(SpeechProvider):
    """
    Google Cloud Speech-to-Text provider.

    The client is created once at startup and never replaced. Without a
    client every call fails with ProviderNotInitializedError.
    """

    def __init__(
        self,
        client: speech.SpeechAsyncClient | None,
        model: str = "default",
        use_enhanced: bool = True,
        default_language_code: str = "en-US",
        default_sample_rate_hertz: int = 16000,
    ) -> None:
        self._client = client
        self._model = model
        self._use_enhanced = use_enhanced
        self._default_language_code = default_language_code
        self._default_sample_rate_hertz = default_sample_rate_hertz

    @property
    def name(self) -> str:
        return "google"

    @property
    def is_ready(self) -> bool:
        return self._client is not None

    def _require_client(self) -> speech.SpeechAsyncClient:
        if self._client is None:
            raise ProviderNotInitializedError()
        return self._client

    def _base_config(
        self,
        file_path: str | Path,
        language_code: str | None,
        sample_rate_hertz: int | None,
    ) -> dict[str, Any]:
        return {
            "encoding": get_audio_encoding(file_path),
            "sample_rate_hertz": sample_rate_hertz or self._default_sample_rate_hertz,
            "language_code": language_code or self._default_language_code,
            "enable_automatic_punctuation": True,
        }

    @staticmethod
    def _build_config(options: dict[str, Any]) -> speech.RecognitionConfig:
        options = dict(options)
        options["encoding"] = speech.RecognitionConfig.AudioEncoding[options["encoding"]]
        return speech.RecognitionConfig(**options)

    async def transcribe(
        self,
        file_path: str | Path,
        language_code: str | None = None,
        sample_rate_hertz: int | None = None,
    ) -> TranscriptionResult:
        """
        Transcribe audio with synchronous recognition.

        Args:
            file_path: Stored audio file; its extension selects the encoding
            language_code: BCP-47 tag, defaults to en-US
            sample_rate_hertz: Defaults to 16000

        Returns:
            TranscriptionResult with text, mean confidence, words and duration
        """
        client = self._require_client()

        options = self._base_config(file_path, language_code, sample_rate_hertz)
        options.update(
            enable_word_time_offsets=True,
            enable_word_confidence=True,
            model=self._model,
            use_enhanced=self._use_enhanced,
        )

        try:
            audio = speech.RecognitionAudio(content=Path(file_path).read_bytes())

            logger.info(
                "speech_recognize_started",
                encoding=options["encoding"],
                language_code=options["language_code"],
            )
            response = await client.recognize(config=self._build_config(options), audio=audio)

            result = parse_recognize_response(
                response,
                language_code=options["language_code"],
                metadata={
                    "encoding": options["encoding"],
                    "sampleRate": options["sample_rate_hertz"],
                    "model": self._model,
                },
            )
        except SpeechProviderError as e:
            logger.error("speech_recognize_failed", error=e.message)
            raise
        except Exception as e:
            logger.error("speech_recognize_failed", error=str(e))
            raise map_provider_error(provider_error_code(e), str(e)) from e

        logger.info(
            "speech_recognize_completed",
            word_count=len(result.words),
            duration=result.duration,
        )
        return result

    async def transcribe_long_running(
        self,
        file_path: str | Path,
        language_code: str | None = None,
        sample_rate_hertz: int | None = None,
    ) -> TranscriptionResult:
        """
        Transcribe longer audio with long-running recognition.

        Waits for the provider's operation with no client-side timeout.
        Duration is not computed on this path.
        """
        client = self._require_client()

        options = self._base_config(file_path, language_code, sample_rate_hertz)

        try:
            audio = speech.RecognitionAudio(content=Path(file_path).read_bytes())

            logger.info(
                "speech_long_running_started",
                encoding=options["encoding"],
                language_code=options["language_code"],
            )
            operation = await client.long_running_recognize(
                config=self._build_config(options), audio=audio
            )
            response = await operation.result()

            result = parse_long_running_response(response, options["language_code"])
        except Exception as e:
            logger.error("speech_long_running_failed", error=str(e))
            message = e.message if isinstance(e, SpeechProviderError) else str(e)
            raise LongRunningTranscriptionError(
                f"Long-running transcription failed: {message}",
                code=provider_error_code(e),
            ) from e

        result.metadata = {
            "encoding": options["encoding"],
            "sampleRate": options["sample_rate_hertz"],
        }
        return result

    async def close(self) -> None:
        if self._client is not None:
            await self._client.transport.close()


def build_speech_provider(settings: Settings) -> GoogleSpeechProvider:
    """
    Create the process-wide provider.

    Credentials come from the configured service-account file, falling back
    to GOOGLE_APPLICATION_CREDENTIALS. When neither is usable the provider
    is created without a client.
    """
    client: speech.SpeechAsyncClient | None = None
    credentials_path = settings.google_application_credentials
    env_credentials = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")

    try:
        if credentials_path and Path(credentials_path).is_file():
            client = speech.SpeechAsyncClient.from_service_account_file(credentials_path)
        elif env_credentials and Path(env_credentials).is_file():
            client = speech.SpeechAsyncClient()
        else:
            logger.warning(
                "speech_credentials_missing",
                credentials_path=credentials_path,
                hint="Set GOOGLE_APPLICATION_CREDENTIALS to use Speech-to-Text",
            )
    except Exception as e:
        logger.error("speech_client_init_failed", error=str(e))
        client = None

    if client is not None:
        logger.info("speech_client_initialized", credentials_path=credentials_path or env_credentials)

    return GoogleSpeechProvider(
        client=client,
        model=settings.speech_model,
        use_enhanced=settings.speech_use_enhanced,
        default_language_code=settings.default_language_code,
        default_sample_rate_hertz=settings.default_sample_rate_hertz,
    )
