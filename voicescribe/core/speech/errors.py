"""Speech provider error taxonomy.

Provider failures are reduced to a few categories the HTTP layer can show
to users. ``map_provider_error`` is pure so it can be tested without a
network call.
"""

# gRPC status codes reported by Google Cloud
INVALID_ARGUMENT = 3
PERMISSION_DENIED = 7
RESOURCE_EXHAUSTED = 8

NOT_INITIALIZED_MESSAGE = (
    "Google Speech client not initialized. Please set GOOGLE_APPLICATION_CREDENTIALS."
)
NO_RESULTS_MESSAGE = "No transcription results received from Google Cloud"
INVALID_FORMAT_MESSAGE = "Invalid audio file format. Please use WAV, MP3, FLAC, or OGG format."
PERMISSION_DENIED_MESSAGE = "Permission denied. Please check your Google Cloud credentials."
QUOTA_EXCEEDED_MESSAGE = "API quota exceeded. Please check your Google Cloud billing."


class SpeechProviderError(Exception):
    """Base error for speech provider failures."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class ProviderNotInitializedError(SpeechProviderError):
    """The provider has no client (credentials missing at startup)."""

    def __init__(self, message: str = NOT_INITIALIZED_MESSAGE) -> None:
        super().__init__(message)


class NoTranscriptionResultsError(SpeechProviderError):
    """The provider answered with an empty result set."""

    def __init__(self, message: str = NO_RESULTS_MESSAGE) -> None:
        super().__init__(message)


class InvalidAudioFormatError(SpeechProviderError):
    pass


class ProviderPermissionError(SpeechProviderError):
    pass


class ProviderQuotaError(SpeechProviderError):
    pass


class LongRunningTranscriptionError(SpeechProviderError):
    pass


def map_provider_error(code: int | None, message: str) -> SpeechProviderError:
    """Map a provider error code to a user-facing error."""
    if code == INVALID_ARGUMENT:
        return InvalidAudioFormatError(INVALID_FORMAT_MESSAGE, code=code)
    if code == PERMISSION_DENIED:
        return ProviderPermissionError(PERMISSION_DENIED_MESSAGE, code=code)
    if code == RESOURCE_EXHAUSTED:
        return ProviderQuotaError(QUOTA_EXCEEDED_MESSAGE, code=code)
    return SpeechProviderError(f"Google Speech-to-Text API error: {message}", code=code)


def provider_error_code(exc: BaseException) -> int | None:
    """Extract the numeric gRPC status code from a client exception, if any."""
    grpc_code = getattr(exc, "grpc_status_code", None)
    if grpc_code is not None:
        value = getattr(grpc_code, "value", grpc_code)
        if isinstance(value, tuple):
            value = value[0]
        if isinstance(value, int):
            return value

    code = getattr(exc, "code", None)
    if isinstance(code, int) and not isinstance(code, bool):
        return code
    return None
