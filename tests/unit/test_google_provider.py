"""Unit tests for the Google Speech-to-Text provider."""

from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from google.api_core import exceptions as google_exceptions
from google.cloud import speech

from voicescribe.config import settings
from voicescribe.core.speech.errors import (
    InvalidAudioFormatError,
    LongRunningTranscriptionError,
    NoTranscriptionResultsError,
    ProviderNotInitializedError,
    ProviderQuotaError,
    SpeechProviderError,
)
from voicescribe.core.speech.google import (
    GoogleSpeechProvider,
    build_speech_provider,
    get_audio_encoding,
    offset_seconds,
    parse_long_running_response,
    parse_recognize_response,
)


def make_word(word, start, end, confidence=0.9):
    return SimpleNamespace(
        word=word,
        start_time=timedelta(seconds=start),
        end_time=timedelta(seconds=end),
        confidence=confidence,
    )


def make_result(transcript, confidence, words=()):
    alternative = SimpleNamespace(
        transcript=transcript,
        confidence=confidence,
        words=list(words),
    )
    return SimpleNamespace(alternatives=[alternative])


def hello_world_response():
    return SimpleNamespace(
        results=[
            make_result(
                "hello world",
                0.92,
                [make_word("hello", 0.3, 0.7), make_word("world", 0.8, 1.2)],
            )
        ]
    )


@pytest.fixture
def wav_path(tmp_path, sample_wav_file):
    path = tmp_path / "clip.wav"
    path.write_bytes(sample_wav_file)
    return path


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.recognize = AsyncMock(return_value=hello_world_response())
    client.transport.close = AsyncMock()
    return client


@pytest.mark.unit
class TestAudioEncoding:
    @pytest.mark.parametrize(
        ("file_name", "encoding"),
        [
            ("a.wav", "LINEAR16"),
            ("a.MP3", "MP3"),
            ("a.flac", "FLAC"),
            ("a.ogg", "OGG_OPUS"),
            ("a.webm", "WEBM_OPUS"),
            ("a.m4a", "MP3"),
            ("a.mp4", "MP3"),
            ("a.aac", "LINEAR16"),
            ("noextension", "LINEAR16"),
        ],
    )
    def test_encoding_by_extension(self, file_name, encoding):
        assert get_audio_encoding(file_name) == encoding

    def test_offsets(self):
        assert offset_seconds(timedelta(seconds=1, microseconds=200000)) == pytest.approx(1.2)
        assert offset_seconds(SimpleNamespace(seconds=2, nanos=500_000_000)) == pytest.approx(2.5)
        assert offset_seconds(None) == 0.0


@pytest.mark.unit
class TestParseRecognizeResponse:
    def test_single_result(self):
        result = parse_recognize_response(hello_world_response(), "en-US", {"encoding": "LINEAR16"})

        assert result.text == "hello world"
        assert result.confidence == pytest.approx(0.92)
        assert result.duration == pytest.approx(1.2)
        assert [w.word for w in result.words] == ["hello", "world"]
        assert result.words[0].start_time == pytest.approx(0.3)
        assert result.language == "en-US"
        assert result.metadata == {"encoding": "LINEAR16"}

    def test_results_joined_by_newline(self):
        response = SimpleNamespace(
            results=[
                make_result("first part", 0.8, [make_word("first", 0, 0.4), make_word("part", 0.5, 0.9)]),
                make_result("second part", 0.6, [make_word("second", 5.0, 5.5), make_word("part", 5.6, 6.1)]),
            ]
        )

        result = parse_recognize_response(response, "en-US", {})

        assert result.text == "first part\nsecond part"
        assert result.confidence == pytest.approx(0.7)
        assert len(result.words) == 4
        assert result.duration == pytest.approx(6.1)

    def test_missing_confidence_left_out_of_mean(self):
        response = SimpleNamespace(
            results=[make_result("one", 0.9), make_result("two", 0.0)]
        )

        result = parse_recognize_response(response, "en-US", {})

        assert result.confidence == pytest.approx(0.9)
        assert result.duration == 0.0

    def test_no_confidence_at_all(self):
        response = SimpleNamespace(results=[make_result("one", 0.0)])
        assert parse_recognize_response(response, "en-US", {}).confidence == 0.0

    def test_empty_results(self):
        with pytest.raises(NoTranscriptionResultsError) as exc_info:
            parse_recognize_response(SimpleNamespace(results=[]), "en-US", {})

        assert exc_info.value.message == "No transcription results received from Google Cloud"


@pytest.mark.unit
class TestParseLongRunningResponse:
    def test_mean_over_all_results(self):
        response = SimpleNamespace(
            results=[make_result("one", 0.9), make_result("two", 0.0)]
        )

        result = parse_long_running_response(response, "de-DE")

        assert result.text == "one\ntwo"
        assert result.confidence == pytest.approx(0.45)
        assert result.duration == 0.0
        assert result.words == []
        assert result.language == "de-DE"

    def test_empty_results(self):
        with pytest.raises(NoTranscriptionResultsError):
            parse_long_running_response(SimpleNamespace(results=[]), "en-US")


@pytest.mark.unit
@pytest.mark.asyncio
class TestGoogleSpeechProvider:
    async def test_not_initialized(self, wav_path):
        provider = GoogleSpeechProvider(client=None)

        assert provider.is_ready is False
        with pytest.raises(ProviderNotInitializedError) as exc_info:
            await provider.transcribe(wav_path)
        assert "GOOGLE_APPLICATION_CREDENTIALS" in exc_info.value.message

        with pytest.raises(ProviderNotInitializedError):
            await provider.transcribe_long_running(wav_path)

    async def test_transcribe_builds_request(self, wav_path, sample_wav_file, mock_client):
        provider = GoogleSpeechProvider(client=mock_client, model="default", use_enhanced=True)

        result = await provider.transcribe(wav_path, "en-GB", 44100)

        kwargs = mock_client.recognize.await_args.kwargs
        config = kwargs["config"]
        assert config.encoding == speech.RecognitionConfig.AudioEncoding.LINEAR16
        assert config.sample_rate_hertz == 44100
        assert config.language_code == "en-GB"
        assert config.enable_automatic_punctuation is True
        assert config.enable_word_time_offsets is True
        assert config.enable_word_confidence is True
        assert config.use_enhanced is True
        assert config.model == "default"
        assert kwargs["audio"].content == sample_wav_file

        assert result.text == "hello world"
        assert result.language == "en-GB"
        assert result.metadata == {"encoding": "LINEAR16", "sampleRate": 44100, "model": "default"}

    async def test_transcribe_defaults(self, tmp_path, mock_client):
        path = tmp_path / "clip.mp3"
        path.write_bytes(b"\xff\xfb\x90\x00")
        provider = GoogleSpeechProvider(client=mock_client)

        result = await provider.transcribe(path)

        config = mock_client.recognize.await_args.kwargs["config"]
        assert config.encoding == speech.RecognitionConfig.AudioEncoding.MP3
        assert config.sample_rate_hertz == 16000
        assert config.language_code == "en-US"
        assert result.metadata["encoding"] == "MP3"

    async def test_invalid_argument_mapped(self, wav_path, mock_client):
        mock_client.recognize.side_effect = google_exceptions.InvalidArgument("bad header")
        provider = GoogleSpeechProvider(client=mock_client)

        with pytest.raises(InvalidAudioFormatError) as exc_info:
            await provider.transcribe(wav_path)
        assert exc_info.value.code == 3

    async def test_quota_mapped(self, wav_path, mock_client):
        mock_client.recognize.side_effect = google_exceptions.ResourceExhausted("quota")
        provider = GoogleSpeechProvider(client=mock_client)

        with pytest.raises(ProviderQuotaError):
            await provider.transcribe(wav_path)

    async def test_unknown_failure_keeps_message(self, wav_path, mock_client):
        mock_client.recognize.side_effect = RuntimeError("socket closed")
        provider = GoogleSpeechProvider(client=mock_client)

        with pytest.raises(SpeechProviderError) as exc_info:
            await provider.transcribe(wav_path)
        assert exc_info.value.message == "Google Speech-to-Text API error: socket closed"

    async def test_empty_response(self, wav_path, mock_client):
        mock_client.recognize.return_value = SimpleNamespace(results=[])
        provider = GoogleSpeechProvider(client=mock_client)

        with pytest.raises(NoTranscriptionResultsError):
            await provider.transcribe(wav_path)

    async def test_long_running(self, wav_path, mock_client):
        operation = MagicMock()
        operation.result = AsyncMock(
            return_value=SimpleNamespace(results=[make_result("long audio", 0.8)])
        )
        mock_client.long_running_recognize = AsyncMock(return_value=operation)
        provider = GoogleSpeechProvider(client=mock_client)

        result = await provider.transcribe_long_running(wav_path, "en-US", 16000)

        config = mock_client.long_running_recognize.await_args.kwargs["config"]
        assert config.enable_word_time_offsets is False
        assert result.text == "long audio"
        assert result.confidence == pytest.approx(0.8)
        assert result.duration == 0.0
        assert result.metadata == {"encoding": "LINEAR16", "sampleRate": 16000}

    async def test_long_running_failure(self, wav_path, mock_client):
        mock_client.long_running_recognize = AsyncMock(
            side_effect=google_exceptions.DeadlineExceeded("took too long")
        )
        provider = GoogleSpeechProvider(client=mock_client)

        with pytest.raises(LongRunningTranscriptionError) as exc_info:
            await provider.transcribe_long_running(wav_path)
        assert exc_info.value.message.startswith("Long-running transcription failed: ")

    async def test_close(self, mock_client):
        provider = GoogleSpeechProvider(client=mock_client)
        await provider.close()
        mock_client.transport.close.assert_awaited_once()


@pytest.mark.unit
class TestBuildSpeechProvider:
    def test_no_credentials_gives_provider_without_client(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_APPLICATION_CREDENTIALS", raising=False)

        provider = build_speech_provider(
            settings.model_copy(update={"google_application_credentials": ""})
        )

        assert isinstance(provider, GoogleSpeechProvider)
        assert provider.is_ready is False

    def test_missing_credentials_file(self, tmp_path, monkeypatch):
        missing = str(tmp_path / "absent.json")
        monkeypatch.setenv("GOOGLE_APPLICATION_CREDENTIALS", missing)

        provider = build_speech_provider(
            settings.model_copy(update={"google_application_credentials": missing})
        )

        assert provider.is_ready is False

    def test_service_account_file(self, tmp_path, monkeypatch):
        credentials = tmp_path / "service-account.json"
        credentials.write_text("{}")
        client = MagicMock()
        factory = MagicMock(return_value=client)
        monkeypatch.setattr(speech.SpeechAsyncClient, "from_service_account_file", factory)

        provider = build_speech_provider(
            settings.model_copy(update={"google_application_credentials": str(credentials)})
        )

        factory.assert_called_once_with(str(credentials))
        assert provider.is_ready is True

    def test_unreadable_credentials_fall_back_to_no_client(self, tmp_path, monkeypatch):
        credentials = tmp_path / "service-account.json"
        credentials.write_text("not json")
        monkeypatch.setattr(
            speech.SpeechAsyncClient,
            "from_service_account_file",
            MagicMock(side_effect=ValueError("malformed service account file")),
        )

        provider = build_speech_provider(
            settings.model_copy(update={"google_application_credentials": str(credentials)})
        )

        assert provider.is_ready is False
