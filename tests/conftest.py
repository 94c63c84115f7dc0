"""
Shared pytest fixtures for VoiceScribe tests.

Test categories:
    - Unit tests: mocked dependencies, no database
    - Integration tests: FastAPI app against an in-memory SQLite database,
      with the speech provider replaced by ``FakeSpeechProvider``
"""

import os
import tempfile
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any
from uuid import uuid4

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# =============================================================================
# Environment Setup
# =============================================================================

load_dotenv()

# Override settings BEFORE importing app modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["APP_ENV"] = "testing"
os.environ["DEBUG"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["LOG_TO_FILE"] = "false"
os.environ["GOOGLE_APPLICATION_CREDENTIALS"] = ""
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="voicescribe-uploads-")

from voicescribe.config import settings  # noqa: E402
from voicescribe.core.database.base import Base  # noqa: E402
from voicescribe.core.database.session import get_db  # noqa: E402
from voicescribe.core.speech.base import (  # noqa: E402
    SpeechProvider,
    TranscriptionResult,
    TranscriptionWord,
)

# Import all models to register them with Base.metadata
from voicescribe.core.users.models import User  # noqa: E402
from voicescribe.core.transcriptions.models import Transcription  # noqa: E402, F401


# =============================================================================
# Speech Provider Fake
# =============================================================================


class FakeSpeechProvider(SpeechProvider):
    """Speech provider returning a canned result or raising a canned error."""

    def __init__(
        self,
        result: TranscriptionResult | None = None,
        error: Exception | None = None,
    ) -> None:
        self.result = result
        self.error = error
        self.calls: list[dict[str, Any]] = []

    @property
    def name(self) -> str:
        return "fake"

    @property
    def is_ready(self) -> bool:
        return True

    async def _respond(self, method: str, file_path, language_code, sample_rate_hertz):
        self.calls.append(
            {
                "method": method,
                "file_path": str(file_path),
                "file_existed": Path(file_path).exists(),
                "language_code": language_code,
                "sample_rate_hertz": sample_rate_hertz,
            }
        )
        if self.error is not None:
            raise self.error
        return self.result

    async def transcribe(self, file_path, language_code=None, sample_rate_hertz=None):
        return await self._respond("transcribe", file_path, language_code, sample_rate_hertz)

    async def transcribe_long_running(self, file_path, language_code=None, sample_rate_hertz=None):
        return await self._respond(
            "transcribe_long_running", file_path, language_code, sample_rate_hertz
        )


@pytest.fixture
def hello_world_result() -> TranscriptionResult:
    """Provider result for a short 'hello world' recording."""
    return TranscriptionResult(
        text="hello world",
        confidence=0.92,
        language="en-US",
        duration=1.2,
        words=[
            TranscriptionWord(word="hello", start_time=0.3, end_time=0.7, confidence=0.95),
            TranscriptionWord(word="world", start_time=0.8, end_time=1.2, confidence=0.89),
        ],
        metadata={"encoding": "LINEAR16", "sampleRate": 16000, "model": "default"},
    )


@pytest.fixture
def speech_provider(hello_world_result: TranscriptionResult) -> FakeSpeechProvider:
    return FakeSpeechProvider(result=hello_world_result)


# =============================================================================
# Storage Fixtures
# =============================================================================


@pytest.fixture
def upload_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the upload directory at a per-test temporary directory."""
    directory = tmp_path / "uploads"
    directory.mkdir()
    monkeypatch.setattr(settings, "upload_dir", str(directory))
    return directory


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def test_engine():
    """In-memory SQLite engine shared by every connection of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(test_session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with test_session_factory() as session:
        yield session


# =============================================================================
# Application Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def app(
    db_session: AsyncSession,
    speech_provider: FakeSpeechProvider,
    upload_dir: Path,
) -> AsyncGenerator[FastAPI, None]:
    """Application wired to the test session and the fake provider.

    The lifespan does not run under ASGITransport, so the provider handle
    is placed on app.state here.
    """
    from voicescribe.main import create_app

    app_instance = create_app()

    async def override_get_db():
        yield db_session

    app_instance.dependency_overrides[get_db] = override_get_db
    app_instance.state.speech_provider = speech_provider

    yield app_instance

    app_instance.dependency_overrides.clear()


@pytest_asyncio.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# =============================================================================
# Authentication Fixtures
# =============================================================================


async def _create_user(db_session: AsyncSession, password: str, name: str) -> dict[str, Any]:
    from voicescribe.core.auth.password import hash_password

    email = f"{name.lower().replace(' ', '_')}_{uuid4().hex[:8]}@example.com"
    user = User(
        email=email,
        hashed_password=hash_password(password),
        full_name=name,
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()

    return {
        "id": user.id,
        "email": email,
        "password": password,
        "name": name,
    }


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> dict[str, Any]:
    return await _create_user(db_session, "testpassword123", "Test User")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> dict[str, Any]:
    return await _create_user(db_session, "otherpassword123", "Other User")


@pytest.fixture
def auth_headers(test_user: dict) -> dict[str, str]:
    from voicescribe.core.auth.jwt import create_access_token

    return {"Authorization": f"Bearer {create_access_token(test_user['id'])}"}


@pytest.fixture
def other_auth_headers(other_user: dict) -> dict[str, str]:
    from voicescribe.core.auth.jwt import create_access_token

    return {"Authorization": f"Bearer {create_access_token(other_user['id'])}"}


# =============================================================================
# File Fixtures
# =============================================================================


@pytest.fixture
def sample_wav_file() -> bytes:
    """Minimal WAV header followed by silence."""
    return b"RIFF" + (36 + 3200).to_bytes(4, "little") + b"WAVEfmt " + bytes(3220)


@pytest.fixture
def sample_audio_file() -> bytes:
    """Return minimal MP3 frame bytes (silence)."""
    return bytes([0xFF, 0xFB, 0x90, 0x00] + [0x00] * 100)


@pytest.fixture
def sample_text_file() -> bytes:
    return b"Hello, this is a test file content.\nLine 2.\nLine 3."
