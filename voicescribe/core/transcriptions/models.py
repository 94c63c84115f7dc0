"""Transcription model."""

import math
import re
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, BigInteger, Float, ForeignKey, Index, Integer, String, Text, Uuid, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from voicescribe.core.database.base import Base, TimestampMixin, UUIDMixin
from voicescribe.core.users.models import User

_WHITESPACE = re.compile(r"\s+")


class TranscriptionStatus(str, Enum):
    """Status of a transcription attempt.

    PROCESSING is reserved for asynchronous processing; uploads are handled
    synchronously and end as COMPLETED or FAILED.
    """

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


def count_words(text: str | None) -> int:
    """Whitespace-delimited token count of the trimmed text.

    Empty text counts 0; whitespace-only text trims to a single empty token.
    """
    if not text:
        return 0
    return len(_WHITESPACE.split(text.strip()))


def format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.2f} KB"
    return f"{size / (1024 * 1024):.2f} MB"


def format_duration(duration: float) -> str:
    minutes = math.floor(duration / 60)
    seconds = math.floor(duration % 60)
    return f"{minutes}:{seconds:02d}"


class Transcription(Base, UUIDMixin, TimestampMixin):
    """
    One transcription attempt, successful or failed.

    user_id is None for guest uploads. Records of a deleted user are
    deleted with the user row, never handed over to guests. Failed
    attempts keep an empty transcript and the error message.
    """

    __tablename__ = "transcriptions"

    user_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
    )

    # Stored audio file
    file_name: Mapped[str] = mapped_column(String(512), nullable=False)
    original_name: Mapped[str] = mapped_column(String(512), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)
    file_path: Mapped[str] = mapped_column(String(1024), nullable=False)

    # Result
    transcription_text: Mapped[str] = mapped_column(
        Text, nullable=False, default="", server_default=""
    )
    confidence: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0, server_default="0"
    )
    language: Mapped[str] = mapped_column(
        String(35), nullable=False, default="en-US", server_default="en-US"
    )
    duration: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0, server_default="0"
    )  # seconds
    word_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=TranscriptionStatus.COMPLETED.value,
        server_default=TranscriptionStatus.COMPLETED.value,
    )
    error_message: Mapped[str | None] = mapped_column(Text)

    # encoding, sampleRate, channels
    audio_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True, default=dict)

    # Loaded with every record so responses can show the owner's name and email
    owner: Mapped[User | None] = relationship(lazy="selectin")

    __table_args__ = (
        Index("idx_transcriptions_user_created", "user_id", "created_at"),
        Index("idx_transcriptions_status", "status"),
        Index("idx_transcriptions_created", "created_at"),
    )

    @property
    def formatted_size(self) -> str:
        return format_size(self.file_size or 0)

    @property
    def formatted_duration(self) -> str:
        return format_duration(self.duration or 0.0)

    def is_visible_to(self, owner_id: UUID | None) -> bool:
        """Ownership partition: guests see guest records, users their own."""
        return self.user_id == owner_id

    def __repr__(self) -> str:
        return f"<Transcription {self.id} ({self.status})>"


@event.listens_for(Transcription, "before_insert")
@event.listens_for(Transcription, "before_update")
def _recompute_word_count(mapper, connection, target: Transcription) -> None:
    target.word_count = count_words(target.transcription_text)
