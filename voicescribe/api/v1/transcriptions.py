"""Transcription API endpoints."""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Annotated, Any, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from voicescribe.api.errors import AppError
from voicescribe.config import settings
from voicescribe.core.auth.dependencies import OptionalUserId
from voicescribe.core.database.session import get_db
from voicescribe.core.logging import get_logger
from voicescribe.core.speech.base import SpeechProvider, TranscriptionResult
from voicescribe.core.speech.errors import SpeechProviderError
from voicescribe.core.speech.google import GoogleSpeechProvider
from voicescribe.core.storage.uploads import (
    StoredUpload,
    UploadRejectedError,
    remove_upload,
    save_upload,
)
from voicescribe.core.transcriptions.models import Transcription, TranscriptionStatus
from voicescribe.core.transcriptions.service import (
    TranscriptionAccessDeniedError,
    TranscriptionNotFoundError,
    TranscriptionService,
)
from voicescribe.core.users.models import User

router = APIRouter()
logger = get_logger(__name__)

# Room for multipart boundaries and the text fields around the audio part
MULTIPART_OVERHEAD_BYTES = 64 * 1024

SortField = Literal[
    "createdAt",
    "updatedAt",
    "duration",
    "fileSize",
    "confidence",
    "wordCount",
    "originalName",
    "status",
]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OwnerResponse(CamelModel):
    id: str
    name: str
    email: str


class TranscriptionResponse(CamelModel):
    id: str
    user: OwnerResponse | None
    file_name: str
    original_name: str
    file_size: int
    mime_type: str
    file_path: str
    transcription_text: str
    confidence: float
    language: str
    duration: float
    word_count: int
    status: str
    error_message: str | None
    metadata: dict[str, Any]
    formatted_size: str
    formatted_duration: str
    created_at: datetime
    updated_at: datetime


class UploadEnvelope(CamelModel):
    success: bool = True
    message: str
    data: TranscriptionResponse


class TranscriptionEnvelope(CamelModel):
    success: bool = True
    data: TranscriptionResponse


class Pagination(CamelModel):
    total: int
    page: int
    limit: int
    pages: int


class TranscriptionListEnvelope(CamelModel):
    success: bool = True
    data: list[TranscriptionResponse]
    pagination: Pagination


class StatisticsResponse(CamelModel):
    total_transcriptions: int
    completed: int
    failed: int
    processing: int
    total_duration: float
    total_size: int


class StatisticsEnvelope(CamelModel):
    success: bool = True
    data: StatisticsResponse


class MessageEnvelope(CamelModel):
    success: bool = True
    message: str


def to_owner_response(owner: User | None) -> OwnerResponse | None:
    if owner is None:
        return None
    return OwnerResponse(id=str(owner.id), name=owner.full_name, email=owner.email)


def to_transcription_response(t: Transcription) -> TranscriptionResponse:
    return TranscriptionResponse(
        id=str(t.id),
        user=to_owner_response(t.owner),
        file_name=t.file_name,
        original_name=t.original_name,
        file_size=t.file_size,
        mime_type=t.mime_type,
        file_path=t.file_path,
        transcription_text=t.transcription_text,
        confidence=t.confidence,
        language=t.language,
        duration=t.duration,
        word_count=t.word_count,
        status=t.status,
        error_message=t.error_message,
        metadata=t.audio_metadata or {},
        formatted_size=t.formatted_size,
        formatted_duration=t.formatted_duration,
        created_at=t.created_at,
        updated_at=t.updated_at,
    )


def get_speech_provider(request: Request) -> SpeechProvider:
    """Provider created at startup; a client-less one if startup did not run."""
    provider = getattr(request.app.state, "speech_provider", None)
    if provider is None:
        return GoogleSpeechProvider(client=None)
    return provider


def get_transcription_service(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> TranscriptionService:
    return TranscriptionService(db)


@dataclass
class UploadRequest:
    """A stored upload and the recognition options sent with it."""

    upload: StoredUpload
    language_code: str
    sample_rate_hertz: int
    long_running: bool


async def accept_audio_upload(
    request: Request,
    audio: Annotated[UploadFile | None, File()] = None,
    language_code: Annotated[str | None, Form(alias="languageCode")] = None,
    sample_rate_hertz: Annotated[int | None, Form(alias="sampleRateHertz", gt=0)] = None,
    long_running: Annotated[bool, Form(alias="longRunning")] = False,
) -> UploadRequest:
    """Validate the multipart form and store the ``audio`` part.

    All form fields are declared here so that a malformed field is rejected
    with 422 before anything is written to the upload directory.
    """
    max_size = settings.max_upload_size_bytes

    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit():
        if int(content_length) > max_size + MULTIPART_OVERHEAD_BYTES:
            raise AppError(
                status.HTTP_400_BAD_REQUEST,
                "File too large",
                f"File size must be less than {settings.max_upload_size_mb}MB",
            )

    if audio is None or not audio.filename:
        raise AppError(
            status.HTTP_400_BAD_REQUEST,
            "No file uploaded",
            "Please upload an audio file",
        )

    try:
        upload = await save_upload(audio, settings.upload_dir, max_size)
    except UploadRejectedError as e:
        raise AppError(status.HTTP_400_BAD_REQUEST, e.error, e.message) from e

    return UploadRequest(
        upload=upload,
        language_code=language_code or settings.default_language_code,
        sample_rate_hertz=sample_rate_hertz or settings.default_sample_rate_hertz,
        long_running=long_running,
    )


Service = Annotated[TranscriptionService, Depends(get_transcription_service)]
Provider = Annotated[SpeechProvider, Depends(get_speech_provider)]


async def _save_failed_attempt(
    service: TranscriptionService,
    owner_id: UUID | None,
    upload: StoredUpload,
    language_code: str,
    error_message: str,
) -> None:
    """Record a failed attempt for auditing; a failure here is only logged."""
    try:
        await service.db.rollback()
        await service.create(
            user_id=owner_id,
            file_name=upload.file_name,
            original_name=upload.original_name,
            file_size=upload.file_size,
            mime_type=upload.mime_type,
            file_path=upload.file_path,
            transcription_text="",
            language=language_code,
            status=TranscriptionStatus.FAILED.value,
            error_message=error_message,
        )
    except SQLAlchemyError as e:
        logger.error("failed_attempt_not_saved", error=str(e), file_name=upload.file_name)


@router.post("/upload", response_model=UploadEnvelope)
async def upload_and_transcribe(
    owner_id: OptionalUserId,
    service: Service,
    provider: Provider,
    form: Annotated[UploadRequest, Depends(accept_audio_upload)],
) -> UploadEnvelope:
    """
    Upload an audio file and transcribe it.

    The pipeline is sequential: store the file, call the provider, save the
    record. A failed provider call removes the file, stores a failed record
    and answers 500.
    """
    upload = form.upload
    language_code = form.language_code
    sample_rate_hertz = form.sample_rate_hertz
    long_running = form.long_running

    logger.info(
        "transcription_requested",
        original_name=upload.original_name,
        size=upload.file_size,
        mime_type=upload.mime_type,
        long_running=long_running,
        guest=owner_id is None,
    )

    try:
        if long_running:
            result: TranscriptionResult = await provider.transcribe_long_running(
                upload.file_path, language_code, sample_rate_hertz
            )
        else:
            result = await provider.transcribe(
                upload.file_path, language_code, sample_rate_hertz
            )

        transcription = await service.create(
            user_id=owner_id,
            file_name=upload.file_name,
            original_name=upload.original_name,
            file_size=upload.file_size,
            mime_type=upload.mime_type,
            file_path=upload.file_path,
            transcription_text=result.text,
            confidence=result.confidence,
            language=result.language,
            duration=result.duration,
            status=TranscriptionStatus.COMPLETED.value,
            audio_metadata={
                "encoding": result.metadata.get("encoding"),
                "sampleRate": result.metadata.get("sampleRate"),
                "channels": result.metadata.get("channels"),
            },
        )
    except (SpeechProviderError, SQLAlchemyError, OSError) as e:
        message = e.message if isinstance(e, SpeechProviderError) else str(e)
        logger.error("transcription_failed", error=message, file_name=upload.file_name)

        remove_upload(upload.file_path)
        await _save_failed_attempt(service, owner_id, upload, language_code, message)

        raise AppError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Transcription failed",
            message,
        ) from e

    logger.info(
        "transcription_completed",
        transcription_id=str(transcription.id),
        word_count=transcription.word_count,
        duration=transcription.duration,
    )

    return UploadEnvelope(
        message="Audio transcribed successfully",
        data=to_transcription_response(transcription),
    )


@router.get("", response_model=TranscriptionListEnvelope)
async def list_transcriptions(
    owner_id: OptionalUserId,
    service: Service,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Annotated[TranscriptionStatus | None, Query(alias="status")] = None,
    sort_by: Annotated[SortField, Query(alias="sortBy")] = "createdAt",
    order: Literal["asc", "desc"] = "desc",
) -> TranscriptionListEnvelope:
    """List the caller's transcriptions (guest records for guests)."""
    try:
        transcriptions, total = await service.list(
            owner_id,
            status=status_filter.value if status_filter else None,
            page=page,
            limit=limit,
            sort_by=sort_by,
            order=order,
        )
    except SQLAlchemyError as e:
        logger.error("transcription_list_failed", error=str(e))
        raise AppError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Failed to fetch transcriptions",
            str(e),
        ) from e

    return TranscriptionListEnvelope(
        data=[to_transcription_response(t) for t in transcriptions],
        pagination=Pagination(
            total=total,
            page=page,
            limit=limit,
            pages=math.ceil(total / limit),
        ),
    )


@router.get("/statistics", response_model=StatisticsEnvelope)
async def get_statistics(
    owner_id: OptionalUserId,
    service: Service,
) -> StatisticsEnvelope:
    """Counts and totals for the caller's transcriptions."""
    try:
        stats = await service.statistics(owner_id)
    except SQLAlchemyError as e:
        logger.error("transcription_statistics_failed", error=str(e))
        raise AppError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Failed to fetch statistics",
            str(e),
        ) from e

    return StatisticsEnvelope(
        data=StatisticsResponse(
            total_transcriptions=stats.total,
            completed=stats.completed,
            failed=stats.failed,
            processing=stats.processing,
            total_duration=stats.total_duration,
            total_size=stats.total_size,
        )
    )


@router.get("/{transcription_id}", response_model=TranscriptionEnvelope)
async def get_transcription(
    transcription_id: UUID,
    owner_id: OptionalUserId,
    service: Service,
) -> TranscriptionEnvelope:
    """Get one transcription."""
    try:
        transcription = await service.get(transcription_id, owner_id)
    except TranscriptionNotFoundError as e:
        raise AppError(status.HTTP_404_NOT_FOUND, "Transcription not found") from e
    except TranscriptionAccessDeniedError as e:
        raise AppError(
            status.HTTP_403_FORBIDDEN,
            "Access denied",
            "You can only view your own transcriptions",
        ) from e
    except SQLAlchemyError as e:
        logger.error("transcription_fetch_failed", error=str(e))
        raise AppError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Failed to fetch transcription",
            str(e),
        ) from e

    return TranscriptionEnvelope(data=to_transcription_response(transcription))


@router.delete("/{transcription_id}", response_model=MessageEnvelope)
async def delete_transcription(
    transcription_id: UUID,
    owner_id: OptionalUserId,
    service: Service,
) -> MessageEnvelope:
    """Delete a transcription and its audio file."""
    try:
        await service.delete(transcription_id, owner_id)
    except TranscriptionNotFoundError as e:
        raise AppError(status.HTTP_404_NOT_FOUND, "Transcription not found") from e
    except TranscriptionAccessDeniedError as e:
        raise AppError(
            status.HTTP_403_FORBIDDEN,
            "Access denied",
            "You can only delete your own transcriptions",
        ) from e
    except SQLAlchemyError as e:
        logger.error("transcription_delete_failed", error=str(e))
        raise AppError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Failed to delete transcription",
            str(e),
        ) from e

    return MessageEnvelope(message="Transcription deleted successfully")
