"""Transcription record store."""

from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import ColumnElement, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from voicescribe.core.logging import get_logger
from voicescribe.core.storage.uploads import remove_upload
from voicescribe.core.transcriptions.models import Transcription, TranscriptionStatus

logger = get_logger(__name__)

SORT_FIELDS = {
    "createdAt": Transcription.created_at,
    "updatedAt": Transcription.updated_at,
    "duration": Transcription.duration,
    "fileSize": Transcription.file_size,
    "confidence": Transcription.confidence,
    "wordCount": Transcription.word_count,
    "originalName": Transcription.original_name,
    "status": Transcription.status,
}


class TranscriptionNotFoundError(Exception):
    """No transcription with the requested id."""


class TranscriptionAccessDeniedError(Exception):
    """The transcription exists on the other side of the ownership partition."""


@dataclass
class TranscriptionStatistics:
    total: int
    completed: int
    failed: int
    total_duration: float
    total_size: int

    @property
    def processing(self) -> int:
        return self.total - self.completed - self.failed


def owner_filter(owner_id: UUID | None) -> ColumnElement[bool]:
    """Guests own records with a null owner; users own their own."""
    if owner_id is None:
        return Transcription.user_id.is_(None)
    return Transcription.user_id == owner_id


class TranscriptionService:
    """Persistence and ownership rules for transcription records.

    ``owner_id`` is the caller's identity; None means guest.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(self, **fields: Any) -> Transcription:
        """Persist a record. Word count is derived by the model on flush."""
        transcription = Transcription(**fields)
        self.db.add(transcription)
        await self.db.commit()

        # Reload so server-side values and the owner are present
        result = await self.db.execute(
            select(Transcription)
            .where(Transcription.id == transcription.id)
            .execution_options(populate_existing=True)
        )
        transcription = result.scalar_one()

        logger.info(
            "transcription_saved",
            transcription_id=str(transcription.id),
            status=transcription.status,
            word_count=transcription.word_count,
        )
        return transcription

    async def list(
        self,
        owner_id: UUID | None,
        status: str | None = None,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "createdAt",
        order: str = "desc",
    ) -> tuple[list[Transcription], int]:
        """Return one page of records and the total for the same filter."""
        conditions = [owner_filter(owner_id)]
        if status:
            conditions.append(Transcription.status == status)

        count_query = select(func.count()).select_from(Transcription).where(*conditions)
        total = (await self.db.execute(count_query)).scalar() or 0

        sort_column = SORT_FIELDS.get(sort_by, Transcription.created_at)
        ordering = sort_column.asc() if order == "asc" else sort_column.desc()

        query = (
            select(Transcription)
            .where(*conditions)
            .order_by(ordering, Transcription.id)
            .offset((page - 1) * limit)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def get(self, transcription_id: UUID, owner_id: UUID | None) -> Transcription:
        """
        Fetch one record enforcing the ownership partition.

        Raises:
            TranscriptionNotFoundError: The id does not resolve (checked first)
            TranscriptionAccessDeniedError: The record belongs to someone else
        """
        transcription = await self.db.get(
            Transcription, transcription_id, populate_existing=True
        )
        if transcription is None:
            raise TranscriptionNotFoundError(str(transcription_id))

        if not transcription.is_visible_to(owner_id):
            logger.warning(
                "transcription_access_denied",
                transcription_id=str(transcription_id),
                guest=owner_id is None,
            )
            raise TranscriptionAccessDeniedError(str(transcription_id))

        return transcription

    async def delete(self, transcription_id: UUID, owner_id: UUID | None) -> None:
        """Delete a record and, best effort, its audio file.

        The file is removed only after the row delete is committed, so a
        failed commit leaves both in place.
        """
        transcription = await self.get(transcription_id, owner_id)
        file_path = transcription.file_path

        await self.db.delete(transcription)
        await self.db.commit()

        remove_upload(file_path)

        logger.info("transcription_deleted", transcription_id=str(transcription_id))

    async def statistics(self, owner_id: UUID | None) -> TranscriptionStatistics:
        """Counts and sums over the caller's side of the partition."""
        query = select(
            func.count(Transcription.id),
            func.coalesce(
                func.sum(case((Transcription.status == TranscriptionStatus.COMPLETED.value, 1), else_=0)),
                0,
            ),
            func.coalesce(
                func.sum(case((Transcription.status == TranscriptionStatus.FAILED.value, 1), else_=0)),
                0,
            ),
            func.coalesce(func.sum(Transcription.duration), 0.0),
            func.coalesce(func.sum(Transcription.file_size), 0),
        ).where(owner_filter(owner_id))

        row = (await self.db.execute(query)).one()
        total, completed, failed, total_duration, total_size = row

        return TranscriptionStatistics(
            total=int(total),
            completed=int(completed),
            failed=int(failed),
            total_duration=float(total_duration),
            total_size=int(total_size),
        )
