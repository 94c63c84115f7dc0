"""Audio upload intake and local file storage."""

import random
import time
from dataclasses import dataclass
from pathlib import Path

from fastapi import UploadFile

from voicescribe.core.logging import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 1024 * 1024

ALLOWED_MIME_TYPES = frozenset({
    "audio/mpeg",
    "audio/mp3",
    "audio/wav",
    "audio/wave",
    "audio/x-wav",
    "audio/webm",
    "audio/ogg",
    "audio/mp4",
    "audio/m4a",
    "audio/x-m4a",
    "audio/flac",
    "audio/x-flac",
    "video/webm",  # browser MediaRecorder output
    "video/mp4",  # some mobile recordings
})

ALLOWED_EXTENSIONS = (".mp3", ".wav", ".webm", ".ogg", ".m4a", ".flac", ".mp4")


class UploadRejectedError(Exception):
    """The uploaded file was refused; nothing is kept on disk."""

    def __init__(self, error: str, message: str) -> None:
        super().__init__(message)
        self.error = error
        self.message = message


class FileTooLargeError(UploadRejectedError):
    def __init__(self, max_size_bytes: int) -> None:
        super().__init__(
            "File too large",
            f"File size must be less than {max_size_bytes // (1024 * 1024)}MB",
        )


class InvalidFileTypeError(UploadRejectedError):
    def __init__(self) -> None:
        super().__init__(
            "File upload error",
            f"Invalid file type. Allowed types: {', '.join(ALLOWED_EXTENSIONS)}",
        )


@dataclass
class StoredUpload:
    """An accepted upload written to the upload directory."""

    file_name: str
    original_name: str
    file_size: int
    mime_type: str
    file_path: str


def is_allowed_audio(filename: str, mime_type: str | None) -> bool:
    """Accept on MIME type or on extension; either one is enough."""
    if mime_type in ALLOWED_MIME_TYPES:
        return True
    return Path(filename).suffix.lower() in ALLOWED_EXTENSIONS


def generate_file_name(original_name: str) -> str:
    """Build ``<stem>-<epoch millis>-<random><ext>`` for a stored upload."""
    original = Path(original_name)
    unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9 - 1)}"
    return f"{original.stem}-{unique_suffix}{original.suffix}"


def ensure_upload_dir(upload_dir: str | Path) -> Path:
    """Create the upload directory if it does not exist yet."""
    path = Path(upload_dir)
    if not path.exists():
        path.mkdir(parents=True, exist_ok=True)
        logger.info("upload_dir_created", path=str(path))
    return path


async def save_upload(
    file: UploadFile,
    upload_dir: str | Path,
    max_size_bytes: int,
) -> StoredUpload:
    """
    Validate and store an uploaded audio file.

    The type check runs before anything is written. The file is copied in
    chunks and discarded as soon as it grows past ``max_size_bytes``.

    Raises:
        InvalidFileTypeError: Neither MIME type nor extension is allowed
        FileTooLargeError: The file exceeds the size ceiling
    """
    original_name = Path(file.filename or "audio").name
    mime_type = file.content_type or "application/octet-stream"

    if not is_allowed_audio(original_name, mime_type):
        logger.warning("upload_rejected_type", filename=original_name, mime_type=mime_type)
        raise InvalidFileTypeError()

    if file.size is not None and file.size > max_size_bytes:
        logger.warning("upload_rejected_size", filename=original_name, size=file.size)
        raise FileTooLargeError(max_size_bytes)

    file_name = generate_file_name(original_name)
    destination = Path(upload_dir) / file_name

    written = 0
    try:
        with destination.open("wb") as out:
            while chunk := await file.read(CHUNK_SIZE):
                written += len(chunk)
                if written > max_size_bytes:
                    raise FileTooLargeError(max_size_bytes)
                out.write(chunk)
    except BaseException:
        destination.unlink(missing_ok=True)
        if written > max_size_bytes:
            logger.warning("upload_rejected_size", filename=original_name, size=written)
        raise

    logger.info(
        "upload_stored",
        filename=original_name,
        stored_as=file_name,
        size=written,
        mime_type=mime_type,
    )

    return StoredUpload(
        file_name=file_name,
        original_name=original_name,
        file_size=written,
        mime_type=mime_type,
        file_path=str(destination),
    )


def remove_upload(file_path: str | Path | None) -> bool:
    """
    Delete a stored upload.

    Returns True if a file was removed. A missing file is not an error and
    OS failures are logged, never raised.
    """
    if not file_path:
        return False

    path = Path(file_path)
    try:
        if not path.exists():
            return False
        path.unlink()
    except OSError as e:
        logger.error("upload_cleanup_failed", path=str(path), error=str(e))
        return False

    logger.info("upload_removed", path=str(path))
    return True
