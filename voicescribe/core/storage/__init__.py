"""Local storage for uploaded audio."""

from voicescribe.core.storage.uploads import (
    ALLOWED_EXTENSIONS,
    ALLOWED_MIME_TYPES,
    FileTooLargeError,
    InvalidFileTypeError,
    StoredUpload,
    UploadRejectedError,
    ensure_upload_dir,
    remove_upload,
    save_upload,
)

__all__ = [
    "ALLOWED_EXTENSIONS",
    "ALLOWED_MIME_TYPES",
    "FileTooLargeError",
    "InvalidFileTypeError",
    "StoredUpload",
    "UploadRejectedError",
    "ensure_upload_dir",
    "remove_upload",
    "save_upload",
]
