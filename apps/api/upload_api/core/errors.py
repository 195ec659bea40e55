from __future__ import annotations

from fastapi import status


class UploadServiceError(Exception):
    """Base for failures that the API renders as a JSON error body."""

    code = "internal_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class MissingFileError(UploadServiceError):
    code = "missing_file"
    default_message = "File is not provided."


class UnsupportedTypeError(UploadServiceError):
    code = "unsupported_type"
    default_message = "Unsupported file type"

    def __init__(self, content_type: str | None = None) -> None:
        message = self.default_message
        if content_type:
            message = f"{message}: {content_type}"
        super().__init__(message)
        self.content_type = content_type


class TransformError(UploadServiceError):
    code = "transform_failed"
    default_message = "Image could not be processed"


class StorageWriteError(UploadServiceError):
    code = "storage_write_failed"
    default_message = "Error storing file"


class NotFoundError(UploadServiceError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "File not found"


class StorageReadError(UploadServiceError):
    code = "storage_read_failed"
    default_message = "Error retrieving file"
