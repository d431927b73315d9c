"""
Error types raised while handling panel requests.

Every error carries the HTTP status and the JSON body it is rendered as.
`details` holds short diagnostic text safe to show to clients; raw
exception messages stay in the server logs.
"""

from __future__ import annotations

from typing import Optional


class PanelServiceError(Exception):
    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, *, details: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.details = details

    def as_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


# Validation errors: rejected before any processing, client-correctable.


class UploadValidationError(PanelServiceError):
    status_code = 400
    message = "Invalid upload"


class MissingFileError(UploadValidationError):
    message = "No file"


class UnsupportedMediaError(UploadValidationError):
    message = "Only images allowed"


class EmptyUploadError(UploadValidationError):
    message = "Empty file"


class MalformedUploadError(UploadValidationError):
    message = "Malformed upload"


class UploadTooLargeError(UploadValidationError):
    status_code = 413
    message = "File too large"

    def __init__(self, limit_bytes: int):
        limit_mb = limit_bytes / (1024 * 1024)
        super().__init__(details=f"Maximum upload size is {limit_mb:g} MB")
        self.limit_bytes = limit_bytes


# Processing and storage errors: the upload failed on our side.


class ImageProcessingError(PanelServiceError):
    message = "Upload failed"

    def __init__(self, details: str = "Image could not be decoded"):
        super().__init__(details=details)


class StorageWriteError(PanelServiceError):
    message = "Upload failed"

    def __init__(self, details: str = "Could not store panel"):
        super().__init__(details=details)


class PanelListingError(PanelServiceError):
    message = "Could not list panels"


class PanelNotFoundError(PanelServiceError):
    status_code = 404
    message = "Panel not found"
