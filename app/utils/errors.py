"""
Drive error hierarchy.

Every error raised by the drive services derives from DriveError and carries
a machine-readable code and the HTTP status it maps to, so routers can let
them propagate and the application-level handler renders them.
"""

from typing import Any, Dict, Optional

from fastapi import status


class DriveError(Exception):
    code = "DRIVE_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code}


class ValidationError(DriveError):
    code = "VALIDATION_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST


class PathTraversalError(DriveError):
    """Raised when a path would resolve outside the storage root."""

    code = "PATH_TRAVERSAL"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, path: str):
        super().__init__("Invalid path", {"path": path})


class NotFoundError(DriveError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class ShareExpiredError(DriveError):
    code = "SHARE_EXPIRED"
    status_code = status.HTTP_410_GONE

    def __init__(self, token: str):
        super().__init__("Share link has expired", {"token": token})


class ShareLimitReachedError(DriveError):
    code = "SHARE_LIMIT_REACHED"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, token: str, limit: Optional[int] = None):
        super().__init__("Download limit reached", {"token": token, "limit": limit})


class FileTooLargeError(DriveError):
    code = "FILE_TOO_LARGE"
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE

    def __init__(self, max_size: int):
        super().__init__("File too large", {"max_size": max_size})


class IntegrityError(DriveError):
    """Raised when the folder graph is corrupted (cycle or runaway depth)."""

    code = "INTEGRITY_ERROR"
    status_code = status.HTTP_409_CONFLICT


class FileSystemError(DriveError):
    """
    Wraps an OSError raised while touching the storage root.

    The message is safe to return to callers; the offending path is kept in
    ``path`` for logging only.
    """

    code = "FILESYSTEM_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, path: str, cause: Optional[OSError] = None):
        super().__init__(message)
        self.path = path
        self.cause = cause


class ConflictError(DriveError):
    code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT
