"""
Error kinds for the report-capture workflow
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Classified failure of a submission attempt."""
    VALIDATION_FAILED = "validation_failed"
    COMPRESSION_FAILED = "compression_failed"
    LOCATION_PERMISSION_DENIED = "location_permission_denied"
    LOCATION_TIMEOUT = "location_timeout"
    UPLOAD_FAILED = "upload_failed"
    PERSISTENCE_FAILED = "persistence_failed"
    NETWORK_TIMEOUT = "network_timeout"


class ReportingError(Exception):
    """Base error carrying an ErrorKind."""

    kind: ErrorKind = ErrorKind.VALIDATION_FAILED

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class ValidationFailed(ReportingError):
    """Bad description, coordinates, category or photo."""

    kind = ErrorKind.VALIDATION_FAILED

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class CompressionFailed(ReportingError):
    """Photo could not be decoded or brought within budget."""

    kind = ErrorKind.COMPRESSION_FAILED


class LocationFailed(ReportingError):
    """No usable location for the attempt."""

    kind = ErrorKind.LOCATION_TIMEOUT


class UploadFailed(ReportingError):
    """Photo store rejected the upload."""

    kind = ErrorKind.UPLOAD_FAILED


class PersistenceFailed(ReportingError):
    """Report row could not be written."""

    kind = ErrorKind.PERSISTENCE_FAILED
