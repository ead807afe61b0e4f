"""
Bayanihan Map - Report Capture Module
Client-side workflow: validation, photo compression, location, submission.
"""

from src.reporting.errors import (
    ErrorKind,
    ReportingError,
    ValidationFailed,
    CompressionFailed,
    LocationFailed,
    UploadFailed,
    PersistenceFailed,
)
from src.reporting.validation import (
    PhotoFile,
    ValidationResult,
    validate_description,
    validate_coordinates,
    validate_photo,
    validate_category,
)
from src.reporting.photo_preprocessor import PhotoPreprocessor, compress_photo
from src.reporting.location import (
    LocationResolver,
    ResolverState,
    ResolvedLocation,
    PositionWatch,
    GeolocationError,
    GeolocationErrorCode,
)
from src.reporting.payload import SubmissionPayload, IngestResult
from src.reporting.submission import (
    SubmissionController,
    AttemptStatus,
    SubmissionResult,
)
from src.reporting.ingest_client import HttpIngestClient, create_http_client

__all__ = [
    # Errors
    "ErrorKind",
    "ReportingError",
    "ValidationFailed",
    "CompressionFailed",
    "LocationFailed",
    "UploadFailed",
    "PersistenceFailed",
    # Validation
    "PhotoFile",
    "ValidationResult",
    "validate_description",
    "validate_coordinates",
    "validate_photo",
    "validate_category",
    # Photo
    "PhotoPreprocessor",
    "compress_photo",
    # Location
    "LocationResolver",
    "ResolverState",
    "ResolvedLocation",
    "PositionWatch",
    "GeolocationError",
    "GeolocationErrorCode",
    # Submission
    "SubmissionPayload",
    "IngestResult",
    "SubmissionController",
    "AttemptStatus",
    "SubmissionResult",
    "HttpIngestClient",
    "create_http_client",
]
