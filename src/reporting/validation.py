"""
Input validation for community issue reports
Pure predicates shared by the capture form and the ingestion service
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

from src.core.constants import (
    ALLOWED_IMAGE_TYPES,
    Category,
    DESCRIPTION_MAX_LENGTH,
    DESCRIPTION_MIN_LENGTH,
    LATITUDE_RANGE,
    LONGITUDE_RANGE,
    MAX_PHOTO_SIZE_BYTES,
)


@dataclass(frozen=True)
class PhotoFile:
    """An image selected by the reporter."""
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        if "." not in self.filename:
            return ""
        return self.filename.rsplit(".", 1)[-1]


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validation predicate."""
    valid: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.valid

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {"valid": self.valid, "reason": self.reason}


_OK = ValidationResult(valid=True)


def validate_description(text: Optional[str]) -> ValidationResult:
    """
    Check the description length after trimming.

    Args:
        text: Raw description as typed by the reporter

    Returns:
        ValidationResult, valid iff the trimmed length is within bounds
    """
    length = len((text or "").strip())
    if length < DESCRIPTION_MIN_LENGTH:
        return ValidationResult(
            False, "Description is too short. Please provide more details."
        )
    if length > DESCRIPTION_MAX_LENGTH:
        return ValidationResult(
            False,
            f"Description is too long. Please keep it under {DESCRIPTION_MAX_LENGTH} characters."
        )
    return _OK


def validate_coordinates(lat: Any, lng: Any) -> ValidationResult:
    """
    Check that a coordinate pair is a real point on the globe.

    NaN and non-numeric values are rejected.
    """
    try:
        lat = float(lat)
        lng = float(lng)
    except (TypeError, ValueError):
        return ValidationResult(False, "Invalid GPS coordinates provided.")

    if math.isnan(lat) or math.isnan(lng):
        return ValidationResult(False, "Invalid GPS coordinates provided.")
    if not LATITUDE_RANGE[0] <= lat <= LATITUDE_RANGE[1]:
        return ValidationResult(False, "Invalid GPS coordinates provided.")
    if not LONGITUDE_RANGE[0] <= lng <= LONGITUDE_RANGE[1]:
        return ValidationResult(False, "Invalid GPS coordinates provided.")
    return _OK


def validate_photo(photo: PhotoFile) -> ValidationResult:
    """Check photo size and MIME type."""
    if photo.size > MAX_PHOTO_SIZE_BYTES:
        limit_mb = MAX_PHOTO_SIZE_BYTES // (1024 * 1024)
        return ValidationResult(
            False, f"Photo is too large. Maximum size is {limit_mb}MB."
        )
    if (photo.content_type or "").lower() not in ALLOWED_IMAGE_TYPES:
        return ValidationResult(
            False, "Invalid file type. Only JPG, PNG, WebP and HEIC images are allowed."
        )
    return _OK


def validate_category(category: Any) -> ValidationResult:
    """Check the category against the known set."""
    try:
        Category(category)
    except ValueError:
        allowed = ", ".join(c.value for c in Category)
        return ValidationResult(False, f"Unknown category. Choose one of: {allowed}.")
    return _OK
