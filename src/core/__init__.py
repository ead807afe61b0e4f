"""
Bayanihan Map - Core Utilities
Central configuration, logging, and shared constants.
"""

from src.core.config import settings, get_settings
from src.core.constants import (
    Category,
    LocationMode,
    ReportState,
    ALLOWED_IMAGE_TYPES,
    MAX_PHOTO_SIZE_BYTES,
    COORDINATE_PRECISION,
)

__all__ = [
    "settings",
    "get_settings",
    "Category",
    "LocationMode",
    "ReportState",
    "ALLOWED_IMAGE_TYPES",
    "MAX_PHOTO_SIZE_BYTES",
    "COORDINATE_PRECISION",
]
