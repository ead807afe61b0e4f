"""
Bayanihan Map - Constants and Reference Data
Static limits shared by the client workflow and the ingestion service.
"""

from enum import Enum
from typing import FrozenSet, Tuple


# =============================================================================
# REPORT VOCABULARY
# =============================================================================

class Category(str, Enum):
    """Issue categories a citizen can report."""
    ROADS = "Roads"
    LIGHTS = "Lights"
    TRASH = "Trash"


class LocationMode(str, Enum):
    """How the report location was obtained (wire values)."""
    AUTO_GPS = "auto"
    MANUAL_PIN = "manual"


class ReportState(str, Enum):
    """Lifecycle of a persisted report."""
    PENDING = "pending"
    RESOLVED = "resolved"


# =============================================================================
# INPUT LIMITS
# =============================================================================

DESCRIPTION_MIN_LENGTH: int = 5
DESCRIPTION_MAX_LENGTH: int = 1000

LATITUDE_RANGE: Tuple[float, float] = (-90.0, 90.0)
LONGITUDE_RANGE: Tuple[float, float] = (-180.0, 180.0)

# 6 decimal digits ~ 0.11 m
COORDINATE_PRECISION: int = 6

MAX_PHOTO_SIZE_BYTES: int = 10 * 1024 * 1024

ALLOWED_IMAGE_TYPES: FrozenSet[str] = frozenset({
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/heic",
})
