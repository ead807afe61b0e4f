"""
Wire types exchanged with the ingestion boundary
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from src.core.constants import COORDINATE_PRECISION, Category, LocationMode
from src.reporting.errors import ErrorKind
from src.reporting.validation import PhotoFile


@dataclass(frozen=True)
class SubmissionPayload:
    """A fully resolved report ready for ingestion."""
    category: str
    description: str
    latitude: float
    longitude: float
    location_mode: str = LocationMode.AUTO_GPS.value
    photo: Optional[PhotoFile] = None

    @property
    def is_manual(self) -> bool:
        return self.location_mode == LocationMode.MANUAL_PIN.value

    def form_fields(self) -> Dict[str, str]:
        """Multipart text fields, coordinates at fixed precision."""
        return {
            "category": self.category.value if isinstance(self.category, Category) else self.category,
            "description": self.description,
            "lat": f"{self.latitude:.{COORDINATE_PRECISION}f}",
            "lng": f"{self.longitude:.{COORDINATE_PRECISION}f}",
            "locationMode": self.location_mode,
        }


@dataclass(frozen=True)
class IngestResult:
    """Outcome returned by the ingestion boundary."""
    success: bool
    message: str
    report_id: Optional[str] = None
    photo_url: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "message": self.message,
            "report_id": self.report_id,
            "photo_url": self.photo_url,
            "error_kind": self.error_kind.value if self.error_kind else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IngestResult":
        kind = data.get("error_kind")
        return cls(
            success=bool(data.get("success")),
            message=data.get("message") or "",
            report_id=data.get("report_id"),
            photo_url=data.get("photo_url"),
            error_kind=ErrorKind(kind) if kind else None,
        )
