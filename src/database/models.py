"""
SQLAlchemy models for Bayanihan Map
"""

import uuid
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import Column, DateTime, Float, Index, String, Text, CheckConstraint
from sqlalchemy.orm import declarative_base

from src.core.constants import LocationMode, ReportState

Base = declarative_base()


def _new_report_id() -> str:
    return str(uuid.uuid4())


class Report(Base):
    """
    Community issue reported by a citizen.

    Rows are written once by the ingestion service and read by the map feed.
    """
    __tablename__ = "reports"

    id = Column(String(36), primary_key=True, default=_new_report_id)

    category = Column(String(20), nullable=False)
    description = Column(Text, nullable=False)

    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    location_mode = Column(String(10), nullable=False, default=LocationMode.AUTO_GPS.value)

    photo_url = Column(Text, nullable=False)

    status = Column(String(20), nullable=False, default=ReportState.PENDING.value)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("latitude >= -90 AND latitude <= 90", name="ck_report_latitude"),
        CheckConstraint("longitude >= -180 AND longitude <= 180", name="ck_report_longitude"),
        CheckConstraint("length(photo_url) > 0", name="ck_report_photo_url"),
        Index("idx_report_created_at", "created_at"),
        Index("idx_report_category_status", "category", "status"),
    )

    def __repr__(self):
        return f"<Report {self.id} {self.category} at ({self.latitude}, {self.longitude})>"

    @property
    def location_label(self) -> str:
        """Human label for how the location was obtained."""
        if self.location_mode == LocationMode.MANUAL_PIN.value:
            return "Manual Pin"
        return "Auto-GPS"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "description": self.description,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "location_mode": self.location_mode,
            "location_label": self.location_label,
            "photo_url": self.photo_url,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
