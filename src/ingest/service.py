"""
Report ingestion service
Server-side entry point that re-validates, stores the photo, persists the
report and refreshes the map feed
"""

import logging
from typing import Optional

from src.core.config import settings
from src.core.constants import LocationMode
from src.ingest.photo_store import PhotoStore, generate_photo_filename
from src.ingest.record_store import SqlReportStore
from src.ingest.report_feed import ReportFeed
from src.reporting.errors import PersistenceFailed, ReportingError, ValidationFailed
from src.reporting.payload import IngestResult, SubmissionPayload
from src.reporting.validation import (
    PhotoFile,
    validate_category,
    validate_coordinates,
    validate_description,
    validate_photo,
)

logger = logging.getLogger(__name__)


class ReportIngestService:
    """
    Ingests citizen reports.

    Nothing sent by the client is trusted: every field is checked again with
    the same predicates the form uses. The photo is stored before the row is
    written, so a persisted report always has a resolvable photo URL.
    """

    def __init__(
        self,
        photo_store: PhotoStore,
        record_store: SqlReportStore,
        feed: Optional[ReportFeed] = None,
        placeholder_photo_url: Optional[str] = None
    ):
        """
        Initialize service.

        Args:
            photo_store: Content store for photos
            record_store: Report row writer
            feed: Report feed to invalidate after each stored report
            placeholder_photo_url: URL used when no photo is supplied
        """
        self.photo_store = photo_store
        self.records = record_store
        self.feed = feed
        self.placeholder_photo_url = placeholder_photo_url or settings.placeholder_photo_url

        logger.info("ReportIngestService initialized")

    async def ingest(self, payload: SubmissionPayload) -> IngestResult:
        """
        Validate and persist one report.

        Args:
            payload: Submission as received from the client

        Returns:
            IngestResult; failures carry the error kind and a user-facing
            message
        """
        stored_filename = None
        try:
            self._validate(payload)

            photo_url = self.placeholder_photo_url
            if payload.photo is not None and payload.photo.size > 0:
                stored_filename = generate_photo_filename(payload.photo.filename)
                photo_url = await self.photo_store.store(
                    stored_filename, payload.photo.data, payload.photo.content_type
                )

            report = self.records.insert({
                "category": payload.category,
                "description": payload.description.strip(),
                "latitude": float(payload.latitude),
                "longitude": float(payload.longitude),
                "location_mode": (
                    LocationMode.MANUAL_PIN.value if payload.is_manual
                    else LocationMode.AUTO_GPS.value
                ),
                "photo_url": photo_url,
            })
        except ReportingError as e:
            logger.error(f"Report submission error ({e.kind.value}): {e.message}")
            if isinstance(e, PersistenceFailed) and stored_filename:
                await self._discard_photo(stored_filename)
            return IngestResult(success=False, message=e.message, error_kind=e.kind)

        if self.feed is not None:
            self.feed.invalidate()

        return IngestResult(
            success=True,
            message="Report submitted successfully!",
            report_id=report.id,
            photo_url=photo_url,
        )

    def _validate(self, payload: SubmissionPayload) -> None:
        """Raise ValidationFailed on the first bad field."""
        checks = (
            ("category", validate_category(payload.category)),
            ("description", validate_description(payload.description)),
            ("location", validate_coordinates(payload.latitude, payload.longitude)),
        )
        for field_name, check in checks:
            if not check.valid:
                raise ValidationFailed(check.reason, field=field_name)

        photo: Optional[PhotoFile] = payload.photo
        if photo is not None and photo.size > 0:
            check = validate_photo(photo)
            if not check.valid:
                raise ValidationFailed(check.reason, field="photo")

    async def _discard_photo(self, filename: str) -> None:
        """Remove a photo whose report row was never written."""
        try:
            await self.photo_store.delete(filename)
        except Exception as e:
            logger.warning(f"Could not remove orphaned photo {filename}: {e}")
