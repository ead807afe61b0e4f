"""
Report submission controller

Owns the state of one report form: the entered fields, the selected photo
and its compression, the location resolver, and the single live submission
attempt. Display text is derived from the attempt status; branching never
looks at display text.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Optional, Protocol

from src.core.config import settings
from src.core.constants import Category, LocationMode
from src.reporting.errors import (
    CompressionFailed,
    ErrorKind,
    LocationFailed,
    ReportingError,
)
from src.reporting.location import LocationResolver, ResolvedLocation, ResolverState
from src.reporting.payload import IngestResult, SubmissionPayload
from src.reporting.photo_preprocessor import PhotoPreprocessor
from src.reporting.validation import PhotoFile, validate_description, validate_photo

logger = logging.getLogger(__name__)


class AttemptStatus(Enum):
    """Status of the live submission attempt."""
    IDLE = "idle"
    COMPRESSING = "compressing"
    RESOLVING_LOCATION = "resolving_location"
    UPLOADING = "uploading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


IN_FLIGHT = (
    AttemptStatus.COMPRESSING,
    AttemptStatus.RESOLVING_LOCATION,
    AttemptStatus.UPLOADING,
)


class PhotoState(Enum):
    """Processing state of the selected photo."""
    NONE = "none"
    COMPRESSING = "compressing"
    READY = "ready"
    FAILED = "failed"


@dataclass
class SubmissionAttempt:
    """The single live attempt of a form."""
    status: AttemptStatus = AttemptStatus.IDLE
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None

    @property
    def in_flight(self) -> bool:
        return self.status in IN_FLIGHT


@dataclass
class ReportForm:
    """Fields entered by the reporter."""
    category: Category = Category.ROADS
    description: str = ""
    location_mode: LocationMode = LocationMode.AUTO_GPS
    photo: Optional[PhotoFile] = None
    photo_original: Optional[PhotoFile] = None
    photo_state: PhotoState = PhotoState.NONE
    photo_error: Optional[str] = None
    is_open: bool = False


@dataclass(frozen=True)
class SubmissionResult:
    """What ``submit`` reports back to the caller."""
    success: bool
    message: str = ""
    report_id: Optional[str] = None


class IngestBoundary(Protocol):
    """Anything that can take a payload to the server."""

    async def ingest(self, payload: SubmissionPayload) -> IngestResult:
        ...


STATUS_TEXT = {
    AttemptStatus.IDLE: "Ready to help.",
    AttemptStatus.COMPRESSING: "Optimizing photo evidence...",
    AttemptStatus.RESOLVING_LOCATION: "Fetching exact GPS location...",
    AttemptStatus.UPLOADING: "Dropping pin on the Bayanihan Network...",
    AttemptStatus.SUCCEEDED: "Success! Your report is now live on the map.",
}


class SubmissionController:
    """
    Drives one report form through a submission.

    ``submit`` runs at most one attempt at a time: location (GPS acquisition
    or the confirmed pin), payload assembly, ingestion. On success the form
    is cleared and closed; on failure every entered value is kept for a
    retry and the attempt carries a classified error.
    """

    def __init__(
        self,
        ingest: IngestBoundary,
        resolver: LocationResolver,
        preprocessor: Optional[PhotoPreprocessor] = None,
        ingest_timeout_s: Optional[float] = None,
        on_success: Optional[Callable[[SubmissionResult], None]] = None
    ):
        """
        Initialize controller.

        Args:
            ingest: Ingestion boundary (HTTP client or in-process service)
            resolver: Location resolver for this form
            preprocessor: Photo compressor
            ingest_timeout_s: Upper bound for the ingestion call, None for none
            on_success: Called after a successful submission, e.g. to refresh
                the report feed
        """
        self.ingest = ingest
        self.resolver = resolver
        self.preprocessor = preprocessor or PhotoPreprocessor()
        self.ingest_timeout_s = (
            ingest_timeout_s if ingest_timeout_s is not None else settings.ingest_timeout_s
        )
        self.on_success = on_success

        self.form = ReportForm()
        self.attempt = SubmissionAttempt()
        self._generation = 0

    # ------------------------------------------------------------------
    # Form lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Show the form; a finished attempt is cleared so the next one starts from Idle."""
        if not self.attempt.in_flight:
            self.attempt = SubmissionAttempt()
        self.form.is_open = True

    def close(self) -> None:
        """
        Reset and close the form.

        An attempt still in flight keeps running but its result is no longer
        applied to this form.
        """
        if self.attempt.in_flight:
            logger.info("Form closed during an attempt; its result will be ignored")
        self._generation += 1
        self.form = ReportForm()
        self.attempt = SubmissionAttempt()
        self.resolver.reset()

    # ------------------------------------------------------------------
    # Field editing
    # ------------------------------------------------------------------

    def set_category(self, category: str) -> None:
        self.form.category = Category(category)

    def set_description(self, text: str) -> None:
        self.form.description = text

    def set_location_mode(self, mode: str) -> None:
        self.form.location_mode = LocationMode(mode)

    def request_pin_drop(self) -> None:
        self.resolver.request_pin_drop()

    def confirm_pin(self, latitude: float, longitude: float) -> None:
        self.resolver.confirm_pin(latitude, longitude)
        self.form.location_mode = LocationMode.MANUAL_PIN

    def cancel_pin_drop(self) -> None:
        self.resolver.cancel_pin_drop()

    async def select_photo(self, photo: PhotoFile) -> bool:
        """
        Validate and compress a newly selected photo.

        Returns:
            True if the photo is ready for upload
        """
        if self.attempt.in_flight:
            logger.warning("Photo selection ignored: attempt in flight")
            return False

        generation = self._generation
        self.form.photo_original = photo
        self.form.photo = None
        self.form.photo_error = None

        check = validate_photo(photo)
        if not check.valid:
            self.form.photo_state = PhotoState.FAILED
            self.form.photo_error = check.reason
            return False

        self.form.photo_state = PhotoState.COMPRESSING
        self.attempt = SubmissionAttempt(status=AttemptStatus.COMPRESSING)
        try:
            compressed = await self.preprocessor.compress(photo)
        except CompressionFailed as e:
            if generation != self._generation:
                return False
            logger.warning(f"Photo compression failed: {e.message}")
            self.form.photo_state = PhotoState.FAILED
            self.form.photo_error = e.message
            self.attempt = SubmissionAttempt()
            return False
        except Exception:
            logger.exception("Photo compression error")
            if generation != self._generation:
                return False
            self.form.photo_state = PhotoState.FAILED
            self.form.photo_error = "Could not process the selected photo. Please choose a different image."
            self.attempt = SubmissionAttempt()
            return False

        if generation != self._generation:
            return False
        self.form.photo = compressed
        self.form.photo_state = PhotoState.READY
        self.attempt = SubmissionAttempt()
        return True

    def clear_photo(self) -> None:
        if self.form.photo_state == PhotoState.COMPRESSING:
            return
        self.form.photo = None
        self.form.photo_original = None
        self.form.photo_state = PhotoState.NONE
        self.form.photo_error = None

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def field_errors(self) -> Dict[str, str]:
        """Per-field problems that block submission."""
        errors = {}
        check = validate_description(self.form.description)
        if not check.valid:
            errors["description"] = check.reason
        if self.form.photo_state == PhotoState.FAILED:
            errors["photo"] = self.form.photo_error or "Please select a different photo."
        if self.form.location_mode == LocationMode.MANUAL_PIN and self.resolver.pin is None:
            errors["location"] = "Drop and confirm a pin on the map first."
        return errors

    @property
    def can_submit(self) -> bool:
        """Whether the submit affordance is enabled."""
        return (
            self.form.is_open
            and self.resolver.form_visible
            and not self.attempt.in_flight
            and self.form.photo_state not in (PhotoState.COMPRESSING, PhotoState.FAILED)
            and not self.field_errors
        )

    @property
    def status_text(self) -> str:
        status = self.attempt.status
        if status == AttemptStatus.FAILED:
            return f"Error: {self.attempt.error_message}"
        if status == AttemptStatus.IDLE and self.form.photo_state == PhotoState.FAILED:
            return f"Photo problem: {self.form.photo_error}"
        if (
            status == AttemptStatus.RESOLVING_LOCATION
            and self.form.location_mode == LocationMode.MANUAL_PIN
        ):
            return "Using your pinned location..."
        return STATUS_TEXT[status]

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self) -> SubmissionResult:
        """
        Run one submission attempt.

        Returns:
            SubmissionResult; never raises for workflow failures
        """
        # Checked before the first await so a concurrent second call is
        # rejected without starting any work.
        if self.attempt.in_flight:
            logger.warning(f"Submit rejected: attempt {self.attempt.status.value}")
            return SubmissionResult(False, "A submission is already in progress.")

        if not self.can_submit:
            errors = self.field_errors
            message = next(iter(errors.values()), "The form is not ready to submit.")
            logger.info(f"Submit blocked: {message}")
            return SubmissionResult(False, message)

        generation = self._generation
        self.attempt = SubmissionAttempt(status=AttemptStatus.RESOLVING_LOCATION)
        self.resolver.reset(keep_pin=True)

        try:
            location = await self._resolve_location()
            if generation != self._generation:
                return SubmissionResult(False, "The form was closed.")

            payload = self._build_payload(location)
            self.attempt.status = AttemptStatus.UPLOADING
            result = await self._send(payload)
        except ReportingError as e:
            return self._fail(generation, e.kind, e.message)
        except Exception as e:
            logger.exception("Report submission error")
            return self._fail(
                generation, ErrorKind.UPLOAD_FAILED, str(e) or "An unexpected error occurred."
            )

        if not result.success:
            return self._fail(
                generation, result.error_kind or ErrorKind.UPLOAD_FAILED, result.message
            )
        return self._succeed(generation, result)

    async def _resolve_location(self) -> ResolvedLocation:
        if self.form.location_mode == LocationMode.MANUAL_PIN:
            if self.resolver.state != ResolverState.PIN_CONFIRMED:
                raise LocationFailed("Drop and confirm a pin on the map first.")
            return self.resolver.resolve_pin()
        return await self.resolver.acquire_gps()

    def _build_payload(self, location: ResolvedLocation) -> SubmissionPayload:
        return SubmissionPayload(
            category=self.form.category.value,
            description=self.form.description.strip(),
            latitude=location.latitude,
            longitude=location.longitude,
            location_mode=location.mode.value,
            photo=self.form.photo,
        )

    async def _send(self, payload: SubmissionPayload) -> IngestResult:
        if self.ingest_timeout_s is None:
            return await self.ingest.ingest(payload)
        try:
            return await asyncio.wait_for(self.ingest.ingest(payload), timeout=self.ingest_timeout_s)
        except asyncio.TimeoutError:
            raise ReportingError(
                "The server took too long to respond. Please try again.",
                kind=ErrorKind.NETWORK_TIMEOUT,
            )

    def _succeed(self, generation: int, result: IngestResult) -> SubmissionResult:
        outcome = SubmissionResult(True, result.message, result.report_id)
        if generation != self._generation:
            logger.info(f"Late success for a closed form: {result.report_id}")
            return outcome

        logger.info(f"Report submitted: {result.report_id}")
        self.form = ReportForm()
        self.resolver.reset()
        self.attempt = SubmissionAttempt(status=AttemptStatus.SUCCEEDED)
        if self.on_success:
            self.on_success(outcome)
        return outcome

    def _fail(self, generation: int, kind: ErrorKind, message: str) -> SubmissionResult:
        outcome = SubmissionResult(False, message)
        if generation != self._generation:
            logger.info(f"Late failure for a closed form: {message}")
            return outcome

        logger.warning(f"Submission failed ({kind.value}): {message}")
        self.attempt = SubmissionAttempt(
            status=AttemptStatus.FAILED, error_kind=kind, error_message=message
        )
        self.resolver.reset(keep_pin=True)
        return outcome
