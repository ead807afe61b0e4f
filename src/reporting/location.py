"""
Location resolution for report submission

Produces the coordinates attached to a report, either from the device
geolocation subsystem (high accuracy first, then a relaxed standard-accuracy
fallback) or from a pin the reporter dropped and confirmed on the map.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Callable, Optional, Protocol, Tuple

from src.core.config import settings
from src.core.constants import COORDINATE_PRECISION, LocationMode
from src.reporting.errors import ErrorKind, LocationFailed, ValidationFailed
from src.reporting.validation import validate_coordinates

logger = logging.getLogger(__name__)


# ============================================================================
# Device geolocation interface
# ============================================================================

class GeolocationErrorCode(IntEnum):
    """Error codes reported by the device, as in the W3C Geolocation API."""
    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3


class GeolocationError(Exception):
    """Failure reported by the device geolocation subsystem."""

    def __init__(self, code: GeolocationErrorCode, message: str = ""):
        super().__init__(message or code.name)
        self.code = code
        self.message = message or code.name


@dataclass
class Position:
    """A single device fix."""
    latitude: float
    longitude: float
    accuracy_m: Optional[float] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True)
class PositionOptions:
    """One-shot or watch request options."""
    enable_high_accuracy: bool = False
    timeout_s: float = 15.0
    maximum_age_s: float = 0.0


class GeolocationProvider(Protocol):
    """Device geolocation capability."""

    async def get_current_position(self, options: PositionOptions) -> Position:
        ...

    def watch_position(
        self,
        on_position: Callable[[Position], None],
        options: PositionOptions
    ) -> int:
        ...

    def clear_watch(self, watch_id: int) -> None:
        ...


class PositionWatch:
    """
    Long-lived subscription to continuous position updates.

    Used by the live "you are here" display. It holds its own watch id and
    only ever clears that id, so one-shot requests made for a submission
    neither cancel it nor are cancelled by it.
    """

    def __init__(
        self,
        provider: GeolocationProvider,
        on_position: Optional[Callable[[Position], None]] = None,
        options: Optional[PositionOptions] = None
    ):
        self.provider = provider
        self.on_position = on_position
        self.options = options or PositionOptions(enable_high_accuracy=True)
        self.latest: Optional[Position] = None
        self._watch_id: Optional[int] = None

    @property
    def active(self) -> bool:
        return self._watch_id is not None

    def start(self) -> None:
        if self._watch_id is not None:
            return
        self._watch_id = self.provider.watch_position(self._handle, self.options)
        logger.debug(f"Position watch {self._watch_id} started")

    def close(self) -> None:
        if self._watch_id is None:
            return
        self.provider.clear_watch(self._watch_id)
        logger.debug(f"Position watch {self._watch_id} cleared")
        self._watch_id = None

    def _handle(self, position: Position) -> None:
        self.latest = position
        if self.on_position:
            self.on_position(position)

    def __enter__(self) -> "PositionWatch":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


# ============================================================================
# Resolver state machine
# ============================================================================

class ResolverState(Enum):
    """States of the location resolver."""
    IDLE = "idle"
    AWAITING_PIN_DROP = "awaiting_pin_drop"
    PIN_CONFIRMED = "pin_confirmed"
    ACQUIRING_HIGH_ACCURACY = "acquiring_high_accuracy"
    ACQUIRING_STANDARD_ACCURACY = "acquiring_standard_accuracy"
    RESOLVED = "resolved"
    FAILED = "failed"


class AccuracyTier(Enum):
    """Precision level of the fix used."""
    HIGH = "high"
    STANDARD = "standard"
    NONE = "none"


class FailureReason(Enum):
    """Why no location could be resolved."""
    PERMISSION_DENIED = "permission_denied"
    TIMEOUT = "timeout"
    POSITION_UNAVAILABLE = "position_unavailable"


class InvalidTransition(RuntimeError):
    """Operation not allowed in the current resolver state."""


@dataclass(frozen=True)
class ResolvedLocation:
    """Final location handed to the submission."""
    latitude: float
    longitude: float
    mode: LocationMode
    accuracy_tier: AccuracyTier = AccuracyTier.NONE

    @property
    def coords(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)


FAILURE_MESSAGES = {
    FailureReason.PERMISSION_DENIED: (
        "Location permission was denied. Enable GPS or drop a pin manually."
    ),
    FailureReason.TIMEOUT: (
        "Could not get a GPS fix in time. Try again outdoors or drop a pin manually."
    ),
    FailureReason.POSITION_UNAVAILABLE: (
        "Your location is unavailable right now. Drop a pin manually instead."
    ),
}


def round_coordinate(value: float) -> float:
    """Round a coordinate to the stored precision."""
    return round(float(value), COORDINATE_PRECISION)


class LocationResolver:
    """
    Resolves the location of one submission attempt.

    Manual pin flow: ``request_pin_drop`` -> ``confirm_pin`` (or
    ``cancel_pin_drop``) -> ``resolve_pin``.

    GPS flow: ``acquire_gps`` tries a high-accuracy fix with a short bound
    and, on timeout or unavailability, a single standard-accuracy fix with a
    longer bound. A permission denial fails immediately.
    """

    def __init__(
        self,
        provider: GeolocationProvider,
        high_accuracy_timeout_s: Optional[float] = None,
        standard_accuracy_timeout_s: Optional[float] = None
    ):
        """
        Initialize resolver.

        Args:
            provider: Device geolocation capability
            high_accuracy_timeout_s: Bound for the high-accuracy request
            standard_accuracy_timeout_s: Bound for the fallback request
        """
        self.provider = provider
        self.high_accuracy_timeout_s = (
            high_accuracy_timeout_s if high_accuracy_timeout_s is not None
            else settings.gps_high_accuracy_timeout_s
        )
        self.standard_accuracy_timeout_s = (
            standard_accuracy_timeout_s if standard_accuracy_timeout_s is not None
            else settings.gps_standard_accuracy_timeout_s
        )

        self.state = ResolverState.IDLE
        self.pin: Optional[Tuple[float, float]] = None
        self.accuracy_tier = AccuracyTier.NONE
        self.resolution: Optional[ResolvedLocation] = None
        self.failure_reason: Optional[FailureReason] = None

        self._state_before_pin_drop = ResolverState.IDLE
        self._epoch = 0

    @property
    def form_visible(self) -> bool:
        """The submission form is hidden while a pin is being placed."""
        return self.state != ResolverState.AWAITING_PIN_DROP

    @property
    def is_acquiring(self) -> bool:
        return self.state in (
            ResolverState.ACQUIRING_HIGH_ACCURACY,
            ResolverState.ACQUIRING_STANDARD_ACCURACY,
        )

    def _set_state(self, state: ResolverState) -> None:
        logger.debug(f"Location resolver: {self.state.value} -> {state.value}")
        self.state = state

    def _require(self, *states: ResolverState) -> None:
        if self.state not in states:
            raise InvalidTransition(
                f"Cannot do this while location resolver is {self.state.value}"
            )

    # ------------------------------------------------------------------
    # Manual pin
    # ------------------------------------------------------------------

    def request_pin_drop(self) -> None:
        """Enter pin placement mode."""
        self._require(ResolverState.IDLE, ResolverState.PIN_CONFIRMED)
        self._state_before_pin_drop = self.state
        self._set_state(ResolverState.AWAITING_PIN_DROP)

    def confirm_pin(self, latitude: float, longitude: float) -> Tuple[float, float]:
        """
        Confirm the dragged pin position.

        Raises:
            ValidationFailed: coordinates out of range
        """
        self._require(ResolverState.AWAITING_PIN_DROP)
        check = validate_coordinates(latitude, longitude)
        if not check.valid:
            raise ValidationFailed(check.reason, field="location")

        self.pin = (round_coordinate(latitude), round_coordinate(longitude))
        self._set_state(ResolverState.PIN_CONFIRMED)
        logger.info(f"Manual pin confirmed at {self.pin}")
        return self.pin

    def cancel_pin_drop(self) -> None:
        """Leave pin placement mode, keeping any earlier confirmed pin."""
        self._require(ResolverState.AWAITING_PIN_DROP)
        self._set_state(self._state_before_pin_drop)

    def resolve_pin(self) -> ResolvedLocation:
        """Use the confirmed pin as the attempt's location."""
        self._require(ResolverState.PIN_CONFIRMED)
        latitude, longitude = self.pin
        self.accuracy_tier = AccuracyTier.NONE
        self.resolution = ResolvedLocation(latitude, longitude, LocationMode.MANUAL_PIN)
        self._set_state(ResolverState.RESOLVED)
        return self.resolution

    # ------------------------------------------------------------------
    # GPS
    # ------------------------------------------------------------------

    async def acquire_gps(self) -> ResolvedLocation:
        """
        Acquire a fresh device fix.

        Returns:
            ResolvedLocation with rounded coordinates

        Raises:
            LocationFailed: permission denied, or both accuracy tiers failed
        """
        self._require(ResolverState.IDLE, ResolverState.PIN_CONFIRMED)
        epoch = self._epoch

        self._set_state(ResolverState.ACQUIRING_HIGH_ACCURACY)
        try:
            position = await self._request(True, self.high_accuracy_timeout_s)
            return self._resolve(epoch, position, AccuracyTier.HIGH)
        except GeolocationError as e:
            if e.code == GeolocationErrorCode.PERMISSION_DENIED:
                raise self._fail(epoch, FailureReason.PERMISSION_DENIED)
            logger.warning(f"High-accuracy fix failed ({e.code.name}), falling back")

        if epoch != self._epoch:
            raise LocationFailed("Location request abandoned.")

        self._set_state(ResolverState.ACQUIRING_STANDARD_ACCURACY)
        try:
            position = await self._request(False, self.standard_accuracy_timeout_s)
        except GeolocationError as e:
            if e.code == GeolocationErrorCode.PERMISSION_DENIED:
                raise self._fail(epoch, FailureReason.PERMISSION_DENIED)
            if e.code == GeolocationErrorCode.POSITION_UNAVAILABLE:
                raise self._fail(epoch, FailureReason.POSITION_UNAVAILABLE)
            raise self._fail(epoch, FailureReason.TIMEOUT)
        return self._resolve(epoch, position, AccuracyTier.STANDARD)

    async def _request(self, high_accuracy: bool, timeout_s: float) -> Position:
        """One-shot position request bounded by ``timeout_s``."""
        options = PositionOptions(enable_high_accuracy=high_accuracy, timeout_s=timeout_s)
        try:
            return await asyncio.wait_for(
                self.provider.get_current_position(options), timeout=timeout_s
            )
        except asyncio.TimeoutError:
            raise GeolocationError(
                GeolocationErrorCode.TIMEOUT, f"No fix within {timeout_s:g}s"
            )

    def _resolve(self, epoch: int, position: Position, tier: AccuracyTier) -> ResolvedLocation:
        resolved = ResolvedLocation(
            latitude=round_coordinate(position.latitude),
            longitude=round_coordinate(position.longitude),
            mode=LocationMode.AUTO_GPS,
            accuracy_tier=tier,
        )
        if epoch != self._epoch:
            logger.debug("Discarding fix for an abandoned attempt")
            return resolved

        check = validate_coordinates(resolved.latitude, resolved.longitude)
        if not check.valid:
            raise self._fail(epoch, FailureReason.POSITION_UNAVAILABLE)

        self.accuracy_tier = tier
        self.resolution = resolved
        self._set_state(ResolverState.RESOLVED)
        logger.info(f"GPS resolved ({tier.value}) at {resolved.coords}")
        return resolved

    def _fail(self, epoch: int, reason: FailureReason) -> LocationFailed:
        kind = (
            ErrorKind.LOCATION_PERMISSION_DENIED
            if reason == FailureReason.PERMISSION_DENIED
            else ErrorKind.LOCATION_TIMEOUT
        )
        if epoch == self._epoch:
            self.failure_reason = reason
            self.accuracy_tier = AccuracyTier.NONE
            self._set_state(ResolverState.FAILED)
            logger.warning(f"Location failed: {reason.value}")
        return LocationFailed(FAILURE_MESSAGES[reason], kind=kind)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self, keep_pin: bool = False) -> None:
        """
        Return to Idle for a new attempt.

        Args:
            keep_pin: Keep the confirmed pin (used after a failed attempt so
                the reporter can retry without placing it again)
        """
        self._epoch += 1
        self.resolution = None
        self.failure_reason = None
        self.accuracy_tier = AccuracyTier.NONE
        if not keep_pin:
            self.pin = None
        self._state_before_pin_drop = ResolverState.IDLE
        self._set_state(
            ResolverState.PIN_CONFIRMED if self.pin else ResolverState.IDLE
        )
