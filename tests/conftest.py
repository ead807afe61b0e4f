"""
Pytest configuration and fixtures
"""
import asyncio
import pytest
import sys
from pathlib import Path

import cv2
import numpy as np

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.database.connection import DatabaseConnection
from src.ingest.photo_store import LocalPhotoStore
from src.ingest.record_store import SqlReportStore
from src.ingest.report_feed import ReportFeed
from src.ingest.service import ReportIngestService
from src.reporting.location import LocationResolver, Position
from src.reporting.payload import IngestResult
from src.reporting.photo_preprocessor import PhotoPreprocessor
from src.reporting.submission import SubmissionController
from src.reporting.validation import PhotoFile


PLACEHOLDER_URL = "https://placehold.co/600x400?text=No+Photo+Provided"
PHOTO_BASE_URL = "http://testserver/photos"


class FakeGeolocation:
    """
    Scripted device geolocation.

    Each one-shot request pops the next outcome: a Position is returned, an
    exception is raised, HANG never answers.
    """

    HANG = object()

    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [])
        self.requests = []
        self.watches = {}
        self.cleared = []
        self._next_watch_id = 1

    async def get_current_position(self, options):
        self.requests.append(options)
        outcome = self.outcomes.pop(0) if self.outcomes else Position(14.6507, 121.1029)
        if outcome is self.HANG:
            await asyncio.Event().wait()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def watch_position(self, on_position, options):
        watch_id = self._next_watch_id
        self._next_watch_id += 1
        self.watches[watch_id] = on_position
        return watch_id

    def clear_watch(self, watch_id):
        self.cleared.append(watch_id)
        self.watches.pop(watch_id, None)

    def emit(self, position):
        for callback in list(self.watches.values()):
            callback(position)


class FakeIngest:
    """Ingestion boundary that records payloads."""

    def __init__(self, result=None):
        self.result = result or IngestResult(
            success=True, message="Report submitted successfully!", report_id="RPT-1"
        )
        self.payloads = []
        self.release = None
        self.error = None

    async def ingest(self, payload):
        self.payloads.append(payload)
        if self.release is not None:
            await self.release.wait()
        if self.error is not None:
            raise self.error
        return self.result


def make_image(width, height, ext=".png", noise=False):
    """Encode a synthetic image."""
    if noise:
        rng = np.random.default_rng(42)
        image = rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)
    else:
        row = np.linspace(0, 255, width, dtype=np.uint8)
        image = np.dstack([np.tile(row, (height, 1))] * 3)
    ok, encoded = cv2.imencode(ext, image)
    assert ok
    return encoded.tobytes()


@pytest.fixture
def geolocation():
    """Device that answers every request with a Marikina fix."""
    return FakeGeolocation()


@pytest.fixture
def resolver(geolocation):
    return LocationResolver(
        geolocation, high_accuracy_timeout_s=10.0, standard_accuracy_timeout_s=15.0
    )


@pytest.fixture
def ingest():
    return FakeIngest()


@pytest.fixture
def controller(ingest, resolver):
    """Open report form wired to fakes."""
    controller = SubmissionController(ingest, resolver, PhotoPreprocessor())
    controller.open()
    return controller


@pytest.fixture
def png_photo():
    return PhotoFile(
        filename="evidence.png",
        content_type="image/png",
        data=make_image(640, 480),
    )


@pytest.fixture
def db():
    """Fresh in-memory database."""
    database = DatabaseConnection("sqlite://")
    database.create_tables()
    yield database
    database.close()


@pytest.fixture
def record_store(db):
    return SqlReportStore(db)


@pytest.fixture
def photo_store(tmp_path):
    return LocalPhotoStore(str(tmp_path / "photos"), PHOTO_BASE_URL)


@pytest.fixture
def feed(record_store):
    return ReportFeed(record_store, ttl_seconds=300)


@pytest.fixture
def ingest_service(photo_store, record_store, feed):
    return ReportIngestService(
        photo_store, record_store, feed, placeholder_photo_url=PLACEHOLDER_URL
    )
