"""
Tests for server-side report ingestion and storage
"""
import asyncio
import importlib.util
import re
from pathlib import Path
from unittest.mock import MagicMock

import httpx
import pytest
from sqlalchemy import create_engine, inspect

import sys
sys.path.insert(0, '.')

from src.ingest.photo_store import (
    LocalPhotoStore,
    SupabasePhotoStore,
    generate_photo_filename,
)
from src.ingest.report_feed import ReportFeed
from src.ingest.service import ReportIngestService
from src.reporting.errors import ErrorKind, PersistenceFailed, UploadFailed
from src.reporting.payload import SubmissionPayload
from src.reporting.validation import PhotoFile

from conftest import PHOTO_BASE_URL, PLACEHOLDER_URL, make_image

FILENAME_PATTERN = re.compile(r"^report_\d{13}_[0-9a-f]{8}\.[a-z0-9]+$")


def make_payload(**overrides):
    values = {
        "category": "Roads",
        "description": "Pothole near the market",
        "latitude": 14.6507,
        "longitude": 121.1029,
        "location_mode": "auto",
        "photo": None,
    }
    values.update(overrides)
    return SubmissionPayload(**values)


class FailingPhotoStore:
    """Photo store whose uploads are always rejected."""

    async def store(self, filename, data, content_type):
        raise UploadFailed("Upload failed: Bucket not found")

    async def delete(self, filename):
        pass


class TestReportIngestService:
    """Test suite for ReportIngestService."""

    def test_report_without_photo_uses_placeholder(self, ingest_service, record_store):
        result = asyncio.run(ingest_service.ingest(make_payload()))

        assert result.success
        assert result.message == "Report submitted successfully!"
        assert result.photo_url == PLACEHOLDER_URL
        report = record_store.list_reports()[0]
        assert report.id == result.report_id
        assert report.photo_url == PLACEHOLDER_URL
        assert report.status == "pending"
        assert report.location_label == "Auto-GPS"

    def test_report_with_photo(self, ingest_service, photo_store, record_store):
        photo = PhotoFile("evidence.jpg", "image/jpeg", make_image(64, 48, ext=".jpg"))

        result = asyncio.run(ingest_service.ingest(make_payload(photo=photo)))

        assert result.success
        filename = result.photo_url.rsplit("/", 1)[-1]
        assert result.photo_url == f"{PHOTO_BASE_URL}/{filename}"
        assert FILENAME_PATTERN.match(filename)
        assert (photo_store.directory / filename).read_bytes() == photo.data
        assert record_store.list_reports()[0].photo_url == result.photo_url

    def test_manual_location_recorded(self, ingest_service, record_store):
        asyncio.run(ingest_service.ingest(make_payload(location_mode="manual")))

        report = record_store.list_reports()[0]
        assert report.location_mode == "manual"
        assert report.location_label == "Manual Pin"

    def test_unknown_location_mode_stored_as_auto(self, ingest_service, record_store):
        asyncio.run(ingest_service.ingest(make_payload(location_mode="whatever")))
        assert record_store.list_reports()[0].location_mode == "auto"

    def test_description_trimmed(self, ingest_service, record_store):
        asyncio.run(ingest_service.ingest(make_payload(description="  Broken light  ")))
        assert record_store.list_reports()[0].description == "Broken light"

    @pytest.mark.parametrize("overrides", [
        {"description": "abcd"},
        {"description": "x" * 1001},
        {"latitude": float("nan")},
        {"latitude": 91.0},
        {"longitude": -180.5},
        {"category": "Floods"},
        {"photo": PhotoFile("anim.gif", "image/gif", b"GIF89a")},
        {"photo": PhotoFile("big.jpg", "image/jpeg", b"\0" * (12 * 1024 * 1024))},
    ])
    def test_invalid_payload_writes_nothing(self, ingest_service, record_store, photo_store, overrides):
        """Test every rejected field leaves no row and no stored photo."""
        result = asyncio.run(ingest_service.ingest(make_payload(**overrides)))

        assert not result.success
        assert result.error_kind == ErrorKind.VALIDATION_FAILED
        assert record_store.count() == 0
        assert list(photo_store.directory.iterdir()) == []

    def test_empty_photo_treated_as_absent(self, ingest_service):
        photo = PhotoFile("empty.jpg", "image/jpeg", b"")

        result = asyncio.run(ingest_service.ingest(make_payload(photo=photo)))

        assert result.success
        assert result.photo_url == PLACEHOLDER_URL

    def test_upload_failure_writes_no_row(self, record_store, feed):
        service = ReportIngestService(
            FailingPhotoStore(), record_store, feed, placeholder_photo_url=PLACEHOLDER_URL
        )
        photo = PhotoFile("evidence.jpg", "image/jpeg", b"jpeg-bytes")

        result = asyncio.run(service.ingest(make_payload(photo=photo)))

        assert not result.success
        assert result.error_kind == ErrorKind.UPLOAD_FAILED
        assert result.message == "Upload failed: Bucket not found"
        assert record_store.count() == 0

    def test_persistence_failure_discards_photo(self, photo_store, feed):
        """Test a failed insert removes the photo it already stored."""
        records = MagicMock()
        records.insert.side_effect = PersistenceFailed("Database error: disk full")
        service = ReportIngestService(photo_store, records, feed)
        photo = PhotoFile("evidence.jpg", "image/jpeg", b"jpeg-bytes")

        result = asyncio.run(service.ingest(make_payload(photo=photo)))

        assert not result.success
        assert result.error_kind == ErrorKind.PERSISTENCE_FAILED
        assert result.message == "Database error: disk full"
        assert list(photo_store.directory.iterdir()) == []
        assert feed.version == 0

    def test_feed_refreshed_after_ingest(self, ingest_service, feed):
        assert feed.get_reports() == []

        result = asyncio.run(ingest_service.ingest(make_payload()))

        assert feed.version == 1
        reports = feed.get_reports()
        assert [r["id"] for r in reports] == [result.report_id]


class TestRecordStore:
    """Test suite for the SQL report store."""

    def test_check_constraint_rejects_bad_latitude(self, record_store):
        with pytest.raises(PersistenceFailed) as exc_info:
            record_store.insert({
                "category": "Roads",
                "description": "Pothole near the market",
                "latitude": 200.0,
                "longitude": 121.0,
                "location_mode": "auto",
                "photo_url": PLACEHOLDER_URL,
            })

        assert exc_info.value.kind == ErrorKind.PERSISTENCE_FAILED
        assert record_store.count() == 0

    def test_newest_first(self, ingest_service, record_store):
        first = asyncio.run(ingest_service.ingest(make_payload(description="First report")))
        second = asyncio.run(ingest_service.ingest(make_payload(description="Second report")))

        ids = [r.id for r in record_store.list_reports()]

        assert set(ids) == {first.report_id, second.report_id}
        assert len(record_store.list_reports(limit=1)) == 1


class TestReportFeed:
    """Test suite for feed caching."""

    def setup_method(self):
        """Setup test fixtures."""
        self.now = 0.0
        self.store = MagicMock()
        self.store.list_reports.return_value = []
        self.feed = ReportFeed(self.store, ttl_seconds=300, clock=lambda: self.now)

    def test_cached_within_ttl(self):
        self.feed.get_reports()
        self.now = 299.0
        self.feed.get_reports()
        assert self.store.list_reports.call_count == 1

    def test_reloaded_after_ttl(self):
        self.feed.get_reports()
        self.now = 300.0
        self.feed.get_reports()
        assert self.store.list_reports.call_count == 2

    def test_invalidate_forces_reload(self):
        self.feed.get_reports()
        self.feed.invalidate()
        assert not self.feed.is_fresh
        self.feed.get_reports()
        assert self.store.list_reports.call_count == 2
        assert self.feed.version == 1

    def test_fresh_until_expiry(self):
        """Test an empty report list is cached like any other."""
        assert not self.feed.is_fresh
        self.feed.get_reports()
        assert self.feed.is_fresh
        self.now = 301.0
        assert not self.feed.is_fresh


class TestPhotoStores:
    """Test suite for photo storage backends."""

    def test_generated_filename(self):
        name = generate_photo_filename("IMG_0042.PNG")
        assert FILENAME_PATTERN.match(name)
        assert name.endswith(".png")

    @pytest.mark.parametrize("original", [None, "", "camera", "weird.$$$"])
    def test_generated_filename_defaults_to_jpg(self, original):
        assert generate_photo_filename(original).endswith(".jpg")

    def test_generated_filenames_unique(self):
        names = {generate_photo_filename("a.jpg") for _ in range(50)}
        assert len(names) == 50

    def test_local_store_refuses_overwrite(self, tmp_path):
        store = LocalPhotoStore(str(tmp_path), "http://example.test/photos/")
        url = asyncio.run(store.store("a.jpg", b"one", "image/jpeg"))

        assert url == "http://example.test/photos/a.jpg"
        with pytest.raises(UploadFailed):
            asyncio.run(store.store("a.jpg", b"two", "image/jpeg"))
        assert (tmp_path / "a.jpg").read_bytes() == b"one"

    def test_local_store_delete_missing_is_noop(self, tmp_path):
        store = LocalPhotoStore(str(tmp_path), PHOTO_BASE_URL)
        asyncio.run(store.delete("nothing.jpg"))

    def test_supabase_upload(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"Key": "bayanihan-photos/a.jpg"})

        async def scenario():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                store = SupabasePhotoStore(client, "https://proj.supabase.co/", "anon-key", "bayanihan-photos")
                return await store.store("a.jpg", b"jpeg-bytes", "image/jpeg")

        url = asyncio.run(scenario())

        assert url == "https://proj.supabase.co/storage/v1/object/public/bayanihan-photos/a.jpg"
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/storage/v1/object/bayanihan-photos/a.jpg"
        assert request.headers["Authorization"] == "Bearer anon-key"
        assert request.headers["Content-Type"] == "image/jpeg"
        assert request.content == b"jpeg-bytes"

    def test_supabase_upload_rejected(self):
        def handler(request):
            return httpx.Response(400, json={"message": "Bucket not found"})

        async def scenario():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                store = SupabasePhotoStore(client, "https://proj.supabase.co", "anon-key", "missing")
                await store.store("a.jpg", b"jpeg-bytes", "image/jpeg")

        with pytest.raises(UploadFailed) as exc_info:
            asyncio.run(scenario())

        assert exc_info.value.message == "Upload failed: Bucket not found"

    def test_supabase_requires_credentials(self):
        with pytest.raises(ValueError):
            SupabasePhotoStore(MagicMock(), "", "", "bucket")


def test_initial_migration(tmp_path):
    """Test the migration creates and drops the reports table."""
    from alembic.migration import MigrationContext
    from alembic.operations import Operations

    path = Path(__file__).parent.parent / "src/database/migrations/versions/001_initial.py"
    spec = importlib.util.spec_from_file_location("migration_001_initial", path)
    migration = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(migration)

    engine = create_engine(f"sqlite:///{tmp_path / 'migrate.db'}")
    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            migration.upgrade()

    inspector = inspect(engine)
    assert "reports" in inspector.get_table_names()
    columns = {c["name"] for c in inspector.get_columns("reports")}
    assert {"id", "category", "description", "latitude", "longitude",
            "location_mode", "photo_url", "status", "created_at"} <= columns

    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            migration.downgrade()

    assert "reports" not in inspect(engine).get_table_names()
    engine.dispose()
