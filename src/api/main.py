"""
Bayanihan Map - REST API

FastAPI application exposing the report ingestion endpoint and the report
feed read by the map.

Run with: uvicorn src.api.main:app --reload
"""

import logging
import math
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

import httpx
from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from src.core.config import Settings, settings
from src.core.constants import LocationMode
from src.core.logging import setup_logging
from src.database.connection import DatabaseConnection
from src.ingest.photo_store import LocalPhotoStore, PhotoStore, SupabasePhotoStore
from src.ingest.record_store import SqlReportStore
from src.ingest.report_feed import ReportFeed
from src.ingest.service import ReportIngestService
from src.reporting.errors import ErrorKind
from src.reporting.payload import SubmissionPayload
from src.reporting.validation import PhotoFile

logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"

ERROR_STATUS_CODES = {
    ErrorKind.VALIDATION_FAILED: 400,
    ErrorKind.UPLOAD_FAILED: 502,
    ErrorKind.PERSISTENCE_FAILED: 500,
}


# ============================================================================
# Pydantic Models
# ============================================================================

class HealthResponse(BaseModel):
    """API health status."""
    status: str
    version: str
    timestamp: str
    database: bool


class ReportSubmitResponse(BaseModel):
    """Result of a report submission."""
    success: bool
    message: str
    report_id: Optional[str] = None
    photo_url: Optional[str] = None
    error_kind: Optional[str] = None


class ReportResponse(BaseModel):
    """Single report as shown on the map."""
    id: str
    category: str
    description: str
    latitude: float
    longitude: float
    location_mode: str
    location_label: str
    photo_url: str
    status: str
    created_at: Optional[str]


class ReportListResponse(BaseModel):
    """All current reports."""
    count: int
    reports: List[ReportResponse]


# ============================================================================
# Wiring
# ============================================================================

def build_photo_store(config: Settings, http_client: httpx.AsyncClient) -> PhotoStore:
    """Photo store selected by ``config.photo_store``."""
    if config.photo_store == "supabase":
        return SupabasePhotoStore(
            http_client,
            supabase_url=config.supabase_url,
            api_key=config.supabase_key,
            bucket=config.supabase_bucket,
        )
    return LocalPhotoStore(config.photo_dir, config.photo_base_url)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the default service graph unless one was injected."""
    if getattr(app.state, "service", None) is not None:
        yield
        return

    setup_logging()
    db = DatabaseConnection()
    db.create_tables()
    http_client = httpx.AsyncClient(timeout=30.0)

    records = SqlReportStore(db)
    feed = ReportFeed(records)
    app.state.db = db
    app.state.feed = feed
    app.state.service = ReportIngestService(
        build_photo_store(settings, http_client), records, feed
    )
    try:
        yield
    finally:
        await http_client.aclose()
        db.close()


def _parse_coordinate(value: Optional[str]) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def create_app(
    service: Optional[ReportIngestService] = None,
    feed: Optional[ReportFeed] = None,
    db: Optional[DatabaseConnection] = None,
    photo_dir: Optional[str] = None
) -> FastAPI:
    """
    Create the API application.

    Args:
        service: Ingestion service; built from settings at startup when None
        feed: Report feed for GET /api/v1/reports
        db: Database used by the health check
        photo_dir: Directory to serve under /photos (local photo store)
    """
    app = FastAPI(
        title="Bayanihan Map",
        description="Community issue reports on a shared map",
        version=API_VERSION,
        debug=settings.debug,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.service = service
    app.state.feed = feed
    app.state.db = db

    if photo_dir:
        app.mount("/photos", StaticFiles(directory=photo_dir, check_dir=False), name="photos")

    # ========================================================================
    # System Routes
    # ========================================================================

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check(request: Request):
        """Check API health and database reachability."""
        database = request.app.state.db
        return HealthResponse(
            status="healthy",
            version=API_VERSION,
            timestamp=datetime.utcnow().isoformat(),
            database=database.check_connection() if database else False,
        )

    # ========================================================================
    # Report Routes
    # ========================================================================

    @app.post("/api/v1/reports", response_model=ReportSubmitResponse, tags=["Reports"])
    async def submit_report(
        request: Request,
        category: str = Form(""),
        description: str = Form(""),
        lat: Optional[str] = Form(None),
        lng: Optional[str] = Form(None),
        locationMode: str = Form(LocationMode.AUTO_GPS.value),
        photo: Optional[UploadFile] = File(None),
    ):
        """
        Submit a community issue report.

        Fields are re-validated here; the photo, if any, is stored before the
        report row is written.
        """
        photo_file = None
        if photo is not None and photo.filename:
            data = await photo.read()
            if data:
                photo_file = PhotoFile(
                    filename=photo.filename,
                    content_type=photo.content_type or "",
                    data=data,
                )

        payload = SubmissionPayload(
            category=category,
            description=description,
            latitude=_parse_coordinate(lat),
            longitude=_parse_coordinate(lng),
            location_mode=locationMode,
            photo=photo_file,
        )

        result = await request.app.state.service.ingest(payload)
        status_code = 200 if result.success else ERROR_STATUS_CODES.get(result.error_kind, 500)
        return JSONResponse(status_code=status_code, content=result.to_dict())

    @app.get("/api/v1/reports", response_model=ReportListResponse, tags=["Reports"])
    async def list_reports(request: Request):
        """All current reports for the map."""
        report_feed = request.app.state.feed
        reports = report_feed.get_reports() if report_feed else []
        return ReportListResponse(
            count=len(reports),
            reports=[ReportResponse(**r) for r in reports],
        )

    return app


app = create_app(photo_dir=settings.photo_dir if settings.photo_store == "local" else None)


# ============================================================================
# Main
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    setup_logging()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
