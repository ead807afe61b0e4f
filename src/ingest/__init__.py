"""
Bayanihan Map - Ingestion Module
Server side: re-validation, photo storage, report persistence, map feed.
"""

from src.ingest.service import ReportIngestService
from src.ingest.photo_store import (
    PhotoStore,
    LocalPhotoStore,
    SupabasePhotoStore,
    generate_photo_filename,
)
from src.ingest.record_store import SqlReportStore
from src.ingest.report_feed import ReportFeed

__all__ = [
    "ReportIngestService",
    "PhotoStore",
    "LocalPhotoStore",
    "SupabasePhotoStore",
    "generate_photo_filename",
    "SqlReportStore",
    "ReportFeed",
]
