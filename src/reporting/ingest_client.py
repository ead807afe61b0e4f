"""
HTTP client for the report ingestion endpoint
"""

import logging
from typing import Optional

import httpx

from src.core.config import settings
from src.reporting.errors import ErrorKind
from src.reporting.payload import IngestResult, SubmissionPayload

logger = logging.getLogger(__name__)


class HttpIngestClient:
    """
    Sends submissions to ``POST /api/v1/reports`` as multipart form data.

    The httpx client is owned by the caller and passed in, so one connection
    pool serves the whole process.
    """

    REPORTS_PATH = "/api/v1/reports"

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def ingest(self, payload: SubmissionPayload) -> IngestResult:
        """
        Submit a payload.

        Transport problems are returned as failed results, not raised.
        """
        files = None
        if payload.photo is not None:
            files = {
                "photo": (
                    payload.photo.filename,
                    payload.photo.data,
                    payload.photo.content_type,
                )
            }

        try:
            response = await self.client.post(
                self.REPORTS_PATH, data=payload.form_fields(), files=files
            )
        except httpx.TimeoutException as e:
            logger.warning(f"Ingestion request timed out: {e}")
            return IngestResult(
                success=False,
                message="The server took too long to respond. Please try again.",
                error_kind=ErrorKind.NETWORK_TIMEOUT,
            )
        except httpx.HTTPError as e:
            logger.error(f"Ingestion request failed: {e}")
            return IngestResult(
                success=False,
                message=f"Could not reach the server: {e}",
                error_kind=ErrorKind.UPLOAD_FAILED,
            )

        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and "success" in body:
            return IngestResult.from_dict(body)

        logger.error(f"Unexpected ingestion response: HTTP {response.status_code}")
        return IngestResult(
            success=False,
            message=f"Unexpected server response (HTTP {response.status_code}).",
            error_kind=ErrorKind.UPLOAD_FAILED,
        )


def create_http_client(
    base_url: Optional[str] = None,
    timeout_s: Optional[float] = None
) -> httpx.AsyncClient:
    """
    Build the process-wide httpx client for the ingestion endpoint.

    Args:
        base_url: Server root, defaults to settings.api_base_url
        timeout_s: Request timeout, None disables it
    """
    return httpx.AsyncClient(
        base_url=base_url or settings.api_base_url,
        timeout=timeout_s if timeout_s is not None else settings.ingest_timeout_s,
    )
