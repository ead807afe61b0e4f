"""
Photo storage backends for report evidence

Local directory storage for development and Supabase Storage for
deployments.
"""

import asyncio
import logging
import re
import time
import uuid
from pathlib import Path
from typing import Optional, Protocol

import httpx

from src.core.config import settings
from src.reporting.errors import UploadFailed

logger = logging.getLogger(__name__)


class PhotoStore(Protocol):
    """Content store returning public URLs."""

    async def store(self, filename: str, data: bytes, content_type: str) -> str:
        ...

    async def delete(self, filename: str) -> None:
        ...


def generate_photo_filename(original_name: Optional[str]) -> str:
    """
    Build a collision-resistant object name.

    Format: ``report_<epoch ms>_<8 hex chars>.<ext>`` where the extension is
    taken from the original name, stripped to ASCII letters/digits, and
    defaults to ``jpg``.
    """
    extension = ""
    if original_name and "." in original_name:
        extension = original_name.rsplit(".", 1)[-1]
    extension = re.sub(r"[^a-z0-9]", "", extension.lower()) or "jpg"

    timestamp_ms = int(time.time() * 1000)
    suffix = uuid.uuid4().hex[:8]
    return f"report_{timestamp_ms}_{suffix}.{extension}"


class LocalPhotoStore:
    """Writes photos into a directory served under ``base_url``."""

    def __init__(
        self,
        directory: Optional[str] = None,
        base_url: Optional[str] = None
    ):
        self.directory = Path(directory or settings.photo_dir)
        self.base_url = (base_url or settings.photo_base_url).rstrip("/")
        self.directory.mkdir(parents=True, exist_ok=True)

    async def store(self, filename: str, data: bytes, content_type: str) -> str:
        path = self.directory / filename
        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as e:
            raise UploadFailed(f"Upload failed: {e}")

        logger.info(f"Stored photo {filename} ({len(data)} bytes)")
        return f"{self.base_url}/{filename}"

    async def delete(self, filename: str) -> None:
        path = self.directory / filename
        await asyncio.to_thread(path.unlink, missing_ok=True)

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        # "x" refuses to overwrite an existing object
        with open(path, "xb") as f:
            f.write(data)


class SupabasePhotoStore:
    """
    Supabase Storage bucket accessed through its REST API.

    API Documentation: https://supabase.com/docs/reference/api/storage
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        supabase_url: Optional[str] = None,
        api_key: Optional[str] = None,
        bucket: Optional[str] = None
    ):
        """
        Initialize store.

        Args:
            client: Shared httpx client
            supabase_url: Project URL
            api_key: Service or anon key
            bucket: Storage bucket name
        """
        self.client = client
        self.supabase_url = (supabase_url or settings.supabase_url or "").rstrip("/")
        self.api_key = api_key or settings.supabase_key
        self.bucket = bucket or settings.supabase_bucket

        if not self.supabase_url or not self.api_key:
            raise ValueError("Supabase URL and key are required for photo storage")

    def _headers(self, content_type: Optional[str] = None) -> dict:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "apikey": self.api_key,
        }
        if content_type:
            headers["Content-Type"] = content_type
            headers["x-upsert"] = "false"
        return headers

    def object_url(self, filename: str) -> str:
        return f"{self.supabase_url}/storage/v1/object/{self.bucket}/{filename}"

    def public_url(self, filename: str) -> str:
        return f"{self.supabase_url}/storage/v1/object/public/{self.bucket}/{filename}"

    async def store(self, filename: str, data: bytes, content_type: str) -> str:
        try:
            response = await self.client.post(
                self.object_url(filename),
                content=data,
                headers=self._headers(content_type),
            )
        except httpx.HTTPError as e:
            raise UploadFailed(f"Upload failed: {e}")

        if response.status_code >= 400:
            raise UploadFailed(f"Upload failed: {self._error_message(response)}")

        logger.info(f"Uploaded photo {filename} to bucket {self.bucket}")
        return self.public_url(filename)

    async def delete(self, filename: str) -> None:
        response = await self.client.delete(self.object_url(filename), headers=self._headers())
        response.raise_for_status()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"HTTP {response.status_code}"
        return body.get("message") or body.get("error") or f"HTTP {response.status_code}"
