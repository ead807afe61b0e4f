"""
Photo preprocessing for report evidence
Resizes and recompresses a selected image before upload
"""

import asyncio
import io
import logging
import time
from typing import Optional, Tuple

import cv2
import numpy as np
import pillow_heif
from PIL import Image

from src.core.config import settings
from src.reporting.errors import CompressionFailed
from src.reporting.validation import PhotoFile, validate_photo

logger = logging.getLogger(__name__)

pillow_heif.register_heif_opener()


class PhotoPreprocessor:
    """
    Brings a photo within an upload budget.

    The longest side is capped at ``max_dimension_px`` (never upscaled) and
    the image is re-encoded as JPEG, stepping quality down until the encoded
    size fits ``max_size_bytes``. If the lowest quality still does not fit,
    the image is shrunk further and the quality ladder is retried.
    """

    QUALITY_STEPS = (90, 80, 70, 60, 50, 40)
    SHRINK_FACTOR = 0.75
    MAX_SHRINK_ROUNDS = 4

    def __init__(
        self,
        max_size_bytes: Optional[int] = None,
        max_dimension_px: Optional[int] = None
    ):
        """
        Initialize preprocessor.

        Args:
            max_size_bytes: Target encoded size
            max_dimension_px: Maximum width/height of the output
        """
        self.max_size_bytes = (
            max_size_bytes if max_size_bytes is not None else settings.photo_max_size_bytes
        )
        self.max_dimension_px = (
            max_dimension_px if max_dimension_px is not None else settings.photo_max_dimension_px
        )

    async def compress(
        self,
        photo: PhotoFile,
        max_size_bytes: Optional[int] = None,
        max_dimension_px: Optional[int] = None
    ) -> PhotoFile:
        """
        Compress a photo off the event loop.

        Args:
            photo: Photo as selected by the reporter
            max_size_bytes: Override for the size target
            max_dimension_px: Override for the dimension cap

        Returns:
            New PhotoFile holding JPEG data

        Raises:
            CompressionFailed: image is corrupt, undecodable, or still invalid
        """
        max_size = max_size_bytes if max_size_bytes is not None else self.max_size_bytes
        max_dim = max_dimension_px if max_dimension_px is not None else self.max_dimension_px

        start_time = time.time()
        data, (width, height) = await asyncio.to_thread(
            self._compress_bytes, photo.data, photo.content_type, max_size, max_dim
        )

        result = PhotoFile(
            filename=self._jpeg_name(photo.filename),
            content_type="image/jpeg",
            data=data,
        )

        check = validate_photo(result)
        if not check.valid:
            raise CompressionFailed(f"Compressed photo is still invalid: {check.reason}")

        logger.info(
            f"Compressed {photo.filename}: {photo.size} -> {result.size} bytes "
            f"({width}x{height}) in {(time.time() - start_time) * 1000:.0f} ms"
        )
        return result

    def _compress_bytes(
        self,
        data: bytes,
        content_type: str,
        max_size: int,
        max_dim: int
    ) -> Tuple[bytes, Tuple[int, int]]:
        """Decode, resize and re-encode. Runs in a worker thread."""
        image = self._load_image(data, content_type)

        height, width = image.shape[:2]
        scale = min(1.0, max_dim / float(max(height, width)))
        if scale < 1.0:
            image = self._resize(image, scale)

        best = None
        for shrink_round in range(self.MAX_SHRINK_ROUNDS + 1):
            if shrink_round:
                image = self._resize(image, self.SHRINK_FACTOR)
            for quality in self.QUALITY_STEPS:
                ok, encoded = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, quality])
                if not ok:
                    raise CompressionFailed("Could not encode the selected photo.")
                if encoded.nbytes <= max_size:
                    return encoded.tobytes(), self._dimensions(image)
                if best is None or encoded.nbytes < best[0].nbytes:
                    best = (encoded, self._dimensions(image))

        encoded, dimensions = best
        logger.warning(
            f"Photo above target after {self.MAX_SHRINK_ROUNDS} shrink rounds: "
            f"{encoded.nbytes} > {max_size} bytes"
        )
        return encoded.tobytes(), dimensions

    def _load_image(self, data: bytes, content_type: str = "") -> np.ndarray:
        """Decode image bytes into a BGR array."""
        if not data:
            raise CompressionFailed("The selected photo is empty.")
        if content_type == "image/heic":
            return self._load_heif(data)
        try:
            image = cv2.imdecode(np.frombuffer(data, np.uint8), cv2.IMREAD_COLOR)
        except cv2.error as e:
            raise CompressionFailed(f"Could not read the selected photo: {e}")
        if image is None:
            raise CompressionFailed(
                "Could not read the selected photo. Please choose a different image."
            )
        return image

    @staticmethod
    def _load_heif(data: bytes) -> np.ndarray:
        # OpenCV has no HEIF codec; Pillow decodes through the registered opener
        try:
            with Image.open(io.BytesIO(data)) as img:
                rgb = np.asarray(img.convert("RGB"))
        except (OSError, ValueError) as e:
            raise CompressionFailed(f"Could not read the selected photo: {e}")
        return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)

    @staticmethod
    def _resize(image: np.ndarray, scale: float) -> np.ndarray:
        height, width = image.shape[:2]
        size = (max(1, int(round(width * scale))), max(1, int(round(height * scale))))
        return cv2.resize(image, size, interpolation=cv2.INTER_AREA)

    @staticmethod
    def _dimensions(image: np.ndarray) -> Tuple[int, int]:
        height, width = image.shape[:2]
        return width, height

    @staticmethod
    def _jpeg_name(filename: str) -> str:
        stem = filename.rsplit(".", 1)[0] if "." in filename else filename
        return f"{stem or 'photo'}.jpg"


async def compress_photo(
    photo: PhotoFile,
    max_size_bytes: Optional[int] = None,
    max_dimension_px: Optional[int] = None
) -> PhotoFile:
    """
    Convenience function to compress a photo with default settings.

    Args:
        photo: Photo to compress
        max_size_bytes: Target encoded size
        max_dimension_px: Maximum width/height

    Returns:
        Compressed PhotoFile
    """
    preprocessor = PhotoPreprocessor(max_size_bytes, max_dimension_px)
    return await preprocessor.compress(photo)
