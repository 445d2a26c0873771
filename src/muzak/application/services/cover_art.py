"""Embedded cover art recompression.

Covers travel inside album documents as data URIs, so every byte counts: a 3000px PNG
scan embedded in a FLAC would otherwise bloat each catalog save and every mirror push.
"""

import base64
import logging
from io import BytesIO

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 400
DEFAULT_QUALITY = 95


def to_data_uri(data: bytes, mime_type: str) -> str:
    """Encode raw bytes as a base64 data URI."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


class CoverArtOptimizer:
    """Bound covers to a square box and re-encode them as JPEG.

    Hey future me - this is SYNC on purpose. It runs inside the extraction worker
    thread (asyncio.to_thread in BatchIngestionCoordinator), never on the event loop.
    """

    def __init__(
        self, max_size: int = DEFAULT_MAX_SIZE, quality: int = DEFAULT_QUALITY
    ) -> None:
        self.max_size = max_size
        self.quality = quality

    def optimize(self, data: bytes, mime_type: str | None = None) -> str:
        """Recompress a cover image into a JPEG data URI.

        thumbnail() keeps the aspect ratio and never upscales, so small covers keep
        their size. Anything Pillow can't handle falls back to the original bytes.

        Args:
            data: Raw image bytes from the tag
            mime_type: Mime type declared by the tag (used for the fallback only)

        Returns:
            data:image/jpeg;base64,... or data:<original mime>;base64,... on failure
        """
        try:
            with Image.open(BytesIO(data)) as img:
                if img.mode != "RGB":
                    img = img.convert("RGB")
                img.thumbnail((self.max_size, self.max_size), Image.Resampling.LANCZOS)
                output = BytesIO()
                img.save(output, format="JPEG", quality=self.quality, optimize=True)
        except (
            UnidentifiedImageError,
            Image.DecompressionBombError,
            OSError,
            ValueError,
        ) as e:
            logger.warning(f"Cover optimization failed, keeping original image: {e}")
            return to_data_uri(data, mime_type or "image/jpeg")

        return to_data_uri(output.getvalue(), "image/jpeg")
