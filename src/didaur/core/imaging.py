"""
Image handling for scans.

Turns an uploaded photo into the JPEG the AI provider receives:
- Decode raw bytes or a data URL
- Crop to the user's selection
- Downscale large photos
- Re-encode as JPEG (bytes, base64 or data URL)
"""

import base64
import binascii
import re
from typing import Any

import cv2
import numpy as np

from .errors import ValidationError

_DATA_URL = re.compile(r"^data:(?P<mime>[\w/+.-]+)?(;[\w=-]+)*;base64,(?P<data>.*)$", re.DOTALL)


def split_data_url(value: str) -> tuple[str, bytes]:
    """
    Split a ``data:<mime>;base64,<payload>`` URL.

    Returns:
        Tuple of (mime type, decoded bytes)
    """
    match = _DATA_URL.match(value.strip())
    if not match:
        raise ValidationError("Format gambar tidak dikenali.")
    try:
        payload = base64.b64decode(match.group("data"), validate=False)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("Format gambar tidak dikenali.") from e
    return match.group("mime") or "image/jpeg", payload


def to_data_url(data: bytes, mime_type: str = "image/jpeg") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


class ImageProcessor:
    """
    Prepares scan photos for analysis.

    Usage:
        processor = ImageProcessor(config['scan'])
        frame = processor.decode(upload_bytes)
        jpeg = processor.prepare(frame, crop={'x': 0, 'y': 0, 'width': 400, 'height': 400})
    """

    def __init__(self, config: dict[str, Any] | None = None):
        """
        Initialize processor with configuration.

        Args:
            config: Scan configuration with keys:
                - max_side: int - longest side after downscaling (0 disables)
                - jpeg_quality: int - JPEG quality 0-100
        """
        config = config or {}
        self.max_side = int(config.get("max_side", 1024))
        self.jpeg_quality = int(config.get("jpeg_quality", 80))

    def decode(self, source: bytes | str) -> np.ndarray:
        """
        Decode an uploaded image.

        Args:
            source: Raw image bytes or a base64 data URL

        Returns:
            BGR image as numpy array
        """
        if isinstance(source, str):
            _, source = split_data_url(source)
        if not source:
            raise ValidationError("Gambar kosong.")

        buffer = np.frombuffer(source, dtype=np.uint8)
        frame = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
        if frame is None:
            raise ValidationError("Gambar tidak dapat dibaca. Gunakan format JPG atau PNG.")
        return frame

    def crop(self, frame: np.ndarray, area: dict[str, Any] | None) -> np.ndarray:
        """
        Crop a frame to a pixel rectangle.

        The rectangle is clamped to the frame; an empty result is rejected.

        Args:
            frame: BGR image
            area: Dict with x, y, width, height in pixels, or None for no crop
        """
        if not area:
            return frame

        try:
            x = int(round(float(area.get("x", 0))))
            y = int(round(float(area.get("y", 0))))
            w = int(round(float(area["width"])))
            h = int(round(float(area["height"])))
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError("Area potong tidak valid.") from e

        height, width = frame.shape[:2]
        x1, y1 = max(0, x), max(0, y)
        x2, y2 = min(width, x + w), min(height, y + h)
        if x2 <= x1 or y2 <= y1:
            raise ValidationError("Area potong berada di luar gambar.")

        return frame[y1:y2, x1:x2].copy()

    def downscale(self, frame: np.ndarray) -> np.ndarray:
        """Shrink so the longest side is at most ``max_side``."""
        if self.max_side <= 0:
            return frame
        height, width = frame.shape[:2]
        longest = max(height, width)
        if longest <= self.max_side:
            return frame
        scale = self.max_side / longest
        size = (max(1, int(width * scale)), max(1, int(height * scale)))
        return cv2.resize(frame, size, interpolation=cv2.INTER_AREA)

    def encode_jpeg(self, frame: np.ndarray) -> bytes:
        ok, buffer = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, self.jpeg_quality])
        if not ok:
            raise ValidationError("Gagal memproses gambar.")
        return buffer.tobytes()

    def prepare(self, frame: np.ndarray, crop: dict[str, Any] | None = None) -> bytes:
        """Crop, downscale and encode a frame for analysis."""
        return self.encode_jpeg(self.downscale(self.crop(frame, crop)))
