"""
Still-photo capture for scanning from the command line.

A webcam (or a video file, for testing) is opened just long enough to let
exposure settle and grab one frame, which is returned JPEG-encoded so it
goes through the same scan pipeline as an uploaded photo.
"""

import logging
from typing import Any

import cv2
import numpy as np

logger = logging.getLogger(__name__)

_BACKENDS = {
    "CAP_ANY": cv2.CAP_ANY,
    "CAP_V4L2": cv2.CAP_V4L2,
    "CAP_DSHOW": cv2.CAP_DSHOW,
    "CAP_MSMF": cv2.CAP_MSMF,
    "CAP_AVFOUNDATION": cv2.CAP_AVFOUNDATION,
}


class CameraUnavailable(RuntimeError):
    """The capture device could not be opened or returned no frame."""


class Camera:
    """
    One-shot photo grabber.

    Usage:
        with Camera(config['camera']) as camera:
            jpeg = camera.capture_photo()
    """

    def __init__(self, config: dict[str, Any], jpeg_quality: int = 85):
        """
        Args:
            config: ``camera`` section: source (device index or video path),
                backend, width, height and warmup_frames
            jpeg_quality: Quality of the returned JPEG (1-100)
        """
        self.source = config.get("source", 0)
        self.backend = _BACKENDS.get(str(config.get("backend", "CAP_ANY")), cv2.CAP_ANY)
        self.size = (int(config.get("width", 1280)), int(config.get("height", 720)))
        self.warmup_frames = max(0, int(config.get("warmup_frames", 5)))
        self.jpeg_quality = jpeg_quality
        self._cap: cv2.VideoCapture | None = None

    def _open_device(self) -> cv2.VideoCapture:
        if isinstance(self.source, str):
            return cv2.VideoCapture(self.source)

        cap = cv2.VideoCapture(self.source, self.backend)
        if not cap.isOpened() and self.backend != cv2.CAP_ANY:
            logger.warning(f"Camera {self.source} refused the configured backend, retrying with CAP_ANY")
            cap.release()
            cap = cv2.VideoCapture(self.source, cv2.CAP_ANY)
        return cap

    def open(self) -> None:
        """
        Open the device.

        Raises:
            CameraUnavailable: When the source cannot be opened.
        """
        if self._cap is not None:
            return
        try:
            cap = self._open_device()
        except cv2.error as e:
            raise CameraUnavailable(f"Error opening camera {self.source}: {e}") from e
        if not cap.isOpened():
            cap.release()
            raise CameraUnavailable(f"Failed to open camera source: {self.source}")

        if not isinstance(self.source, str):
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.size[0])
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.size[1])
        self._cap = cap
        logger.info(f"Camera {self.source} opened")

    def grab_frame(self) -> np.ndarray:
        """
        Read a settled BGR frame.

        The first ``warmup_frames`` reads are discarded; if the last read
        fails, the newest good warm-up frame is used.

        Raises:
            CameraUnavailable: When no frame could be read at all.
        """
        self.open()
        frame = None
        for _ in range(self.warmup_frames + 1):
            ok, current = self._cap.read()  # type: ignore[union-attr]
            if ok and current is not None:
                frame = current
        if frame is None:
            raise CameraUnavailable(f"Camera {self.source} returned no frame")
        return frame

    def capture_photo(self) -> bytes:
        """Grab a frame and return it as JPEG bytes."""
        frame = self.grab_frame()
        ok, buffer = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, self.jpeg_quality])
        if not ok:
            raise CameraUnavailable("Failed to encode captured frame")
        return buffer.tobytes()

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info(f"Camera {self.source} released")

    def __enter__(self) -> "Camera":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.release()
