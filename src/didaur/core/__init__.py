"""Core components for Didaur."""

from .config import Config
from .camera import Camera, CameraUnavailable
from .imaging import ImageProcessor
from .local_store import LocalStore, Preferences, ScanHistory
from .scanner import ScanOutcome, ScanPipeline

__all__ = [
    "Config",
    "Camera",
    "CameraUnavailable",
    "ImageProcessor",
    "LocalStore",
    "Preferences",
    "ScanHistory",
    "ScanOutcome",
    "ScanPipeline",
]
