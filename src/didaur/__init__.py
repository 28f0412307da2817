"""
Didaur - AI Upcycling Companion

Scan a waste item, get DIY reuse ideas from a vision model, and earn XP
for recycling, sharing creations and helping the community.
"""

__version__ = "0.1.0"
__author__ = "Didaur Team"

from .core.models import DIYIdea, RecyclingRecommendation, UserProfile
from .core.scanner import ScanOutcome, ScanPipeline

__all__ = [
    "DIYIdea",
    "RecyclingRecommendation",
    "ScanOutcome",
    "ScanPipeline",
    "UserProfile",
    "__version__",
]
