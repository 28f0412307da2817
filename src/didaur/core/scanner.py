"""
Scan pipeline orchestrator.

Coordinates one scan:
1. Decode and crop the photo
2. Downscale and re-encode as JPEG
3. AI analysis (bounded retry / fallback models)
4. Cache the result in the user's scan history
5. Award scan points
6. Illustrate each DIY idea in the background
"""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any

from .errors import StoreError, ValidationError
from .gamification import PointsTable
from .imaging import ImageProcessor, to_data_url
from .local_store import ScanHistory
from .models import CommunityPost, DIYIdea, RecyclingRecommendation, UserProfile

logger = logging.getLogger(__name__)


@dataclass
class ScanOutcome:
    """
    Everything a scan produced.

    Attributes:
        recommendation: AI result, stamped with time and the cropped photo
        profile: Updated profile after the point award (None for guests)
        points_awarded: Points granted for this scan
        processing_time_ms: Time until the result was ready
        threads: Background image-generation threads still running
    """

    recommendation: RecyclingRecommendation
    profile: UserProfile | None
    points_awarded: int
    processing_time_ms: float
    threads: list[threading.Thread] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "result": self.recommendation.to_dict(),
            "profile": self.profile.to_dict() if self.profile else None,
            "pointsAwarded": self.points_awarded,
            "processingTimeMs": round(self.processing_time_ms, 2),
            "imagesPending": sum(1 for t in self.threads if t.is_alive()),
        }


class ScanPipeline:
    """
    Runs scans and DIY tutorial completions.

    Usage:
        pipeline = ScanPipeline(gemini, store, config.as_dict)
        outcome = pipeline.scan(upload_bytes, crop=area, user=profile, history=history)
    """

    def __init__(self, gemini: Any, store: Any, config: dict[str, Any]):
        """
        Initialize the pipeline.

        Args:
            gemini: GeminiClient (analysis and image generation)
            store: DidaurStore (points and posts)
            config: Full configuration (``scan`` and ``gamification`` sections)
        """
        self.gemini = gemini
        self.store = store
        self.processor = ImageProcessor(config.get("scan", {}))
        self.points = PointsTable(config.get("gamification", {}).get("points"))

        self._step_images: OrderedDict[str, str] = OrderedDict()
        self.step_cache_size = max(1, int(config.get("scan", {}).get("step_cache_size", 64)))
        self._step_lock = threading.Lock()

    def scan(
        self,
        image: bytes | str,
        crop: dict[str, Any] | None = None,
        user: UserProfile | None = None,
        history: ScanHistory | None = None,
    ) -> ScanOutcome:
        """
        Analyze a photographed item.

        Args:
            image: Uploaded bytes or a data URL
            crop: Optional pixel rectangle {x, y, width, height}
            user: Signed-in profile to reward, or None for guests
            history: Scan history cache to record the result in

        Returns:
            ScanOutcome with the recommendation and updated profile
        """
        start_time = time.perf_counter()

        frame = self.processor.decode(image)
        jpeg = self.processor.prepare(frame, crop)

        recommendation = self.gemini.analyze_image(jpeg)
        recommendation.timestamp = int(time.time() * 1000)
        recommendation.original_image = to_data_url(jpeg)

        if history is not None:
            history.add(recommendation)

        profile = None
        awarded = 0
        if user is not None:
            try:
                profile = self.store.update_user_points(
                    user.id,
                    self.points.scan,
                    co2=recommendation.co2_impact,
                    is_scan=True,
                    plastic=recommendation.is_plastic,
                )
                awarded = self.points.scan if profile else 0
            except StoreError as e:
                logger.error(f"Scan points for {user.id} not saved: {e.message}")

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        threads = self._illustrate(recommendation, history)

        logger.info(
            f"Scan complete: {recommendation.item_name} in {elapsed_ms:.0f} ms, "
            f"+{awarded} XP, {len(threads)} images queued"
        )
        return ScanOutcome(recommendation, profile, awarded, elapsed_ms, threads)

    def _illustrate(
        self, recommendation: RecyclingRecommendation, history: ScanHistory | None
    ) -> list[threading.Thread]:
        """Start one background image generation per DIY idea."""
        if not getattr(self.gemini, "generate_images", False) or not self.gemini.is_available:
            return []

        threads = []
        for index, idea in enumerate(recommendation.diy_ideas):

            def _apply(image_url: str | None, idea: DIYIdea = idea, index: int = index) -> None:
                if not image_url:
                    return
                idea.image_url = image_url
                if history is None:
                    return
                try:
                    history.update_idea_image(recommendation.timestamp, index, image_url)
                except OSError as e:
                    logger.warning(f"Could not save image for idea {index} of {recommendation.item_name}: {e}")

            threads.append(
                self.gemini.generate_async(
                    self.gemini.generate_diy_image,
                    idea.title,
                    recommendation.item_name,
                    callback=_apply,
                )
            )
        return threads

    def step_image(self, step: str, title: str) -> str:
        """Illustration for one tutorial step, generated once per step."""
        step, title = (step or "").strip(), (title or "").strip()
        if not step or not title:
            raise ValidationError("Langkah dan judul tutorial wajib diisi.")

        key = f"{title}-{step}"
        with self._step_lock:
            cached = self._step_images.get(key)
            if cached:
                self._step_images.move_to_end(key)
                return cached

        image_url = self.gemini.generate_step_image(step, title)
        with self._step_lock:
            self._step_images[key] = image_url
            self._step_images.move_to_end(key)
            # least recently used first
            while len(self._step_images) > self.step_cache_size:
                self._step_images.popitem(last=False)
        return image_url

    def complete_tutorial(
        self,
        user: UserProfile,
        idea_title: str,
        photo: bytes | str | None,
        material: str | None = None,
    ) -> tuple[CommunityPost, UserProfile | None]:
        """
        Share a finished DIY project with its completion photo.

        Returns:
            Tuple of (new community post, updated profile)
        """
        idea_title = (idea_title or "").strip()
        if not idea_title:
            raise ValidationError("Judul proyek wajib diisi.")
        if not photo:
            raise ValidationError("Ambil foto hasil karyamu terlebih dahulu.")

        photo_url = to_data_url(self.processor.prepare(self.processor.decode(photo)))
        return self.store.share_creation(
            user,
            item_name=idea_title,
            description=f"Baru saja menyelesaikan proyek DIY: {idea_title}! #DidaurAI",
            image_url=photo_url,
            material_tag=material or "Lainnya",
            is_for_sale=False,
            points=self.points.tutorial,
        )
