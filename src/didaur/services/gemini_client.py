"""
Gemini API client for Didaur.

Uses Gemini's vision model to identify a photographed item and propose DIY
reuse projects as structured JSON, and Gemini's image model to illustrate
those projects. Overload answers (HTTP 503) are retried a fixed number of
times, then the configured fallback models are tried.
"""

import json
import logging
import os
import re
import threading
import time
from typing import Any, Callable, TypeVar

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..core.errors import (
    AnalysisError,
    ConfigurationError,
    RateLimitError,
    ServiceOverloadedError,
)
from ..core.imaging import to_data_url
from ..core.models import RecyclingRecommendation, placeholder_image

logger = logging.getLogger(__name__)

T = TypeVar("T")

API_KEY_FALLBACK_ENVS = ("GOOGLE_API_KEY", "API_KEY")

ANALYSIS_PROMPT = (
    "Identifikasi barang ini. Berikan {idea_count} ide daur ulang kreatif. "
    "Balas dalam JSON murni Bahasa Indonesia. Struktur: "
    '{{ "itemName": string, "materialType": string, "difficulty": "Mudah"|"Sedang"|"Sulit", '
    '"estimatedPoints": number, "co2Impact": number (gram CO2 yang dihemat), '
    '"diyIdeas": [ {{ "title": string, "description": string, "timeEstimate": string, '
    '"toolsNeeded": string[], "steps": string[] }} ] }}'
)

DIY_IMAGE_PROMPT = (
    "Foto produk hasil kerajinan daur ulang: {title}, dibuat dari {item_name}. "
    "{extra}Gaya fotografi natural, pencahayaan lembut, latar sederhana, tanpa teks."
)

STEP_IMAGE_PROMPT = (
    "Ilustrasi satu langkah tutorial DIY \"{title}\": {step}. "
    "Gaya ilustrasi datar yang jelas, tanpa teks."
)

_IDEA_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "title": {"type": "STRING"},
        "description": {"type": "STRING"},
        "timeEstimate": {"type": "STRING"},
        "toolsNeeded": {"type": "ARRAY", "items": {"type": "STRING"}},
        "steps": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
    "required": ["title", "description", "timeEstimate", "toolsNeeded", "steps"],
}

RECOMMENDATION_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "itemName": {"type": "STRING"},
        "materialType": {"type": "STRING"},
        "difficulty": {"type": "STRING"},
        "estimatedPoints": {"type": "NUMBER"},
        "co2Impact": {"type": "NUMBER"},
        "diyIdeas": {"type": "ARRAY", "items": _IDEA_SCHEMA},
    },
    "required": [
        "itemName",
        "materialType",
        "difficulty",
        "estimatedPoints",
        "co2Impact",
        "diyIdeas",
    ],
}

_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)
_LEADING_JSON = re.compile(r"^JSON", re.IGNORECASE)


def clean_json_response(text: str) -> str:
    """Strip markdown fences and a leading ``JSON`` label from a model answer."""
    return _LEADING_JSON.sub("", _FENCE.sub("", text).strip()).strip()


class GeminiClient:
    """
    Vision analysis and image generation through the Gemini API.

    Usage:
        gemini = GeminiClient(config['gemini'])
        recommendation = gemini.analyze_image(jpeg_bytes)
    """

    def __init__(
        self,
        config: dict | None = None,
        client: Any = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the Gemini client.

        Args:
            config: ``gemini`` configuration section.
            client: Pre-built SDK client (tests inject a fake here).
            sleep: Function used to wait between retries.
        """
        self.config = config or {}

        api_key_env = self.config.get("api_key_env", "GEMINI_API_KEY")
        self.api_key = os.environ.get(api_key_env)
        for env_name in API_KEY_FALLBACK_ENVS:
            if self.api_key:
                break
            self.api_key = os.environ.get(env_name)

        self.model = self.config.get("model", "gemini-2.5-flash")
        self.fallback_models = list(self.config.get("fallback_models") or [])
        self.image_model = self.config.get("image_model", "gemini-2.5-flash-image")
        self.timeout = float(self.config.get("timeout", 30))
        self.temperature = float(self.config.get("temperature", 0.4))
        self.idea_count = int(self.config.get("idea_count", 3))
        self.generate_images = bool(self.config.get("generate_images", True))

        retry_config = self.config.get("retry", {})
        self.max_attempts = max(1, int(retry_config.get("max_attempts", 3)))
        self.backoff = retry_config.get("backoff", "exponential")
        self.base_delay = float(retry_config.get("base_delay", 1.5))

        self._sleep = sleep
        self._client = client
        if self._client is None:
            if self.api_key:
                self._client = genai.Client(
                    api_key=self.api_key,
                    http_options=types.HttpOptions(timeout=int(self.timeout * 1000)),
                )
                logger.info(f"Gemini client initialized (model={self.model})")
            else:
                logger.warning(
                    f"Gemini API key not found in environment variable: {api_key_env}"
                )

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def _require_client(self) -> Any:
        if self._client is None:
            raise ConfigurationError("API_KEY belum terpasang di environment variables.")
        return self._client

    def retry_delay(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        if self.backoff == "linear":
            return self.base_delay * attempt
        return self.base_delay * (2 ** (attempt - 1))

    def _with_retry(self, request: Callable[[str], T], models: list[str]) -> T:
        """
        Run ``request(model)`` with bounded retry on overload.

        Only HTTP 503 is retried. Each model gets ``max_attempts`` tries
        before the next model in ``models`` is used.
        """
        for model in models:
            for attempt in range(1, self.max_attempts + 1):
                try:
                    return request(model)
                except genai_errors.APIError as e:
                    if e.code == 429:
                        logger.warning(f"Gemini rate limit hit on {model}: {e.message}")
                        raise RateLimitError() from e
                    if e.code != 503:
                        logger.error(f"Gemini API error on {model}: {e.code} {e.message}")
                        raise AnalysisError(
                            f"Gagal menghubungkan ke server AI: {e.message or e.status or e.code}"
                        ) from e
                    logger.warning(
                        f"Gemini model {model} overloaded (attempt {attempt}/{self.max_attempts})"
                    )
                    if attempt < self.max_attempts:
                        self._sleep(self.retry_delay(attempt))
                except httpx.TimeoutException as e:
                    logger.error(f"Gemini request to {model} timed out after {self.timeout}s")
                    raise AnalysisError("AI tidak merespon tepat waktu.") from e
            logger.warning(f"Gemini model {model} still unavailable, trying next model")
        raise ServiceOverloadedError()

    def analyze_image(
        self, image_bytes: bytes, mime_type: str = "image/jpeg"
    ) -> RecyclingRecommendation:
        """
        Identify an item and propose DIY projects.

        Args:
            image_bytes: Encoded photo of the item.
            mime_type: MIME type of ``image_bytes``.

        Returns:
            RecyclingRecommendation with placeholder images on every idea.
        """
        client = self._require_client()

        image_part = types.Part.from_bytes(data=image_bytes, mime_type=mime_type)
        prompt = ANALYSIS_PROMPT.format(idea_count=self.idea_count)
        generation_config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=RECOMMENDATION_SCHEMA,
            temperature=self.temperature,
        )

        def _request(model: str) -> Any:
            return client.models.generate_content(
                model=model,
                contents=[image_part, prompt],
                config=generation_config,
            )

        response = self._with_retry(_request, [self.model, *self.fallback_models])

        text = getattr(response, "text", None)
        if not text:
            raise AnalysisError("AI tidak merespon tepat waktu.")

        recommendation = self.parse_recommendation(text)
        logger.info(
            f"Analyzed item: {recommendation.item_name} "
            f"({recommendation.material_type}, {len(recommendation.diy_ideas)} ideas)"
        )
        return recommendation

    def parse_recommendation(self, text: str) -> RecyclingRecommendation:
        """
        Parse the model's JSON answer.

        Args:
            text: Raw response text, possibly wrapped in markdown fences.
        """
        try:
            data = json.loads(clean_json_response(text))
        except json.JSONDecodeError as e:
            logger.warning(f"Unparseable Gemini answer: {text[:200]!r}")
            raise AnalysisError("Jawaban AI tidak dapat dibaca. Silakan coba lagi.") from e

        if not isinstance(data, dict):
            raise AnalysisError("Jawaban AI tidak dapat dibaca. Silakan coba lagi.")

        recommendation = RecyclingRecommendation.from_dict(data)
        if not recommendation.item_name:
            raise AnalysisError("AI tidak mengenali barang ini. Coba foto dari sudut lain.")

        for idea in recommendation.diy_ideas:
            if not idea.image_url:
                idea.image_url = placeholder_image(idea.title)
        return recommendation

    def _generate_image(self, prompt: str) -> str:
        client = self._require_client()
        generation_config = types.GenerateContentConfig(response_modalities=["TEXT", "IMAGE"])

        def _request(model: str) -> Any:
            return client.models.generate_content(
                model=model, contents=prompt, config=generation_config
            )

        response = self._with_retry(_request, [self.image_model])

        for candidate in getattr(response, "candidates", None) or []:
            content = getattr(candidate, "content", None)
            for part in getattr(content, "parts", None) or []:
                inline = getattr(part, "inline_data", None)
                if inline is not None and inline.data:
                    return to_data_url(inline.data, inline.mime_type or "image/png")

        raise AnalysisError("AI tidak menghasilkan gambar.")

    def generate_diy_image(self, title: str, item_name: str, prompt: str | None = None) -> str:
        """
        Illustrate a finished DIY project.

        Returns:
            The generated picture as a data URL.
        """
        extra = f"{prompt.strip()} " if prompt else ""
        return self._generate_image(
            DIY_IMAGE_PROMPT.format(title=title, item_name=item_name, extra=extra)
        )

    def generate_step_image(self, step: str, title: str) -> str:
        """Illustrate one tutorial step of a DIY project."""
        return self._generate_image(STEP_IMAGE_PROMPT.format(title=title, step=step))

    def generate_async(
        self,
        fn: Callable[..., T],
        *args: Any,
        callback: Callable[[T | None], None],
    ) -> threading.Thread:
        """
        Run a generation call in a background thread.

        The callback receives the result, or None if the call failed. There
        is no cancellation.

        Returns:
            The thread running the call.
        """
        def _run() -> None:
            try:
                result = fn(*args)
            except Exception as e:
                logger.warning(f"Background generation failed: {e}")
                result = None
            callback(result)

        thread = threading.Thread(target=_run, daemon=True)
        thread.start()
        return thread
