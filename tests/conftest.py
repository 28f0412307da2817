"""
Pytest fixtures for Didaur tests.

Provides common test fixtures including:
- Test configuration (local data under tmp_path)
- Synthetic scan photos
- Fake Supabase / Gemini SDK clients and the services built on them
- Flask app, test client and a signed-in user
"""

import json

import cv2
import numpy as np
import pytest

from didaur.core.config import Config
from didaur.services.auth import AuthService
from didaur.services.gemini_client import GeminiClient
from didaur.services.store import DidaurStore
from didaur.web.app import create_app

from fakes import (
    FALLBACK_MODEL,
    IMAGE_MODEL,
    SAMPLE_ANALYSIS,
    TEXT_MODEL,
    FakeGenAI,
    FakeSupabase,
    image_response,
    text_response,
)


@pytest.fixture
def test_config(tmp_path):
    """Test configuration dictionary."""
    return {
        "app": {"name": "Didaur", "version": "0.1.0", "debug": False},
        "logging": {"level": "DEBUG"},
        "web": {"max_upload_mb": 2, "cors_origins": ["https://app.didaur.test"]},
        "camera": {"source": 0, "backend": "CAP_ANY", "warmup_frames": 2},
        "supabase": {"url_env": "TEST_SUPABASE_URL", "key_env": "TEST_SUPABASE_KEY"},
        "gemini": {
            "api_key_env": "TEST_GEMINI_KEY",
            "model": TEXT_MODEL,
            "fallback_models": [FALLBACK_MODEL],
            "image_model": IMAGE_MODEL,
            "timeout": 5,
            "temperature": 0.4,
            "idea_count": 3,
            "generate_images": False,
            "retry": {"max_attempts": 3, "backoff": "exponential", "base_delay": 1.5},
        },
        "scan": {"max_side": 256, "jpeg_quality": 80},
        "storage": {
            "local_dir": str(tmp_path / "local"),
            "sync_dir": str(tmp_path / "sync"),
            "history_limit": 20,
        },
        "gamification": {
            "leaderboard_limit": 20,
            "legend_target": 5000,
            "points": {"scan": 20, "post": 250, "tutorial": 250, "comment": 10, "like": 5, "signup": 100},
        },
    }


@pytest.fixture
def config(test_config):
    return Config.from_dict(test_config)


@pytest.fixture
def sample_frame():
    """Synthetic photo: a grey 'bottle' on a light background."""
    image = np.full((480, 640, 3), 230, dtype=np.uint8)
    cv2.rectangle(image, (270, 120), (370, 420), (90, 90, 90), -1)
    cv2.rectangle(image, (300, 80), (340, 120), (40, 40, 160), -1)
    return image


@pytest.fixture
def sample_jpeg(sample_frame):
    ok, buffer = cv2.imencode(".jpg", sample_frame)
    assert ok
    return buffer.tobytes()


@pytest.fixture
def supabase():
    return FakeSupabase()


@pytest.fixture
def genai_client():
    return FakeGenAI({
        TEXT_MODEL: [text_response(json.dumps(SAMPLE_ANALYSIS))],
        IMAGE_MODEL: [image_response()],
    })


@pytest.fixture
def sleeps():
    """Delays requested by the retry loop."""
    return []


@pytest.fixture
def gemini(test_config, genai_client, sleeps):
    return GeminiClient(test_config["gemini"], client=genai_client, sleep=sleeps.append)


@pytest.fixture
def store(test_config, supabase):
    return DidaurStore(test_config, client=supabase)


@pytest.fixture
def auth(test_config, supabase):
    return AuthService(test_config, client_factory=lambda: supabase)


@pytest.fixture
def app(config, store, auth, gemini):
    app = create_app(config, store=store, auth=auth, gemini=gemini)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(supabase, store):
    """Create a confirmed account with a profile; returns (token, profile)."""

    def _make(email="ani@example.com", name="Ani", **profile_fields):
        supabase.auth.create_account(email, "rahasia123", {"name": name})
        session = supabase.auth.issue_session(email)
        profile = store.ensure_profile(session.user.id, email, {"name": name}, name=name)
        if profile_fields:
            supabase.table("profiles").update(profile_fields).eq("id", profile.id).execute()
            profile = store.fetch_profile(profile.id)
        return session.access_token, profile

    return _make


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def auth_headers(user):
    token, _ = user
    return {"Authorization": f"Bearer {token}"}
