"""
Flask application factory for the Didaur API.

Serves the mobile client:
- Sign-up / sign-in (email + OTP, OAuth)
- Waste scanning with AI-generated DIY ideas
- Community feed, comments and marketplace
- Leaderboard, home dashboard and profile
"""

import logging
from typing import Any

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from ..core.config import Config
from ..core.errors import DidaurError
from ..core.scanner import ScanPipeline
from ..services.auth import AuthService
from ..services.gemini_client import GeminiClient
from ..services.store import DidaurStore

logger = logging.getLogger(__name__)

TABS = ["home", "scan", "community", "leaderboard", "profile"]


def cors_origins(value: Any) -> str | list[str] | None:
    """
    Allowed CORS origins from ``web.cors_origins``.

    Accepts a list, "*", or a comma-separated string (as set through a
    DIDAUR_WEB__CORS_ORIGINS override).

    Returns:
        "*", a list of origins, or None when CORS is off
    """
    if isinstance(value, str):
        value = value.split(",")
    origins = [str(o).strip() for o in (value or []) if str(o).strip()]
    if not origins:
        return None
    if "*" in origins:
        return "*"
    return origins


def create_app(
    config: Config | None = None,
    store: DidaurStore | None = None,
    auth: AuthService | None = None,
    gemini: GeminiClient | None = None,
) -> Flask:
    """
    Application factory for Flask app.

    Args:
        config: Didaur configuration, or None to load defaults
        store: Data store, or None to build one from config
        auth: Auth service, or None to build one from config
        gemini: AI client, or None to build one from config

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)

    if config is None:
        config = Config()
    settings = config.as_dict

    app.config["DIDAUR_CONFIG"] = config
    app.config["MAX_CONTENT_LENGTH"] = int(config.get("web.max_upload_mb", 16)) * 1024 * 1024
    app.json.ensure_ascii = False

    store = store or DidaurStore(settings)
    auth = auth or AuthService(settings)
    gemini = gemini or GeminiClient(config["gemini"])

    app.config["store"] = store
    app.config["auth"] = auth
    app.config["gemini"] = gemini
    app.config["scanner"] = ScanPipeline(gemini, store, settings)

    from .routes import auth as auth_routes
    from .routes import community, home, leaderboard, profile, scan

    app.register_blueprint(auth_routes.bp, url_prefix="/api/auth")
    app.register_blueprint(scan.bp, url_prefix="/api/scan")
    app.register_blueprint(community.bp, url_prefix="/api/community")
    app.register_blueprint(leaderboard.bp, url_prefix="/api/leaderboard")
    app.register_blueprint(home.bp, url_prefix="/api/home")
    app.register_blueprint(profile.bp, url_prefix="/api/profile")

    @app.errorhandler(DidaurError)
    def handle_didaur_error(error: DidaurError) -> Any:
        if error.status_code >= 500:
            logger.error(f"{request.method} {request.path} failed: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(error: RequestEntityTooLarge) -> Any:
        return jsonify({"error": "Ukuran gambar terlalu besar."}), 413

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException) -> Any:
        return jsonify({"error": error.description}), error.code

    origins = cors_origins(config.get("web.cors_origins"))
    if origins:
        CORS(app, resources={r"/api/*": {"origins": origins}})

    @app.route("/health")
    def health() -> dict:
        """Health check endpoint."""
        return {
            "status": "ok",
            "version": config.get("app.version", "0.1.0"),
            "cloud": store.is_configured,
            "ai": gemini.is_available,
        }

    @app.route("/api/tabs")
    def tabs() -> Any:
        """Navigation tabs, in display order."""
        return jsonify({"tabs": TABS, "default": TABS[0]})

    logger.info(
        f"Flask app created (cloud={'on' if store.is_configured else 'demo'}, "
        f"ai={'on' if gemini.is_available else 'off'})"
    )
    return app
