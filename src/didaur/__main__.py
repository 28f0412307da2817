"""
Didaur CLI entry point.

Usage:
    python -m didaur                    # Start the API server
    python -m didaur --scan photo.jpg   # Analyze one image file
    python -m didaur --capture          # Scan a still from the camera
    python -m didaur --help             # Show help
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from .core.camera import Camera, CameraUnavailable
from .core.config import Config
from .core.errors import DidaurError
from .core.local_store import LocalStore, ScanHistory
from .core.scanner import ScanPipeline
from .services.gemini_client import GeminiClient
from .services.store import DidaurStore


def setup_logging(config: Config) -> None:
    """Configure logging based on config."""
    log_config = config["logging"]
    level = getattr(logging, log_config.get("level", "INFO"))

    log_file = log_config.get("file", "logs/didaur.log")
    log_dir = Path(log_file).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=level,
        format=log_config.get("format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
        handlers=[
            logging.StreamHandler(sys.stderr),
            logging.FileHandler(log_file),
        ],
    )


def build_pipeline(config: Config) -> ScanPipeline:
    """Scan pipeline for offline use: no user, so no points are awarded."""
    gemini = GeminiClient(config["gemini"])
    store = DidaurStore(config.as_dict)
    return ScanPipeline(gemini, store, config.as_dict)


def run_scan(config: Config, image: bytes, label: str) -> int:
    """
    Analyze one image and print the result as JSON.

    Returns:
        Process exit code
    """
    logger = logging.getLogger(__name__)
    pipeline = build_pipeline(config)
    history = ScanHistory(
        LocalStore.for_user(config["storage"], None),
        limit=int(config.get("storage.history_limit", 20)),
    )

    try:
        outcome = pipeline.scan(image, history=history)
    except DidaurError as e:
        logger.error(f"Scan of {label} failed: {e.message}")
        print(json.dumps(e.to_dict(), ensure_ascii=False))
        return 1

    # wait for the DIY illustrations so they land in the history
    for thread in outcome.threads:
        thread.join()

    result = outcome.to_dict()
    result["result"].pop("originalImage", None)
    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


def run_capture(config: Config) -> int:
    """Grab a still from the camera and scan it."""
    logger = logging.getLogger(__name__)

    try:
        with Camera(config["camera"], jpeg_quality=int(config.get("scan.jpeg_quality", 85))) as camera:
            photo = camera.capture_photo()
    except CameraUnavailable as e:
        logger.error(f"{e}. Check connection and try again.")
        return 1

    return run_scan(config, photo, "camera capture")


def run_web_server(config: Config) -> None:
    """Start the Flask web server."""
    logger = logging.getLogger(__name__)
    logger.info("Starting web server...")

    from .web.app import create_app

    app = create_app(config)

    web_config = config["web"]
    host = web_config.get("host", "0.0.0.0")
    port = web_config.get("port", 5000)
    debug = config.get("app.debug", False)

    logger.info(f"Web server starting at http://{host}:{port}")

    app.run(host=host, port=port, debug=debug, threaded=True)


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Didaur - AI Upcycling Companion",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m didaur                        Start the API server
    python -m didaur --scan bottle.jpg      Analyze an image file
    python -m didaur --capture --camera 1   Scan a still from camera 1

Environment:
    GEMINI_API_KEY                 AI provider key
    SUPABASE_URL, SUPABASE_KEY     Hosted backend (demo mode when unset)
        """,
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--web", action="store_true", help="Start web server (default)"
    )
    mode.add_argument(
        "--scan", type=str, metavar="PATH", help="Analyze an image file and print JSON"
    )
    mode.add_argument(
        "--capture", action="store_true", help="Capture a still from the camera and analyze it"
    )
    parser.add_argument(
        "--camera", type=int, help="Camera index to use (overrides config)"
    )
    parser.add_argument(
        "--config", type=str, help="Path to configuration directory"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug mode"
    )

    args = parser.parse_args()

    config_dir = Path(args.config) if args.config else None
    config = Config(config_dir)

    if args.camera is not None:
        os.environ["DIDAUR_CAMERA__SOURCE"] = str(args.camera)
        config.reload()

    if args.debug:
        os.environ["DIDAUR_ENV"] = "development"
        config.reload()

    setup_logging(config)

    logger = logging.getLogger(__name__)
    logger.info("Didaur starting...")
    logger.info(f"Environment: {config.env}")

    if args.scan:
        path = Path(args.scan)
        if not path.is_file():
            logger.error(f"Image not found: {path}")
            sys.exit(1)
        sys.exit(run_scan(config, path.read_bytes(), path.name))
    elif args.capture:
        sys.exit(run_capture(config))
    else:
        run_web_server(config)


if __name__ == "__main__":
    main()
