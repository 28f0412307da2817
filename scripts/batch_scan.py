#!/usr/bin/env python3
"""
Batch Scan Tool for Didaur.

Run every image in a folder through the scan pipeline and save one JSON
result per image. Useful for checking prompt changes against a fixed set
of sample photos.

Usage:
    python scripts/batch_scan.py samples/
    python scripts/batch_scan.py samples/ --output results/ --no-images
"""

import argparse
import json
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from didaur.core.config import Config
from didaur.core.errors import DidaurError
from didaur.core.scanner import ScanPipeline
from didaur.services.gemini_client import GeminiClient
from didaur.services.store import DidaurStore

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".webp", ".bmp"}


def main():
    parser = argparse.ArgumentParser(
        description="Didaur Batch Scan Tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Output:
    <output>/<image name>.json     Scan result, or {"error": ...}
        """,
    )
    parser.add_argument("input", type=str, help="Folder with images")
    parser.add_argument("--output", type=str, default="scan_results", help="Output directory")
    parser.add_argument("--config", type=str, help="Path to config directory")
    parser.add_argument("--no-images", action="store_true", help="Skip DIY image generation")

    args = parser.parse_args()

    config_dir = Path(args.config) if args.config else None
    config = Config(config_dir)

    gemini_config = config["gemini"].copy()
    if args.no_images:
        gemini_config["generate_images"] = False

    gemini = GeminiClient(gemini_config)
    if not gemini.is_available:
        print("Error: No AI API key set (GEMINI_API_KEY)")
        sys.exit(1)

    pipeline = ScanPipeline(gemini, DidaurStore(config.as_dict), config.as_dict)

    input_dir = Path(args.input)
    images = sorted(p for p in input_dir.iterdir() if p.suffix.lower() in IMAGE_SUFFIXES)
    if not images:
        print(f"No images found in {input_dir}")
        sys.exit(1)

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    print("=== Didaur Batch Scan ===")
    print(f"Input:  {input_dir} ({len(images)} images)")
    print(f"Output: {output_dir}")

    failed = 0
    for i, path in enumerate(images, 1):
        try:
            outcome = pipeline.scan(path.read_bytes())
            for thread in outcome.threads:
                thread.join()
            result = outcome.recommendation.to_dict()
            result.pop("originalImage", None)
            summary = f"{result['itemName']} ({result['materialType']}, {len(result['diyIdeas'])} ideas)"
        except DidaurError as e:
            result = e.to_dict()
            summary = f"FAILED: {e.message}"
            failed += 1

        with open(output_dir / f"{path.stem}.json", "w", encoding="utf-8") as f:
            json.dump(result, f, ensure_ascii=False, indent=2)
        print(f"[{i}/{len(images)}] {path.name}: {summary}")

    print(f"\nDone: {len(images) - failed} ok, {failed} failed")
    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
