"""
Scan routes.

Provides JSON endpoints for:
- Analyzing a photographed item
- The recent-scan history
- Tutorial step illustrations
- Sharing a finished DIY project
"""

import json
import logging
from typing import Any

from flask import Blueprint, current_app, g, jsonify, request

from ...core.errors import ValidationError
from ..session import json_body, login_required, optional_login, scan_history

logger = logging.getLogger(__name__)

bp = Blueprint("scan", __name__)


def _parse_crop(value: Any) -> dict[str, Any] | None:
    if value in (None, ""):
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise ValidationError("Area potong tidak valid.") from e
    if not isinstance(value, dict):
        raise ValidationError("Area potong tidak valid.")
    return value


def _uploaded_image() -> tuple[bytes | str, dict[str, Any] | None]:
    """Image and crop area from a multipart upload or a JSON body."""
    upload = request.files.get("image")
    if upload is not None:
        data = upload.read()
        if not data:
            raise ValidationError("Foto kosong.")
        return data, _parse_crop(request.form.get("crop"))

    body = json_body()
    image = body.get("image")
    if not image:
        raise ValidationError("Foto barang wajib dikirim.")
    return image, _parse_crop(body.get("crop"))


@bp.route("", methods=["POST"])
@optional_login
def scan():
    """
    Analyze a photographed item.

    Accepts either multipart form data (``image`` file, optional ``crop``
    as a JSON string) or a JSON body with ``image`` as a data URL.

    Returns:
        JSON with the recommendation, updated profile and points awarded
    """
    image, crop = _uploaded_image()
    scanner = current_app.config["scanner"]

    outcome = scanner.scan(image, crop=crop, user=g.user, history=scan_history())
    return jsonify(outcome.to_dict())


@bp.route("/history")
@optional_login
def history():
    """Recent scans, newest first. Generated DIY images appear as they finish."""
    items = scan_history().list()
    return jsonify({"history": [r.to_dict() for r in items], "count": len(items)})


@bp.route("/step-image", methods=["POST"])
@login_required
def step_image():
    body = json_body()
    image_url = current_app.config["scanner"].step_image(body.get("step", ""), body.get("title", ""))
    return jsonify({"imageUrl": image_url})


@bp.route("/tutorial/complete", methods=["POST"])
@login_required
def complete_tutorial():
    """
    Share a finished DIY project.

    Accepts JSON body:
        title: DIY idea title
        photo: Completion photo as a data URL
        material: Material tag for the community feed
    """
    body = json_body()
    post, profile = current_app.config["scanner"].complete_tutorial(
        g.user, body.get("title", ""), body.get("photo"), body.get("material")
    )
    return jsonify({
        "message": "Karya berhasil dibagikan!",
        "post": post.to_dict(),
        "profile": profile.to_dict() if profile else None,
    }), 201
