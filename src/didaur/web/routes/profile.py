"""
Profile routes.

Provides JSON endpoints for:
- Account info (name, avatar)
- Badges
- Theme preference
- Local data: storage usage, device sync codes, reset
"""

import logging

from flask import Blueprint, current_app, g, jsonify

from ...core.errors import StoreError, ValidationError
from ...core.gamification import badges_for
from ..session import json_body, local_store, login_required, optional_login, preferences

logger = logging.getLogger(__name__)

bp = Blueprint("profile", __name__)


@bp.route("", methods=["GET"])
@login_required
def get_profile():
    return jsonify({"profile": g.user.to_dict()})


@bp.route("", methods=["PUT"])
@login_required
def update_profile():
    """
    Update name and avatar.

    Accepts JSON body:
        name: Display name (required)
        avatar: Avatar URL; a generated one is used when empty
    """
    body = json_body()
    store = current_app.config["store"]

    profile = store.update_account_info(g.user.id, body.get("name", ""), body.get("avatar", ""))
    if profile is None:
        raise StoreError("Gagal memperbarui profil. Pastikan koneksi cloud terhubung.")
    return jsonify({"message": "Profil diperbarui!", "profile": profile.to_dict()})


@bp.route("/badges")
@login_required
def badges():
    items = badges_for(g.user)
    return jsonify({
        "badges": [b.to_dict() for b in items],
        "unlocked": sum(1 for b in items if b.unlocked),
    })


@bp.route("/preferences", methods=["GET"])
@optional_login
def get_preferences():
    return jsonify({"darkMode": preferences().is_dark_mode()})


@bp.route("/preferences", methods=["PUT"])
@optional_login
def update_preferences():
    body = json_body()
    if not isinstance(body.get("darkMode"), bool):
        raise ValidationError("darkMode harus bernilai true atau false.")
    prefs = preferences()
    prefs.set_dark_mode(body["darkMode"])
    return jsonify({"darkMode": prefs.is_dark_mode()})


@bp.route("/storage")
@optional_login
def storage():
    """Local cache size and whether cloud sync is active."""
    cloud = current_app.config["store"].is_configured
    return jsonify(local_store().stats(cloud))


@bp.route("/sync", methods=["POST"])
@optional_login
def export_sync():
    """Snapshot local data under a code to enter on another device."""
    return jsonify({"code": local_store().export_sync_code()})


@bp.route("/sync/import", methods=["POST"])
@optional_login
def import_sync():
    body = json_body()
    if not local_store().import_sync_code(body.get("code", "")):
        raise ValidationError("Kode Sinkronisasi Tidak Valid.")
    return jsonify({"message": "Sinkronisasi Berhasil!"})


@bp.route("/local-data", methods=["DELETE"])
@optional_login
def clear_local_data():
    local_store().clear()
    logger.info(f"Local data cleared for {g.user.id if g.user else 'guest'}")
    return jsonify({"status": "ok"})
