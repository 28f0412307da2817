"""
Community routes: feed, likes, comments and the XP marketplace.
"""

import logging

from flask import Blueprint, current_app, g, jsonify, request

from ...core.errors import ValidationError
from ...core.gamification import COMMUNITY_CATEGORIES
from ...core.imaging import to_data_url
from ...services.store import filter_market, filter_posts
from ..session import json_body, login_required, optional_login

logger = logging.getLogger(__name__)

bp = Blueprint("community", __name__)


@bp.route("/categories")
def categories():
    return jsonify({"categories": COMMUNITY_CATEGORIES})


@bp.route("/posts", methods=["GET"])
@optional_login
def list_posts():
    """
    Community feed, newest first.

    Query params:
        category: Material tag, or "Semua" for everything
        q: Text to search in names and descriptions
    """
    store = current_app.config["store"]
    posts = filter_posts(store.get_community_posts(), request.args.get("category"), request.args.get("q"))
    liked = set(g.user.liked_posts) if g.user else set()

    return jsonify({
        "posts": [{**p.to_dict(), "liked": p.id in liked} for p in posts],
        "count": len(posts),
    })


@bp.route("/posts", methods=["POST"])
@login_required
def create_post():
    """
    Share a creation.

    Accepts JSON body (or multipart with an ``image`` file):
        itemName, description, imageUrl, materialTag, isForSale, price
    """
    store = current_app.config["store"]
    scanner = current_app.config["scanner"]

    upload = request.files.get("image")
    if upload is not None:
        body = request.form.to_dict()
        image_url = to_data_url(scanner.processor.prepare(scanner.processor.decode(upload.read())))
    else:
        body = json_body()
        image_url = body.get("imageUrl", "")

    is_for_sale = str(body.get("isForSale", "")).lower() in ("1", "true", "yes")
    try:
        price = int(body["price"]) if body.get("price") not in (None, "") else None
    except (TypeError, ValueError) as e:
        raise ValidationError("Harga jual harus berupa angka.") from e

    post, profile = store.share_creation(
        g.user,
        item_name=body.get("itemName", ""),
        description=body.get("description", ""),
        image_url=image_url,
        material_tag=body.get("materialTag") or "Lainnya",
        is_for_sale=is_for_sale,
        price=price,
    )
    return jsonify({"post": post.to_dict(), "profile": profile.to_dict() if profile else None}), 201


@bp.route("/posts/<post_id>/like", methods=["POST"])
@login_required
def like_post(post_id: str):
    """Toggle the current user's like on a post."""
    profile, likes = current_app.config["store"].toggle_post_like(g.user.id, post_id)
    liked = profile is not None and post_id in profile.liked_posts
    return jsonify({
        "postId": post_id,
        "liked": liked,
        "likes": likes,
        "profile": profile.to_dict() if profile else None,
    })


@bp.route("/posts/<post_id>/comments", methods=["GET"])
def list_comments(post_id: str):
    comments = current_app.config["store"].get_post_comments(post_id)
    return jsonify({"comments": [c.to_dict() for c in comments], "count": len(comments)})


@bp.route("/posts/<post_id>/comments", methods=["POST"])
@login_required
def add_comment(post_id: str):
    body = json_body()
    comment, profile = current_app.config["store"].save_post_comment(g.user, post_id, body.get("text", ""))
    return jsonify({
        "comment": comment.to_dict(),
        "profile": profile.to_dict() if profile else None,
    }), 201


@bp.route("/market")
def market():
    """
    For-sale creations.

    Query params:
        category: Material tag, or "Semua" for everything
        q: Text to search in titles
    """
    store = current_app.config["store"]
    items = filter_market(store.get_market_items(), request.args.get("category"), request.args.get("q"))
    return jsonify({"items": [m.to_dict() for m in items], "count": len(items)})


@bp.route("/market/<item_id>/purchase", methods=["POST"])
@login_required
def purchase(item_id: str):
    profile = current_app.config["store"].purchase_market_item(g.user.id, item_id)
    return jsonify({
        "message": "Pembelian Berhasil!",
        "profile": profile.to_dict() if profile else None,
    })
