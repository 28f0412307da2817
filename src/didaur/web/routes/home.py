"""
Home dashboard route.
"""

from flask import Blueprint, current_app, g, jsonify

from ...core.gamification import daily_missions, format_carbon, xp_to_legend
from ..session import login_required, preferences

bp = Blueprint("home", __name__)

RECENT_POSTS = 3


@bp.route("")
@login_required
def home():
    """
    Dashboard for the signed-in user.

    Returns:
        JSON with profile summary, daily missions, latest community posts
        and the theme preference
    """
    store = current_app.config["store"]
    config = current_app.config["DIDAUR_CONFIG"]
    user = g.user

    return jsonify({
        "profile": user.to_dict(),
        "rank": user.rank,
        "points": user.points,
        "xpToLegend": xp_to_legend(user.points, int(config.get("gamification.legend_target", 5000))),
        "carbonSaved": format_carbon(user.total_co2_saved),
        "missions": [m.to_dict() for m in daily_missions(user)],
        "recentPosts": [p.to_dict() for p in store.get_community_posts()[:RECENT_POSTS]],
        "darkMode": preferences().is_dark_mode(),
    })
