"""
Leaderboard route.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ...core.errors import ValidationError
from ...core.gamification import xp_to_legend
from ..session import optional_login

bp = Blueprint("leaderboard", __name__)

PERIODS = ("weekly", "all")


@bp.route("")
@optional_login
def leaderboard():
    """
    Top players by points.

    Query params:
        period: "weekly" or "all" (both ranked on total points)
        limit: Number of players to return, clamped to 1..gamification.leaderboard_limit

    Returns:
        JSON with the podium (top 3), the rest, and the signed-in user's
        position and XP still needed for the top rank
    """
    period = request.args.get("period", "weekly")
    if period not in PERIODS:
        raise ValidationError(f"Periode tidak dikenal: {period}")

    limit = request.args.get("limit", type=int)
    store = current_app.config["store"]
    config = current_app.config["DIDAUR_CONFIG"]
    entries = store.get_leaderboard(limit)

    me = None
    if g.user is not None:
        position = next((e.rank for e in entries if e.id == g.user.id), None)
        me = {
            "id": g.user.id,
            "name": g.user.name,
            "points": g.user.points,
            "rank": g.user.rank,
            "position": position,
            "xpToLegend": xp_to_legend(g.user.points, int(config.get("gamification.legend_target", 5000))),
        }

    return jsonify({
        "period": period,
        "top3": [e.to_dict() for e in entries[:3]],
        "rest": [e.to_dict() for e in entries[3:]],
        "me": me,
    })
