"""
Gamification rules: point awards, ranks, badges and daily missions.
"""

from dataclasses import dataclass
from typing import Any

from .models import DEFAULT_RANK, Badge, UserProfile

# (exclusive lower bound on points, rank name), highest first
RANK_THRESHOLDS: list[tuple[int, str]] = [
    (5000, "Legenda Hijau"),
    (2000, "Pahlawan Ekosistem"),
    (500, "Pejuang Daur"),
]

LEGEND_TARGET = 5000

DEFAULT_POINTS = {
    "scan": 20,
    "post": 250,
    "tutorial": 250,
    "comment": 10,
    "like": 5,
    "signup": 100,
}

BADGES: list[Badge] = [
    Badge("1", "Pejuang Pertama", "🌱", "Scan barang pertamamu", "1 scan"),
    Badge("2", "Pahlawan Plastik", "♻️", "Scan 10 barang plastik", "10 scans"),
    Badge("3", "Inspirator Muda", "✨", "Bagikan 5 karya kreatif", "5 shares"),
]

# badge id -> (profile counter, required value)
_BADGE_RULES: dict[str, tuple[str, int]] = {
    "1": ("items_scanned", 1),
    "2": ("plastic_items_scanned", 10),
    "3": ("creations_shared", 5),
}

COMMUNITY_CATEGORIES = ["Semua", "Plastik", "Kardus", "Kaca", "Logam", "Tekstil"]
ALL_CATEGORIES = COMMUNITY_CATEGORIES[0]


class PointsTable:
    """Configured point awards, falling back to the built-in defaults."""

    def __init__(self, config: dict[str, Any] | None = None):
        self._points = {**DEFAULT_POINTS, **(config or {})}

    def __getattr__(self, name: str) -> int:
        try:
            return int(self._points[name])
        except KeyError:
            raise AttributeError(name) from None

    def as_dict(self) -> dict[str, int]:
        return {k: int(v) for k, v in self._points.items()}


def _rank_order(name: str) -> int:
    ladder = [DEFAULT_RANK] + [n for _, n in reversed(RANK_THRESHOLDS)]
    return ladder.index(name) if name in ladder else -1


def rank_for_points(points: int, current_rank: str | None = None) -> str:
    """
    Rank for a points total, never lower than ``current_rank``.

    Spending XP can drop points below a threshold; the rank already held is
    kept in that case.
    """
    earned = next((name for threshold, name in RANK_THRESHOLDS if points > threshold), DEFAULT_RANK)
    if current_rank and _rank_order(current_rank) > _rank_order(earned):
        return current_rank
    return earned


def xp_to_legend(points: int, target: int = LEGEND_TARGET) -> int:
    """XP still missing to reach the top rank."""
    return max(0, target - points)


def unlocked_badge_ids(profile: UserProfile) -> list[str]:
    """Badges earned by a profile, keeping any already held."""
    unlocked = list(profile.badges)
    for badge_id, (counter, required) in _BADGE_RULES.items():
        if badge_id not in unlocked and getattr(profile, counter) >= required:
            unlocked.append(badge_id)
    return sorted(unlocked, key=lambda b: (len(b), b))


def badges_for(profile: UserProfile) -> list[Badge]:
    """Full badge catalogue with the profile's unlock state."""
    held = set(unlocked_badge_ids(profile))
    return [
        Badge(b.id, b.name, b.icon, b.description, b.requirement, unlocked=b.id in held)
        for b in BADGES
    ]


@dataclass
class Mission:
    id: int
    title: str
    reward: int
    progress: int
    total: int
    icon: str

    @property
    def percent(self) -> float:
        if self.total <= 0:
            return 100.0
        return min(self.progress / self.total * 100, 100.0)

    @property
    def completed(self) -> bool:
        return self.progress >= self.total

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "reward": self.reward,
            "progress": self.progress,
            "total": self.total,
            "icon": self.icon,
            "percent": round(self.percent, 1),
            "completed": self.completed,
        }


def daily_missions(profile: UserProfile) -> list[Mission]:
    return [
        Mission(1, "Scan Botol Plastik", 50, profile.plastic_items_scanned, 3, "🥤"),
        Mission(2, "Berbagi Inspirasi", 100, profile.creations_shared, 1, "✨"),
    ]


def format_carbon(grams: float) -> str:
    """Format grams of CO2 as kilograms with an Indonesian decimal comma."""
    text = f"{grams / 1000:,.2f}"
    # 1,234.50 -> 1.234,50
    text = text.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{text} Kg"
