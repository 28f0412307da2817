"""
Record types mirrored from the hosted backend and the AI provider.

Rows come from the backend in snake_case; ``to_dict()`` produces the
camelCase JSON the mobile client consumes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from urllib.parse import quote

DEFAULT_RANK = "Pemula Hijau"
POST_POINTS_LABEL = 250


def default_avatar(seed: Any) -> str:
    """Generated avatar URL for users without one."""
    return f"https://api.dicebear.com/7.x/avataaars/svg?seed={quote(str(seed))}"


def placeholder_image(seed: str, width: int = 600, height: int = 400) -> str:
    """Placeholder picture shown until a generated image is ready."""
    return f"https://picsum.photos/seed/{quote(seed, safe='')}/{width}/{height}"


def parse_timestamp(value: Any) -> int:
    """Convert a backend ``created_at`` value into epoch milliseconds."""
    if value is None or value == "":
        return int(datetime.now().timestamp() * 1000)
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, datetime):
        return int(value.timestamp() * 1000)
    return int(datetime.fromisoformat(str(value).replace("Z", "+00:00")).timestamp() * 1000)


def _int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class Difficulty(Enum):
    """Effort level of a DIY project, as labelled by the AI."""

    EASY = "Mudah"
    MEDIUM = "Sedang"
    HARD = "Sulit"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Any) -> "Difficulty":
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text or member.name.lower() == text:
                return member
        return cls.MEDIUM


@dataclass
class DIYIdea:
    """A generated suggestion for reusing a scanned item."""

    title: str
    description: str
    steps: list[str]
    tools_needed: list[str]
    time_estimate: str
    image_url: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DIYIdea":
        return cls(
            title=str(data.get("title", "")).strip(),
            description=str(data.get("description", "")),
            steps=[str(s) for s in data.get("steps") or []],
            tools_needed=[str(t) for t in (data.get("toolsNeeded") or data.get("tools_needed") or [])],
            time_estimate=str(data.get("timeEstimate") or data.get("time_estimate") or ""),
            image_url=data.get("imageUrl") or data.get("image_url"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "steps": list(self.steps),
            "toolsNeeded": list(self.tools_needed),
            "timeEstimate": self.time_estimate,
        }
        if self.image_url:
            result["imageUrl"] = self.image_url
        return result


@dataclass
class RecyclingRecommendation:
    """
    Result of analyzing one photographed item.

    Attributes:
        item_name: What the AI thinks the item is
        material_type: Material class (Plastik, Kaca, Kardus, ...)
        difficulty: Overall effort of the proposed projects
        estimated_points: Points suggested by the AI (informational)
        co2_impact: Estimated CO2 saved, in grams
        diy_ideas: Reuse projects
        timestamp: Scan time in epoch milliseconds
        original_image: Cropped scan photo as a data URL
    """

    item_name: str
    material_type: str
    difficulty: Difficulty
    estimated_points: int
    co2_impact: float
    diy_ideas: list[DIYIdea] = field(default_factory=list)
    id: str | None = None
    timestamp: int | None = None
    original_image: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecyclingRecommendation":
        return cls(
            id=data.get("id"),
            item_name=str(data.get("itemName") or data.get("item_name") or "").strip(),
            material_type=str(data.get("materialType") or data.get("material_type") or "Lainnya").strip(),
            difficulty=Difficulty.parse(data.get("difficulty")),
            estimated_points=_int(data.get("estimatedPoints", data.get("estimated_points"))),
            co2_impact=_float(data.get("co2Impact", data.get("co2_impact"))),
            diy_ideas=[DIYIdea.from_dict(i) for i in data.get("diyIdeas") or data.get("diy_ideas") or []],
            timestamp=data.get("timestamp"),
            original_image=data.get("originalImage") or data.get("original_image"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "itemName": self.item_name,
            "materialType": self.material_type,
            "difficulty": self.difficulty.value,
            "estimatedPoints": self.estimated_points,
            "co2Impact": self.co2_impact,
            "diyIdeas": [idea.to_dict() for idea in self.diy_ideas],
        }
        if self.id is not None:
            result["id"] = self.id
        if self.timestamp is not None:
            result["timestamp"] = self.timestamp
        if self.original_image:
            result["originalImage"] = self.original_image
        return result

    @property
    def is_plastic(self) -> bool:
        """Check if the scanned material is plastic."""
        material = self.material_type.lower()
        return "plastik" in material or "plastic" in material


@dataclass
class PurchasedItem:
    id: str
    title: str
    price: int
    image_url: str
    purchase_date: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PurchasedItem":
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title", "")),
            price=_int(data.get("price")),
            image_url=str(data.get("imageUrl") or data.get("image_url") or ""),
            purchase_date=_int(data.get("purchaseDate") or data.get("purchase_date")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "price": self.price,
            "imageUrl": self.image_url,
            "purchaseDate": self.purchase_date,
        }


@dataclass
class UserProfile:
    """Row of the ``profiles`` table."""

    id: str
    email: str
    name: str
    points: int = 0
    rank: str = DEFAULT_RANK
    items_scanned: int = 0
    plastic_items_scanned: int = 0
    comments_made: int = 0
    creations_shared: int = 0
    total_co2_saved: float = 0.0
    avatar: str = ""
    badges: list[str] = field(default_factory=list)
    liked_posts: list[str] = field(default_factory=list)
    purchased_items: list[PurchasedItem] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "UserProfile":
        user_id = str(row.get("id"))
        liked = row.get("liked_posts")
        return cls(
            id=user_id,
            email=row.get("email") or "",
            name=row.get("name") or "",
            points=_int(row.get("points")),
            rank=row.get("rank") or DEFAULT_RANK,
            items_scanned=_int(row.get("items_scanned")),
            plastic_items_scanned=_int(row.get("plastic_items_scanned")),
            comments_made=_int(row.get("comments_made")),
            creations_shared=_int(row.get("creations_shared")),
            total_co2_saved=_float(row.get("total_co2_saved")),
            avatar=row.get("avatar") or default_avatar(user_id),
            badges=[str(b) for b in row.get("badges") or []],
            liked_posts=[str(p) for p in liked] if isinstance(liked, list) else [],
            purchased_items=[PurchasedItem.from_dict(p) for p in row.get("purchased_items") or []],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "points": self.points,
            "rank": self.rank,
            "itemsScanned": self.items_scanned,
            "plasticItemsScanned": self.plastic_items_scanned,
            "commentsMade": self.comments_made,
            "creationsShared": self.creations_shared,
            "totalCo2Saved": self.total_co2_saved,
            "avatar": self.avatar,
            "badges": list(self.badges),
            "likedPosts": list(self.liked_posts),
            "purchasedItems": [p.to_dict() for p in self.purchased_items],
        }


@dataclass
class CommunityPost:
    """Row of the ``posts`` table."""

    id: str
    user_name: str
    user_avatar: str
    item_name: str
    description: str
    image_url: str
    likes: int
    comments: int
    timestamp: int
    material_tag: str
    user_id: str | None = None
    points_earned: int = POST_POINTS_LABEL
    is_for_sale: bool = False
    price: int | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "CommunityPost":
        price = row.get("price")
        return cls(
            id=str(row.get("id")),
            user_id=str(row["user_id"]) if row.get("user_id") is not None else None,
            user_name=row.get("user_name") or "Anonim",
            user_avatar=row.get("user_avatar") or default_avatar(row.get("user_id")),
            item_name=row.get("item_name") or "Barang Didaur",
            description=row.get("description") or "",
            image_url=row.get("image_url") or "",
            likes=_int(row.get("likes")),
            comments=_int(row.get("comments")),
            timestamp=parse_timestamp(row.get("created_at")),
            material_tag=row.get("material_tag") or "Lainnya",
            is_for_sale=bool(row.get("is_for_sale")),
            price=_int(price) if price else None,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "userName": self.user_name,
            "userAvatar": self.user_avatar,
            "itemName": self.item_name,
            "description": self.description,
            "imageUrl": self.image_url,
            "likes": self.likes,
            "comments": self.comments,
            "timestamp": self.timestamp,
            "pointsEarned": self.points_earned,
            "materialTag": self.material_tag,
            "isForSale": self.is_for_sale,
        }
        if self.price is not None:
            result["price"] = self.price
        return result


@dataclass
class Comment:
    id: str
    user_name: str
    user_avatar: str
    text: str
    timestamp: int
    post_id: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Comment":
        return cls(
            id=str(row.get("id")),
            post_id=str(row["post_id"]) if row.get("post_id") is not None else None,
            user_name=row.get("user_name") or "User",
            user_avatar=row.get("user_avatar") or "",
            text=row.get("text") or "",
            timestamp=parse_timestamp(row.get("created_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userName": self.user_name,
            "userAvatar": self.user_avatar,
            "text": self.text,
            "timestamp": self.timestamp,
        }


@dataclass
class MarketplaceItem:
    """A for-sale community post, seen from the buyer's side."""

    id: str
    seller_name: str
    seller_avatar: str
    title: str
    description: str
    price: int
    image_url: str
    material_tag: str
    timestamp: int

    @classmethod
    def from_post_row(cls, row: dict[str, Any]) -> "MarketplaceItem":
        return cls(
            id=str(row.get("id")),
            seller_name=row.get("user_name") or "Anonim",
            seller_avatar=row.get("user_avatar") or default_avatar(row.get("user_id")),
            title=row.get("item_name") or "",
            description=row.get("description") or "",
            price=_int(row.get("price")),
            image_url=row.get("image_url") or "",
            material_tag=row.get("material_tag") or "Lainnya",
            timestamp=parse_timestamp(row.get("created_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sellerName": self.seller_name,
            "sellerAvatar": self.seller_avatar,
            "title": self.title,
            "description": self.description,
            "price": self.price,
            "imageUrl": self.image_url,
            "materialTag": self.material_tag,
            "timestamp": self.timestamp,
        }


@dataclass
class LeaderboardEntry:
    id: str
    name: str
    points: int
    avatar: str
    rank: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "points": self.points,
            "avatar": self.avatar,
            "rank": self.rank,
        }


@dataclass
class Badge:
    id: str
    name: str
    icon: str
    description: str
    requirement: str
    unlocked: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "description": self.description,
            "requirement": self.requirement,
            "unlocked": self.unlocked,
        }
