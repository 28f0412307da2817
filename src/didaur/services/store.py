"""
Data access for profiles, posts and comments.

Every counter (points, likes, comments) is updated by reading the current
row and writing the new value back. There is no transaction around these
steps; concurrent updates to the same row can lose one of the writes.

When the cloud backend is not configured the store runs in demo mode:
reads return sample data and writes raise ConfigurationError.
"""

import dataclasses
import logging
import time
from typing import Any

import httpx
from postgrest.exceptions import APIError

from ..core.errors import (
    CLOUD_NOT_CONFIGURED,
    ConfigurationError,
    InsufficientPointsError,
    NotAuthenticatedError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from ..core.gamification import (
    ALL_CATEGORIES,
    PointsTable,
    rank_for_points,
    unlocked_badge_ids,
)
from ..core.models import (
    DEFAULT_RANK,
    Comment,
    CommunityPost,
    LeaderboardEntry,
    MarketplaceItem,
    PurchasedItem,
    UserProfile,
    default_avatar,
)
from .cloud import create_cloud_client

logger = logging.getLogger(__name__)

CLOUD_ERRORS = (APIError, httpx.HTTPError)

_HOUR_MS = 3_600_000
_DAY_MS = 24 * _HOUR_MS


def _now_ms() -> int:
    return int(time.time() * 1000)


def demo_posts() -> list[CommunityPost]:
    now = _now_ms()
    return [
        CommunityPost(
            id="mock-1",
            user_name="Siti Hijau",
            user_avatar=default_avatar("Siti"),
            item_name="Lampu Hias Botol Kaca",
            description="Mengubah botol sirup bekas menjadi lampu tidur estetik dengan lampu LED kawat.",
            image_url="https://picsum.photos/seed/lamp/800/1000",
            likes=124,
            comments=12,
            timestamp=now - _HOUR_MS,
            material_tag="Kaca",
        ),
        CommunityPost(
            id="mock-2",
            user_name="Budi Daur",
            user_avatar=default_avatar("Budi"),
            item_name="Pot Tanaman Gantung",
            description="Botol plastik bekas deterjen yang dipotong dan dicat ulang untuk kebun vertikal.",
            image_url="https://picsum.photos/seed/plant/800/1000",
            likes=89,
            comments=5,
            timestamp=now - _DAY_MS,
            material_tag="Plastik",
            is_for_sale=True,
            price=500,
        ),
    ]


def demo_leaderboard() -> list[LeaderboardEntry]:
    players = [
        ("m1", "Siti Hijau", 12450, "Siti"),
        ("m2", "Budi Daur", 9800, "Budi"),
        ("m3", "Ani Kreatif", 8750, "Ani"),
        ("m4", "Dedi Eco", 5400, "Dedi"),
        ("m5", "Eka Lestari", 3200, "Eka"),
    ]
    return [
        LeaderboardEntry(id=pid, name=name, points=points, avatar=default_avatar(seed), rank=i + 1)
        for i, (pid, name, points, seed) in enumerate(players)
    ]


def demo_market() -> list[MarketplaceItem]:
    now = _now_ms()
    return [
        MarketplaceItem(
            id="mock-m1",
            seller_name="Budi Daur",
            seller_avatar=default_avatar("Budi"),
            title="Pot Tanaman Gantung",
            description="Botol plastik bekas deterjen yang dipotong dan dicat ulang untuk kebun vertikal.",
            price=500,
            image_url="https://picsum.photos/seed/plant/800/1000",
            material_tag="Plastik",
            timestamp=now - _DAY_MS,
        ),
        MarketplaceItem(
            id="mock-m2",
            seller_name="Ani Kreatif",
            seller_avatar=default_avatar("Ani"),
            title="Tas Belanja Kaos Bekas",
            description="Kaos katun lama yang dijahit menjadi tote bag kuat dan ramah lingkungan.",
            price=750,
            image_url="https://picsum.photos/seed/bag/800/1000",
            material_tag="Tekstil",
            timestamp=now - 2 * _DAY_MS,
        ),
    ]


def filter_posts(
    posts: list[CommunityPost], category: str | None = None, query: str | None = None
) -> list[CommunityPost]:
    """Posts in a material category whose name or description contains ``query``."""
    needle = (query or "").strip().lower()
    return [
        p
        for p in posts
        if (not category or category == ALL_CATEGORIES or p.material_tag == category)
        and (needle in p.item_name.lower() or needle in p.description.lower())
    ]


def filter_market(
    items: list[MarketplaceItem], category: str | None = None, query: str | None = None
) -> list[MarketplaceItem]:
    """Market items in a material category whose title contains ``query``."""
    needle = (query or "").strip().lower()
    return [
        m
        for m in items
        if (not category or category == ALL_CATEGORIES or m.material_tag == category)
        and needle in m.title.lower()
    ]


def _first(response: Any) -> dict[str, Any] | None:
    data = getattr(response, "data", None)
    if isinstance(data, list):
        return data[0] if data else None
    return data or None


def _points_updates(
    user: UserProfile,
    points: int,
    co2: float = 0.0,
    is_scan: bool = True,
    plastic: bool = False,
    counters: dict[str, int] | None = None,
) -> dict[str, Any]:
    """Profile columns to write for a points change, with rank and badges recomputed."""
    new_points = user.points + points
    updates: dict[str, Any] = {
        "points": new_points,
        "total_co2_saved": user.total_co2_saved + co2,
        "items_scanned": user.items_scanned + (1 if is_scan else 0),
        "rank": rank_for_points(new_points, user.rank),
    }
    if is_scan and plastic:
        updates["plastic_items_scanned"] = user.plastic_items_scanned + 1
    for counter, delta in (counters or {}).items():
        updates[counter] = getattr(user, counter) + delta
    updates["badges"] = unlocked_badge_ids(dataclasses.replace(user, **updates))
    return updates


class DidaurStore:
    """
    Profiles, posts and comments in the hosted backend.

    Usage:
        store = DidaurStore(config.as_dict)
        profile = store.update_user_points(user_id, 20, co2=500)
    """

    def __init__(self, config: dict[str, Any], client: Any = None):
        """
        Initialize the store.

        Args:
            config: Full configuration (``supabase`` and ``gamification`` sections).
            client: Pre-built Supabase client (tests inject a fake here).
        """
        self.config = config
        gamification = config.get("gamification", {})
        self.points = PointsTable(gamification.get("points"))
        self.leaderboard_limit = int(gamification.get("leaderboard_limit", 20))

        self._client = client if client is not None else create_cloud_client(config.get("supabase", {}))
        if self._client is None:
            logger.warning("Supabase not configured, running in demo mode")

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    def _table(self, name: str) -> Any:
        if self._client is None:
            raise ConfigurationError(CLOUD_NOT_CONFIGURED)
        return self._client.table(name)

    # Profiles

    def fetch_profile(self, user_id: str) -> UserProfile | None:
        if not self.is_configured:
            return None
        try:
            response = self._table("profiles").select("*").eq("id", user_id).limit(1).execute()
        except CLOUD_ERRORS as e:
            logger.error(f"Failed to fetch profile {user_id}: {e}")
            return None
        row = _first(response)
        return UserProfile.from_row(row) if row else None

    def ensure_profile(
        self,
        user_id: str,
        email: str,
        metadata: dict[str, Any] | None = None,
        name: str | None = None,
    ) -> UserProfile:
        """
        Return the user's profile, creating it on first sign-in.

        New profiles start with the sign-up bonus and take name and avatar
        from the sign-up form or the OAuth provider's metadata.
        """
        existing = self.fetch_profile(user_id)
        if existing:
            return existing

        metadata = metadata or {}
        display_name = (
            (name or "").strip()
            or metadata.get("full_name")
            or metadata.get("name")
            or (email.split("@")[0] if email else "")
            or "Pejuang Daur"
        )
        row = {
            "id": user_id,
            "email": email,
            "name": display_name,
            "avatar": metadata.get("avatar_url")
            or metadata.get("picture")
            or default_avatar(name.strip() if name and name.strip() else user_id),
            "points": self.points.signup,
            "rank": DEFAULT_RANK,
            "items_scanned": 0,
            "plastic_items_scanned": 0,
            "comments_made": 0,
            "creations_shared": 0,
            "total_co2_saved": 0,
            "badges": [],
            "liked_posts": [],
        }
        try:
            self._table("profiles").upsert(row, on_conflict="id").execute()
        except CLOUD_ERRORS as e:
            logger.error(f"Failed to create profile for {user_id}: {e}")
            raise StoreError("Gagal membuat profil.") from e
        logger.info(f"Created profile for {user_id}")
        return self.fetch_profile(user_id) or UserProfile.from_row(row)

    def update_user_points(
        self,
        user_id: str,
        points: int,
        co2: float = 0.0,
        is_scan: bool = True,
        plastic: bool = False,
        counters: dict[str, int] | None = None,
    ) -> UserProfile | None:
        """
        Award (or deduct) points and bump activity counters.

        Rank and badges are recomputed from the new totals.

        Args:
            user_id: Profile to update
            points: Points to add (negative to deduct)
            co2: Grams of CO2 saved to add
            is_scan: Count this as one more scanned item
            plastic: The scanned item was plastic
            counters: Extra counters to increment, e.g. {"comments_made": 1}

        Returns:
            Updated profile, or None if the user has no profile.
        """
        user = self.fetch_profile(user_id)
        if user is None:
            return None

        updates = _points_updates(user, points, co2, is_scan, plastic, counters)
        try:
            response = self._table("profiles").update(updates).eq("id", user_id).execute()
        except CLOUD_ERRORS as e:
            logger.error(f"Failed to update points for {user_id}: {e}")
            raise StoreError("Gagal menyimpan poin XP.") from e

        row = _first(response)
        return UserProfile.from_row(row) if row else self.fetch_profile(user_id)

    def update_account_info(self, user_id: str, name: str, avatar: str) -> UserProfile | None:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Nama harus diisi.")
        try:
            response = (
                self._table("profiles")
                .update({"name": name, "avatar": avatar or default_avatar(name)})
                .eq("id", user_id)
                .execute()
            )
        except CLOUD_ERRORS as e:
            logger.error(f"Failed to update account {user_id}: {e}")
            raise StoreError("Gagal memperbarui profil.") from e
        row = _first(response)
        return UserProfile.from_row(row) if row else None

    # Posts

    def get_community_posts(self) -> list[CommunityPost]:
        """All posts, newest first."""
        if not self.is_configured:
            return demo_posts()
        try:
            response = self._table("posts").select("*").order("created_at", desc=True).execute()
        except CLOUD_ERRORS as e:
            logger.error(f"Fetch posts failed: {e}")
            return []
        return [CommunityPost.from_row(row) for row in response.data or []]

    def _fetch_post_row(self, post_id: str, columns: str = "*") -> dict[str, Any]:
        try:
            response = self._table("posts").select(columns).eq("id", post_id).limit(1).execute()
        except CLOUD_ERRORS as e:
            logger.error(f"Failed to fetch post {post_id}: {e}")
            raise StoreError("Gagal memuat postingan.") from e
        row = _first(response)
        if row is None:
            raise NotFoundError("Postingan tidak ditemukan.")
        return row

    def save_community_post(
        self,
        user: UserProfile,
        item_name: str,
        description: str,
        image_url: str,
        material_tag: str,
        is_for_sale: bool = False,
        price: int | None = None,
    ) -> CommunityPost:
        """Insert a post with zero likes and comments."""
        item_name = (item_name or "").strip()
        if not item_name or not image_url:
            raise ValidationError("Nama karya dan foto wajib diisi.")
        if is_for_sale and (price is None or price <= 0):
            raise ValidationError("Harga jual harus lebih dari 0 XP.")

        row = {
            "user_id": user.id,
            "user_name": user.name,
            "user_avatar": user.avatar,
            "item_name": item_name,
            "description": description or "",
            "image_url": image_url,
            "material_tag": material_tag or "Lainnya",
            "is_for_sale": bool(is_for_sale),
            "price": int(price) if is_for_sale and price else None,
            "likes": 0,
            "comments": 0,
        }
        try:
            response = self._table("posts").insert(row).execute()
        except CLOUD_ERRORS as e:
            logger.error(f"Failed to save post for {user.id}: {e}")
            raise StoreError("Gagal mengunggah karya.") from e
        logger.info(f"User {user.id} shared '{item_name}'")
        return CommunityPost.from_row(_first(response) or row)

    def share_creation(
        self,
        user: UserProfile,
        item_name: str,
        description: str,
        image_url: str,
        material_tag: str,
        is_for_sale: bool = False,
        price: int | None = None,
        points: int | None = None,
    ) -> tuple[CommunityPost, UserProfile | None]:
        """Publish a post and reward the author."""
        post = self.save_community_post(
            user, item_name, description, image_url, material_tag, is_for_sale, price
        )
        profile = self.update_user_points(
            user.id,
            self.points.post if points is None else points,
            is_scan=False,
            counters={"creations_shared": 1},
        )
        return post, profile

    def toggle_post_like(self, user_id: str, post_id: str) -> tuple[UserProfile | None, int]:
        """
        Like a post, or unlike it if already liked.

        Returns:
            Tuple of (updated profile, new like count)
        """
        user = self.fetch_profile(user_id)
        if user is None:
            raise NotAuthenticatedError()

        post_id = str(post_id)
        post = self._fetch_post_row(post_id, "id, likes")
        is_liked = post_id in user.liked_posts
        if is_liked:
            liked_posts = [p for p in user.liked_posts if p != post_id]
            change = -1
        else:
            liked_posts = [*user.liked_posts, post_id]
            change = 1

        try:
            self._table("profiles").update({"liked_posts": liked_posts}).eq("id", user_id).execute()
            likes = max(0, int(post.get("likes") or 0) + change)
            self._table("posts").update({"likes": likes}).eq("id", post_id).execute()
        except CLOUD_ERRORS as e:
            logger.error(f"Failed to toggle like on {post_id} for {user_id}: {e}")
            raise StoreError("Gagal menyimpan suka.") from e

        award = self.points.like
        profile = self.update_user_points(user_id, -award if is_liked else award, is_scan=False)
        return profile, likes

    # Comments

    def get_post_comments(self, post_id: str) -> list[Comment]:
        """Comments on a post, oldest first."""
        if not self.is_configured:
            return []
        try:
            response = (
                self._table("comments")
                .select("*")
                .eq("post_id", post_id)
                .order("created_at", desc=False)
                .execute()
            )
        except CLOUD_ERRORS as e:
            logger.error(f"Failed to fetch comments for {post_id}: {e}")
            return []
        return [Comment.from_row(row) for row in response.data or []]

    def save_post_comment(
        self, user: UserProfile, post_id: str, text: str
    ) -> tuple[Comment, UserProfile | None]:
        """
        Add a comment, bump the post's comment count and reward the author.

        Returns:
            Tuple of (saved comment, updated profile)
        """
        text = (text or "").strip()
        if not text:
            raise ValidationError("Komentar tidak boleh kosong.")

        post_id = str(post_id)
        self._fetch_post_row(post_id, "id")
        row = {
            "post_id": post_id,
            "user_id": user.id,
            "user_name": user.name,
            "user_avatar": user.avatar,
            "text": text,
        }
        try:
            response = self._table("comments").insert(row).execute()
        except CLOUD_ERRORS as e:
            logger.error(f"Failed to save comment on {post_id}: {e}")
            raise StoreError("Maaf, gagal mengirim komentar.") from e

        # count read after the insert so concurrent comments are included
        post = self._fetch_post_row(post_id, "comments")
        try:
            count = int(post.get("comments") or 0) + 1
            self._table("posts").update({"comments": count}).eq("id", post_id).execute()
        except CLOUD_ERRORS as e:
            logger.error(f"Failed to update comment count of {post_id}: {e}")
            raise StoreError("Maaf, gagal mengirim komentar.") from e

        profile = self.update_user_points(
            user.id, self.points.comment, is_scan=False, counters={"comments_made": 1}
        )
        return Comment.from_row(_first(response) or row), profile

    # Leaderboard and market

    def get_leaderboard(self, limit: int | None = None) -> list[LeaderboardEntry]:
        """
        Top profiles by points, ranked from 1.

        Args:
            limit: Number of entries, clamped to 1..``gamification.leaderboard_limit``
        """
        if not self.is_configured:
            return demo_leaderboard()
        if limit is None:
            limit = self.leaderboard_limit
        limit = max(1, min(int(limit), self.leaderboard_limit))
        try:
            response = (
                self._table("profiles")
                .select("id, name, points, avatar")
                .order("points", desc=True)
                .limit(limit)
                .execute()
            )
        except CLOUD_ERRORS as e:
            logger.error(f"Failed to load leaderboard: {e}")
            return []
        return [
            LeaderboardEntry(
                id=str(row.get("id")),
                name=row.get("name") or "",
                points=int(row.get("points") or 0),
                avatar=row.get("avatar") or default_avatar(row.get("id")),
                rank=i + 1,
            )
            for i, row in enumerate(response.data or [])
        ]

    def get_market_items(self) -> list[MarketplaceItem]:
        """For-sale posts, newest first."""
        if not self.is_configured:
            return demo_market()
        try:
            response = (
                self._table("posts")
                .select("*")
                .eq("is_for_sale", True)
                .order("created_at", desc=True)
                .execute()
            )
        except CLOUD_ERRORS as e:
            logger.error(f"Failed to load market: {e}")
            return []
        return [MarketplaceItem.from_post_row(row) for row in response.data or []]

    def purchase_market_item(self, user_id: str, item_id: str) -> UserProfile | None:
        """
        Buy a market item with XP.

        Raises:
            InsufficientPointsError: The buyer has fewer points than the price.
        """
        user = self.fetch_profile(user_id)
        if user is None:
            raise NotAuthenticatedError()

        row = self._fetch_post_row(str(item_id))
        if not row.get("is_for_sale"):
            raise NotFoundError("Barang tidak ditemukan di pasar.")
        item = MarketplaceItem.from_post_row(row)
        if user.points < item.price:
            raise InsufficientPointsError()

        purchase = PurchasedItem(
            id=item.id,
            title=item.title,
            price=item.price,
            image_url=item.image_url,
            purchase_date=_now_ms(),
        )
        # XP and the purchase record go out in one write
        updates = _points_updates(user, -item.price, is_scan=False)
        updates["purchased_items"] = [p.to_dict() for p in user.purchased_items] + [purchase.to_dict()]
        try:
            response = self._table("profiles").update(updates).eq("id", user_id).execute()
        except CLOUD_ERRORS as e:
            logger.error(f"Failed to record purchase of {item.id} by {user_id}: {e}")
            raise StoreError("Pembelian gagal. Silakan coba lagi.") from e

        logger.info(f"User {user_id} bought {item.id} for {item.price} XP")
        row = _first(response)
        return UserProfile.from_row(row) if row else self.fetch_profile(user_id)
