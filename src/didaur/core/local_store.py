"""
Client-local key-value cache.

Holds what the mobile client keeps on the device rather than in the cloud:
the theme preference and the recent-scan history. Each user gets one JSON
file; writes are serialized because background image generation patches
the history while requests are being served.
"""

import json
import logging
import re
import secrets
import string
import threading
from pathlib import Path
from typing import Any

from .models import RecyclingRecommendation

logger = logging.getLogger(__name__)

KEY_THEME = "didaur_theme_v5"
KEY_HISTORY = "didaur_history_v5"

SYNC_PREFIX = "SYNC-"
_SYNC_ALPHABET = string.digits + string.ascii_uppercase
_SYNC_CODE = re.compile(r"^SYNC-[0-9A-Z]{9}$")
_SAFE_NAME = re.compile(r"[^A-Za-z0-9_.-]")

# one lock per file, shared by every store opened on it
_FILE_LOCKS: dict[Path, threading.RLock] = {}
_FILE_LOCKS_GUARD = threading.Lock()


def _lock_for(path: Path) -> threading.RLock:
    with _FILE_LOCKS_GUARD:
        return _FILE_LOCKS.setdefault(path.resolve(), threading.RLock())


class LocalStore:
    """
    JSON file key-value store.

    Usage:
        store = LocalStore(Path('data/local/guest.json'))
        store.set('didaur_theme_v5', 'dark')
        store.get('didaur_theme_v5')
    """

    def __init__(self, path: Path, sync_dir: Path | None = None):
        self.path = Path(path)
        self.sync_dir = Path(sync_dir) if sync_dir else self.path.parent / "sync"
        self._lock = _lock_for(self.path)

    @classmethod
    def for_user(cls, config: dict[str, Any], user_id: str | None) -> "LocalStore":
        """Store for one user (``guest`` when anonymous) under ``storage.local_dir``."""
        local_dir = Path(config.get("local_dir", "data/local"))
        sync_dir = Path(config.get("sync_dir", "data/sync"))
        name = _SAFE_NAME.sub("_", user_id or "guest")
        return cls(local_dir / f"{name}.json", sync_dir)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable local store {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)
        tmp.replace(self.path)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def update(self, key: str, fn, default: Any = None) -> Any:
        """Atomically replace a value with ``fn(current)``."""
        with self._lock:
            data = self._read()
            data[key] = fn(data.get(key, default))
            self._write(data)
            return data[key]

    def clear(self) -> None:
        with self._lock:
            if self.path.exists():
                self.path.unlink()

    def size_bytes(self) -> int:
        return self.path.stat().st_size if self.path.exists() else 0

    def export_sync_code(self) -> str:
        """
        Snapshot this store under a new sync code.

        Returns:
            Code like ``SYNC-4K9Z0QX1B`` to enter on another device.
        """
        code = SYNC_PREFIX + "".join(secrets.choice(_SYNC_ALPHABET) for _ in range(9))
        with self._lock:
            snapshot = self._read()
        self.sync_dir.mkdir(parents=True, exist_ok=True)
        with open(self.sync_dir / f"{code}.json", "w", encoding="utf-8") as f:
            json.dump(snapshot, f, ensure_ascii=False)
        logger.info(f"Exported local data as {code}")
        return code

    def import_sync_code(self, code: str) -> bool:
        """
        Replace this store with a snapshot.

        Returns:
            False for malformed or unknown codes.
        """
        code = (code or "").strip().upper()
        if not _SYNC_CODE.match(code):
            return False
        snapshot_path = self.sync_dir / f"{code}.json"
        if not snapshot_path.exists():
            return False
        try:
            with open(snapshot_path, encoding="utf-8") as f:
                snapshot = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Unreadable sync snapshot {code}: {e}")
            return False
        with self._lock:
            self._write(snapshot if isinstance(snapshot, dict) else {})
        return True

    def stats(self, cloud_configured: bool) -> dict[str, Any]:
        return {
            "kb": round(self.size_bytes() / 1024, 2),
            "totalStorageUsed": "Sync Aktif" if cloud_configured else "Lokal",
        }


class ScanHistory:
    """Most recent scans, newest first, one entry per item name."""

    def __init__(self, store: LocalStore, limit: int = 20):
        self.store = store
        self.limit = limit

    def list(self) -> list[RecyclingRecommendation]:
        raw = self.store.get(KEY_HISTORY, [])
        return [RecyclingRecommendation.from_dict(item) for item in raw or []]

    def add(self, recommendation: RecyclingRecommendation) -> None:
        entry = recommendation.to_dict()

        def _prepend(history: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
            kept = [h for h in history or [] if h.get("itemName") != recommendation.item_name]
            return [entry, *kept][: self.limit]

        self.store.update(KEY_HISTORY, _prepend, [])

    def update_idea_image(self, timestamp: int, idea_index: int, image_url: str) -> bool:
        """
        Attach a generated image to an idea of a cached scan.

        Returns:
            True if the scan was still cached and got patched.
        """
        patched = False

        def _patch(history: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
            nonlocal patched
            history = history or []
            for item in history:
                if item.get("timestamp") != timestamp:
                    continue
                ideas = item.get("diyIdeas") or []
                if 0 <= idea_index < len(ideas):
                    ideas[idea_index]["imageUrl"] = image_url
                    patched = True
                break
            return history

        self.store.update(KEY_HISTORY, _patch, [])
        return patched


class Preferences:
    def __init__(self, store: LocalStore):
        self.store = store

    def is_dark_mode(self) -> bool:
        return self.store.get(KEY_THEME) == "dark"

    def set_dark_mode(self, enabled: bool) -> None:
        self.store.set(KEY_THEME, "dark" if enabled else "light")
