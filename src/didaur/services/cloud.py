"""Supabase client construction."""

import logging
import os
from typing import Any

from supabase import Client, ClientOptions, create_client

logger = logging.getLogger(__name__)

PLACEHOLDER_URL = "https://your-project.supabase.co"


def cloud_credentials(config: dict[str, Any]) -> tuple[str, str]:
    """
    Read the backend URL and key named by the ``supabase`` config section.

    Returns:
        Tuple of (url, key); empty strings when unset.
    """
    url = os.environ.get(config.get("url_env", "SUPABASE_URL"), "").strip()
    key = os.environ.get(config.get("key_env", "SUPABASE_KEY"), "").strip()
    return url, key


def is_cloud_configured(url: str, key: str) -> bool:
    return bool(url) and url != PLACEHOLDER_URL and url.startswith("http") and bool(key)


def create_cloud_client(config: dict[str, Any], stateless: bool = False) -> Client | None:
    """
    Build a Supabase client, or None in demo mode.

    Args:
        config: ``supabase`` configuration section.
        stateless: Don't keep or refresh a session (per-request auth calls).
    """
    url, key = cloud_credentials(config)
    if not is_cloud_configured(url, key):
        return None
    options = ClientOptions(
        auto_refresh_token=not stateless,
        persist_session=not stateless,
        flow_type="implicit",
    )
    return create_client(url, key, options=options)
