"""
Request authentication helpers.

Clients send the access token from sign-in as ``Authorization: Bearer <token>``.
"""

import functools
from typing import Any, Callable

from flask import current_app, g, request

from ..core.errors import ValidationError
from ..core.local_store import LocalStore, Preferences, ScanHistory


def bearer_token() -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _resolve_user(token: str) -> None:
    auth = current_app.config["auth"]
    store = current_app.config["store"]

    auth_user = auth.current_user(token)
    g.access_token = token
    g.auth_user = auth_user
    g.user = store.ensure_profile(auth_user.id, auth_user.email, auth_user.metadata)


def login_required(view: Callable[..., Any]) -> Callable[..., Any]:
    """Reject the request unless it carries a valid access token."""

    @functools.wraps(view)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        _resolve_user(bearer_token() or "")
        return view(*args, **kwargs)

    return wrapper


def optional_login(view: Callable[..., Any]) -> Callable[..., Any]:
    """Resolve the user when a token is sent; guests get ``g.user = None``."""

    @functools.wraps(view)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        token = bearer_token()
        if token:
            _resolve_user(token)
        else:
            g.access_token = None
            g.auth_user = None
            g.user = None
        return view(*args, **kwargs)

    return wrapper


def local_store() -> LocalStore:
    """The current user's (or guest's) client-local cache."""
    config = current_app.config["DIDAUR_CONFIG"]
    user = g.get("user")
    return LocalStore.for_user(config["storage"], user.id if user else None)


def scan_history() -> ScanHistory:
    config = current_app.config["DIDAUR_CONFIG"]
    return ScanHistory(local_store(), limit=int(config.get("storage.history_limit", 20)))


def preferences() -> Preferences:
    return Preferences(local_store())


def json_body() -> dict[str, Any]:
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValidationError("Data yang dikirim tidak valid.")
    return body
