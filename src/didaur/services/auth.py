"""
Sign-up, sign-in and session checks against the hosted auth service.

Each call builds its own stateless client, so one user's session never ends
up attached to the shared data client or to another request.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx
from supabase import AuthError as SupabaseAuthError

from ..core.errors import (
    CLOUD_NOT_CONFIGURED,
    AuthError,
    ConfigurationError,
    NotAuthenticatedError,
    ValidationError,
    auth_error_from,
    friendly_auth_message,
)
from .cloud import cloud_credentials, create_cloud_client, is_cloud_configured

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
OAUTH_PROVIDERS = ("google", "github", "facebook", "apple")

_PROVIDER_ERRORS = (SupabaseAuthError, httpx.HTTPError)


@dataclass
class AuthUser:
    id: str
    email: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_sdk(cls, user: Any) -> "AuthUser":
        return cls(
            id=str(user.id),
            email=getattr(user, "email", None) or "",
            metadata=dict(getattr(user, "user_metadata", None) or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "email": self.email}


@dataclass
class AuthSession:
    access_token: str
    refresh_token: str
    expires_at: int | None
    user: AuthUser

    @classmethod
    def from_sdk(cls, session: Any, user: Any = None) -> "AuthSession":
        return cls(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_at=getattr(session, "expires_at", None),
            user=AuthUser.from_sdk(user or session.user),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "expiresAt": self.expires_at,
            "user": self.user.to_dict(),
        }


@dataclass
class Registration:
    """Outcome of a sign-up; ``session`` is None while email confirmation is pending."""

    user: AuthUser
    session: AuthSession | None

    @property
    def confirmation_required(self) -> bool:
        return self.session is None


def _require_email(email: str) -> str:
    email = (email or "").strip()
    if not email or "@" not in email:
        raise ValidationError("Email tidak valid.")
    return email


class AuthService:
    """
    Email/password, OTP and OAuth authentication.

    Usage:
        auth = AuthService(config.as_dict)
        session = auth.login(email, password)
        user = auth.current_user(session.access_token)
    """

    def __init__(self, config: dict[str, Any], client_factory: Callable[[], Any] | None = None):
        supabase_config = config.get("supabase", {})
        if client_factory is not None:
            self.is_configured = True
            self._client_factory = client_factory
        else:
            self.is_configured = is_cloud_configured(*cloud_credentials(supabase_config))
            self._client_factory = lambda: create_cloud_client(supabase_config, stateless=True)

    def _client(self) -> Any:
        if not self.is_configured:
            raise ConfigurationError(CLOUD_NOT_CONFIGURED)
        return self._client_factory()

    def register(self, email: str, password: str, name: str) -> Registration:
        """
        Create an account.

        The confirmation email carries the OTP checked by ``verify_otp``.
        """
        email = _require_email(email)
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password minimal {MIN_PASSWORD_LENGTH} karakter.")
        if not (name or "").strip():
            raise ValidationError("Nama harus diisi.")

        client = self._client()
        try:
            response = client.auth.sign_up(
                {
                    "email": email,
                    "password": password,
                    "options": {"data": {"name": name.strip()}},
                }
            )
        except _PROVIDER_ERRORS as e:
            raise auth_error_from(e) from e

        if response.user is None:
            raise AuthError("Registrasi gagal. Silakan coba lagi.")

        logger.info(f"Registered {response.user.id}")
        session = AuthSession.from_sdk(response.session, response.user) if response.session else None
        return Registration(user=AuthUser.from_sdk(response.user), session=session)

    def login(self, email: str, password: str) -> AuthSession:
        email = _require_email(email)
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password minimal {MIN_PASSWORD_LENGTH} karakter.")

        client = self._client()
        try:
            response = client.auth.sign_in_with_password({"email": email, "password": password})
        except _PROVIDER_ERRORS as e:
            raise auth_error_from(e) from e

        if response.session is None:
            raise AuthError(friendly_auth_message("email not confirmed"), 401)
        return AuthSession.from_sdk(response.session, response.user)

    def verify_otp(self, email: str, token: str) -> AuthSession:
        """Confirm a sign-up with the code from the confirmation email."""
        email = _require_email(email)
        token = (token or "").strip()
        if not token.isdigit():
            raise ValidationError("Kode verifikasi harus berupa angka.")

        client = self._client()
        try:
            response = client.auth.verify_otp({"email": email, "token": token, "type": "signup"})
        except _PROVIDER_ERRORS as e:
            raise auth_error_from(e) from e

        if response.session is None:
            raise AuthError(friendly_auth_message("token has expired"))
        return AuthSession.from_sdk(response.session, response.user)

    def resend_otp(self, email: str) -> None:
        email = _require_email(email)
        client = self._client()
        try:
            client.auth.resend({"type": "signup", "email": email})
        except _PROVIDER_ERRORS as e:
            raise auth_error_from(e) from e

    def oauth_url(self, provider: str = "google", redirect_to: str | None = None) -> str:
        """
        URL that starts the provider's sign-in.

        The provider redirects back to ``redirect_to`` with the session
        tokens in the URL fragment.
        """
        provider = (provider or "").lower()
        if provider not in OAUTH_PROVIDERS:
            raise AuthError(friendly_auth_message("unsupported provider"))

        client = self._client()
        credentials: dict[str, Any] = {"provider": provider}
        if redirect_to:
            credentials["options"] = {"redirect_to": redirect_to}
        try:
            response = client.auth.sign_in_with_oauth(credentials)
        except _PROVIDER_ERRORS as e:
            raise auth_error_from(e) from e
        return response.url

    def current_user(self, access_token: str | None) -> AuthUser:
        """
        Resolve the user behind an access token.

        Raises:
            NotAuthenticatedError: Missing, expired or revoked token.
        """
        if not access_token:
            raise NotAuthenticatedError()
        client = self._client()
        try:
            response = client.auth.get_user(access_token)
        except _PROVIDER_ERRORS as e:
            logger.info(f"Rejected access token: {e}")
            raise NotAuthenticatedError() from e
        if response is None or response.user is None:
            raise NotAuthenticatedError()
        return AuthUser.from_sdk(response.user)

    def logout(self, access_token: str) -> None:
        """Revoke the user's sessions; failures are logged only."""
        if not access_token or not self.is_configured:
            return
        client = self._client()
        try:
            client.auth.admin.sign_out(access_token)
        except _PROVIDER_ERRORS as e:
            logger.warning(f"Sign-out failed: {e}")
