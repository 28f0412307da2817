"""
Unit tests for sign-up, sign-in and friendly auth error messages.
"""

import pytest

from didaur.core.errors import (
    AuthError,
    ConfigurationError,
    NotAuthenticatedError,
    ValidationError,
    auth_error_from,
    friendly_auth_message,
)
from didaur.services.auth import AuthService
from fakes import FakeAuth, ProviderAuthError


class TestFriendlyMessages:
    @pytest.mark.parametrize(
        "raw,expected_start",
        [
            ("Invalid login credentials", "Email atau Password salah"),
            ("Email not confirmed", "Email Anda belum dikonfirmasi"),
            ("User already registered", "Email ini sudah terdaftar"),
            ("Token has expired or is invalid", "Kode verifikasi salah"),
            ("Unsupported provider: provider is not enabled", "Fitur Login Google"),
            ("Email rate limit exceeded", "Terlalu banyak percobaan"),
            ("Network error", "Gagal terhubung ke server"),
        ],
    )
    def test_known_messages(self, raw, expected_start):
        assert friendly_auth_message(raw).startswith(expected_start)

    def test_unknown_message_passes_through(self):
        assert friendly_auth_message("Something odd") == "Something odd"

    def test_empty_message(self):
        assert friendly_auth_message(None) == "Terjadi kesalahan sistem."

    def test_status_codes(self):
        assert auth_error_from(ProviderAuthError("Invalid login credentials")).status_code == 401
        assert auth_error_from(ProviderAuthError("slow down", 429)).status_code == 429
        assert auth_error_from(ProviderAuthError("User already registered", 422)).status_code == 400


class TestRegister:
    def test_confirmation_pending(self, auth, supabase):
        registration = auth.register("ani@example.com", "rahasia123", "Ani")

        assert registration.confirmation_required
        assert registration.user.email == "ani@example.com"
        assert supabase.auth.accounts["ani@example.com"]["metadata"] == {"name": "Ani"}

    def test_without_confirmation(self, test_config):
        fake = FakeAuthClient(require_confirmation=False)
        auth = AuthService(test_config, client_factory=lambda: fake)

        registration = auth.register("ani@example.com", "rahasia123", "Ani")
        assert not registration.confirmation_required
        assert registration.session.access_token in fake.auth.tokens

    @pytest.mark.parametrize(
        "email,password,name",
        [
            ("", "rahasia123", "Ani"),
            ("bukan-email", "rahasia123", "Ani"),
            ("ani@example.com", "12345", "Ani"),
            ("ani@example.com", "rahasia123", "   "),
        ],
    )
    def test_validation(self, auth, email, password, name):
        with pytest.raises(ValidationError):
            auth.register(email, password, name)

    def test_duplicate(self, auth):
        auth.register("ani@example.com", "rahasia123", "Ani")
        with pytest.raises(AuthError) as exc:
            auth.register("ani@example.com", "rahasia123", "Ani")
        assert exc.value.message.startswith("Email ini sudah terdaftar")


class TestLogin:
    def test_login_after_otp(self, auth, supabase):
        auth.register("ani@example.com", "rahasia123", "Ani")

        with pytest.raises(AuthError) as exc:
            auth.login("ani@example.com", "rahasia123")
        assert "belum dikonfirmasi" in exc.value.message

        session = auth.verify_otp("ani@example.com", FakeAuth.OTP)
        assert session.user.email == "ani@example.com"

        session = auth.login("ani@example.com", "rahasia123")
        assert session.to_dict()["accessToken"] == session.access_token
        assert auth.current_user(session.access_token).email == "ani@example.com"

    def test_wrong_password(self, auth, supabase):
        supabase.auth.create_account("ani@example.com", "rahasia123")
        with pytest.raises(AuthError) as exc:
            auth.login("ani@example.com", "salah123")
        assert exc.value.status_code == 401

    def test_wrong_otp(self, auth):
        auth.register("ani@example.com", "rahasia123", "Ani")
        with pytest.raises(AuthError) as exc:
            auth.verify_otp("ani@example.com", "000000")
        assert exc.value.message.startswith("Kode verifikasi salah")

    def test_otp_must_be_digits(self, auth):
        with pytest.raises(ValidationError):
            auth.verify_otp("ani@example.com", "abc")

    def test_resend(self, auth, supabase):
        auth.resend_otp("ani@example.com")
        assert supabase.auth.resent == ["ani@example.com"]


class TestSessions:
    def test_missing_token(self, auth):
        with pytest.raises(NotAuthenticatedError):
            auth.current_user(None)

    def test_unknown_token(self, auth):
        with pytest.raises(NotAuthenticatedError) as exc:
            auth.current_user("forged")
        assert exc.value.status_code == 401

    def test_logout_revokes(self, auth, supabase):
        supabase.auth.create_account("ani@example.com", "rahasia123")
        session = auth.login("ani@example.com", "rahasia123")

        auth.logout(session.access_token)
        with pytest.raises(NotAuthenticatedError):
            auth.current_user(session.access_token)

    def test_oauth_url(self, auth):
        url = auth.oauth_url("google", "didaur://callback")
        assert "provider=google" in url
        assert "didaur://callback" in url

    def test_unsupported_provider(self, auth):
        with pytest.raises(AuthError):
            auth.oauth_url("myspace")


class TestNotConfigured:
    def test_calls_need_cloud(self, test_config, monkeypatch):
        monkeypatch.delenv("TEST_SUPABASE_URL", raising=False)
        auth = AuthService(test_config)

        assert not auth.is_configured
        with pytest.raises(ConfigurationError):
            auth.login("ani@example.com", "rahasia123")
        # logout is best-effort
        auth.logout("token")


class FakeAuthClient:
    """Client exposing only ``auth``."""

    def __init__(self, require_confirmation: bool):
        self.auth = FakeAuth(require_confirmation)
