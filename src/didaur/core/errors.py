"""
Error types for Didaur.

Every error carries a user-facing (Indonesian) message and the HTTP status
the web layer should answer with. Provider errors are translated into these
at the call site; nothing here is fatal to the process.
"""

import logging

logger = logging.getLogger(__name__)


class DidaurError(Exception):
    """Base class for all errors surfaced to the user."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, str]:
        return {"error": self.message}


class ConfigurationError(DidaurError):
    """A required external service (cloud backend, AI) is not configured."""

    status_code = 503


class ValidationError(DidaurError):
    status_code = 400


class AuthError(DidaurError):
    status_code = 400


class NotAuthenticatedError(AuthError):
    status_code = 401

    def __init__(self, message: str = "Sesi berakhir. Silakan masuk kembali."):
        super().__init__(message)


class NotFoundError(DidaurError):
    status_code = 404


class InsufficientPointsError(DidaurError):
    status_code = 402

    def __init__(self, message: str = "XP Tidak Cukup."):
        super().__init__(message)


class AnalysisError(DidaurError):
    """The AI provider answered, but not with something usable."""

    status_code = 502


class ServiceOverloadedError(AnalysisError):
    """The AI provider kept answering 503 after all retries and fallbacks."""

    status_code = 503

    def __init__(
        self,
        message: str = "Server AI sedang sibuk. Silakan coba lagi dalam beberapa saat.",
    ):
        super().__init__(message)


class RateLimitError(DidaurError):
    status_code = 429

    def __init__(
        self,
        message: str = "Terlalu banyak permintaan. Tunggu sebentar lalu coba lagi.",
    ):
        super().__init__(message)


class StoreError(DidaurError):
    """A read-modify-write against the hosted backend failed midway."""

    status_code = 502


CLOUD_NOT_CONFIGURED = "Cloud belum terhubung. Harap isi variabel lingkungan Supabase."

# (substrings in the provider message, friendly message); first match wins.
_AUTH_MESSAGES: list[tuple[tuple[str, ...], str]] = [
    (
        ("provider is not enabled", "unsupported provider"),
        "Fitur Login Google belum diaktifkan di Dashboard Supabase. "
        "Silakan aktifkan di: Authentication > Providers > Google.",
    ),
    (
        ("email not confirmed",),
        "Email Anda belum dikonfirmasi. Silakan cek Inbox/Spam email Anda "
        "dan masukkan kode verifikasi.",
    ),
    (
        ("invalid login credentials",),
        "Email atau Password salah. Silakan periksa kembali.",
    ),
    (
        ("user already registered",),
        "Email ini sudah terdaftar. Silakan gunakan menu Masuk.",
    ),
    (
        ("token has expired", "otp expired", "invalid token", "otp_expired"),
        "Kode verifikasi salah atau sudah kedaluwarsa. Silakan minta kode baru.",
    ),
    (
        ("rate limit", "too many requests"),
        "Terlalu banyak percobaan. Tunggu beberapa menit lalu coba lagi.",
    ),
    (
        ("network error", "failed to fetch", "connection"),
        "Gagal terhubung ke server. Periksa koneksi internet atau SUPABASE_URL Anda.",
    ),
]


def friendly_auth_message(raw: str | None) -> str:
    """Translate a provider auth error message into a user-facing one."""
    if not raw:
        return "Terjadi kesalahan sistem."
    lowered = raw.lower()
    for needles, message in _AUTH_MESSAGES:
        if any(needle in lowered for needle in needles):
            return message
    return raw


def auth_error_from(exc: Exception) -> AuthError:
    """Wrap a provider exception as an AuthError with a friendly message."""
    raw = getattr(exc, "message", None) or str(exc)
    logger.warning(f"Auth provider error: {raw}")
    error = AuthError(friendly_auth_message(raw))
    status = getattr(exc, "status", None)
    if status == 429 or "rate limit" in raw.lower():
        error.status_code = 429
    elif "invalid login credentials" in raw.lower():
        error.status_code = 401
    return error
