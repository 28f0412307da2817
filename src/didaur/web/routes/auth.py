"""
Authentication routes.

Sign-up confirms the email with a one-time code (OTP) before a session is
issued. OAuth providers redirect back to the client with the tokens; the
client then calls ``/oauth/callback`` so a profile exists for the user.
"""

import logging

from flask import Blueprint, current_app, g, jsonify, request

from ...core.errors import NotFoundError
from ...core.gamification import badges_for
from ..session import bearer_token, json_body, login_required

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)


@bp.route("/register", methods=["POST"])
def register():
    """
    Create an account and its profile.

    Returns:
        JSON with the user, whether an OTP confirmation is pending, and the
        session when the backend does not require confirmation
    """
    data = json_body()
    auth = current_app.config["auth"]
    store = current_app.config["store"]

    registration = auth.register(data.get("email", ""), data.get("password", ""), data.get("name", ""))
    profile = store.ensure_profile(
        registration.user.id,
        registration.user.email,
        registration.user.metadata,
        name=data.get("name"),
    )

    message = (
        "Registrasi Berhasil! Silakan cek email Anda untuk kode verifikasi."
        if registration.confirmation_required
        else "Registrasi Berhasil!"
    )
    return jsonify({
        "message": message,
        "confirmationRequired": registration.confirmation_required,
        "user": registration.user.to_dict(),
        "session": registration.session.to_dict() if registration.session else None,
        "profile": profile.to_dict(),
    }), 201


@bp.route("/login", methods=["POST"])
def login():
    data = json_body()
    auth = current_app.config["auth"]
    store = current_app.config["store"]

    session = auth.login(data.get("email", ""), data.get("password", ""))
    profile = store.fetch_profile(session.user.id)
    if profile is None:
        raise NotFoundError("Profil tidak ditemukan.")

    return jsonify({"session": session.to_dict(), "profile": profile.to_dict()})


@bp.route("/verify-otp", methods=["POST"])
def verify_otp():
    """Confirm a sign-up with the emailed code and start a session."""
    data = json_body()
    auth = current_app.config["auth"]
    store = current_app.config["store"]

    session = auth.verify_otp(data.get("email", ""), str(data.get("token", "")))
    profile = store.ensure_profile(session.user.id, session.user.email, session.user.metadata)
    return jsonify({"session": session.to_dict(), "profile": profile.to_dict()})


@bp.route("/resend-otp", methods=["POST"])
def resend_otp():
    data = json_body()
    current_app.config["auth"].resend_otp(data.get("email", ""))
    return jsonify({"status": "ok", "message": "Kode verifikasi baru telah dikirim."})


@bp.route("/oauth/<provider>")
def oauth_start(provider: str):
    """
    Get the provider sign-in URL.

    Query params:
        redirect_to: Where the provider sends the user afterwards
    """
    url = current_app.config["auth"].oauth_url(provider, request.args.get("redirect_to"))
    return jsonify({"provider": provider, "url": url})


@bp.route("/oauth/callback", methods=["POST"])
@login_required
def oauth_callback():
    """First call after an OAuth redirect; creates the profile if needed."""
    return jsonify({"profile": g.user.to_dict()})


@bp.route("/logout", methods=["POST"])
def logout():
    token = bearer_token()
    if token:
        current_app.config["auth"].logout(token)
    return jsonify({"status": "ok"})


@bp.route("/me")
@login_required
def me():
    return jsonify({
        "profile": g.user.to_dict(),
        "badges": [b.to_dict() for b in badges_for(g.user)],
    })
