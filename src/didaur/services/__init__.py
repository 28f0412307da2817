"""Clients for the hosted backend and the AI provider."""

from .auth import AuthService
from .gemini_client import GeminiClient
from .store import DidaurStore

__all__ = ["AuthService", "DidaurStore", "GeminiClient"]
