"""API module for the NovelVerse backend.

Provides the REST client and the authentication session built on it.
"""

from .auth import AuthSession, CredentialStore
from .client import NovelVerseClient

__all__ = [
    "NovelVerseClient",
    "AuthSession",
    "CredentialStore",
]
