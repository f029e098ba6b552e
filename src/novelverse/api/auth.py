"""Authentication state.

An AuthSession is created once at startup and passed to whatever needs
the current user. Credentials persist in a small JSON file between runs.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ..exceptions import AuthenticationError, NovelVerseError
from ..reading.schemas import User
from .client import NovelVerseClient

logger = logging.getLogger(__name__)


class CredentialStore:
    """Persists the auth token and user to a JSON file."""

    def __init__(self, path: Path):
        """Initialize store.

        Args:
            path: Credentials file (e.g. ~/.novelverse/credentials.json)
        """
        self.path = Path(path)

    def load(self) -> tuple[Optional[str], Optional[User]]:
        """Load saved credentials.

        Returns:
            (token, user); both None if nothing valid is saved
        """
        if not self.path.exists():
            return None, None
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable credentials file %s: %s", self.path, e)
            return None, None

        token = data.get("token") if isinstance(data, dict) else None
        user = None
        if token and data.get("user"):
            try:
                user = User.model_validate(data["user"])
            except ValidationError:
                user = None
        return token, user

    def save(self, token: str, user: Optional[User]) -> None:
        """Save credentials, readable only by the owner."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "token": token,
            "user": user.model_dump(mode="json") if user else None,
        }
        with open(self.path, "w") as f:
            json.dump(payload, f)
        os.chmod(self.path, 0o600)

    def clear(self) -> None:
        """Delete saved credentials."""
        if self.path.exists():
            self.path.unlink()


class AuthSession:
    """The signed-in state of one client."""

    def __init__(self, client: NovelVerseClient, credentials: CredentialStore):
        """Initialize session.

        Args:
            client: API client the token is attached to
            credentials: Where the token is persisted
        """
        self.client = client
        self.credentials = credentials
        self.user: Optional[User] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and self.client.token is not None

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None

    def init(self) -> Optional[User]:
        """Restore the saved session and confirm the token is still valid.

        An invalid token is cleared. A network problem keeps the cached
        user so reading can continue offline.

        Returns:
            The signed-in user, or None
        """
        token, cached_user = self.credentials.load()
        if not token:
            return None

        self.client.set_token(token)
        try:
            user = self.client.get_current_user()
        except AuthenticationError:
            logger.info("Saved token was rejected; signing out")
            self._clear()
            return None
        except NovelVerseError as e:
            logger.warning("Could not verify saved session: %s", e)
            self.user = cached_user
            return self.user

        if user is None:
            self._clear()
            return None

        self.user = user
        self.credentials.save(token, user)
        return user

    def login(self, email: str, password: str) -> User:
        """Log in and persist the token.

        Raises:
            AuthenticationError: If the credentials are rejected or the
                response carries no token
        """
        response = self.client.login(email, password)
        if not response.token or not response.user:
            raise AuthenticationError("Invalid login response", {"message": response.message})

        self.client.set_token(response.token)
        self.user = response.user
        self.credentials.save(response.token, response.user)
        return response.user

    def refresh_user(self) -> Optional[User]:
        """Reload the user from the API, signing out if that fails."""
        try:
            user = self.client.get_current_user()
        except NovelVerseError as e:
            logger.warning("Refreshing user failed: %s", e)
            self.logout()
            return None

        if user is None:
            self.logout()
            return None

        self.user = user
        if self.client.token:
            self.credentials.save(self.client.token, user)
        return user

    def logout(self) -> None:
        """Sign out locally, telling the API when possible."""
        if self.client.token:
            try:
                self.client.logout()
            except NovelVerseError as e:
                logger.debug("Server-side logout failed: %s", e)
        self._clear()

    def _clear(self) -> None:
        self.client.set_token(None)
        self.user = None
        self.credentials.clear()
