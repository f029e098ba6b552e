"""NovelVerse REST API client.

Covers the endpoints a reading client needs:
- Authentication (login, register, current user, logout)
- Catalog lookup (books, book by slug)
- Reading progress (fetch, upsert, continue-reading shelf)
- Reading activity heatmap
- Book-open tracking and favorites

The client satisfies the ProgressStore protocol, so a reading session can
persist straight to the backend.
"""

import logging
from typing import Any, Optional

import requests
from pydantic import ValidationError

from ..config import DEFAULT_API_URL
from ..exceptions import (
    ApiError,
    AuthenticationError,
    NotFoundError,
    TransientError,
)
from ..reading.schemas import (
    AuthResponse,
    Book,
    ContinueReadingBook,
    FavoriteStatus,
    ReadingProgress,
    UpsertResult,
    User,
)
from ..reports.heatmap import parse_samples
from ..reports.schemas import HeatmapSample

logger = logging.getLogger(__name__)


class NovelVerseClient:
    """Client for the NovelVerse API."""

    def __init__(self, base_url: str = DEFAULT_API_URL, timeout: int = 10):
        """Initialize client.

        Args:
            base_url: API root, e.g. http://localhost:7777
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.token: Optional[str] = None
        self._session = requests.Session()
        self._session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "NovelVerse/0.1",
        })

    def set_token(self, token: Optional[str]) -> None:
        """Attach (or with None, detach) a bearer token."""
        self.token = token
        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"
        else:
            self._session.headers.pop("Authorization", None)

    def close(self) -> None:
        self._session.close()

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> Any:
        """Make a request and decode the JSON body, mapping errors."""
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(
                method, url, params=params, json=json, timeout=self.timeout
            )
        except requests.exceptions.Timeout:
            raise TransientError(f"Request timed out: {method} {path}")
        except requests.exceptions.ConnectionError as e:
            raise TransientError(f"Connection failed: {e}")
        except requests.exceptions.RequestException as e:
            raise TransientError(f"Request failed: {e}")

        if not response.ok:
            self._raise_for_status(response, method, path)

        if response.status_code == 204 or not response.content:
            return {}

        try:
            return response.json()
        except ValueError:
            raise TransientError(f"Invalid JSON in response to {method} {path}")

    def _raise_for_status(self, response: requests.Response, method: str, path: str) -> None:
        status = response.status_code
        message = _error_message(response) or f"HTTP error! status: {status}"
        details = {"status_code": status, "method": method, "path": path}

        if status == 404:
            raise NotFoundError(message, details)
        if status in (401, 403):
            raise AuthenticationError(message, details)
        if status == 429 or status >= 500:
            raise TransientError(message, details)
        raise ApiError(message, status_code=status, details=details)

    # ========================================================================
    # Authentication
    # ========================================================================

    def login(self, email: str, password: str) -> AuthResponse:
        """Log in with email and password."""
        data = self._request("POST", "/auth/login", json={"email": email, "password": password})
        return AuthResponse.model_validate(data)

    def register(
        self,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
    ) -> AuthResponse:
        """Create an account."""
        data = self._request("POST", "/auth/register", json={
            "firstName": first_name,
            "lastName": last_name,
            "email": email,
            "password": password,
        })
        return AuthResponse.model_validate(data)

    def get_current_user(self) -> Optional[User]:
        """Get the user the current token belongs to.

        Returns:
            User, or None if the API doesn't return one
        """
        data = self._request("GET", "/auth/me")
        obj = _unwrap_object(data, "user")
        if not obj:
            return None
        return User.model_validate(obj)

    def logout(self) -> None:
        """Invalidate the token server-side."""
        self._request("POST", "/auth/logout")

    # ========================================================================
    # Catalog
    # ========================================================================

    def get_books(
        self,
        category: Optional[str] = None,
        featured: Optional[bool] = None,
    ) -> list[Book]:
        """List catalog books.

        Args:
            category: Only books in this category
            featured: Only featured (True) or non-featured (False) books
        """
        params = {}
        if category:
            params["category"] = category
        if featured is not None:
            params["isFeatured"] = "true" if featured else "false"

        data = self._request("GET", "/books", params=params or None)
        return [Book.model_validate(item) for item in _unwrap_list(data, "books")]

    def get_book_by_slug(self, slug: str) -> Optional[Book]:
        """Look up a book by slug.

        Returns:
            Book if found, None otherwise
        """
        try:
            data = self._request("GET", f"/books/slug/{slug}")
        except NotFoundError:
            return None

        obj = _unwrap_object(data, "book")
        if not obj:
            logger.warning("No book data found in response for slug %s", slug)
            return None
        return Book.model_validate(obj)

    # ========================================================================
    # Reading Progress (ProgressStore)
    # ========================================================================

    def fetch_progress(self, user_id: str, book_id: str) -> Optional[ReadingProgress]:
        """Get saved progress for a book.

        Returns:
            ReadingProgress, or None if the book was never opened
        """
        try:
            data = self._request("GET", f"/reading/progress/{book_id}")
        except NotFoundError:
            return None

        obj = _unwrap_object(data, "progress")
        if not obj:
            return None
        try:
            return ReadingProgress.model_validate({"userId": user_id, "bookId": book_id, **obj})
        except ValidationError as e:
            raise ApiError(f"Malformed progress for book {book_id}", details={"error": str(e)})

    def upsert_progress(
        self,
        user_id: str,
        book_slug: str,
        current_page: int,
        total_pages: int,
    ) -> UpsertResult:
        """Create or update progress for a book.

        Raises:
            TransientError: On timeouts, connection errors and 5xx responses
        """
        data = self._request("PUT", "/reading/progress", json={
            "userId": user_id,
            "slug": book_slug,
            "currentPage": current_page,
            "totalPages": total_pages,
        })
        obj = _unwrap_object(data, "result") or {}

        completed = obj.get("completed", obj.get("isCompleted"))
        if completed is None:
            completed = current_page >= total_pages

        progress = None
        raw_progress = obj.get("progress")
        if isinstance(raw_progress, dict):
            try:
                progress = ReadingProgress.model_validate({
                    "userId": user_id,
                    "bookSlug": book_slug,
                    "currentPage": current_page,
                    "totalPages": total_pages,
                    **raw_progress,
                })
            except ValidationError as e:
                logger.debug("Ignoring malformed progress in upsert response: %s", e)

        return UpsertResult(completed=bool(completed), progress=progress)

    def get_continue_reading(self, limit: int = 10) -> list[ContinueReadingBook]:
        """Books in progress, most recently read first."""
        data = self._request("GET", "/reading/continue", params={"limit": limit})
        return [ContinueReadingBook.model_validate(item) for item in _unwrap_list(data, "books")]

    def fetch_heatmap(self, year: int) -> list[HeatmapSample]:
        """Per-day pages read for a year. Malformed entries are dropped."""
        data = self._request("GET", "/reading/heatmap", params={"year": year})
        return parse_samples(_unwrap_list(data, "heatmap"))

    def track_open(self, user_id: str, book_id: str) -> None:
        """Record that a book was opened."""
        self._request("POST", f"/books/{book_id}/open", json={"userId": user_id})

    # ========================================================================
    # Favorites
    # ========================================================================

    def toggle_favorite(self, book_id: str) -> FavoriteStatus:
        """Add a book to favorites, or remove it if already there."""
        data = self._request("POST", f"/favorites/{book_id}/toggle")
        return FavoriteStatus.model_validate(_unwrap_object(data, "favorite") or data)

    def check_is_favorite(self, book_id: str) -> bool:
        """Check whether a book is in the user's favorites."""
        data = self._request("GET", f"/favorites/{book_id}")
        obj = _unwrap_object(data, "favorite") or {}
        return bool(obj.get("isFavorite", False))


def _unwrap_list(data: Any, key: str) -> list:
    """Extract a list from a bare list, {"data": [...]} or {key: [...]}."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for candidate in ("data", key):
            value = data.get(candidate)
            if isinstance(value, list):
                return value
    return []


def _unwrap_object(data: Any, key: str) -> Optional[dict]:
    """Extract an object from a bare object, {"data": {...}} or {key: {...}}."""
    if not isinstance(data, dict):
        return None
    for candidate in ("data", key):
        if candidate in data:
            value = data[candidate]
            return value if isinstance(value, dict) else None
    return data or None


def _error_message(response: requests.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("error") or body.get("message")
    return None
