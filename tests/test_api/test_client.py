"""Tests for the NovelVerse API client."""

from datetime import date
from unittest.mock import MagicMock

import pytest
import requests

from novelverse.api.client import NovelVerseClient
from novelverse.exceptions import (
    ApiError,
    AuthenticationError,
    NotFoundError,
    TransientError,
)
from novelverse.reading.store import ProgressStore


def make_response(status: int = 200, body=None, invalid_json: bool = False) -> MagicMock:
    """Build a mock requests.Response."""
    response = MagicMock()
    response.status_code = status
    response.ok = status < 400
    response.content = b"" if body is None and not invalid_json else b"{...}"
    if invalid_json:
        response.json.side_effect = ValueError("Expecting value")
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def client():
    """Create a client with mocked session."""
    client = NovelVerseClient("http://api.test/", timeout=5)
    client._session = MagicMock()
    return client


def last_call(client):
    """(method, url, kwargs) of the last request."""
    args, kwargs = client._session.request.call_args
    return args[0], args[1], kwargs


class TestClientInit:
    """Tests for NovelVerseClient initialization."""

    def test_defaults(self):
        client = NovelVerseClient()

        assert client.base_url == "http://localhost:7777"
        assert client.timeout == 10
        assert client.token is None

    def test_trailing_slash_stripped(self):
        assert NovelVerseClient("http://api.test/").base_url == "http://api.test"

    def test_session_headers(self):
        """Test that JSON headers are set on the session."""
        client = NovelVerseClient()

        assert client._session.headers["Accept"] == "application/json"
        assert "User-Agent" in client._session.headers

    def test_set_token(self):
        """Test attaching and detaching the bearer token."""
        client = NovelVerseClient()

        client.set_token("abc")
        assert client._session.headers["Authorization"] == "Bearer abc"

        client.set_token(None)
        assert "Authorization" not in client._session.headers
        assert client.token is None

    def test_satisfies_progress_store(self):
        assert isinstance(NovelVerseClient(), ProgressStore)


class TestErrorMapping:
    """Tests for mapping failures onto the exception hierarchy."""

    @pytest.mark.parametrize("exc", [
        requests.exceptions.Timeout(),
        requests.exceptions.ConnectionError("refused"),
        requests.exceptions.RequestException("boom"),
    ])
    def test_network_errors_are_transient(self, client, exc):
        client._session.request.side_effect = exc

        with pytest.raises(TransientError):
            client.fetch_heatmap(2024)

    @pytest.mark.parametrize("status,error", [
        (401, AuthenticationError),
        (403, AuthenticationError),
        (404, NotFoundError),
        (429, TransientError),
        (500, TransientError),
        (503, TransientError),
        (400, ApiError),
        (422, ApiError),
    ])
    def test_status_codes(self, client, status, error):
        client._session.request.return_value = make_response(status, {"error": "nope"})

        with pytest.raises(error) as exc_info:
            client.get_books()

        assert exc_info.value.message == "nope"
        assert exc_info.value.details["status_code"] == status

    def test_api_error_carries_status(self, client):
        client._session.request.return_value = make_response(409, {"message": "conflict"})

        with pytest.raises(ApiError) as exc_info:
            client.get_books()

        assert exc_info.value.status_code == 409

    def test_error_without_body(self, client):
        client._session.request.return_value = make_response(502, invalid_json=True)

        with pytest.raises(TransientError) as exc_info:
            client.get_books()

        assert "502" in exc_info.value.message

    def test_invalid_json_is_transient(self, client):
        client._session.request.return_value = make_response(200, invalid_json=True)

        with pytest.raises(TransientError):
            client.get_books()

    def test_empty_body(self, client):
        """Test that an empty success response decodes to nothing."""
        client._session.request.return_value = make_response(204)

        client.logout()

        method, url, _ = last_call(client)
        assert (method, url) == ("POST", "http://api.test/auth/logout")


class TestProgress:
    """Tests for the progress endpoints."""

    def test_fetch_progress(self, client):
        client._session.request.return_value = make_response(200, {
            "data": {"currentPage": 37, "totalPages": 100, "isCompleted": False},
        })

        progress = client.fetch_progress("user-1", "42")

        assert progress.current_page == 37
        assert progress.user_id == "user-1"
        assert progress.book_id == "42"
        method, url, _ = last_call(client)
        assert (method, url) == ("GET", "http://api.test/reading/progress/42")

    def test_fetch_progress_not_found(self, client):
        client._session.request.return_value = make_response(404, {"error": "Progress not found"})

        assert client.fetch_progress("user-1", "42") is None

    def test_fetch_progress_null(self, client):
        client._session.request.return_value = make_response(200, {"data": None})

        assert client.fetch_progress("user-1", "42") is None

    def test_fetch_progress_malformed(self, client):
        client._session.request.return_value = make_response(200, {
            "data": {"currentPage": 0, "totalPages": 100},
        })

        with pytest.raises(ApiError):
            client.fetch_progress("user-1", "42")

    def test_upsert_progress_body(self, client):
        """Test the PUT payload."""
        client._session.request.return_value = make_response(200, {"data": {"completed": False}})

        client.upsert_progress("user-1", "the-hobbit", 12, 310)

        method, url, kwargs = last_call(client)
        assert (method, url) == ("PUT", "http://api.test/reading/progress")
        assert kwargs["json"] == {
            "userId": "user-1",
            "slug": "the-hobbit",
            "currentPage": 12,
            "totalPages": 310,
        }
        assert kwargs["timeout"] == 5

    def test_upsert_completed_flag(self, client):
        client._session.request.return_value = make_response(200, {
            "data": {
                "completed": True,
                "progress": {"bookId": "42", "currentPage": 310, "totalPages": 310},
            },
        })

        result = client.upsert_progress("user-1", "the-hobbit", 310, 310)

        assert result.completed is True
        assert result.progress.book_id == "42"
        assert result.progress.book_slug == "the-hobbit"

    def test_upsert_is_completed_flag(self, client):
        client._session.request.return_value = make_response(200, {"isCompleted": False})

        assert client.upsert_progress("user-1", "the-hobbit", 310, 310).completed is False

    @pytest.mark.parametrize("page,completed", [(309, False), (310, True)])
    def test_upsert_without_flag_infers_completion(self, client, page, completed):
        client._session.request.return_value = make_response(200, {"success": True})

        assert client.upsert_progress("user-1", "the-hobbit", page, 310).completed is completed

    def test_upsert_server_error_is_transient(self, client):
        client._session.request.return_value = make_response(500, {"error": "db down"})

        with pytest.raises(TransientError):
            client.upsert_progress("user-1", "the-hobbit", 12, 310)

    def test_continue_reading(self, client):
        client._session.request.return_value = make_response(200, {"data": [{
            "bookId": 3,
            "slug": "dune",
            "title": "Dune",
            "currentPage": 120,
            "totalPages": 600,
            "progressPercent": 20,
        }]})

        entries = client.get_continue_reading(limit=5)

        assert [e.slug for e in entries] == ["dune"]
        assert last_call(client)[2]["params"] == {"limit": 5}


class TestHeatmap:
    """Tests for the heatmap endpoint."""

    def test_fetch_heatmap(self, client):
        client._session.request.return_value = make_response(200, {"data": [
            {"date": "2024-01-01", "pagesRead": 12},
            {"date": "2024-01-02T00:00:00.000Z", "pagesRead": 3},
        ]})

        samples = client.fetch_heatmap(2024)

        assert [(s.date, s.pages_read) for s in samples] == [
            (date(2024, 1, 1), 12),
            (date(2024, 1, 2), 3),
        ]
        assert last_call(client)[2]["params"] == {"year": 2024}

    def test_fetch_heatmap_drops_malformed(self, client):
        client._session.request.return_value = make_response(200, [
            {"date": "bad", "pagesRead": 1},
            {"date": "2024-01-01", "pagesRead": 2},
        ])

        assert len(client.fetch_heatmap(2024)) == 1

    def test_fetch_heatmap_unexpected_shape(self, client):
        client._session.request.return_value = make_response(200, {"data": "oops"})

        assert client.fetch_heatmap(2024) == []


class TestCatalog:
    """Tests for book lookup."""

    BOOK = {
        "id": 42,
        "slug": "the-hobbit",
        "title": "The Hobbit",
        "author": "J.R.R. Tolkien",
        "pageCount": 310,
    }

    def test_get_books_filters(self, client):
        client._session.request.return_value = make_response(200, {"data": [self.BOOK]})

        books = client.get_books(category="fantasy", featured=True)

        assert books[0].slug == "the-hobbit"
        assert last_call(client)[2]["params"] == {"category": "fantasy", "isFeatured": "true"}

    def test_get_books_no_filters(self, client):
        client._session.request.return_value = make_response(200, [self.BOOK])

        client.get_books()

        assert last_call(client)[2]["params"] is None

    def test_get_book_by_slug(self, client):
        client._session.request.return_value = make_response(200, {"data": self.BOOK})

        book = client.get_book_by_slug("the-hobbit")

        assert book.id == "42"
        assert book.page_count == 310
        assert last_call(client)[1] == "http://api.test/books/slug/the-hobbit"

    def test_get_book_by_slug_missing(self, client):
        client._session.request.return_value = make_response(404, {"error": "Book not found"})

        assert client.get_book_by_slug("nope") is None

    def test_track_open(self, client):
        client._session.request.return_value = make_response(200, {"success": True})

        client.track_open("user-1", "42")

        method, url, kwargs = last_call(client)
        assert (method, url) == ("POST", "http://api.test/books/42/open")
        assert kwargs["json"] == {"userId": "user-1"}


class TestAuthEndpoints:
    """Tests for authentication and favorites endpoints."""

    def test_login(self, client):
        client._session.request.return_value = make_response(200, {
            "message": "Login successful",
            "token": "jwt",
            "user": {"id": 1, "email": "ada@example.com", "firstName": "Ada"},
        })

        response = client.login("ada@example.com", "secret")

        assert response.token == "jwt"
        assert response.user.id == "1"
        assert last_call(client)[2]["json"] == {"email": "ada@example.com", "password": "secret"}

    def test_get_current_user(self, client):
        client._session.request.return_value = make_response(200, {
            "user": {"id": 1, "email": "ada@example.com"},
        })

        assert client.get_current_user().email == "ada@example.com"

    def test_toggle_favorite(self, client):
        client._session.request.return_value = make_response(200, {
            "success": True, "isFavorite": True, "message": "Added to favorites",
        })

        status = client.toggle_favorite("42")

        assert status.is_favorite is True
        assert last_call(client)[1] == "http://api.test/favorites/42/toggle"

    def test_check_is_favorite(self, client):
        client._session.request.return_value = make_response(200, {"data": {"isFavorite": True}})

        assert client.check_is_favorite("42") is True
