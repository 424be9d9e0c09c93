"""HTTP client for the magazine API."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urljoin

import requests

from .models import Magazine, UserPublic

logger = logging.getLogger(__name__)


class APIClientError(Exception):
    """Base exception for magazine API client errors."""
    pass


class APIConnectionError(APIClientError):
    """Raised when the API cannot be reached."""
    pass


class APIResponseError(APIClientError):
    """Raised when the API returns an error status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        super().__init__(f"API error: {status_code} - {message}")


class MagazineAPIClient:
    """Client for the magazine catalogue and admin endpoints."""

    def __init__(self, base_url: str, timeout: int = 30, token: Optional[str] = None):
        """Initialize API client.

        Args:
            base_url: API root (e.g. "http://127.0.0.1:8000")
            timeout: Request timeout in seconds
            token: Optional login token for admin endpoints
        """
        self.base_url = base_url.rstrip('/') + '/'
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({'Accept': 'application/json'})
        self.token = None
        if token:
            self.set_token(token)

    def set_token(self, token: Optional[str]) -> None:
        self.token = token
        if token:
            self.session.headers['Authorization'] = f'Bearer {token}'
        else:
            self.session.headers.pop('Authorization', None)

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def resolve_url(self, url: str) -> str:
        """Make a server-relative URL (e.g. "/files/...") absolute."""
        return urljoin(self.base_url, url)

    # Public

    def list_magazines(self, client: str, limit: int = 50, offset: int = 0) -> Tuple[List[Magazine], int]:
        """List published magazines of a client.

        Returns:
            (magazines in display order, total published count)
        """
        data = self._request('GET', 'api/magazines', params={'client': client, 'limit': limit, 'offset': offset})
        return [self._magazine(item) for item in data.get('magazines', [])], int(data.get('total', 0))

    def latest_magazine(self, client: str) -> Optional[Magazine]:
        """Most recent published magazine, or None if the client has none."""
        try:
            data = self._request('GET', 'api/magazines/latest', params={'client': client})
        except APIResponseError as e:
            if e.status_code == 404:
                return None
            raise
        return self._magazine(data['magazine'])

    def get_magazine(self, magazine_id: str) -> Magazine:
        data = self._request('GET', f'api/magazines/{magazine_id}')
        return self._magazine(data['magazine'])

    # Auth

    def login(self, email: str, password: str) -> UserPublic:
        """Log in and keep the returned token for admin calls."""
        data = self._request('POST', 'api/auth/login', json={'email': email, 'password': password})
        self.set_token(data['token'])
        logger.info(f"Logged in as {email}")
        return UserPublic(**data['user'])

    def logout(self) -> None:
        try:
            self._request('POST', 'api/auth/logout')
        finally:
            self.set_token(None)

    def me(self) -> UserPublic:
        data = self._request('GET', 'api/auth/me')
        return UserPublic(**data['user'])

    # Admin

    def list_all_magazines(self, client: Optional[str] = None) -> List[Magazine]:
        params = {'client': client} if client else None
        data = self._request('GET', 'api/magazines/admin/all', params=params)
        return [self._magazine(item) for item in data.get('magazines', [])]

    def upload_magazine(self, pdf_path: Path, title: str, client_slug: str) -> Magazine:
        """Upload a PDF file as a new magazine."""
        pdf_path = Path(pdf_path)
        with open(pdf_path, 'rb') as f:
            data = self._request(
                'POST',
                'api/magazines',
                files={'file': (pdf_path.name, f, 'application/pdf')},
                data={'title': title, 'client_slug': client_slug},
            )
        return self._magazine(data['magazine'])

    def update_magazine(
        self, magazine_id: str, title: Optional[str] = None, is_published: Optional[bool] = None
    ) -> Magazine:
        body: Dict[str, Any] = {}
        if title is not None:
            body['title'] = title
        if is_published is not None:
            body['is_published'] = is_published
        data = self._request('PATCH', f'api/magazines/{magazine_id}', json=body)
        return self._magazine(data['magazine'])

    def reorder_magazines(self, order: List[Tuple[str, int]]) -> None:
        body = {'order': [{'id': magazine_id, 'sort_order': sort_order} for magazine_id, sort_order in order]}
        self._request('PATCH', 'api/magazines/reorder', json=body)

    def delete_magazine(self, magazine_id: str) -> None:
        self._request('DELETE', f'api/magazines/{magazine_id}')

    def _magazine(self, item: Dict[str, Any]) -> Magazine:
        magazine = Magazine(**item)
        magazine.pdf_url = self.resolve_url(magazine.pdf_url)
        if magazine.cover_url:
            magazine.cover_url = self.resolve_url(magazine.cover_url)
        return magazine

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = urljoin(self.base_url, path)
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response.json() if response.content else {}
        except requests.exceptions.Timeout as e:
            raise APIConnectionError(f"Request to {url} timed out after {self.timeout}s") from e
        except requests.exceptions.ConnectionError as e:
            raise APIConnectionError(f"Failed to connect to {url}: {e}") from e
        except requests.exceptions.HTTPError as e:
            message = e.response.text[:200]
            try:
                message = e.response.json().get('detail', message)
            except ValueError:
                pass
            raise APIResponseError(e.response.status_code, str(message)) from e
        except requests.exceptions.JSONDecodeError as e:
            raise APIClientError(f"Invalid JSON from {url}: {e}") from e
        except requests.exceptions.RequestException as e:
            raise APIConnectionError(f"Request to {url} failed: {e}") from e
