"""Remote Data Gateway.

Thin request layer over the backend REST API. Every call attaches the bearer
credential when one is available and normalizes failures into the
``GatewayError`` family:

- transport failures raise ``NetworkError``
- non-2xx responses raise the status-specific kind carrying the body's
  ``error`` message (or a generic message when the body cannot be parsed)
- success bodies that are not an object, or lack the expected envelope key,
  raise ``ServerError``

No timeout is imposed (the transport default applies) and nothing is retried.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

import requests

from .errors import NetworkError, AuthError, ServerError, error_for_status

logger = logging.getLogger(__name__)

UNEXPECTED_RESPONSE = 'Unexpected response from server'


class RemoteGateway:
    def __init__(self, base_url: str,
                 token_provider: Optional[Callable[[], Optional[str]]] = None,
                 session: Optional[requests.Session] = None,
                 on_unauthorized: Optional[Callable[[AuthError], None]] = None):
        self.base_url = base_url.rstrip('/')
        self.token_provider = token_provider
        self.session = session or requests.Session()
        self.on_unauthorized = on_unauthorized

    def _resolve_token(self, token: Optional[str]) -> Optional[str]:
        if token:
            return token
        if self.token_provider is not None:
            return self.token_provider()
        return None

    def call(self, path: str, method: str = 'GET', body: Optional[Dict[str, Any]] = None,
             token: Optional[str] = None, authenticate: bool = True) -> Dict[str, Any]:
        """Perform one request and return the parsed JSON body."""
        credential = self._resolve_token(token) if authenticate else None
        headers = {'Accept': 'application/json'}
        if credential:
            headers['Authorization'] = f'Bearer {credential}'

        url = f'{self.base_url}{path}'
        logger.debug(f"{method} {path}")
        try:
            response = self.session.request(method, url, json=body, headers=headers)
        except requests.RequestException as e:
            logger.warning(f"{method} {path} failed before a response: {e}")
            raise NetworkError(f'Network error: {e}') from e

        if not response.ok:
            error = error_for_status(response.status_code, self._error_message(response))
            logger.info(f"{method} {path} -> {response.status_code}: {error.message}")
            if isinstance(error, AuthError) and credential and not token and self.on_unauthorized is not None:
                self.on_unauthorized(error)
            raise error

        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as e:
            raise error_for_status(502, 'Invalid JSON in response') from e
        if not isinstance(payload, dict):
            logger.warning(f"{method} {path} answered with a non-object body")
            raise ServerError(UNEXPECTED_RESPONSE, response.status_code)
        return payload

    @staticmethod
    def _unwrap(data: Dict[str, Any], key: str, kind: type = dict) -> Any:
        """Pull the envelope value out of a success body, insisting on its shape."""
        value = data.get(key)
        if not isinstance(value, kind):
            logger.warning(f"Response is missing a valid '{key}' field")
            raise ServerError(UNEXPECTED_RESPONSE)
        return value

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        fallback = f'Request failed with status {response.status_code}'
        try:
            payload = response.json()
        except ValueError:
            return fallback
        if isinstance(payload, dict) and payload.get('error'):
            return str(payload['error'])
        return fallback

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def register(self, name: str, email: str, password: str) -> str:
        data = self.call('/api/auth/register', 'POST', {'name': name, 'email': email, 'password': password},
                         authenticate=False)
        return self._unwrap(data, 'token', str)

    def login(self, email: str, password: str) -> str:
        data = self.call('/api/auth/login', 'POST', {'email': email, 'password': password}, authenticate=False)
        return self._unwrap(data, 'token', str)

    def me(self, token: Optional[str] = None) -> Dict[str, Any]:
        return self._unwrap(self.call('/api/me', token=token), 'user')

    # ------------------------------------------------------------------
    # Books and reading records
    # ------------------------------------------------------------------

    def list_books(self) -> List[Dict[str, Any]]:
        return self._unwrap(self.call('/api/books'), 'books', list)

    def create_book(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._unwrap(self.call('/api/books', 'POST', payload), 'book')

    def update_book(self, book_id: Any, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._unwrap(self.call(f'/api/books/{book_id}', 'PUT', payload), 'book')

    def delete_book(self, book_id: Any) -> bool:
        return bool(self.call(f'/api/books/{book_id}', 'DELETE').get('success'))

    def list_records(self, book_id: Any) -> List[Dict[str, Any]]:
        return self._unwrap(self.call(f'/api/books/{book_id}/records'), 'records', list)

    def create_record(self, book_id: Any, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._unwrap(self.call(f'/api/books/{book_id}/records', 'POST', payload), 'record')

    def complete_book(self, book_id: Any, final_review: Optional[str] = None) -> Dict[str, Any]:
        data = self.call(f'/api/books/{book_id}/complete', 'POST', {'finalReview': final_review})
        return self._unwrap(data, 'book')

    # ------------------------------------------------------------------
    # Wishlist
    # ------------------------------------------------------------------

    def list_wishlist(self) -> List[Dict[str, Any]]:
        return self._unwrap(self.call('/api/wishlist'), 'wishlist', list)

    def create_wishlist_item(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._unwrap(self.call('/api/wishlist', 'POST', payload), 'item')

    def update_wishlist_item(self, item_id: Any, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._unwrap(self.call(f'/api/wishlist/{item_id}', 'PUT', payload), 'item')

    def delete_wishlist_item(self, item_id: Any) -> bool:
        return bool(self.call(f'/api/wishlist/{item_id}', 'DELETE').get('success'))
