"""
Session Store.

Holds the authenticated identity and its bearer credential, and drives the
signup/login/logout transitions. The credential is remembered in the client
key-value store so that ``restore()`` can verify it again on startup.
"""

import logging
from typing import Callable, List, Optional

from yomu.domain.models import User
from . import wire
from .errors import AuthError, GatewayError
from .gateway import RemoteGateway
from .storage import KeyValueStore, TOKEN_KEY

logger = logging.getLogger(__name__)


class SessionStore:
    def __init__(self, gateway: RemoteGateway, storage: KeyValueStore):
        self.gateway = gateway
        self.storage = storage
        self.user: Optional[User] = None
        self.token: Optional[str] = None
        # Gates UI re-submission only; a second signup/login is not blocked
        self.is_loading = False
        self.error: Optional[str] = None
        self._listeners: List[Callable[['SessionStore'], None]] = []

        if gateway.token_provider is None:
            gateway.token_provider = lambda: self.token
        if gateway.on_unauthorized is None:
            gateway.on_unauthorized = self.invalidate

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and bool(self.token)

    def subscribe(self, listener: Callable[['SessionStore'], None]) -> Callable[[], None]:
        """Register a callback fired after every identity change; returns an unsubscribe function."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _set_session(self, user: User, token: str) -> None:
        self.user = user
        self.token = token
        self.is_loading = False
        self.error = None
        self._notify()

    def _fail(self, error: GatewayError) -> None:
        self.error = error.message
        self.is_loading = False

    def restore(self) -> bool:
        """Verify the remembered credential. Never raises; failure means logged out."""
        token = self.storage.get(TOKEN_KEY)
        if not token:
            return False
        try:
            payload = self.gateway.me(token=token)
        except GatewayError as e:
            logger.warning(f"Stored credential could not be verified, discarding it: {e.message}")
            self.storage.remove(TOKEN_KEY)
            return False
        self._set_session(wire.user_from_wire(payload), token)
        logger.info(f"Restored session for {self.user.email}")
        return True

    def signup(self, name: str, email: str, password: str) -> User:
        self.is_loading = True
        self.error = None
        try:
            token = self.gateway.register(name, email, password)
        except GatewayError as e:
            self._fail(e)
            raise
        self.storage.set(TOKEN_KEY, token)
        # Registration answers with a token only, so the identity comes from the input
        self._set_session(User(name=name, email=email), token)
        logger.info(f"Signed up {email}")
        return self.user

    def login(self, email: str, password: str) -> User:
        self.is_loading = True
        self.error = None
        previous_token = self.storage.get(TOKEN_KEY)
        try:
            token = self.gateway.login(email, password)
            self.storage.set(TOKEN_KEY, token)
            payload = self.gateway.me(token=token)
        except GatewayError as e:
            if previous_token:
                self.storage.set(TOKEN_KEY, previous_token)
            elif self.storage.get(TOKEN_KEY):
                self.storage.remove(TOKEN_KEY)
            self._fail(e)
            raise
        self._set_session(wire.user_from_wire(payload), token)
        logger.info(f"Logged in {email}")
        return self.user

    def logout(self) -> None:
        """Forget the credential locally; the backend is not contacted."""
        self.storage.remove(TOKEN_KEY)
        was_authenticated = self.is_authenticated
        self.user = None
        self.token = None
        self.is_loading = False
        if was_authenticated:
            self._notify()

    def invalidate(self, error: Optional[AuthError] = None) -> None:
        """Drop a session whose credential the backend rejected."""
        logger.warning(f"Session invalidated: {error.message if error else 'credential rejected'}")
        self.logout()
        self.error = error.message if error else None
