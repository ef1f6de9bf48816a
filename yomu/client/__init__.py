"""
Reading-tracker client layer: session, gateway, local persistence, state store.
"""

from config import ClientConfig

from .errors import (
    YomuError, GatewayError, ValidationError, AuthError, NotFoundError,
    ConflictError, ServerError, NetworkError,
)
from .gateway import RemoteGateway
from .history import HistoryAggregator
from .session import SessionStore
from .storage import JsonFileStore, KeyValueStore, MemoryStore
from .store import AppStore


class Client:
    """The wired client: one gateway, one session and one store sharing a key-value store."""

    def __init__(self, gateway: RemoteGateway, session: SessionStore, store: AppStore):
        self.gateway = gateway
        self.session = session
        self.store = store


def create_client(config=None, storage: KeyValueStore = None, http_session=None) -> Client:
    """Build a client from ``ClientConfig`` (environment defaults when omitted)."""
    if config is None:
        config = ClientConfig()
    storage = storage if storage is not None else JsonFileStore(config.state_path)
    gateway = RemoteGateway(config.api_base, session=http_session)
    session = SessionStore(gateway, storage)
    session.restore()
    store = AppStore(session, gateway, storage, config=config)
    return Client(gateway, session, store)


__all__ = [
    'AppStore', 'Client', 'create_client', 'HistoryAggregator', 'JsonFileStore', 'KeyValueStore',
    'MemoryStore', 'RemoteGateway', 'SessionStore',
    'YomuError', 'GatewayError', 'ValidationError', 'AuthError', 'NotFoundError',
    'ConflictError', 'ServerError', 'NetworkError',
]
