import os
import tempfile

# config.py reads these at import time
os.environ.setdefault('YOMU_DATA_DIR', tempfile.mkdtemp(prefix='yomu-test-'))
os.environ.setdefault('SECRET_KEY', 'test-secret-key')

from datetime import datetime, timezone
from urllib.parse import urlsplit

import pytest
import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict

from yomu import create_app
from yomu.client.gateway import RemoteGateway
from yomu.client.session import SessionStore
from yomu.client.storage import MemoryStore
from yomu.client.store import AppStore

API_BASE = 'http://yomu.test'


class FlaskTransport(BaseAdapter):
    """requests transport adapter that answers from a Flask test client."""

    def __init__(self, client):
        super().__init__()
        self.client = client

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        url = urlsplit(request.url)
        path = url.path + (f'?{url.query}' if url.query else '')
        headers = {k: v for k, v in request.headers.items() if k.lower() not in ('content-length', 'host')}
        result = self.client.open(path, method=request.method, headers=headers, data=request.body)

        response = requests.Response()
        response.status_code = result.status_code
        response.reason = result.status
        response._content = result.get_data()
        response.headers = CaseInsensitiveDict(result.headers)
        response.url = request.url
        response.request = request
        response.encoding = 'utf-8'
        return response

    def close(self):
        pass


class FixedClock:
    """Settable clock returning aware UTC datetimes."""

    def __init__(self, moment=None):
        self.moment = moment or datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.moment


@pytest.fixture
def app(tmp_path):
    return create_app({
        'TESTING': True,
        'DATABASE_PATH': str(tmp_path / 'yomu.db'),
        'JWT_SECRET': 'test-jwt-secret',
        'TIMEZONE': 'UTC',
    })


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def http_session(client):
    session = requests.Session()
    session.mount(API_BASE, FlaskTransport(client))
    return session


@pytest.fixture
def gateway(http_session):
    return RemoteGateway(API_BASE, session=http_session)


@pytest.fixture
def storage():
    return MemoryStore()


@pytest.fixture
def session_store(gateway, storage):
    return SessionStore(gateway, storage)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def store(session_store, gateway, storage, clock):
    return AppStore(session_store, gateway, storage, clock=clock)


@pytest.fixture
def register(client):
    """Register through the raw API and return the bearer header."""
    def _register(name='Alice', email='a@x.com', password='pw123456'):
        response = client.post('/api/auth/register', json={'name': name, 'email': email, 'password': password})
        assert response.status_code == 200, response.get_json()
        return {'Authorization': f"Bearer {response.get_json()['token']}"}
    return _register
