import pytest
import requests

from yomu.client.errors import AuthError, ConflictError
from yomu.client.gateway import RemoteGateway
from yomu.client.session import SessionStore
from yomu.client.storage import TOKEN_KEY


def test_signup_authenticates_and_remembers_token(session_store, storage):
    user = session_store.signup('Alice', 'a@x.com', 'pw123456')
    assert user.name == 'Alice'
    assert session_store.is_authenticated
    assert storage.get(TOKEN_KEY) == session_store.token
    assert session_store.is_loading is False


def test_signup_with_taken_email_reports_conflict(session_store, register):
    register()
    with pytest.raises(ConflictError):
        session_store.signup('Alice', 'a@x.com', 'pw123456')
    assert session_store.error == 'email already exists'
    assert not session_store.is_authenticated
    assert session_store.is_loading is False


def test_login_loads_identity_from_server(session_store, register):
    register()
    user = session_store.login('a@x.com', 'pw123456')
    assert (user.name, user.email) == ('Alice', 'a@x.com')
    assert isinstance(user.id, int)


def test_failed_login_keeps_previous_session(session_store, register, storage):
    register()
    register(name='Bob', email='b@x.com')
    session_store.login('a@x.com', 'pw123456')
    token = session_store.token

    with pytest.raises(AuthError):
        session_store.login('b@x.com', 'wrong')
    assert session_store.is_authenticated
    assert session_store.user.email == 'a@x.com'
    assert storage.get(TOKEN_KEY) == token
    assert session_store.error == 'invalid credentials'


def test_restore_verifies_stored_token(gateway, storage, session_store, register):
    register()
    session_store.login('a@x.com', 'pw123456')

    restored = SessionStore(RemoteGateway(gateway.base_url, session=gateway.session), storage)
    assert restored.restore() is True
    assert restored.user.email == 'a@x.com'


def test_restore_discards_rejected_token(session_store, storage):
    storage.set(TOKEN_KEY, 'forged')
    assert session_store.restore() is False
    assert storage.get(TOKEN_KEY) is None
    assert not session_store.is_authenticated


def test_restore_without_token_is_logged_out(session_store):
    assert session_store.restore() is False


def test_logout_clears_and_notifies(session_store, storage):
    events = []
    session_store.subscribe(lambda s: events.append(s.is_authenticated))
    session_store.signup('Alice', 'a@x.com', 'pw123456')
    session_store.logout()
    assert events == [True, False]
    assert storage.get(TOKEN_KEY) is None
    assert session_store.user is None

    # Logging out twice does not notify again
    session_store.logout()
    assert events == [True, False]


def test_rejected_session_credential_invalidates(session_store, gateway, storage):
    session_store.signup('Alice', 'a@x.com', 'pw123456')
    session_store.token = 'tampered'

    with pytest.raises(AuthError):
        gateway.list_books()
    assert not session_store.is_authenticated
    assert storage.get(TOKEN_KEY) is None
    assert session_store.error == 'unauthorized'


def test_restore_survives_unreachable_backend(session_store, gateway, storage, monkeypatch):
    def refuse(*args, **kwargs):
        raise requests.ConnectionError('refused')

    monkeypatch.setattr(gateway.session, 'request', refuse)
    storage.set(TOKEN_KEY, 'remembered')
    assert session_store.restore() is False
    assert storage.get(TOKEN_KEY) is None
    assert session_store.error is None
    assert not session_store.is_authenticated


def test_restore_survives_malformed_identity(session_store, gateway, storage, monkeypatch):
    monkeypatch.setattr(gateway, 'call', lambda *args, **kwargs: {})
    storage.set(TOKEN_KEY, 'remembered')
    assert session_store.restore() is False
    assert storage.get(TOKEN_KEY) is None
    assert not session_store.is_authenticated
