"""
API Authentication Module

Bearer tokens for the REST API. Tokens are HS256 JWTs carrying the user's id,
name and email; flask_login resolves ``current_user`` from the Authorization
header on every request, so handlers only need ``login_required``.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from flask import current_app
from flask_login import UserMixin
from jose import JWTError, jwt

from .db import get_db

logger = logging.getLogger(__name__)


class ApiUser(UserMixin):
    """Authenticated API caller."""

    def __init__(self, id: int, name: str, email: str):
        self.id = id
        self.name = name
        self.email = email

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'email': self.email}


def issue_token(user: Dict[str, Any]) -> str:
    """Sign a bearer token for a user row."""
    expire = datetime.now(timezone.utc) + timedelta(days=current_app.config['JWT_EXPIRES_DAYS'])
    claims = {
        'sub': str(user['id']),
        'id': user['id'],
        'name': user['name'],
        'email': user['email'],
        'exp': expire,
    }
    return jwt.encode(claims, current_app.config['JWT_SECRET'], algorithm=current_app.config['JWT_ALGORITHM'])


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """Claims of a valid token, or None when it is malformed, forged or expired."""
    try:
        return jwt.decode(token, current_app.config['JWT_SECRET'],
                          algorithms=[current_app.config['JWT_ALGORITHM']])
    except JWTError as e:
        logger.info(f"Rejected bearer token: {e}")
        return None


def load_user_from_request(request) -> Optional[ApiUser]:
    """flask_login request loader: resolve the bearer token to a user."""
    auth_header = request.headers.get('Authorization', '')
    if not auth_header.startswith('Bearer '):
        return None
    claims = decode_token(auth_header[len('Bearer '):].strip())
    if not claims or claims.get('id') is None:
        return None

    # Tokens outlive deleted accounts; only existing users are accepted
    row = get_db().execute("SELECT id, name, email FROM users WHERE id = ?", (claims['id'],)).fetchone()
    if row is None:
        return None
    return ApiUser(row['id'], row['name'], row['email'])
