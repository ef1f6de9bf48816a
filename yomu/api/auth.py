"""
Authentication API Endpoints

Registration and login hand out bearer tokens; ``/api/me`` echoes the
identity behind the token.
"""

import sqlite3

from flask import Blueprint, jsonify, current_app
from flask_login import current_user, login_required
from werkzeug.security import check_password_hash, generate_password_hash

from ..api_auth import issue_token
from ..db import get_db
from . import error_response, json_body

auth_api = Blueprint('auth_api', __name__, url_prefix='/api')


@auth_api.route('/auth/register', methods=['POST'])
def register():
    data = json_body()
    name = (data.get('name') or '').strip()
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''
    if not name or not email or not password:
        return error_response('name, email, password required', 400)

    db = get_db()
    try:
        cursor = db.execute(
            "INSERT INTO users (name, email, password_hash) VALUES (?, ?, ?)",
            (name, email, generate_password_hash(password)),
        )
        db.commit()
    except sqlite3.IntegrityError:
        db.rollback()
        current_app.logger.info(f"Registration rejected, email already exists: {email}")
        return error_response('email already exists', 409)

    user = {'id': cursor.lastrowid, 'name': name, 'email': email}
    current_app.logger.info(f"Registered user {user['id']}")
    return jsonify({'token': issue_token(user)})


@auth_api.route('/auth/login', methods=['POST'])
def login():
    data = json_body()
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''

    row = get_db().execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
    if row is None or not check_password_hash(row['password_hash'], password):
        return error_response('invalid credentials', 401)

    return jsonify({'token': issue_token(dict(row))})


@auth_api.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify({'user': current_user.to_dict()})
