"""
Flask application factory for the Yomu reading-tracker backend.

Serves the REST API consumed by ``yomu.client``: bearer-token auth, books with
their reading records, and the wishlist, stored in SQLite.
"""

import logging
import traceback

from flask import Flask, jsonify, request
from flask_login import LoginManager
from werkzeug.exceptions import HTTPException

from config import Config
from .api_auth import load_user_from_request

logger = logging.getLogger(__name__)

login_manager = LoginManager()
login_manager.request_loader(load_user_from_request)


@login_manager.unauthorized_handler
def unauthorized():
    """JSON 401 for API requests; there are no HTML pages to redirect to."""
    return jsonify({'error': 'unauthorized'}), 401


def create_app(overrides=None):
    app = Flask(__name__, static_folder=None, static_url_path=None)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    # Configure Python logging level from LOG_LEVEL (default INFO)
    log_level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.getLogger().setLevel(log_level)
    app.logger.setLevel(log_level)

    app.secret_key = app.config['SECRET_KEY']
    if not app.secret_key:
        raise RuntimeError("SECRET_KEY must be set in environment or config")

    from . import db
    db.init_app(app)

    login_manager.init_app(app)

    from .api.auth import auth_api
    from .api.books import books_api
    from .api.wishlist import wishlist_api
    app.register_blueprint(auth_api)
    app.register_blueprint(books_api)
    app.register_blueprint(wishlist_api)

    if app.config.get('DEBUG_REQUESTS'):
        @app.before_request
        def log_request():
            app.logger.debug(f"{request.method} {request.path}")

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({'error': e.description or e.name}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        app.logger.error(f"Unhandled error on {request.method} {request.path}: {e}")
        app.logger.error(traceback.format_exc())
        return jsonify({'error': 'server error'}), 500

    app.logger.info(f"{app.config.get('SITE_NAME', 'Yomu')} API ready")
    return app
