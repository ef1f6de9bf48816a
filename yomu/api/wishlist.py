"""
Wishlist API Endpoints
"""

from flask import Blueprint, jsonify, current_app
from flask_login import current_user, login_required

from ..db import get_db, row_to_dict
from . import BadRequest, collect_updates, error_response, json_body, optional_text

wishlist_api = Blueprint('wishlist_api', __name__, url_prefix='/api/wishlist')


def _required_title(value):
    title = optional_text(value)
    if title is None:
        raise BadRequest('title is required')
    return title


WISHLIST_UPDATE_FIELDS = {
    'title': ('title', _required_title),
    'author': ('author', optional_text),
    'amazonLink': ('amazon_link', optional_text),
    'notes': ('notes', optional_text),
    'isChecked': ('is_checked', lambda v: 1 if v else 0),
}


def _find_item(item_id):
    row = get_db().execute(
        "SELECT * FROM book_wishlist WHERE id = ? AND user_id = ?", (item_id, current_user.id)
    ).fetchone()
    return row_to_dict(row)


@wishlist_api.route('', methods=['GET'])
@login_required
def list_wishlist():
    rows = get_db().execute(
        "SELECT * FROM book_wishlist WHERE user_id = ? ORDER BY created_at DESC, id DESC", (current_user.id,)
    ).fetchall()
    return jsonify({'wishlist': [row_to_dict(r) for r in rows]})


@wishlist_api.route('', methods=['POST'])
@login_required
def create_item():
    data = json_body()
    try:
        title = _required_title(data.get('title'))
    except BadRequest as e:
        return error_response(str(e), 400)

    db = get_db()
    cursor = db.execute(
        "INSERT INTO book_wishlist (user_id, title, author, amazon_link, notes) VALUES (?, ?, ?, ?, ?)",
        (current_user.id, title, optional_text(data.get('author')),
         optional_text(data.get('amazonLink')), optional_text(data.get('notes'))),
    )
    db.commit()
    return jsonify({'item': _find_item(cursor.lastrowid)})


@wishlist_api.route('/<int:item_id>', methods=['PUT'])
@login_required
def update_item(item_id):
    if _find_item(item_id) is None:
        return error_response('item not found', 404)
    try:
        updates = collect_updates(json_body(), WISHLIST_UPDATE_FIELDS)
    except BadRequest as e:
        return error_response(str(e), 400)

    if updates:
        assignments = ', '.join(f"{column} = ?" for column in updates)
        db = get_db()
        db.execute(
            f"UPDATE book_wishlist SET {assignments} WHERE id = ? AND user_id = ?",
            (*updates.values(), item_id, current_user.id),
        )
        db.commit()
    return jsonify({'item': _find_item(item_id)})


@wishlist_api.route('/<int:item_id>', methods=['DELETE'])
@login_required
def delete_item(item_id):
    db = get_db()
    cursor = db.execute("DELETE FROM book_wishlist WHERE id = ? AND user_id = ?", (item_id, current_user.id))
    db.commit()
    if cursor.rowcount == 0:
        return error_response('item not found', 404)
    current_app.logger.info(f"User {current_user.id} removed wishlist item {item_id}")
    return jsonify({'success': True})
