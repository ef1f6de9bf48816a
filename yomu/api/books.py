"""
Books API Endpoints

CRUD for the current user's books, their reading records, and the one-time
completion transition. Every query is scoped to ``current_user``; a book that
belongs to somebody else answers 404 exactly like a missing one.
"""

from datetime import datetime

import pytz
from flask import Blueprint, jsonify, current_app
from flask_login import current_user, login_required

from ..db import get_db, row_to_dict
from . import (
    BadRequest, collect_updates, error_response, json_body, optional_iso_date,
    optional_positive_int, optional_text, utc_timestamp,
)

books_api = Blueprint('books_api', __name__, url_prefix='/api/books')


def _required_title(value):
    title = optional_text(value)
    if title is None:
        raise BadRequest('title is required')
    return title


def _current_page(value):
    if value is None or isinstance(value, bool):
        raise BadRequest('currentPage must be a number')
    try:
        page = int(value)
    except (TypeError, ValueError):
        raise BadRequest('currentPage must be a number')
    if page < 0:
        raise BadRequest('currentPage cannot be negative')
    return page


# Request name -> (column, converter)
BOOK_UPDATE_FIELDS = {
    'title': ('title', _required_title),
    'author': ('author', optional_text),
    'totalPages': ('total_pages', lambda v: optional_positive_int(v, 'totalPages')),
    'targetDate': ('target_date', lambda v: optional_iso_date(v, 'targetDate')),
    'currentPage': ('current_page', _current_page),
}


def _find_book(book_id):
    row = get_db().execute(
        "SELECT * FROM books WHERE id = ? AND user_id = ?", (book_id, current_user.id)
    ).fetchone()
    return row_to_dict(row)


def _today():
    """Today's calendar day in the configured time zone."""
    tz = pytz.timezone(current_app.config.get('TIMEZONE') or 'UTC')
    return datetime.now(tz).date().isoformat()


@books_api.route('', methods=['GET'])
@login_required
def list_books():
    rows = get_db().execute(
        "SELECT * FROM books WHERE user_id = ? ORDER BY created_at DESC, id DESC", (current_user.id,)
    ).fetchall()
    return jsonify({'books': [row_to_dict(r) for r in rows]})


@books_api.route('', methods=['POST'])
@login_required
def create_book():
    data = json_body()
    try:
        title = _required_title(data.get('title'))
        total_pages = optional_positive_int(data.get('totalPages'), 'totalPages')
        target_date = optional_iso_date(data.get('targetDate'), 'targetDate')
    except BadRequest as e:
        return error_response(str(e), 400)

    db = get_db()
    cursor = db.execute(
        "INSERT INTO books (user_id, title, author, total_pages, target_date) VALUES (?, ?, ?, ?, ?)",
        (current_user.id, title, optional_text(data.get('author')), total_pages, target_date),
    )
    db.commit()
    current_app.logger.info(f"User {current_user.id} added book {cursor.lastrowid}")
    return jsonify({'book': _find_book(cursor.lastrowid)})


@books_api.route('/<int:book_id>', methods=['PUT'])
@login_required
def update_book(book_id):
    if _find_book(book_id) is None:
        return error_response('book not found', 404)
    try:
        updates = collect_updates(json_body(), BOOK_UPDATE_FIELDS)
    except BadRequest as e:
        return error_response(str(e), 400)

    if updates:
        assignments = ', '.join(f"{column} = ?" for column in updates)
        db = get_db()
        db.execute(
            f"UPDATE books SET {assignments}, updated_at = ? WHERE id = ? AND user_id = ?",
            (*updates.values(), utc_timestamp(), book_id, current_user.id),
        )
        db.commit()
    return jsonify({'book': _find_book(book_id)})


@books_api.route('/<int:book_id>', methods=['DELETE'])
@login_required
def delete_book(book_id):
    db = get_db()
    cursor = db.execute("DELETE FROM books WHERE id = ? AND user_id = ?", (book_id, current_user.id))
    db.commit()
    if cursor.rowcount == 0:
        return error_response('book not found', 404)
    current_app.logger.info(f"User {current_user.id} deleted book {book_id}")
    return jsonify({'success': True})


@books_api.route('/<int:book_id>/records', methods=['GET'])
@login_required
def list_records(book_id):
    rows = get_db().execute(
        "SELECT * FROM reading_records WHERE book_id = ? AND user_id = ? ORDER BY date DESC, id DESC",
        (book_id, current_user.id),
    ).fetchall()
    return jsonify({'records': [row_to_dict(r) for r in rows]})


@books_api.route('/<int:book_id>/records', methods=['POST'])
@login_required
def create_record(book_id):
    data = json_body()
    pages_read = data.get('pagesRead')
    percentage = data.get('percentage')
    if pages_read is None or percentage is None:
        return error_response('pagesRead and percentage are required', 400)
    try:
        pages_read = optional_positive_int(pages_read, 'pagesRead')
        percentage = int(percentage)
    except BadRequest as e:
        return error_response(str(e), 400)
    except (TypeError, ValueError):
        return error_response('percentage must be a number', 400)
    if not 0 <= percentage <= 100:
        return error_response('percentage must be between 0 and 100', 400)

    if _find_book(book_id) is None:
        return error_response('book not found', 404)

    db = get_db()
    cursor = db.execute(
        "INSERT INTO reading_records (book_id, user_id, date, pages_read, notes, percentage) "
        "VALUES (?, ?, ?, ?, ?, ?)",
        (book_id, current_user.id, _today(), pages_read, optional_text(data.get('notes')), percentage),
    )
    db.execute(
        "UPDATE books SET current_page = ?, updated_at = ? WHERE id = ? AND user_id = ?",
        (pages_read, utc_timestamp(), book_id, current_user.id),
    )
    db.commit()
    row = db.execute("SELECT * FROM reading_records WHERE id = ?", (cursor.lastrowid,)).fetchone()
    return jsonify({'record': row_to_dict(row)})


@books_api.route('/<int:book_id>/complete', methods=['POST'])
@login_required
def complete_book(book_id):
    book = _find_book(book_id)
    if book is None:
        return error_response('book not found', 404)
    if book['is_completed']:
        return error_response('book already completed', 409)

    now = utc_timestamp()
    db = get_db()
    db.execute(
        "UPDATE books SET is_completed = 1, completed_at = ?, final_review = ?, updated_at = ? "
        "WHERE id = ? AND user_id = ?",
        (now, optional_text(json_body().get('finalReview')), now, book_id, current_user.id),
    )
    db.commit()
    current_app.logger.info(f"User {current_user.id} completed book {book_id}")
    return jsonify({'book': _find_book(book_id)})
