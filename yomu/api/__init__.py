"""
REST API blueprints and the request helpers they share.
"""

from datetime import date, datetime, timezone

from flask import jsonify, request


class BadRequest(ValueError):
    """Invalid request field; handlers turn it into a 400."""


def error_response(message, status):
    return jsonify({'error': message}), status


def json_body():
    """Request JSON as a dict (empty when the body is missing or not an object)."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def utc_timestamp():
    return datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


def optional_text(value):
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def optional_positive_int(value, field):
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise BadRequest(f'{field} must be a number')
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise BadRequest(f'{field} must be a number')
    if number <= 0:
        raise BadRequest(f'{field} must be greater than 0')
    return number


def optional_iso_date(value, field):
    if value is None or value == '':
        return None
    try:
        return date.fromisoformat(str(value)[:10]).isoformat()
    except ValueError:
        raise BadRequest(f'{field} must be a date (YYYY-MM-DD)')


def collect_updates(data, fields):
    """
    Column updates for the keys present in ``data``.

    ``fields`` maps request names to ``(column, converter)``; a key that is
    absent leaves its column unchanged, an explicit null clears it.
    """
    updates = {}
    for name, (column, convert) in fields.items():
        if name in data:
            updates[column] = convert(data[name])
    return updates
