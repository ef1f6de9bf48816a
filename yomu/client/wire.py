"""
Wire <-> domain conversion.

The backend returns snake_case rows (``total_pages``, ``is_completed`` ...)
and accepts camelCase request bodies (``totalPages``, ``pagesRead`` ...).
The local state snapshot uses camelCase keys throughout. Readers accept both
spellings; every optional field that is absent maps to None.
"""

from dataclasses import replace
from datetime import datetime, date, timezone
from typing import Any, Dict, Iterable, List, Optional

import pytz

from yomu.domain.models import (
    AppState, Book, BookChanges, ReadingRecord, Tab, TimerMode, TimerState,
    User, WishlistChanges, WishlistItem,
)

# Domain field -> request body name
BOOK_WRITE_FIELDS = {
    'title': 'title',
    'author': 'author',
    'total_pages': 'totalPages',
    'target_date': 'targetDate',
    'current_page': 'currentPage',
}

WISHLIST_WRITE_FIELDS = {
    'title': 'title',
    'author': 'author',
    'amazon_link': 'amazonLink',
    'notes': 'notes',
    'is_checked': 'isChecked',
}

# Legacy timer mode names used by older snapshots
_TIMER_MODE_ALIASES = {
    'timer': TimerMode.COUNTDOWN,
    'countdown': TimerMode.COUNTDOWN,
    'stopwatch': TimerMode.STOPWATCH,
    'none': TimerMode.NONE,
}


def _pick(payload: Dict[str, Any], *names: str) -> Any:
    """First value present under any of ``names`` (None if none is)."""
    for name in names:
        if name in payload:
            return payload[name]
    return None


def _int_or_none(value: Any) -> Optional[int]:
    if value is None or value == '':
        return None
    return int(value)


def _text_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def get_timezone(name: Optional[str]):
    return pytz.timezone(name or 'UTC')


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_day(value: Any, tz_name: Optional[str] = None) -> Optional[date]:
    """
    Calendar day of a date or timestamp value.

    Plain ``YYYY-MM-DD`` values are taken as-is; timestamps are converted to
    the given time zone before taking the day.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        stamp = value
    elif isinstance(value, date):
        return value
    else:
        text = str(value).strip()
        if len(text) == 10:
            return date.fromisoformat(text)
        stamp = parse_timestamp(text)
    if stamp.tzinfo is None:
        return stamp.date()
    return stamp.astimezone(get_timezone(tz_name)).date()


def format_day(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


# ----------------------------------------------------------------------
# Users
# ----------------------------------------------------------------------

def user_from_wire(payload: Dict[str, Any]) -> User:
    return User(
        id=payload.get('id'),
        name=payload.get('name') or '',
        email=payload.get('email') or '',
    )


# ----------------------------------------------------------------------
# Reading records
# ----------------------------------------------------------------------

def record_from_wire(payload: Dict[str, Any], tz_name: Optional[str] = None) -> ReadingRecord:
    created_at = parse_timestamp(_pick(payload, 'created_at', 'createdAt'))
    day = parse_day(payload.get('date'), tz_name)
    if day is None and created_at is not None:
        day = parse_day(created_at, tz_name)
    return ReadingRecord(
        id=payload.get('id'),
        date=day,
        pages_read=int(_pick(payload, 'pages_read', 'pagesRead') or 0),
        percentage=int(payload.get('percentage') or 0),
        notes=_text_or_none(payload.get('notes')),
        created_at=created_at,
    )


def record_to_wire(record: ReadingRecord) -> Dict[str, Any]:
    """Request body for ``POST /api/books/:id/records``."""
    return {
        'pagesRead': record.pages_read,
        'notes': record.notes,
        'percentage': record.percentage,
    }


def record_to_snapshot(record: ReadingRecord) -> Dict[str, Any]:
    return {
        'id': record.id,
        'date': format_day(record.date),
        'pagesRead': record.pages_read,
        'percentage': record.percentage,
        'notes': record.notes,
        'createdAt': format_timestamp(record.created_at),
    }


# ----------------------------------------------------------------------
# Books
# ----------------------------------------------------------------------

def book_from_wire(payload: Dict[str, Any], records: Optional[Iterable[ReadingRecord]] = None,
                   tz_name: Optional[str] = None) -> Book:
    """Build a Book from a server row or a snapshot entry."""
    if records is None:
        raw_history = _pick(payload, 'readingHistory', 'reading_history') or []
        records = [record_from_wire(r, tz_name) for r in raw_history]
    return Book(
        id=payload.get('id'),
        title=payload.get('title') or '',
        author=_text_or_none(payload.get('author')),
        total_pages=_int_or_none(_pick(payload, 'total_pages', 'totalPages')),
        target_date=parse_day(_pick(payload, 'target_date', 'targetDate'), tz_name),
        started_at=parse_timestamp(_pick(payload, 'started_at', 'startedAt')),
        current_page=int(_pick(payload, 'current_page', 'currentPage') or 0),
        is_completed=bool(_pick(payload, 'is_completed', 'isCompleted')),
        completed_at=parse_timestamp(_pick(payload, 'completed_at', 'completedAt', 'completedDate')),
        final_review=_text_or_none(_pick(payload, 'final_review', 'finalReview')),
        reading_history=tuple(records),
    )


def book_to_wire(book: Book) -> Dict[str, Any]:
    """Request body for ``POST /api/books``."""
    return {
        'title': book.title,
        'author': book.author,
        'totalPages': book.total_pages,
        'targetDate': format_day(book.target_date),
    }


def _wire_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, date):
        return format_day(value)
    return value


def book_changes_to_wire(changes: BookChanges) -> Dict[str, Any]:
    """Request body for ``PUT /api/books/:id``: only the fields that are set."""
    return {BOOK_WRITE_FIELDS[name]: _wire_value(value) for name, value in changes}


def book_changes_from_wire(payload: Dict[str, Any], tz_name: Optional[str] = None) -> BookChanges:
    """Every mutable field of a returned book row, to merge into the local copy."""
    book = book_from_wire(payload, records=(), tz_name=tz_name)
    return BookChanges(
        title=book.title,
        author=book.author,
        total_pages=book.total_pages,
        target_date=book.target_date,
        current_page=book.current_page,
    )


def book_to_snapshot(book: Book) -> Dict[str, Any]:
    return {
        'id': book.id,
        'title': book.title,
        'author': book.author,
        'totalPages': book.total_pages,
        'targetDate': format_day(book.target_date),
        'startedAt': format_timestamp(book.started_at),
        'currentPage': book.current_page,
        'isCompleted': book.is_completed,
        'completedAt': format_timestamp(book.completed_at),
        'finalReview': book.final_review,
        'readingHistory': [record_to_snapshot(r) for r in book.reading_history],
    }


# ----------------------------------------------------------------------
# Wishlist
# ----------------------------------------------------------------------

def wishlist_from_wire(payload: Dict[str, Any]) -> WishlistItem:
    return WishlistItem(
        id=payload.get('id'),
        title=payload.get('title') or '',
        author=_text_or_none(payload.get('author')),
        amazon_link=_text_or_none(_pick(payload, 'amazon_link', 'amazonLink')),
        notes=_text_or_none(_pick(payload, 'notes', 'details')),
        is_checked=bool(_pick(payload, 'is_checked', 'isChecked', 'isCompleted')),
        created_at=parse_timestamp(_pick(payload, 'created_at', 'createdAt')),
    )


def wishlist_to_wire(item: WishlistItem) -> Dict[str, Any]:
    """Request body for ``POST /api/wishlist``."""
    return {
        'title': item.title,
        'author': item.author,
        'amazonLink': item.amazon_link,
        'notes': item.notes,
    }


def wishlist_changes_to_wire(changes: WishlistChanges) -> Dict[str, Any]:
    return {WISHLIST_WRITE_FIELDS[name]: value for name, value in changes}


def wishlist_changes_from_wire(payload: Dict[str, Any]) -> WishlistChanges:
    item = wishlist_from_wire(payload)
    return WishlistChanges(
        title=item.title,
        author=item.author,
        amazon_link=item.amazon_link,
        notes=item.notes,
        is_checked=item.is_checked,
    )


def wishlist_to_snapshot(item: WishlistItem) -> Dict[str, Any]:
    return {
        'id': item.id,
        'title': item.title,
        'author': item.author,
        'amazonLink': item.amazon_link,
        'notes': item.notes,
        'isChecked': item.is_checked,
        'createdAt': format_timestamp(item.created_at),
    }


# ----------------------------------------------------------------------
# Whole-state snapshot (local storage)
# ----------------------------------------------------------------------

def _timer_from_snapshot(data: Dict[str, Any]) -> TimerState:
    raw = data.get('timer')
    if isinstance(raw, dict):
        mode = _TIMER_MODE_ALIASES.get(raw.get('mode') or 'none', TimerMode.NONE)
        return TimerState(
            running=bool(raw.get('running')),
            mode=mode,
            seconds=int(raw.get('seconds') or 0),
            duration=int(raw.get('duration') or 0),
            finished=bool(raw.get('finished')),
        )
    # Flat layout of older snapshots
    mode = _TIMER_MODE_ALIASES.get(data.get('timerMode') or 'none', TimerMode.NONE)
    return TimerState(
        running=bool(data.get('isTimerRunning')),
        mode=mode,
        seconds=int(data.get('timerSeconds') or 0),
        duration=int(data.get('timerDuration') or 0),
    )


def _tab_from_snapshot(value: Any) -> Tab:
    try:
        return Tab(value)
    except ValueError:
        return Tab.DASHBOARD


def state_to_snapshot(state: AppState) -> Dict[str, Any]:
    selected_completed = state.selected_completed_book
    return {
        'currentBooks': [book_to_snapshot(b) for b in state.current_books],
        'selectedBookId': state.selected_book_id,
        'completedBooks': [book_to_snapshot(b) for b in state.completed_books],
        'bookWishlist': [wishlist_to_snapshot(i) for i in state.wishlist],
        'currentTab': state.current_tab.value,
        'timer': {
            'running': state.timer.running,
            'mode': state.timer.mode.value,
            'seconds': state.timer.seconds,
            'duration': state.timer.duration,
            'finished': state.timer.finished,
        },
        'selectedCompletedBook': book_to_snapshot(selected_completed) if selected_completed else None,
        'showAddBookModal': state.show_add_book_modal,
    }


def state_from_snapshot(data: Any, tz_name: Optional[str] = None) -> AppState:
    """Rebuild an AppState from a stored snapshot, upgrading older layouts."""
    if not isinstance(data, dict):
        return AppState()
    data = dict(data)

    # Single-book layout: currentBook plus a top-level readingHistory
    if data.get('currentBook') and not data.get('currentBooks'):
        legacy_book = dict(data.pop('currentBook'))
        legacy_book['readingHistory'] = data.pop('readingHistory', None) or []
        data['currentBooks'] = [legacy_book]
        data['selectedBookId'] = legacy_book.get('id')

    current_books: List[Book] = [book_from_wire(b, tz_name=tz_name) for b in data.get('currentBooks') or []]
    completed_books = [
        _mark_completed(book_from_wire(b, tz_name=tz_name)) for b in data.get('completedBooks') or []
    ]
    wishlist = [wishlist_from_wire(i) for i in data.get('bookWishlist') or []]

    selected_book_id = data.get('selectedBookId')
    if selected_book_id is None and current_books:
        selected_book_id = current_books[0].id

    raw_selected_completed = data.get('selectedCompletedBook')
    selected_completed = (
        _mark_completed(book_from_wire(raw_selected_completed, tz_name=tz_name))
        if isinstance(raw_selected_completed, dict) else None
    )

    return AppState(
        current_books=tuple(current_books),
        selected_book_id=selected_book_id,
        completed_books=tuple(completed_books),
        wishlist=tuple(wishlist),
        current_tab=_tab_from_snapshot(data.get('currentTab')),
        timer=_timer_from_snapshot(data),
        selected_completed_book=selected_completed,
        show_add_book_modal=bool(data.get('showAddBookModal')),
    )


def _mark_completed(book: Book) -> Book:
    if book.is_completed:
        return book
    # Older snapshots carry completedDate but no completion flag
    return replace(book, is_completed=True)


__all__ = [
    'get_timezone', 'parse_timestamp', 'parse_day', 'format_day', 'format_timestamp',
    'user_from_wire',
    'record_from_wire', 'record_to_wire', 'record_to_snapshot',
    'book_from_wire', 'book_to_wire', 'book_changes_to_wire', 'book_changes_from_wire', 'book_to_snapshot',
    'wishlist_from_wire', 'wishlist_to_wire', 'wishlist_changes_to_wire', 'wishlist_changes_from_wire',
    'wishlist_to_snapshot',
    'state_to_snapshot', 'state_from_snapshot',
]
