from datetime import date, datetime, timezone

from yomu.client import wire
from yomu.domain.models import (
    AppState, Book, BookChanges, ReadingRecord, Tab, TimerMode, TimerState, WishlistChanges,
)

SERVER_BOOK = {
    'id': 4,
    'user_id': 1,
    'title': 'Dune',
    'author': 'Frank Herbert',
    'total_pages': 412,
    'target_date': '2024-05-01',
    'started_at': '2024-03-01T08:00:00Z',
    'current_page': 120,
    'is_completed': False,
    'completed_at': None,
    'final_review': None,
    'created_at': '2024-03-01T08:00:00Z',
    'updated_at': '2024-03-02T08:00:00Z',
}


def test_server_book_write_path_preserves_fields():
    book = wire.book_from_wire(SERVER_BOOK, records=())
    assert wire.book_to_wire(book) == {
        'title': 'Dune',
        'author': 'Frank Herbert',
        'totalPages': 412,
        'targetDate': '2024-05-01',
    }


def test_server_book_reads_every_column():
    book = wire.book_from_wire(SERVER_BOOK, records=())
    assert book.current_page == 120
    assert book.target_date == date(2024, 5, 1)
    assert book.started_at == datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)
    assert book.is_completed is False
    assert book.completed_at is None


def test_absent_optional_fields_map_to_none():
    book = wire.book_from_wire({'id': 1, 'title': 'Bare'})
    assert (book.author, book.total_pages, book.target_date, book.final_review) == (None, None, None, None)
    assert book.reading_history == ()


def test_change_sets_send_only_present_fields():
    body = wire.book_changes_to_wire(BookChanges(target_date=date(2024, 6, 1), author=None))
    assert body == {'author': None, 'targetDate': '2024-06-01'}
    assert wire.wishlist_changes_to_wire(WishlistChanges(is_checked=True)) == {'isChecked': True}


def test_record_day_in_configured_time_zone():
    # 23:30 UTC is already the next day in Tokyo
    record = wire.record_from_wire({'id': 1, 'created_at': '2024-03-01T23:30:00Z', 'pages_read': 5,
                                    'percentage': 3}, tz_name='Asia/Tokyo')
    assert record.date == date(2024, 3, 2)

    plain = wire.record_from_wire({'id': 2, 'date': '2024-03-01', 'pages_read': 5, 'percentage': 3},
                                  tz_name='Asia/Tokyo')
    assert plain.date == date(2024, 3, 1)


def test_wishlist_reads_legacy_names():
    item = wire.wishlist_from_wire({'id': 1, 'title': 'Hyperion', 'details': 'gift', 'isCompleted': True})
    assert item.notes == 'gift'
    assert item.is_checked is True


def test_snapshot_round_trip():
    record = ReadingRecord(id=11, date=date(2024, 3, 2), pages_read=40, percentage=10, notes='slow start',
                           created_at=datetime(2024, 3, 2, 21, 0, tzinfo=timezone.utc))
    current = Book(id=1, title='Dune', total_pages=412, current_page=40, reading_history=(record,))
    done = Book(id=2, title='Emma', is_completed=True, final_review='Witty',
                completed_at=datetime(2024, 2, 1, 10, 0, tzinfo=timezone.utc))
    state = AppState(
        current_books=(current,),
        selected_book_id=1,
        completed_books=(done,),
        current_tab=Tab.TIMER,
        timer=TimerState(running=False, mode=TimerMode.STOPWATCH, seconds=95),
        show_add_book_modal=True,
    )
    assert wire.state_from_snapshot(wire.state_to_snapshot(state)) == state


def test_legacy_single_book_snapshot_is_upgraded():
    legacy = {
        'currentBook': {'id': 5, 'title': 'Old Layout', 'totalPages': 100, 'startDate': '2024-01-01'},
        'readingHistory': [{'id': 6, 'date': '2024-01-02', 'pagesRead': 20, 'percentage': 20}],
        'completedBooks': [{'id': 7, 'title': 'Finished', 'completedDate': '2024-01-01T10:00:00Z'}],
        'bookWishlist': [{'id': 8, 'title': 'Later', 'isChecked': False}],
        'currentTab': 'calendar',
        'isTimerRunning': True,
        'timerSeconds': 300,
        'timerMode': 'timer',
        'timerDuration': 600,
    }
    state = wire.state_from_snapshot(legacy)
    assert [b.title for b in state.current_books] == ['Old Layout']
    assert state.current_books[0].reading_history[0].pages_read == 20
    assert state.selected_book_id == 5
    assert state.completed_books[0].is_completed is True
    assert state.completed_books[0].completed_at == datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
    assert state.current_tab is Tab.CALENDAR
    assert state.timer == TimerState(running=True, mode=TimerMode.COUNTDOWN, seconds=300, duration=600)


def test_missing_or_invalid_snapshot_is_empty_state():
    assert wire.state_from_snapshot(None) == AppState()
    assert wire.state_from_snapshot('garbage') == AppState()
    assert wire.state_from_snapshot({'currentTab': 'nope'}).current_tab is Tab.DASHBOARD
