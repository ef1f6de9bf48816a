from datetime import date, datetime, timezone

import pytest

from yomu.client import reducer
from yomu.client.reducer import reduce
from yomu.domain.models import (
    AppState, Book, BookChanges, ReadingRecord, Tab, TimerMode, TimerState,
    WishlistChanges, WishlistItem,
)

DONE_AT = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def _state(*titles):
    books = tuple(Book(id=i, title=t) for i, t in enumerate(titles, start=1))
    return AppState(current_books=books, selected_book_id=books[0].id if books else None)


def test_reduce_does_not_mutate_input():
    state = _state('Dune')
    new_state = reduce(state, reducer.BookAdded(Book(id=2, title='Emma')))
    assert len(state.current_books) == 1
    assert [b.title for b in new_state.current_books] == ['Dune', 'Emma']
    assert new_state.selected_book_id == 2


def test_removing_selected_book_selects_first_remaining():
    state = reduce(_state('Dune', 'Emma', 'Ulysses'), reducer.BookSelected(2))
    state = reduce(state, reducer.BookRemoved(2))
    assert state.selected_book_id == 1


def test_removing_last_book_clears_selection():
    state = reduce(_state('Dune'), reducer.BookRemoved(1))
    assert state.current_books == ()
    assert state.selected_book_id is None


def test_removing_other_book_keeps_selection():
    state = reduce(_state('Dune', 'Emma'), reducer.BookSelected(2))
    state = reduce(state, reducer.BookRemoved(1))
    assert state.selected_book_id == 2


def test_record_added_appends_and_moves_current_page():
    record = ReadingRecord(id=10, date=date(2024, 3, 1), pages_read=50, percentage=50)
    state = reduce(_state('Dune'), reducer.RecordAdded(1, record))
    book = state.current_books[0]
    assert book.current_page == 50
    assert book.reading_history == (record,)


def test_book_completed_moves_book_once():
    state = reduce(_state('Dune', 'Emma'), reducer.BookCompleted(1, DONE_AT, 'Loved it'))
    assert [b.id for b in state.current_books] == [2]
    completed = state.completed_books[0]
    assert completed.is_completed is True
    assert completed.final_review == 'Loved it'
    assert completed.completed_at == DONE_AT
    assert state.selected_book_id == 2

    again = reduce(state, reducer.BookCompleted(1, DONE_AT, 'Twice'))
    assert again is state


def test_unknown_ids_leave_state_unchanged():
    state = _state('Dune')
    assert reduce(state, reducer.BookUpdated(99, BookChanges(title='X'))) is state
    assert reduce(state, reducer.BookRemoved(99)) is state
    assert reduce(state, reducer.WishlistItemUpdated(99, WishlistChanges(title='X'))) is state


def test_book_updated_merges_present_fields_only():
    state = _state('Dune')
    state = reduce(state, reducer.BookUpdated(1, BookChanges(author='Herbert', total_pages=412)))
    book = state.current_books[0]
    assert (book.title, book.author, book.total_pages) == ('Dune', 'Herbert', 412)

    state = reduce(state, reducer.BookUpdated(1, BookChanges(author=None)))
    assert state.current_books[0].author is None
    assert state.current_books[0].total_pages == 412


def test_data_loaded_selects_first_current_book():
    current = (Book(id=7, title='Dune'), Book(id=8, title='Emma'))
    state = reduce(AppState(selected_completed_book=Book(id=1, title='Old')),
                   reducer.DataLoaded(current, (), ()))
    assert state.selected_book_id == 7
    assert state.selected_completed_book is None


def test_wishlist_transitions():
    item = WishlistItem(id=1, title='Hyperion')
    state = reduce(AppState(), reducer.WishlistItemAdded(item))
    state = reduce(state, reducer.WishlistItemUpdated(1, WishlistChanges(is_checked=True)))
    assert state.wishlist[0].is_checked is True
    state = reduce(state, reducer.WishlistItemRemoved(1))
    assert state.wishlist == ()


def test_ui_transitions():
    book = Book(id=3, title='Done', is_completed=True)
    state = reduce(AppState(), reducer.TabChanged(Tab.CALENDAR))
    state = reduce(state, reducer.CompletedBookSelected(book))
    state = reduce(state, reducer.AddBookModalToggled(True))
    assert state.current_tab is Tab.CALENDAR
    assert state.selected_completed_book == book
    assert state.show_add_book_modal is True


def test_countdown_ticks_down_to_finished():
    state = reduce(AppState(), reducer.TimerStarted(TimerMode.COUNTDOWN, 2))
    assert state.timer == TimerState(running=True, mode=TimerMode.COUNTDOWN, seconds=2, duration=2)
    state = reduce(state, reducer.TimerTicked())
    assert state.timer.seconds == 1
    state = reduce(state, reducer.TimerTicked())
    assert state.timer.seconds == 0
    assert state.timer.finished is True
    assert state.timer.running is False
    # Further ticks are ignored once the timer stopped
    assert reduce(state, reducer.TimerTicked()) is state


def test_stopwatch_counts_up_and_stop_preserves_seconds():
    state = reduce(AppState(), reducer.TimerStarted(TimerMode.STOPWATCH, 0))
    for _ in range(3):
        state = reduce(state, reducer.TimerTicked())
    state = reduce(state, reducer.TimerStopped())
    assert state.timer.running is False
    assert state.timer.seconds == 3
    assert state.timer.mode is TimerMode.STOPWATCH

    assert reduce(state, reducer.TimerTicked()) is state
    state = reduce(state, reducer.TimerResumed())
    state = reduce(state, reducer.TimerTicked())
    assert state.timer.seconds == 4

    state = reduce(state, reducer.TimerReset())
    assert state.timer == TimerState()


def test_unknown_action_is_rejected():
    with pytest.raises(TypeError):
        reduce(AppState(), object())
