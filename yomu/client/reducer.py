"""
Application State transitions.

``reduce(state, action)`` is a pure function: it never performs I/O and never
mutates its input. Network calls and local persistence are issued by the
store around it; by the time an action reaches the reducer the side effect
has already succeeded, so a failed intent never produces a partial write.

Actions naming an unknown book or wishlist item leave the state unchanged.
"""

from dataclasses import dataclass, replace
from functools import singledispatch
from typing import Any, Optional, Tuple

from yomu.domain.models import (
    AppState, Book, BookChanges, ReadingRecord, Tab, TimerMode, TimerState,
    WishlistChanges, WishlistItem,
)


# ----------------------------------------------------------------------
# Actions
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class DataLoaded:
    current_books: Tuple[Book, ...]
    completed_books: Tuple[Book, ...]
    wishlist: Tuple[WishlistItem, ...]


@dataclass(frozen=True)
class StateReplaced:
    state: AppState


@dataclass(frozen=True)
class BookAdded:
    book: Book


@dataclass(frozen=True)
class BookUpdated:
    book_id: Any
    changes: BookChanges


@dataclass(frozen=True)
class BookRemoved:
    book_id: Any


@dataclass(frozen=True)
class BookSelected:
    book_id: Any


@dataclass(frozen=True)
class RecordAdded:
    book_id: Any
    record: ReadingRecord


@dataclass(frozen=True)
class BookCompleted:
    book_id: Any
    completed_at: Any
    final_review: Optional[str] = None


@dataclass(frozen=True)
class TabChanged:
    tab: Tab


@dataclass(frozen=True)
class TimerStarted:
    mode: TimerMode
    duration: int


@dataclass(frozen=True)
class TimerStopped:
    pass


@dataclass(frozen=True)
class TimerResumed:
    pass


@dataclass(frozen=True)
class TimerReset:
    pass


@dataclass(frozen=True)
class TimerTicked:
    pass


@dataclass(frozen=True)
class WishlistItemAdded:
    item: WishlistItem


@dataclass(frozen=True)
class WishlistItemUpdated:
    item_id: Any
    changes: WishlistChanges


@dataclass(frozen=True)
class WishlistItemRemoved:
    item_id: Any


@dataclass(frozen=True)
class CompletedBookSelected:
    book: Optional[Book]


@dataclass(frozen=True)
class AddBookModalToggled:
    show: bool


# ----------------------------------------------------------------------
# Transitions
# ----------------------------------------------------------------------

def reduce(state: AppState, action) -> AppState:
    """Apply one action and return the next state."""
    return _apply(action, state)


def _first_id(books: Tuple[Book, ...]) -> Any:
    return books[0].id if books else None


def _reselect(state: AppState, removed_id: Any, remaining: Tuple[Book, ...]) -> Any:
    if state.selected_book_id == removed_id:
        return _first_id(remaining)
    return state.selected_book_id


@singledispatch
def _apply(action, state: AppState) -> AppState:
    raise TypeError(f'Unknown action: {action!r}')


@_apply.register
def _(action: DataLoaded, state: AppState) -> AppState:
    return replace(
        state,
        current_books=tuple(action.current_books),
        completed_books=tuple(action.completed_books),
        wishlist=tuple(action.wishlist),
        selected_book_id=_first_id(tuple(action.current_books)),
        selected_completed_book=None,
    )


@_apply.register
def _(action: StateReplaced, state: AppState) -> AppState:
    return action.state


@_apply.register
def _(action: BookAdded, state: AppState) -> AppState:
    return replace(
        state,
        current_books=state.current_books + (action.book,),
        selected_book_id=action.book.id,
    )


@_apply.register
def _(action: BookUpdated, state: AppState) -> AppState:
    if state.find_current_book(action.book_id) is None:
        return state
    return replace(state, current_books=tuple(
        action.changes.apply(book) if book.id == action.book_id else book
        for book in state.current_books
    ))


@_apply.register
def _(action: BookRemoved, state: AppState) -> AppState:
    remaining = tuple(book for book in state.current_books if book.id != action.book_id)
    if len(remaining) == len(state.current_books):
        return state
    return replace(
        state,
        current_books=remaining,
        selected_book_id=_reselect(state, action.book_id, remaining),
    )


@_apply.register
def _(action: BookSelected, state: AppState) -> AppState:
    return replace(state, selected_book_id=action.book_id)


@_apply.register
def _(action: RecordAdded, state: AppState) -> AppState:
    if state.find_current_book(action.book_id) is None:
        return state
    return replace(state, current_books=tuple(
        replace(
            book,
            current_page=action.record.pages_read,
            reading_history=book.reading_history + (action.record,),
        ) if book.id == action.book_id else book
        for book in state.current_books
    ))


@_apply.register
def _(action: BookCompleted, state: AppState) -> AppState:
    book = state.find_current_book(action.book_id)
    if book is None:
        # Already completed (or unknown): completion happens once
        return state
    completed = replace(
        book,
        is_completed=True,
        completed_at=action.completed_at,
        final_review=action.final_review,
    )
    remaining = tuple(b for b in state.current_books if b.id != action.book_id)
    return replace(
        state,
        current_books=remaining,
        completed_books=state.completed_books + (completed,),
        selected_book_id=_reselect(state, action.book_id, remaining),
    )


@_apply.register
def _(action: TabChanged, state: AppState) -> AppState:
    return replace(state, current_tab=action.tab)


@_apply.register
def _(action: TimerStarted, state: AppState) -> AppState:
    seconds = action.duration if action.mode is TimerMode.COUNTDOWN else 0
    return replace(state, timer=TimerState(
        running=True,
        mode=action.mode,
        seconds=seconds,
        duration=action.duration,
    ))


@_apply.register
def _(action: TimerStopped, state: AppState) -> AppState:
    # Pause: mode, seconds and duration are kept for TimerResumed
    return replace(state, timer=replace(state.timer, running=False))


@_apply.register
def _(action: TimerResumed, state: AppState) -> AppState:
    timer = state.timer
    if timer.running or timer.finished or timer.mode is TimerMode.NONE:
        return state
    return replace(state, timer=replace(timer, running=True))


@_apply.register
def _(action: TimerReset, state: AppState) -> AppState:
    return replace(state, timer=TimerState())


@_apply.register
def _(action: TimerTicked, state: AppState) -> AppState:
    timer = state.timer
    if not timer.running:
        return state
    if timer.mode is TimerMode.COUNTDOWN:
        seconds = max(timer.seconds - 1, 0)
        if seconds == 0:
            return replace(state, timer=replace(timer, seconds=0, running=False, finished=True))
        return replace(state, timer=replace(timer, seconds=seconds))
    if timer.mode is TimerMode.STOPWATCH:
        return replace(state, timer=replace(timer, seconds=timer.seconds + 1))
    return state


@_apply.register
def _(action: WishlistItemAdded, state: AppState) -> AppState:
    return replace(state, wishlist=state.wishlist + (action.item,))


@_apply.register
def _(action: WishlistItemUpdated, state: AppState) -> AppState:
    if state.find_wishlist_item(action.item_id) is None:
        return state
    return replace(state, wishlist=tuple(
        action.changes.apply(item) if item.id == action.item_id else item
        for item in state.wishlist
    ))


@_apply.register
def _(action: WishlistItemRemoved, state: AppState) -> AppState:
    return replace(state, wishlist=tuple(item for item in state.wishlist if item.id != action.item_id))


@_apply.register
def _(action: CompletedBookSelected, state: AppState) -> AppState:
    return replace(state, selected_completed_book=action.book)


@_apply.register
def _(action: AddBookModalToggled, state: AppState) -> AppState:
    return replace(state, show_add_book_modal=bool(action.show))
