"""
Client orchestrator.

``AppStore`` owns the current ``AppState`` and exposes one method per domain
intent. Each intent validates its input, asks the active persistence strategy
to perform the side effect, and only then dispatches the resulting action
through the pure reducer. A failed intent is logged, re-raised to the caller
and leaves the state exactly as it was.

The strategy follows the session: while nobody is signed in the store works
on the local snapshot; as soon as a session becomes authenticated the local
state is discarded and replaced by the server's (no merge), and logging out
switches back to the local snapshot.
"""

import logging
from contextlib import contextmanager
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Union

from yomu.domain.models import (
    AppState, Book, BookChanges, Tab, TimerMode, WishlistChanges, WishlistItem, now_utc,
)
from . import reducer, wire
from .errors import AuthError, ConflictError, GatewayError, NotFoundError, ValidationError
from .gateway import RemoteGateway
from .history import HistoryAggregator, ReviewNode
from .session import SessionStore
from .storage import KeyValueStore
from .strategies import LocalStrategy, PersistenceStrategy, RemoteStrategy

logger = logging.getLogger(__name__)

TIMER_MODES = (TimerMode.COUNTDOWN, TimerMode.STOPWATCH)


def _require_title(title: Optional[str]) -> str:
    if not title or not str(title).strip():
        raise ValidationError('Title is required')
    return str(title).strip()


def _positive_int_or_none(value: Any, field_name: str) -> Optional[int]:
    if value is None or value == '':
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field_name} must be a whole number')
    if number <= 0:
        raise ValidationError(f'{field_name} must be greater than 0')
    return number


def _date_or_none(value: Any) -> Optional[date]:
    if value is None or value == '':
        return None
    try:
        return wire.parse_day(value)
    except ValueError:
        raise ValidationError(f'Invalid date: {value}')


def _book_changes(changes: Union[BookChanges, Dict[str, Any]]) -> BookChanges:
    if isinstance(changes, dict):
        try:
            changes = BookChanges(**changes)
        except TypeError as e:
            raise ValidationError(f'Unknown book field: {e}')
    present = changes.present()
    if 'title' in present:
        present['title'] = _require_title(present['title'])
    if 'author' in present:
        present['author'] = present['author'] or None
    if 'total_pages' in present:
        present['total_pages'] = _positive_int_or_none(present['total_pages'], 'Total pages')
    if 'target_date' in present:
        present['target_date'] = _date_or_none(present['target_date'])
    if 'current_page' in present:
        try:
            page = int(present['current_page'])
        except (TypeError, ValueError):
            raise ValidationError('Current page must be a whole number')
        if page < 0:
            raise ValidationError('Current page cannot be negative')
        present['current_page'] = page
    return BookChanges(**present)


def _wishlist_changes(changes: Union[WishlistChanges, Dict[str, Any]]) -> WishlistChanges:
    if isinstance(changes, dict):
        try:
            changes = WishlistChanges(**changes)
        except TypeError as e:
            raise ValidationError(f'Unknown wishlist field: {e}')
    present = changes.present()
    if 'title' in present:
        present['title'] = _require_title(present['title'])
    if 'is_checked' in present:
        present['is_checked'] = bool(present['is_checked'])
    return WishlistChanges(**present)


def _data_loaded(loaded: AppState) -> reducer.DataLoaded:
    return reducer.DataLoaded(
        current_books=loaded.current_books,
        completed_books=loaded.completed_books,
        wishlist=loaded.wishlist,
    )


class AppStore:
    def __init__(self, session: SessionStore, gateway: RemoteGateway, storage: KeyValueStore,
                 config=None, clock=now_utc):
        self.session = session
        self.gateway = gateway
        self.storage = storage
        self.tz_name = getattr(config, 'timezone', None)
        self._clock = clock
        self._listeners: List[Callable[[AppState], None]] = []
        self.is_loading = False

        self._local = LocalStrategy(storage, tz_name=self.tz_name, clock=clock)
        self._remote = RemoteStrategy(gateway, tz_name=self.tz_name)
        self.strategy: PersistenceStrategy = self._local
        self._state = AppState()

        session.subscribe(self._on_session_change)
        self._on_session_change(session)

    # ------------------------------------------------------------------
    # State plumbing
    # ------------------------------------------------------------------

    @property
    def state(self) -> AppState:
        return self._state

    def subscribe(self, listener: Callable[[AppState], None]) -> Callable[[], None]:
        """Register a callback receiving every new state; returns an unsubscribe function."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def dispatch(self, action) -> AppState:
        new_state = reducer.reduce(self._state, action)
        if new_state is self._state:
            return new_state
        self._state = new_state
        self.strategy.persist(new_state)
        for listener in list(self._listeners):
            listener(new_state)
        return new_state

    @contextmanager
    def _loading(self):
        self.is_loading = True
        try:
            yield
        finally:
            self.is_loading = False

    def _run(self, intent: str, operation):
        """Run a side effect, logging and re-raising its failure."""
        try:
            with self._loading():
                return operation()
        except GatewayError as e:
            logger.error(f"Failed to {intent}: {e.message}")
            raise

    def _on_session_change(self, session: SessionStore) -> None:
        if session.is_authenticated:
            self._use_remote()
        else:
            self._use_local()

    def _use_remote(self) -> None:
        if self.strategy is not self._remote:
            logger.info("Session authenticated, discarding local state for server data")
            self.strategy = self._remote
        try:
            loaded = self._run('load user data', self._remote.load)
        except GatewayError:
            # Logged by _run; the local state is dropped all the same
            self.dispatch(reducer.StateReplaced(AppState()))
            return
        # Local state is discarded and the server's applied in one transition
        self.dispatch(reducer.StateReplaced(reducer.reduce(AppState(), _data_loaded(loaded))))

    def _use_local(self) -> None:
        switched = self.strategy is not self._local
        self.strategy = self._local
        state = self._local.load()
        if switched:
            logger.info("Session ended, switching to local state")
        self.dispatch(reducer.StateReplaced(state))

    def _current_book(self, book_id: Any) -> Book:
        book = self._state.find_current_book(book_id)
        if book is None:
            raise NotFoundError(f'Book not found: {book_id}')
        return book

    def _wishlist_item(self, item_id: Any) -> WishlistItem:
        item = self._state.find_wishlist_item(item_id)
        if item is None:
            raise NotFoundError(f'Wishlist item not found: {item_id}')
        return item

    def _validated(self, intent: str, check):
        try:
            return check()
        except (ValidationError, NotFoundError, ConflictError) as e:
            logger.error(f"Failed to {intent}: {e.message}")
            raise

    # ------------------------------------------------------------------
    # Data loading
    # ------------------------------------------------------------------

    def load_user_data(self) -> AppState:
        if not self.session.is_authenticated:
            logger.error("Failed to load user data: no authenticated session")
            raise AuthError('Sign in to load your data')
        loaded = self._run('load user data', self._remote.load)
        return self.dispatch(_data_loaded(loaded))

    # ------------------------------------------------------------------
    # Books
    # ------------------------------------------------------------------

    def add_book(self, title: str, author: Optional[str] = None, total_pages: Any = None,
                 target_date: Any = None) -> Book:
        def check():
            return (_require_title(title), author or None,
                    _positive_int_or_none(total_pages, 'Total pages'), _date_or_none(target_date))

        title, author, total_pages, target_date = self._validated('add book', check)
        book = self._run('add book', lambda: self.strategy.create_book(title, author, total_pages, target_date))
        self.dispatch(reducer.BookAdded(book))
        logger.info(f"Added book {book.id}: {book.title}")
        return book

    def update_book(self, book_id: Any, changes: Union[BookChanges, Dict[str, Any]]) -> Book:
        def check():
            return self._current_book(book_id), _book_changes(changes)

        book, changes = self._validated('update book', check)
        if changes.is_empty():
            return book
        applied = self._run('update book', lambda: self.strategy.update_book(book, changes))
        self.dispatch(reducer.BookUpdated(book_id, applied))
        return self._state.find_current_book(book_id)

    def remove_book(self, book_id: Any) -> None:
        book = self._validated('remove book', lambda: self._current_book(book_id))
        self._run('remove book', lambda: self.strategy.delete_book(book))
        self.dispatch(reducer.BookRemoved(book_id))
        logger.info(f"Removed book {book_id}")

    def select_book(self, book_id: Any) -> None:
        self.dispatch(reducer.BookSelected(book_id))

    def selected_book(self) -> Optional[Book]:
        return self._state.selected_book

    def add_reading_record(self, book_id: Any, pages_read: Any, notes: Optional[str] = None,
                           percentage: Any = None):
        """
        Log progress on a current book.

        ``percentage`` is derived from the page total when omitted; a book
        without a page total needs it supplied.
        """
        def check():
            book = self._current_book(book_id)
            try:
                pages = int(pages_read)
            except (TypeError, ValueError):
                raise ValidationError('Pages read must be a whole number')
            if pages <= 0:
                raise ValidationError('Pages read must be greater than 0')
            if percentage is None or percentage == '':
                derived = book.percentage_for(pages)
                if derived is None:
                    raise ValidationError('Percentage is required when the book has no page total')
                return book, pages, derived
            try:
                value = int(percentage)
            except (TypeError, ValueError):
                raise ValidationError('Percentage must be a whole number')
            if not 0 <= value <= 100:
                raise ValidationError('Percentage must be between 0 and 100')
            return book, pages, value

        book, pages, value = self._validated('add reading record', check)
        record = self._run('add reading record',
                           lambda: self.strategy.create_record(book, pages, value, notes or None))
        self.dispatch(reducer.RecordAdded(book_id, record))
        return record

    def complete_book(self, book_id: Any, final_review: Optional[str] = None) -> Book:
        def check():
            book = self._state.find_current_book(book_id)
            if book is None:
                if self._state.find_completed_book(book_id) is not None:
                    raise ConflictError('Book is already completed')
                raise NotFoundError(f'Book not found: {book_id}')
            return book

        book = self._validated('complete book', check)
        completed_at, review = self._run('complete book',
                                         lambda: self.strategy.complete_book(book, final_review or None))
        self.dispatch(reducer.BookCompleted(book_id, completed_at, review))
        logger.info(f"Completed book {book_id}: {book.title}")
        return self._state.find_completed_book(book_id)

    # ------------------------------------------------------------------
    # Wishlist
    # ------------------------------------------------------------------

    def add_to_wishlist(self, title: str, author: Optional[str] = None, amazon_link: Optional[str] = None,
                        notes: Optional[str] = None) -> WishlistItem:
        title = self._validated('add to wishlist', lambda: _require_title(title))
        item = self._run('add to wishlist', lambda: self.strategy.create_wishlist_item(
            title, author or None, amazon_link or None, notes or None))
        self.dispatch(reducer.WishlistItemAdded(item))
        return item

    def update_wishlist_item(self, item_id: Any,
                             changes: Union[WishlistChanges, Dict[str, Any]]) -> WishlistItem:
        def check():
            return self._wishlist_item(item_id), _wishlist_changes(changes)

        item, changes = self._validated('update wishlist item', check)
        if changes.is_empty():
            return item
        applied = self._run('update wishlist item', lambda: self.strategy.update_wishlist_item(item, changes))
        self.dispatch(reducer.WishlistItemUpdated(item_id, applied))
        return self._state.find_wishlist_item(item_id)

    def remove_from_wishlist(self, item_id: Any) -> None:
        item = self._validated('remove from wishlist', lambda: self._wishlist_item(item_id))
        self._run('remove from wishlist', lambda: self.strategy.delete_wishlist_item(item))
        self.dispatch(reducer.WishlistItemRemoved(item_id))

    # ------------------------------------------------------------------
    # UI state
    # ------------------------------------------------------------------

    def set_current_tab(self, tab: Union[Tab, str]) -> None:
        def check():
            try:
                return tab if isinstance(tab, Tab) else Tab(tab)
            except ValueError:
                raise ValidationError(f'Unknown tab: {tab}')

        self.dispatch(reducer.TabChanged(self._validated('change tab', check)))

    def set_selected_completed_book(self, book: Optional[Book]) -> None:
        self.dispatch(reducer.CompletedBookSelected(book))

    def selected_review(self) -> Optional[List[ReviewNode]]:
        """Review timeline of the completed book open in the detail view, if any."""
        book = self._state.selected_completed_book
        if book is None:
            return None
        return self.history().review_timeline(book)

    def set_show_add_book_modal(self, show: bool) -> None:
        self.dispatch(reducer.AddBookModalToggled(show))

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    def start_timer(self, mode: Union[TimerMode, str], duration: int = 0) -> None:
        def check():
            try:
                resolved = mode if isinstance(mode, TimerMode) else TimerMode(mode)
            except ValueError:
                resolved = None
            if resolved not in TIMER_MODES:
                raise ValidationError(f'Timer mode must be countdown or stopwatch, got {mode}')
            try:
                seconds = int(duration or 0)
            except (TypeError, ValueError):
                raise ValidationError('Duration must be a whole number of seconds')
            if resolved is TimerMode.COUNTDOWN and seconds <= 0:
                raise ValidationError('Countdown duration must be greater than 0')
            if seconds < 0:
                raise ValidationError('Duration cannot be negative')
            return resolved, seconds

        resolved, seconds = self._validated('start timer', check)
        self.dispatch(reducer.TimerStarted(resolved, seconds))

    def stop_timer(self) -> None:
        self.dispatch(reducer.TimerStopped())

    def resume_timer(self) -> None:
        self.dispatch(reducer.TimerResumed())

    def reset_timer(self) -> None:
        self.dispatch(reducer.TimerReset())

    def tick(self) -> None:
        self.dispatch(reducer.TimerTicked())

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def history(self) -> HistoryAggregator:
        return HistoryAggregator(self._state, tz_name=self.tz_name, clock=self._clock)
