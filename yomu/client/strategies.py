"""Persistence strategies for the client store.

The store asks its active strategy to carry out each gateway-backed intent
and gets back the domain values to dispatch. ``LocalStrategy`` is used while
no session is authenticated: it assigns identifiers itself and mirrors the
whole state tree to local storage after every change. ``RemoteStrategy``
delegates to the backend and never touches local storage.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Iterable, Optional, Tuple

from yomu.domain.models import (
    AppState, Book, BookChanges, ReadingRecord, WishlistChanges, WishlistItem, now_utc,
)
from . import wire
from .gateway import RemoteGateway
from .storage import KeyValueStore, STATE_KEY

logger = logging.getLogger(__name__)


class LocalIdGenerator:
    """Millisecond-clock identifiers, strictly increasing within the process."""

    def __init__(self, clock=time.time):
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def seed(self, existing_ids: Iterable[Any]) -> None:
        """Make sure new identifiers land above every id already in use."""
        numeric = [i for i in existing_ids if isinstance(i, int) and not isinstance(i, bool)]
        if numeric:
            with self._lock:
                self._last = max(self._last, max(numeric))

    def next_id(self) -> int:
        with self._lock:
            candidate = int(self._clock() * 1000)
            if candidate <= self._last:
                candidate = self._last + 1
            self._last = candidate
            return candidate


def _state_ids(state: AppState) -> Iterable[Any]:
    for book in state.current_books + state.completed_books:
        yield book.id
        for record in book.reading_history:
            yield record.id
    for item in state.wishlist:
        yield item.id


class PersistenceStrategy(ABC):
    """What the store needs from a backing store, local or remote."""

    is_remote = False

    @abstractmethod
    def load(self) -> AppState:
        pass

    @abstractmethod
    def create_book(self, title: str, author: Optional[str], total_pages: Optional[int],
                    target_date) -> Book:
        pass

    @abstractmethod
    def update_book(self, book: Book, changes: BookChanges) -> BookChanges:
        pass

    @abstractmethod
    def delete_book(self, book: Book) -> None:
        pass

    @abstractmethod
    def create_record(self, book: Book, pages_read: int, percentage: int,
                      notes: Optional[str]) -> ReadingRecord:
        pass

    @abstractmethod
    def complete_book(self, book: Book, final_review: Optional[str]) -> Tuple[datetime, Optional[str]]:
        pass

    @abstractmethod
    def create_wishlist_item(self, title: str, author: Optional[str], amazon_link: Optional[str],
                             notes: Optional[str]) -> WishlistItem:
        pass

    @abstractmethod
    def update_wishlist_item(self, item: WishlistItem, changes: WishlistChanges) -> WishlistChanges:
        pass

    @abstractmethod
    def delete_wishlist_item(self, item: WishlistItem) -> None:
        pass

    def persist(self, state: AppState) -> None:
        """Called after every state change."""


class LocalStrategy(PersistenceStrategy):
    def __init__(self, storage: KeyValueStore, ids: Optional[LocalIdGenerator] = None,
                 tz_name: Optional[str] = None, clock=now_utc):
        self.storage = storage
        self.ids = ids or LocalIdGenerator()
        self.tz_name = tz_name
        self._clock = clock

    def load(self) -> AppState:
        state = wire.state_from_snapshot(self.storage.get(STATE_KEY), self.tz_name)
        self.ids.seed(_state_ids(state))
        return state

    def persist(self, state: AppState) -> None:
        self.storage.set(STATE_KEY, wire.state_to_snapshot(state))

    def create_book(self, title, author, total_pages, target_date) -> Book:
        return Book(
            id=self.ids.next_id(),
            title=title,
            author=author,
            total_pages=total_pages,
            target_date=target_date,
            started_at=self._clock(),
        )

    def update_book(self, book, changes):
        return changes

    def delete_book(self, book):
        return None

    def create_record(self, book, pages_read, percentage, notes) -> ReadingRecord:
        created_at = self._clock()
        return ReadingRecord(
            id=self.ids.next_id(),
            date=wire.parse_day(created_at, self.tz_name),
            pages_read=pages_read,
            percentage=percentage,
            notes=notes,
            created_at=created_at,
        )

    def complete_book(self, book, final_review):
        return self._clock(), final_review

    def create_wishlist_item(self, title, author, amazon_link, notes) -> WishlistItem:
        return WishlistItem(
            id=self.ids.next_id(),
            title=title,
            author=author,
            amazon_link=amazon_link,
            notes=notes,
            created_at=self._clock(),
        )

    def update_wishlist_item(self, item, changes):
        return changes

    def delete_wishlist_item(self, item):
        return None


class RemoteStrategy(PersistenceStrategy):
    is_remote = True

    def __init__(self, gateway: RemoteGateway, tz_name: Optional[str] = None):
        self.gateway = gateway
        self.tz_name = tz_name

    def _book_with_history(self, row) -> Book:
        records = [wire.record_from_wire(r, self.tz_name) for r in self.gateway.list_records(row['id'])]
        # Server lists newest first; history is kept oldest first
        records.sort(key=lambda r: (r.date, r.id or 0))
        return wire.book_from_wire(row, records=records, tz_name=self.tz_name)

    def load(self) -> AppState:
        books = [self._book_with_history(row) for row in self.gateway.list_books()]
        wishlist = [wire.wishlist_from_wire(row) for row in self.gateway.list_wishlist()]
        logger.debug(f"Loaded {len(books)} books and {len(wishlist)} wishlist items from server")
        return AppState(
            current_books=tuple(b for b in books if not b.is_completed),
            completed_books=tuple(b for b in books if b.is_completed),
            wishlist=tuple(wishlist),
        )

    def create_book(self, title, author, total_pages, target_date) -> Book:
        draft = Book(id=None, title=title, author=author, total_pages=total_pages, target_date=target_date)
        row = self.gateway.create_book(wire.book_to_wire(draft))
        return wire.book_from_wire(row, records=(), tz_name=self.tz_name)

    def update_book(self, book, changes):
        row = self.gateway.update_book(book.id, wire.book_changes_to_wire(changes))
        return wire.book_changes_from_wire(row, self.tz_name)

    def delete_book(self, book):
        self.gateway.delete_book(book.id)

    def create_record(self, book, pages_read, percentage, notes) -> ReadingRecord:
        draft = ReadingRecord(id=None, date=None, pages_read=pages_read, percentage=percentage, notes=notes)
        row = self.gateway.create_record(book.id, wire.record_to_wire(draft))
        return wire.record_from_wire(row, self.tz_name)

    def complete_book(self, book, final_review):
        row = self.gateway.complete_book(book.id, final_review)
        completed = wire.book_from_wire(row, records=(), tz_name=self.tz_name)
        return completed.completed_at or now_utc(), completed.final_review

    def create_wishlist_item(self, title, author, amazon_link, notes) -> WishlistItem:
        draft = WishlistItem(id=None, title=title, author=author, amazon_link=amazon_link, notes=notes)
        return wire.wishlist_from_wire(self.gateway.create_wishlist_item(wire.wishlist_to_wire(draft)))

    def update_wishlist_item(self, item, changes):
        row = self.gateway.update_wishlist_item(item.id, wire.wishlist_changes_to_wire(changes))
        return wire.wishlist_changes_from_wire(row)

    def delete_wishlist_item(self, item):
        self.gateway.delete_wishlist_item(item.id)
