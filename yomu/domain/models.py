"""
Domain models for the reading tracker.

These models represent the core entities independent of persistence and wire
concerns. They are frozen so that application states can be treated as values:
every transition builds a new state instead of mutating the previous one.
"""

import math
from dataclasses import dataclass, field, fields as dataclass_fields, replace
from datetime import datetime, date, timezone
from enum import Enum
from typing import Optional, Tuple, Dict, Any, Iterator


def now_utc() -> datetime:
    """Timezone-aware UTC now for default timestamps (avoid datetime.utcnow deprecation)."""
    return datetime.now(timezone.utc)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (round() uses banker's rounding)."""
    return int(math.floor(value + 0.5))


class TimerMode(Enum):
    """Reading timer modes."""
    COUNTDOWN = "countdown"
    STOPWATCH = "stopwatch"
    NONE = "none"


class Tab(Enum):
    """Top-level UI tabs."""
    DASHBOARD = "dashboard"
    CALENDAR = "calendar"
    TIMER = "timer"
    WISHLIST = "wishlist"


@dataclass(frozen=True)
class User:
    """User domain model."""
    id: Optional[int] = None
    name: str = ""
    email: str = ""


@dataclass(frozen=True)
class ReadingRecord:
    """Append-only progress entry belonging to exactly one book."""
    id: Any
    date: date
    pages_read: int
    percentage: int
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Book:
    """A unit of reading, either current (incomplete) or completed."""
    id: Any
    title: str
    author: Optional[str] = None
    total_pages: Optional[int] = None
    target_date: Optional[date] = None
    started_at: Optional[datetime] = None
    current_page: int = 0
    is_completed: bool = False
    completed_at: Optional[datetime] = None
    final_review: Optional[str] = None
    reading_history: Tuple[ReadingRecord, ...] = ()

    def percentage_for(self, pages_read: int) -> Optional[int]:
        """Percentage of the book covered by ``pages_read``, or None without a page total."""
        if not self.total_pages:
            return None
        if pages_read <= 0:
            return 0
        return min(round_half_up(pages_read / self.total_pages * 100), 100)

    @property
    def latest_record(self) -> Optional[ReadingRecord]:
        return self.reading_history[-1] if self.reading_history else None

    def progress(self) -> int:
        """Progress of the latest record against the page total (0 when unknown)."""
        latest = self.latest_record
        if latest is None:
            return 0
        return self.percentage_for(latest.pages_read) or 0


@dataclass(frozen=True)
class WishlistItem:
    """Book the user wants to read; fully mutable until deleted."""
    id: Any
    title: str
    author: Optional[str] = None
    amazon_link: Optional[str] = None
    notes: Optional[str] = None
    is_checked: bool = False
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class TimerState:
    """Reading timer sub-state."""
    running: bool = False
    mode: TimerMode = TimerMode.NONE
    seconds: int = 0
    duration: int = 0
    finished: bool = False


@dataclass(frozen=True)
class AppState:
    """Aggregate root owned by the client store."""
    current_books: Tuple[Book, ...] = ()
    selected_book_id: Any = None
    completed_books: Tuple[Book, ...] = ()
    wishlist: Tuple[WishlistItem, ...] = ()
    current_tab: Tab = Tab.DASHBOARD
    timer: TimerState = field(default_factory=TimerState)
    selected_completed_book: Optional[Book] = None
    show_add_book_modal: bool = False

    def find_current_book(self, book_id: Any) -> Optional[Book]:
        return next((book for book in self.current_books if book.id == book_id), None)

    def find_completed_book(self, book_id: Any) -> Optional[Book]:
        return next((book for book in self.completed_books if book.id == book_id), None)

    def find_wishlist_item(self, item_id: Any) -> Optional[WishlistItem]:
        return next((item for item in self.wishlist if item.id == item_id), None)

    @property
    def selected_book(self) -> Optional[Book]:
        if self.selected_book_id is None:
            return None
        return self.find_current_book(self.selected_book_id)


class _Unset:
    """Marker for a field that a change set leaves untouched."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return 'UNSET'

    def __bool__(self):
        return False


UNSET: Any = _Unset()


class _ChangeSet:
    """
    Explicit optional-field set for partial updates.

    A field holding UNSET is left unchanged; a field holding None clears the
    value on the target entity.
    """

    def present(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in dataclass_fields(self)
                if getattr(self, f.name) is not UNSET}

    def __iter__(self) -> Iterator[Tuple[str, Any]]:
        return iter(self.present().items())

    def is_empty(self) -> bool:
        return not self.present()

    def apply(self, entity):
        changes = self.present()
        return replace(entity, **changes) if changes else entity


@dataclass(frozen=True)
class BookChanges(_ChangeSet):
    title: Any = UNSET
    author: Any = UNSET
    total_pages: Any = UNSET
    target_date: Any = UNSET
    current_page: Any = UNSET


@dataclass(frozen=True)
class WishlistChanges(_ChangeSet):
    title: Any = UNSET
    author: Any = UNSET
    amazon_link: Any = UNSET
    notes: Any = UNSET
    is_checked: Any = UNSET
