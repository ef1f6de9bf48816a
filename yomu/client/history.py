"""
History Aggregator.

Read-side projection over an AppState that merges every book's reading
history into one timeline for the calendar and dashboard statistics.
Nothing is cached: each call recomputes from the state it was given, which
is bounded by one user's reading history.
"""

import calendar
import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterator, List, Optional, Tuple

from yomu.domain.models import AppState, Book, ReadingRecord, now_utc, round_half_up
from . import wire

STREAK_WINDOW_DAYS = 30


@dataclass(frozen=True)
class HistoryEntry:
    """A reading record tagged with the book it belongs to."""
    record: ReadingRecord
    book_id: Any
    book_title: str
    is_completed: bool

    @property
    def date(self) -> Optional[date]:
        return self.record.date

    @property
    def percentage(self) -> int:
        return self.record.percentage

    @property
    def pages_read(self) -> int:
        return self.record.pages_read


@dataclass(frozen=True)
class BookRef:
    id: Any
    title: str


@dataclass(frozen=True)
class DayState:
    """What the calendar shows for one day."""
    has_reading: bool
    percentage: int = 0
    completed: bool = False
    completed_books: Tuple[BookRef, ...] = ()
    records: Tuple[HistoryEntry, ...] = ()


@dataclass(frozen=True)
class CalendarDay:
    day: date
    in_month: bool
    state: DayState


@dataclass(frozen=True)
class MonthSummary:
    reading_days: int
    average_percentage: int
    completion_days: int


@dataclass(frozen=True)
class ReviewNode:
    """One stop on a book's review timeline: a noted record or the final review."""
    day: date
    content: str
    percentage: int
    is_final: bool = False


class RecordTimeline:
    """
    Every record of every book, oldest first.

    Iterating is lazy and restartable: the timeline is rebuilt from the state
    on each iteration. Ties on the same day keep insertion order (current
    books are enumerated before completed books).
    """

    def __init__(self, state: AppState):
        self._state = state

    def _collect(self) -> Iterator[HistoryEntry]:
        for is_completed, books in ((False, self._state.current_books), (True, self._state.completed_books)):
            for book in books:
                for record in book.reading_history:
                    yield HistoryEntry(record=record, book_id=book.id, book_title=book.title,
                                       is_completed=is_completed)

    def __iter__(self) -> Iterator[HistoryEntry]:
        entries = list(self._collect())
        entries.sort(key=lambda entry: entry.date or date.min)
        return iter(entries)

    def __len__(self) -> int:
        return sum(1 for _ in self._collect())


def summarize_day(entries: List[HistoryEntry]) -> DayState:
    """
    Display state of one day's records.

    Any record of a now-completed book marks the day completed and shows
    100%, listing each completed book once; otherwise the day shows the
    highest percentage among current-book records.
    """
    if not entries:
        return DayState(has_reading=False)

    completed_books: Dict[Any, BookRef] = {}
    current_percentages = []
    for entry in entries:
        if entry.is_completed:
            completed_books.setdefault(entry.book_id, BookRef(entry.book_id, entry.book_title))
        else:
            current_percentages.append(entry.percentage)

    if completed_books:
        percentage = 100
    else:
        percentage = max(current_percentages) if current_percentages else 0

    return DayState(
        has_reading=True,
        percentage=percentage,
        completed=bool(completed_books),
        completed_books=tuple(completed_books.values()),
        records=tuple(entries),
    )


class HistoryAggregator:
    def __init__(self, state: AppState, tz_name: Optional[str] = None, clock=now_utc):
        self.state = state
        self.tz_name = tz_name
        self._clock = clock

    def today(self) -> date:
        return wire.parse_day(self._clock(), self.tz_name)

    def _as_day(self, value) -> date:
        if isinstance(value, date) and not isinstance(value, datetime):
            return value
        return wire.parse_day(value, self.tz_name)

    def all_records(self) -> RecordTimeline:
        return RecordTimeline(self.state)

    @property
    def record_count(self) -> int:
        return len(self.all_records())

    def _by_day(self) -> Dict[date, List[HistoryEntry]]:
        grouped: Dict[date, List[HistoryEntry]] = defaultdict(list)
        for entry in self.all_records():
            if entry.date is not None:
                grouped[entry.date].append(entry)
        return grouped

    def reading_dates(self) -> set:
        return {entry.date for entry in self.all_records() if entry.date is not None}

    def day_state(self, day) -> DayState:
        day = self._as_day(day)
        return summarize_day([entry for entry in self.all_records() if entry.date == day])

    def streak(self, as_of=None) -> int:
        """
        Consecutive reading days ending at ``as_of`` (default today).

        Looks back at most STREAK_WINDOW_DAYS days. A day without records on
        ``as_of`` itself does not end the streak (the user may not have read
        yet today); any other gap does.
        """
        days = self.reading_dates()
        if not days:
            return 0
        as_of = self._as_day(as_of) if as_of is not None else self.today()

        streak = 0
        for offset in range(STREAK_WINDOW_DAYS):
            if as_of - timedelta(days=offset) in days:
                streak += 1
            elif offset > 0:
                break
        return streak

    def today_progress(self, today=None) -> int:
        """Percentage of the first record logged today, 0 if nothing was logged."""
        today = self._as_day(today) if today is not None else self.today()
        entry = next((e for e in self.all_records() if e.date == today), None)
        return entry.percentage if entry else 0

    def calendar_days(self, year: int, month: int) -> List[CalendarDay]:
        """Sunday-first month grid padded with neighbouring days to whole weeks."""
        first = date(year, month, 1)
        days_in_month = calendar.monthrange(year, month)[1]
        leading = (first.weekday() + 1) % 7
        total_cells = -(-(leading + days_in_month) // 7) * 7

        grouped = self._by_day()
        start = first - timedelta(days=leading)
        cells = []
        for offset in range(total_cells):
            day = start + timedelta(days=offset)
            cells.append(CalendarDay(
                day=day,
                in_month=day.month == month and day.year == year,
                state=summarize_day(grouped.get(day, [])),
            ))
        return cells

    def month_summary(self, year: int, month: int) -> MonthSummary:
        grouped = self._by_day()
        states = [
            summarize_day(grouped.get(date(year, month, d), []))
            for d in range(1, calendar.monthrange(year, month)[1] + 1)
        ]
        reading = [s for s in states if s.has_reading]
        average = round_half_up(sum(s.percentage for s in reading) / len(reading)) if reading else 0
        return MonthSummary(
            reading_days=len(reading),
            average_percentage=average,
            completion_days=sum(1 for s in states if s.completed_books),
        )

    # ------------------------------------------------------------------
    # Completed-book review
    # ------------------------------------------------------------------

    def review_timeline(self, book: Book) -> List[ReviewNode]:
        """
        Noted records of ``book`` oldest first, closed by the final review.

        Records without notes are left out. The final node sits on the
        completion day (today for a book still being read) at 100%.
        """
        noted = [r for r in book.reading_history if r.notes and r.notes.strip()]
        noted.sort(key=lambda r: r.date or date.min)
        nodes = [ReviewNode(day=r.date, content=r.notes, percentage=r.percentage) for r in noted]

        finished = self._as_day(book.completed_at) if book.completed_at else self.today()
        nodes.append(ReviewNode(day=finished, content=book.final_review or '', percentage=100, is_final=True))
        return nodes

    def reading_days(self, book: Book) -> Optional[int]:
        """Days from starting to completing ``book``, partial days rounded up."""
        if book.started_at is None or book.completed_at is None:
            return None
        elapsed = wire.parse_timestamp(book.completed_at) - wire.parse_timestamp(book.started_at)
        return max(math.ceil(elapsed.total_seconds() / 86400), 0)

    def export_review_text(self, book: Book) -> str:
        """Plain-text rendering of the review timeline, for saving to a file."""
        heading = f'"{book.title}" reading log'
        lines = [heading, '=' * len(heading), '']
        notes = [node for node in self.review_timeline(book) if not node.is_final]
        for number, node in enumerate(notes, start=1):
            day = node.day.isoformat() if node.day else 'undated'
            lines.extend([f'{number}. {day} ({node.percentage}% read)', node.content, ''])

        generated = self._clock().astimezone(wire.get_timezone(self.tz_name))
        lines.extend([
            'Final review:',
            book.final_review or '(not written)',
            '',
            f'Generated: {generated:%Y-%m-%d %H:%M}',
        ])
        return '\n'.join(lines)
