from __future__ import annotations

import calendar as _calendar
import logging
import uuid
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Dict, List, Optional

from .errors import EventNotFound, InvalidTitle
from .identity import Editor
from .models import CalendarEvent, now_ms
from .storage import DocumentStore

logger = logging.getLogger(__name__)

PLACEHOLDER_TITLE = "unnamed event"
PLACEHOLDER_AUTHOR = "Anonymous"
PLACEHOLDER_LIMIT = 3
GRID_DAYS = 42


def sort_events(events: List[CalendarEvent]) -> List[CalendarEvent]:
    """Non-archived events by date, then by start time.

    Within a day, events are only reordered by time when every one of them
    has a start time; otherwise that day keeps its incoming order.
    """
    events = [e for e in events if not e.is_archived]
    result: List[CalendarEvent] = []
    for day in sorted({e.date for e in events}):
        todays = [e for e in events if e.date == day]
        if all(e.start_time for e in todays):
            todays.sort(key=lambda e: e.start_time)
        result.extend(todays)
    return result


def count_by_date(events: List[CalendarEvent]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for event in events:
        if not event.is_archived:
            counts[event.date] = counts.get(event.date, 0) + 1
    return counts


@dataclass
class Day:
    date: str
    is_current_month: bool
    is_today: bool = False


@dataclass
class Month:
    name: str
    year: int
    days: List[Day]


def month_grid(year: int, month: int, today: Optional[date] = None, months: int = 2) -> List[Month]:
    """Six-week, Sunday-first grids for ``months`` consecutive months."""
    today = today or date.today()
    grids = []
    for offset in range(months):
        y, m = divmod(month - 1 + offset, 12)
        first = date(year + y, m + 1, 1)
        # date.weekday() is Monday=0; shift so Sunday starts the row
        start = first - timedelta(days=(first.weekday() + 1) % 7)
        days = []
        for i in range(GRID_DAYS):
            d = start + timedelta(days=i)
            days.append(Day(
                date=d.isoformat(),
                is_current_month=d.month == first.month,
                is_today=d == today and d.month == first.month,
            ))
        grids.append(Month(name=_calendar.month_name[first.month], year=first.year, days=days))
    return grids


class EventBook:
    """Calendar events on top of a document store."""

    def __init__(self, store: DocumentStore[CalendarEvent]) -> None:
        self.store = store

    async def events(self) -> List[CalendarEvent]:
        return sort_events(await self.store.load())

    async def counts(self) -> Dict[str, int]:
        return count_by_date(await self.store.load())

    async def get(self, event_id: str) -> CalendarEvent:
        for event in await self.store.load():
            if event.id == event_id:
                return event
        raise EventNotFound(event_id)

    async def save(self, editor: Editor, event: CalendarEvent) -> CalendarEvent:
        """Create ``event`` (blank id) or overwrite the stored one."""
        title = (event.title or "").strip()
        if not title:
            raise InvalidTitle("title must not be blank")
        now = now_ms()
        event = replace(event, title=title, last_updated=now, last_edited_by=editor.name)
        if not event.id:
            event = replace(event, id=str(uuid.uuid4()), created_at=now, created_by=editor.name)
        else:
            existing = await self.get(event.id)
            event = replace(event, created_at=existing.created_at, created_by=existing.created_by)
        await self.store.persist_all([event])
        return event

    async def archive(self, event_id: str) -> None:
        await self.get(event_id)
        await self.store.merge(event_id, {"isArchived": True, "lastUpdated": now_ms()})

    async def delete(self, event_id: str) -> None:
        await self.get(event_id)
        await self.store.delete(event_id)

    async def toggle_placeholder(self, day: str) -> Optional[CalendarEvent]:
        """Add an anonymous placeholder on ``day``, or clear them once full.

        Returns the new placeholder, or ``None`` when placeholders were
        removed instead.
        """
        events = await self.store.load()
        count = count_by_date(events).get(day, 0)
        if count >= PLACEHOLDER_LIMIT:
            doomed = [e for e in events if e.date == day and e.title == PLACEHOLDER_TITLE]
            logger.info("clearing %d placeholders on %s", len(doomed), day)
            for event in doomed:
                await self.store.delete(event.id)
            return None
        now = now_ms()
        placeholder = CalendarEvent(
            id=str(uuid.uuid4()),
            title=PLACEHOLDER_TITLE,
            date=day,
            created_at=now,
            created_by=PLACEHOLDER_AUTHOR,
            last_edited_by=PLACEHOLDER_AUTHOR,
            last_updated=now,
        )
        await self.store.persist_all([placeholder])
        return placeholder
