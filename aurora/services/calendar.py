"""Calendar events."""

import itertools
from dataclasses import dataclass
from datetime import UTC, date, datetime, time


@dataclass
class CalendarEvent:
    id: int
    title: str
    start_at: datetime
    end_at: datetime | None = None
    description: str | None = None
    all_day: bool = False
    location: str | None = None
    color: str = "#3b82f6"


class InMemoryCalendarService:
    def __init__(self):
        self.events: dict[int, CalendarEvent] = {}
        self._ids = itertools.count(1)

    async def events_for_range(self, start: date, end: date) -> list[CalendarEvent]:
        """Events starting on any day from ``start`` through ``end``."""
        found = [e for e in self.events.values() if start <= e.start_at.date() <= end]
        return sorted(found, key=lambda e: e.start_at)

    async def upcoming_events(self, limit: int = 10) -> list[CalendarEvent]:
        now = datetime.now(UTC)
        upcoming = sorted((e for e in self.events.values() if e.start_at >= now), key=lambda e: e.start_at)
        return upcoming[:limit]

    async def today_events(self) -> list[CalendarEvent]:
        today = datetime.now(UTC).date()
        return await self.events_for_range(today, today)

    async def get_event(self, event_id: int) -> CalendarEvent | None:
        return self.events.get(event_id)

    async def create_event(
        self,
        title: str,
        start_at: datetime,
        end_at: datetime | None = None,
        description: str | None = None,
        all_day: bool = False,
        location: str | None = None,
        color: str = "#3b82f6",
    ) -> CalendarEvent:
        event = CalendarEvent(
            id=next(self._ids),
            title=title,
            start_at=start_at,
            end_at=end_at,
            description=description,
            all_day=all_day,
            location=location,
            color=color,
        )
        self.events[event.id] = event
        return event

    async def update_event(self, event_id: int, **changes) -> CalendarEvent | None:
        event = self.events.get(event_id)
        if event is None:
            return None
        for key, value in changes.items():
            setattr(event, key, value)
        return event

    async def delete_event(self, event_id: int) -> CalendarEvent | None:
        return self.events.pop(event_id, None)


def combine_utc(day: date, at: time) -> datetime:
    return datetime.combine(day, at, tzinfo=UTC)
