"""Daily journal entries with mood and energy ratings."""

import itertools
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

MOOD_LABELS = {1: "Very Low", 2: "Low", 3: "Neutral", 4: "Good", 5: "Great"}
ENERGY_LABELS = {1: "Exhausted", 2: "Tired", 3: "Normal", 4: "Energized", 5: "Peak"}


def mood_label(mood: int | None) -> str:
    return MOOD_LABELS.get(mood, "Not set")


def energy_label(energy: int | None) -> str:
    return ENERGY_LABELS.get(energy, "Not set")


@dataclass
class JournalEntry:
    id: int
    entry_date: date
    content: str | None = None
    mood: int | None = None
    energy: int | None = None


class InMemoryJournalService:
    """At most one entry per date."""

    def __init__(self):
        self.entries: dict[int, JournalEntry] = {}
        self._ids = itertools.count(1)

    async def recent_entries(self, days: int = 7) -> list[JournalEntry]:
        since = datetime.now(UTC).date() - timedelta(days=days)
        entries = [e for e in self.entries.values() if e.entry_date >= since]
        return sorted(entries, key=lambda e: e.entry_date, reverse=True)

    async def entries_for_range(self, start: date, end: date) -> list[JournalEntry]:
        entries = [e for e in self.entries.values() if start <= e.entry_date <= end]
        return sorted(entries, key=lambda e: e.entry_date)

    async def get_entry(self, entry_id: int) -> JournalEntry | None:
        return self.entries.get(entry_id)

    async def get_entry_for_date(self, entry_date: date) -> JournalEntry | None:
        for entry in self.entries.values():
            if entry.entry_date == entry_date:
                return entry
        return None

    async def save_entry(
        self,
        entry_date: date,
        content: str | None = None,
        mood: int | None = None,
        energy: int | None = None,
    ) -> JournalEntry:
        """Update-or-create the entry for a date.

        Only the values given are written; a None argument leaves the stored field untouched.
        """
        entry = await self.get_entry_for_date(entry_date)
        if entry is None:
            entry = JournalEntry(id=next(self._ids), entry_date=entry_date)
            self.entries[entry.id] = entry

        if content is not None:
            entry.content = content
        if mood is not None:
            entry.mood = mood
        if energy is not None:
            entry.energy = energy
        return entry

    async def update_entry(self, entry_id: int, **changes) -> JournalEntry | None:
        entry = self.entries.get(entry_id)
        if entry is None:
            return None
        for key, value in changes.items():
            setattr(entry, key, value)
        return entry

    async def delete_entry(self, entry_id: int) -> JournalEntry | None:
        return self.entries.pop(entry_id, None)
