"""Habit tracking with daily completions and streaks."""

import itertools
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta


def today() -> date:
    return datetime.now(UTC).date()


@dataclass
class Habit:
    id: int
    name: str
    description: str | None = None
    schedule_type: str = "daily"
    time_of_day: str = "anytime"
    completions: set[date] = field(default_factory=set)

    def is_completed_on(self, day: date) -> bool:
        return day in self.completions

    def streak(self, as_of: date) -> int:
        """Consecutive completed days ending today, or yesterday if today is still open."""
        day = as_of if as_of in self.completions else as_of - timedelta(days=1)
        count = 0
        while day in self.completions:
            count += 1
            day -= timedelta(days=1)
        return count

    def completion_rate(self, days: int, as_of: date) -> float:
        """Percentage of the last ``days`` days (including ``as_of``) that were completed."""
        if days <= 0:
            return 0.0
        window = {as_of - timedelta(days=offset) for offset in range(days)}
        return round(len(window & self.completions) / days * 100, 1)


class InMemoryHabitService:
    def __init__(self):
        self.habits: dict[int, Habit] = {}
        self._ids = itertools.count(1)

    async def list_habits(self) -> list[Habit]:
        return sorted(self.habits.values(), key=lambda h: h.id)

    async def get_habit(self, habit_id: int) -> Habit | None:
        return self.habits.get(habit_id)

    async def create_habit(
        self,
        name: str,
        description: str | None = None,
        schedule_type: str = "daily",
        time_of_day: str = "anytime",
    ) -> Habit:
        habit = Habit(
            id=next(self._ids),
            name=name,
            description=description,
            schedule_type=schedule_type,
            time_of_day=time_of_day,
        )
        self.habits[habit.id] = habit
        return habit

    async def update_habit(self, habit_id: int, **changes) -> Habit | None:
        habit = self.habits.get(habit_id)
        if habit is None:
            return None
        for key, value in changes.items():
            setattr(habit, key, value)
        return habit

    async def toggle_today(self, habit_id: int) -> bool | None:
        """Flip today's completion. Returns the new state, or None if the habit does not exist."""
        habit = self.habits.get(habit_id)
        if habit is None:
            return None
        day = today()
        if day in habit.completions:
            habit.completions.discard(day)
            return False
        habit.completions.add(day)
        return True

    async def delete_habit(self, habit_id: int) -> Habit | None:
        return self.habits.pop(habit_id, None)
