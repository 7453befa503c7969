"""Goals with optional parent/child nesting."""

import itertools
from dataclasses import dataclass


@dataclass
class Goal:
    id: int
    title: str
    description: str | None = None
    timeframe: str = "monthly"
    category: str | None = None
    parent_id: int | None = None
    progress: int = 0  # percent, 0-100


class InMemoryGoalService:
    def __init__(self):
        self.goals: dict[int, Goal] = {}
        self._ids = itertools.count(1)

    async def list_goals(self, timeframe: str | None = None, category: str | None = None) -> list[Goal]:
        goals = sorted(self.goals.values(), key=lambda g: g.id)
        if timeframe:
            goals = [g for g in goals if g.timeframe == timeframe]
        if category:
            goals = [g for g in goals if g.category == category]
        return goals

    async def get_goal(self, goal_id: int) -> Goal | None:
        return self.goals.get(goal_id)

    async def children(self, goal_id: int) -> list[Goal]:
        return [g for g in sorted(self.goals.values(), key=lambda g: g.id) if g.parent_id == goal_id]

    async def create_goal(
        self,
        title: str,
        description: str | None = None,
        timeframe: str = "monthly",
        category: str | None = None,
        parent_id: int | None = None,
    ) -> Goal | None:
        if parent_id is not None and parent_id not in self.goals:
            return None
        goal = Goal(
            id=next(self._ids),
            title=title,
            description=description,
            timeframe=timeframe,
            category=category,
            parent_id=parent_id,
        )
        self.goals[goal.id] = goal
        return goal

    async def update_goal(self, goal_id: int, **changes) -> Goal | None:
        goal = self.goals.get(goal_id)
        if goal is None:
            return None
        for key, value in changes.items():
            setattr(goal, key, value)
        return goal

    async def delete_goal(self, goal_id: int) -> Goal | None:
        """Delete a goal together with all of its sub-goals."""
        goal = self.goals.pop(goal_id, None)
        if goal is not None:
            for child in await self.children(goal_id):
                await self.delete_goal(child.id)
        return goal
