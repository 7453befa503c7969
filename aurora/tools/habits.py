"""Habit tools."""

from typing import Literal

from pydantic import BaseModel, Field

from aurora.services.habits import InMemoryHabitService, today
from aurora.tools.base import EmptyInput, ToolDefinition, ToolDomain, ToolResult, ToolSuccess, not_found


class HabitIdInput(BaseModel):
    habit_id: int = Field(..., description="The ID of the habit")


class CreateHabitInput(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="Name of the habit")
    description: str | None = Field(default=None, description="Description of the habit")
    schedule_type: Literal["daily", "weekly", "specific_days", "every_n_days"] = Field(
        default="daily", description="How often to track"
    )
    time_of_day: Literal["morning", "afternoon", "evening", "anytime"] = Field(
        default="anytime", description="Suggested time to complete"
    )


class UpdateHabitInput(BaseModel):
    habit_id: int = Field(..., description="The habit to update")
    name: str | None = Field(default=None, min_length=1, max_length=255, description="New name")
    description: str | None = Field(default=None, description="New description")


def create_habits_tools(habits: InMemoryHabitService) -> list[ToolDefinition]:
    async def list_habits(params: EmptyInput) -> ToolResult:
        day = today()
        all_habits = await habits.list_habits()
        return ToolSuccess(
            {
                "total": len(all_habits),
                "completed_today": sum(1 for h in all_habits if h.is_completed_on(day)),
                "habits": [
                    {
                        "id": h.id,
                        "name": h.name,
                        "completed_today": h.is_completed_on(day),
                        "streak": h.streak(day),
                        "time_of_day": h.time_of_day,
                    }
                    for h in all_habits
                ],
            }
        )

    async def get_habit(params: HabitIdInput) -> ToolResult:
        habit = await habits.get_habit(params.habit_id)
        if habit is None:
            return not_found("Habit", params.habit_id)
        return ToolSuccess(
            {
                "id": habit.id,
                "name": habit.name,
                "description": habit.description,
                "schedule_type": habit.schedule_type,
                "time_of_day": habit.time_of_day,
                "completion_rate_30d": habit.completion_rate(30, today()),
            }
        )

    async def create_habit(params: CreateHabitInput) -> ToolResult:
        habit = await habits.create_habit(**params.model_dump())
        return ToolSuccess({"id": habit.id, "name": habit.name, "message": f"Habit '{habit.name}' created"})

    async def toggle_habit_today(params: HabitIdInput) -> ToolResult:
        completed = await habits.toggle_today(params.habit_id)
        if completed is None:
            return not_found("Habit", params.habit_id)
        habit = await habits.get_habit(params.habit_id)
        state = "complete" if completed else "incomplete"
        return ToolSuccess({"message": f"Habit '{habit.name}' marked as {state} for today"})

    async def update_habit(params: UpdateHabitInput) -> ToolResult:
        habit = await habits.update_habit(params.habit_id, **params.model_dump(exclude={"habit_id"}, exclude_none=True))
        if habit is None:
            return not_found("Habit", params.habit_id)
        return ToolSuccess({"id": habit.id, "message": "Habit updated successfully"})

    async def delete_habit(params: HabitIdInput) -> ToolResult:
        habit = await habits.delete_habit(params.habit_id)
        if habit is None:
            return not_found("Habit", params.habit_id)
        return ToolSuccess({"message": f"Habit '{habit.name}' deleted"})

    domain = ToolDomain.HABITS
    return [
        ToolDefinition(
            "list_habits", "List all habits with today's completion status and streaks", EmptyInput, list_habits, domain
        ),
        ToolDefinition(
            "get_habit", "Get a specific habit with its details and completion history", HabitIdInput, get_habit, domain
        ),
        ToolDefinition(
            "create_habit", "Create a new habit to track", CreateHabitInput, create_habit, domain, mutates=True
        ),
        ToolDefinition(
            "toggle_habit_today",
            "Toggle a habit's completion status for today",
            HabitIdInput,
            toggle_habit_today,
            domain,
            mutates=True,
        ),
        ToolDefinition(
            "update_habit", "Update an existing habit", UpdateHabitInput, update_habit, domain, mutates=True
        ),
        ToolDefinition(
            "delete_habit",
            "Delete a habit and its history. This action requires confirmation.",
            HabitIdInput,
            delete_habit,
            domain,
            mutates=True,
            destructive=True,
        ),
    ]
