"""Goal tools."""

from typing import Literal

from pydantic import BaseModel, Field

from aurora.services.goals import InMemoryGoalService
from aurora.tools.base import ToolDefinition, ToolDomain, ToolResult, ToolSuccess, not_found

Timeframe = Literal["daily", "weekly", "monthly", "quarterly", "yearly", "multi_year"]
GoalCategory = Literal["health", "career", "relationships", "finance", "personal_growth", "other"]


class ListGoalsInput(BaseModel):
    timeframe: Timeframe | None = Field(default=None, description="Filter by timeframe")
    category: GoalCategory | None = Field(default=None, description="Filter by category")


class GoalIdInput(BaseModel):
    goal_id: int = Field(..., description="The ID of the goal")


class CreateGoalInput(BaseModel):
    title: str = Field(..., min_length=1, max_length=255, description="Title of the goal")
    description: str | None = Field(default=None, description="Description of the goal")
    timeframe: Timeframe = Field(default="monthly", description="Timeframe for the goal")
    category: GoalCategory | None = Field(default=None, description="Category of the goal")
    parent_id: int | None = Field(default=None, description="Parent goal ID for sub-goals")


class UpdateGoalInput(BaseModel):
    goal_id: int = Field(..., description="The goal to update")
    title: str | None = Field(default=None, min_length=1, max_length=255, description="New title")
    description: str | None = Field(default=None, description="New description")
    progress: int | None = Field(default=None, ge=0, le=100, description="Progress percentage (0-100)")


def create_goals_tools(goals: InMemoryGoalService) -> list[ToolDefinition]:
    async def list_goals(params: ListGoalsInput) -> ToolResult:
        found = await goals.list_goals(timeframe=params.timeframe, category=params.category)
        summaries = []
        for goal in found:
            summaries.append(
                {
                    "id": goal.id,
                    "title": goal.title,
                    "timeframe": goal.timeframe,
                    "category": goal.category,
                    "progress": goal.progress,
                    "has_children": bool(await goals.children(goal.id)),
                }
            )
        return ToolSuccess({"count": len(summaries), "goals": summaries})

    async def get_goal(params: GoalIdInput) -> ToolResult:
        goal = await goals.get_goal(params.goal_id)
        if goal is None:
            return not_found("Goal", params.goal_id)

        parent = await goals.get_goal(goal.parent_id) if goal.parent_id is not None else None
        children = await goals.children(goal.id)
        return ToolSuccess(
            {
                "id": goal.id,
                "title": goal.title,
                "description": goal.description,
                "timeframe": goal.timeframe,
                "category": goal.category,
                "progress": goal.progress,
                "parent": {"id": parent.id, "title": parent.title} if parent else None,
                "children": [{"id": c.id, "title": c.title, "progress": c.progress} for c in children],
            }
        )

    async def create_goal(params: CreateGoalInput) -> ToolResult:
        goal = await goals.create_goal(**params.model_dump())
        if goal is None:
            return not_found("Parent goal", params.parent_id)
        return ToolSuccess({"id": goal.id, "title": goal.title, "message": f"Goal '{goal.title}' created"})

    async def update_goal(params: UpdateGoalInput) -> ToolResult:
        goal = await goals.update_goal(params.goal_id, **params.model_dump(exclude={"goal_id"}, exclude_none=True))
        if goal is None:
            return not_found("Goal", params.goal_id)
        return ToolSuccess({"id": goal.id, "message": "Goal updated successfully"})

    async def delete_goal(params: GoalIdInput) -> ToolResult:
        goal = await goals.delete_goal(params.goal_id)
        if goal is None:
            return not_found("Goal", params.goal_id)
        return ToolSuccess({"message": f"Goal '{goal.title}' deleted"})

    domain = ToolDomain.GOALS
    return [
        ToolDefinition(
            "list_goals",
            "List all goals, optionally filtered by timeframe or category",
            ListGoalsInput,
            list_goals,
            domain,
        ),
        ToolDefinition("get_goal", "Get a specific goal with its details and sub-goals", GoalIdInput, get_goal, domain),
        ToolDefinition("create_goal", "Create a new goal", CreateGoalInput, create_goal, domain, mutates=True),
        ToolDefinition("update_goal", "Update an existing goal", UpdateGoalInput, update_goal, domain, mutates=True),
        ToolDefinition(
            "delete_goal",
            "Delete a goal and its sub-goals. This action requires confirmation.",
            GoalIdInput,
            delete_goal,
            domain,
            mutates=True,
            destructive=True,
        ),
    ]
