"""Kanban board, column and task tools."""

from pydantic import BaseModel, Field

from aurora.services.boards import Board, InMemoryBoardService, Task
from aurora.tools.base import (
    EmptyInput,
    ToolDefinition,
    ToolDomain,
    ToolResult,
    ToolSuccess,
    not_found,
    parse_date,
)


class BoardIdInput(BaseModel):
    board_id: int = Field(..., description="The ID of the board")


class ColumnIdInput(BaseModel):
    column_id: int = Field(..., description="The ID of the column")


class TaskIdInput(BaseModel):
    task_id: int = Field(..., description="The ID of the task")


class CreateBoardInput(BaseModel):
    name: str = Field(..., min_length=1, description="Name of the board")


class CreateColumnInput(BaseModel):
    board_id: int = Field(..., description="The board to add the column to")
    name: str = Field(..., min_length=1, description="Name of the column")


class CreateTaskInput(BaseModel):
    column_id: int = Field(..., description="The column to add the task to")
    title: str = Field(..., min_length=1, max_length=255, description="Title of the task")
    description: str | None = Field(default=None, description="Optional description")
    priority: int = Field(default=4, ge=1, le=4, description="Priority 1-4 (1 is highest)")
    due_date: str | None = Field(default=None, description="Due date in YYYY-MM-DD format")


class UpdateTaskInput(BaseModel):
    task_id: int = Field(..., description="The task to update")
    title: str | None = Field(default=None, min_length=1, max_length=255, description="New title")
    description: str | None = Field(default=None, description="New description")
    priority: int | None = Field(default=None, ge=1, le=4, description="New priority 1-4")
    due_date: str | None = Field(default=None, description="New due date in YYYY-MM-DD format")


class MoveTaskInput(BaseModel):
    task_id: int = Field(..., description="The task to move")
    column_id: int = Field(..., description="The destination column")
    position: int = Field(default=0, ge=0, description="Position in the column (0 is top)")


def _task_summary(task: Task) -> dict:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "priority": task.priority,
        "due_date": task.due_date,
        "completed": task.completed,
    }


def create_boards_tools(boards: InMemoryBoardService) -> list[ToolDefinition]:
    async def list_boards(params: EmptyInput) -> ToolResult:
        all_boards = await boards.list_boards()
        return ToolSuccess({"count": len(all_boards), "boards": [{"id": b.id, "name": b.name} for b in all_boards]})

    async def _board_detail(board: Board) -> dict:
        columns = []
        for column in await boards.list_columns(board.id):
            tasks = await boards.list_tasks(column.id)
            columns.append(
                {
                    "id": column.id,
                    "name": column.name,
                    "task_count": len(tasks),
                    "tasks": [_task_summary(task) for task in tasks],
                }
            )
        return {"id": board.id, "name": board.name, "columns": columns}

    async def get_board(params: BoardIdInput) -> ToolResult:
        board = await boards.get_board(params.board_id)
        if board is None:
            return not_found("Board", params.board_id)
        return ToolSuccess(await _board_detail(board))

    async def list_tasks(params: ColumnIdInput) -> ToolResult:
        if await boards.get_column(params.column_id) is None:
            return not_found("Column", params.column_id)
        tasks = await boards.list_tasks(params.column_id)
        return ToolSuccess({"count": len(tasks), "tasks": [_task_summary(task) for task in tasks]})

    async def create_board(params: CreateBoardInput) -> ToolResult:
        board = await boards.create_board(params.name)
        message = f"Board '{board.name}' created successfully"
        return ToolSuccess({"id": board.id, "name": board.name, "message": message})

    async def create_column(params: CreateColumnInput) -> ToolResult:
        column = await boards.create_column(params.board_id, params.name)
        if column is None:
            return not_found("Board", params.board_id)
        return ToolSuccess({"id": column.id, "name": column.name, "message": f"Column '{column.name}' created"})

    async def create_task(params: CreateTaskInput) -> ToolResult:
        task = await boards.create_task(
            params.column_id,
            params.title,
            description=params.description,
            priority=params.priority,
            due_date=parse_date(params.due_date),
        )
        if task is None:
            return not_found("Column", params.column_id)
        return ToolSuccess({"id": task.id, "title": task.title, "message": f"Task '{task.title}' created"})

    async def update_task(params: UpdateTaskInput) -> ToolResult:
        changes = params.model_dump(exclude={"task_id"}, exclude_none=True)
        if "due_date" in changes:
            changes["due_date"] = parse_date(changes["due_date"])
        task = await boards.update_task(params.task_id, **changes)
        if task is None:
            return not_found("Task", params.task_id)
        return ToolSuccess({"id": task.id, "message": "Task updated successfully"})

    async def move_task(params: MoveTaskInput) -> ToolResult:
        if await boards.get_column(params.column_id) is None:
            return not_found("Column", params.column_id)
        task = await boards.move_task(params.task_id, params.column_id, params.position)
        if task is None:
            return not_found("Task", params.task_id)
        return ToolSuccess({"id": task.id, "message": "Task moved successfully"})

    async def complete_task(params: TaskIdInput) -> ToolResult:
        task = await boards.complete_task(params.task_id)
        if task is None:
            return not_found("Task", params.task_id)
        return ToolSuccess({"id": task.id, "message": f"Task '{task.title}' marked as complete"})

    async def delete_task(params: TaskIdInput) -> ToolResult:
        task = await boards.delete_task(params.task_id)
        if task is None:
            return not_found("Task", params.task_id)
        return ToolSuccess({"message": f"Task '{task.title}' deleted"})

    async def delete_column(params: ColumnIdInput) -> ToolResult:
        column = await boards.delete_column(params.column_id)
        if column is None:
            return not_found("Column", params.column_id)
        return ToolSuccess({"message": f"Column '{column.name}' deleted"})

    async def delete_board(params: BoardIdInput) -> ToolResult:
        board = await boards.delete_board(params.board_id)
        if board is None:
            return not_found("Board", params.board_id)
        return ToolSuccess({"message": f"Board '{board.name}' deleted"})

    domain = ToolDomain.BOARDS
    return [
        ToolDefinition("list_boards", "List all kanban boards", EmptyInput, list_boards, domain),
        ToolDefinition(
            "get_board", "Get a specific board with all its columns and tasks", BoardIdInput, get_board, domain
        ),
        ToolDefinition("list_tasks", "List all tasks in a specific column", ColumnIdInput, list_tasks, domain),
        ToolDefinition(
            "create_board", "Create a new kanban board", CreateBoardInput, create_board, domain, mutates=True
        ),
        ToolDefinition(
            "create_column", "Create a new column in a board", CreateColumnInput, create_column, domain, mutates=True
        ),
        ToolDefinition(
            "create_task", "Create a new task in a column", CreateTaskInput, create_task, domain, mutates=True
        ),
        ToolDefinition("update_task", "Update an existing task", UpdateTaskInput, update_task, domain, mutates=True),
        ToolDefinition(
            "move_task", "Move a task to a different column", MoveTaskInput, move_task, domain, mutates=True
        ),
        ToolDefinition("complete_task", "Mark a task as complete", TaskIdInput, complete_task, domain, mutates=True),
        ToolDefinition(
            "delete_task",
            "Delete a task permanently. This action requires confirmation.",
            TaskIdInput,
            delete_task,
            domain,
            mutates=True,
            destructive=True,
        ),
        ToolDefinition(
            "delete_column",
            "Delete a column and all its tasks. This action requires confirmation.",
            ColumnIdInput,
            delete_column,
            domain,
            mutates=True,
            destructive=True,
        ),
        ToolDefinition(
            "delete_board",
            "Delete a board and all its contents. This action requires confirmation.",
            BoardIdInput,
            delete_board,
            domain,
            mutates=True,
            destructive=True,
        ),
    ]
