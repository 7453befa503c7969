"""Kanban boards, columns and tasks."""

import itertools
from dataclasses import dataclass
from datetime import UTC, date, datetime


@dataclass
class Board:
    id: int
    name: str
    position: int = 0


@dataclass
class Column:
    id: int
    board_id: int
    name: str
    position: int = 0


@dataclass
class Task:
    """Task data model."""

    id: int
    column_id: int
    title: str
    description: str | None = None
    priority: int = 4  # 1 is highest
    due_date: date | None = None
    position: int = 0
    completed: bool = False
    completed_at: datetime | None = None


class InMemoryBoardService:
    """In-memory board service.

    Starts with one "Personal" board so newly extracted tasks always have a destination.
    """

    def __init__(self, with_default_board: bool = True):
        self.boards: dict[int, Board] = {}
        self.columns: dict[int, Column] = {}
        self.tasks: dict[int, Task] = {}
        self._ids = itertools.count(1)
        if with_default_board:
            self._create_default_board()

    async def list_boards(self) -> list[Board]:
        return sorted(self.boards.values(), key=lambda b: (b.position, b.id))

    async def get_board(self, board_id: int) -> Board | None:
        return self.boards.get(board_id)

    async def list_columns(self, board_id: int) -> list[Column]:
        columns = [c for c in self.columns.values() if c.board_id == board_id]
        return sorted(columns, key=lambda c: (c.position, c.id))

    async def list_tasks(self, column_id: int) -> list[Task]:
        tasks = [t for t in self.tasks.values() if t.column_id == column_id]
        return sorted(tasks, key=lambda t: (t.position, t.id))

    async def list_open_tasks(self) -> list[Task]:
        """Non-completed tasks across every board, in board, column and position order."""
        open_tasks = []
        for board in await self.list_boards():
            for column in await self.list_columns(board.id):
                open_tasks.extend(t for t in await self.list_tasks(column.id) if not t.completed)
        return open_tasks

    async def default_column(self) -> Column | None:
        """First column of the first board."""
        for board in await self.list_boards():
            columns = await self.list_columns(board.id)
            if columns:
                return columns[0]
        return None

    async def get_column(self, column_id: int) -> Column | None:
        return self.columns.get(column_id)

    async def get_task(self, task_id: int) -> Task | None:
        return self.tasks.get(task_id)

    async def create_board(self, name: str) -> Board:
        board = Board(id=next(self._ids), name=name, position=len(self.boards))
        self.boards[board.id] = board
        return board

    async def create_column(self, board_id: int, name: str) -> Column | None:
        if board_id not in self.boards:
            return None
        position = len(await self.list_columns(board_id))
        column = Column(id=next(self._ids), board_id=board_id, name=name, position=position)
        self.columns[column.id] = column
        return column

    async def create_task(
        self,
        column_id: int,
        title: str,
        description: str | None = None,
        priority: int = 4,
        due_date: date | None = None,
    ) -> Task | None:
        if column_id not in self.columns:
            return None
        # New tasks go on top
        for task in await self.list_tasks(column_id):
            task.position += 1
        task = Task(
            id=next(self._ids),
            column_id=column_id,
            title=title,
            description=description,
            priority=priority,
            due_date=due_date,
        )
        self.tasks[task.id] = task
        return task

    async def update_task(self, task_id: int, **changes) -> Task | None:
        task = self.tasks.get(task_id)
        if task is None:
            return None
        for key, value in changes.items():
            setattr(task, key, value)
        return task

    async def move_task(self, task_id: int, column_id: int, position: int = 0) -> Task | None:
        task = self.tasks.get(task_id)
        if task is None or column_id not in self.columns:
            return None

        siblings = [t for t in await self.list_tasks(column_id) if t.id != task_id]
        position = max(0, min(position, len(siblings)))
        siblings.insert(position, task)
        task.column_id = column_id
        for index, sibling in enumerate(siblings):
            sibling.position = index
        return task

    async def complete_task(self, task_id: int) -> Task | None:
        task = self.tasks.get(task_id)
        if task is None:
            return None
        task.completed = True
        task.completed_at = datetime.now(UTC)
        return task

    async def delete_task(self, task_id: int) -> Task | None:
        return self.tasks.pop(task_id, None)

    async def delete_column(self, column_id: int) -> Column | None:
        column = self.columns.pop(column_id, None)
        if column is not None:
            for task in [t for t in self.tasks.values() if t.column_id == column_id]:
                del self.tasks[task.id]
        return column

    async def delete_board(self, board_id: int) -> Board | None:
        board = self.boards.pop(board_id, None)
        if board is not None:
            for column in await self.list_columns(board_id):
                await self.delete_column(column.id)
        return board

    def _create_default_board(self) -> None:
        board = Board(id=next(self._ids), name="Personal")
        self.boards[board.id] = board
        for position, name in enumerate(["To Do", "In Progress", "Done"]):
            column = Column(id=next(self._ids), board_id=board.id, name=name, position=position)
            self.columns[column.id] = column
