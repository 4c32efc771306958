from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text, case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from tasktracker.domain.errors import NotFoundError, RepositoryError
from tasktracker.domain.task_models import Priority, Task
from tasktracker.domain.task_repository import TaskRepository
from tasktracker.domain.task_schemas import TaskFilters
from tasktracker.infra.db.task_query import (
    PRIORITY_RANK,
    DayWindow,
    apply_text_filters,
    day_window,
    needs_app_side,
    paginate,
    sort_by_deleted,
    sort_tasks,
)


def _to_storage(value: Optional[datetime]) -> Optional[datetime]:
    # columns hold naive UTC; SQLite has no timezone type
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_storage(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


class Base(DeclarativeBase):
    pass


class TaskRow(Base):
    __tablename__ = "task"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)
    tags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    def to_domain(self) -> Task:
        return Task(
            id=self.id,
            title=self.title,
            description=self.description,
            priority=Priority(self.priority),
            completed=self.completed,
            due_date=_from_storage(self.due_date),
            tags=list(self.tags or []),
            created_at=_from_storage(self.created_at),
            updated_at=_from_storage(self.updated_at),
            deleted_at=_from_storage(self.deleted_at),
            version=self.version,
        )

    def apply(self, task: Task) -> None:
        self.title = task.title
        self.description = task.description
        self.priority = task.priority.value
        self.completed = task.completed
        self.due_date = _to_storage(task.due_date)
        self.tags = list(task.tags)
        self.created_at = _to_storage(task.created_at)
        self.updated_at = _to_storage(task.updated_at)
        self.deleted_at = _to_storage(task.deleted_at)
        self.version = task.version

    @classmethod
    def from_domain(cls, task: Task) -> "TaskRow":
        row = cls(id=task.id)
        row.apply(task)
        return row


_PRIORITY_ORDER = case(
    {p.value: rank for p, rank in PRIORITY_RANK.items()},
    value=TaskRow.priority,
)

_SORT_COLUMNS: dict[str, Any] = {
    "createdAt": TaskRow.created_at,
    "dueDate": TaskRow.due_date,
    "priority": _PRIORITY_ORDER,
    "title": TaskRow.title,
    "completed": TaskRow.completed,
}


def _order_by(column: Any, sort_order: str) -> list:
    if sort_order == "desc":
        return [column.desc(), TaskRow.id.desc()]
    return [column.asc(), TaskRow.id.asc()]


def _conditions(filters: TaskFilters, deleted: bool, window: DayWindow) -> list:
    conds: list = [TaskRow.deleted_at.is_not(None) if deleted else TaskRow.deleted_at.is_(None)]

    if filters.priority is not None:
        conds.append(TaskRow.priority == filters.priority.value)

    if not deleted:
        if filters.status == "completed":
            conds.append(TaskRow.completed.is_(True))
        elif filters.status == "incomplete":
            conds.append(TaskRow.completed.is_(False))

    today = _to_storage(window.today)
    if filters.due_date == "overdue":
        conds += [TaskRow.due_date < today, TaskRow.completed.is_(False)]
    elif filters.due_date == "today":
        conds += [TaskRow.due_date >= today, TaskRow.due_date < _to_storage(window.tomorrow)]
    elif filters.due_date == "week":
        conds += [TaskRow.due_date >= today, TaskRow.due_date < _to_storage(window.week_end)]
    elif filters.due_date == "none":
        conds.append(TaskRow.due_date.is_(None))

    return conds


class SQLiteTaskRepo(TaskRepository):
    """
    Relational adapter on SQLAlchemy's asyncio ORM.

    Predicates, ordering and LIMIT/OFFSET go to SQL unless the filter set
    carries a search string or tags; then the candidate rows are loaded and
    search, tag matching, sorting and slicing happen in Python. count() follows
    the same split so totals agree with the returned rows.
    """

    def __init__(self, sessionmaker):
        self.sessionmaker = sessionmaker

    async def _candidates(self, filters: TaskFilters, deleted: bool) -> List[Task]:
        stmt = select(TaskRow).where(*_conditions(filters, deleted, day_window()))
        async with self.sessionmaker() as session:
            res = await session.execute(stmt)
            rows = res.scalars().all()
        return apply_text_filters((r.to_domain() for r in rows), filters)

    async def find_by_id(self, task_id: str, include_deleted: bool = False) -> Optional[Task]:
        async with self.sessionmaker() as session:
            row = await session.get(TaskRow, task_id)
            if row is None or (row.deleted_at is not None and not include_deleted):
                return None
            return row.to_domain()

    async def find_many(self, filters: TaskFilters) -> List[Task]:
        if needs_app_side(filters):
            tasks = await self._candidates(filters, deleted=False)
            tasks = sort_tasks(tasks, filters.sort_by, filters.sort_order)
            return paginate(tasks, filters.page, filters.limit)

        column = _SORT_COLUMNS[filters.sort_by]
        stmt = (
            select(TaskRow)
            .where(*_conditions(filters, False, day_window()))
            .order_by(*_order_by(column, filters.sort_order))
            .offset(filters.skip)
            .limit(filters.limit)
        )
        async with self.sessionmaker() as session:
            res = await session.execute(stmt)
            return [r.to_domain() for r in res.scalars().all()]

    async def count(self, filters: TaskFilters) -> int:
        if needs_app_side(filters):
            return len(await self._candidates(filters, deleted=False))

        stmt = select(func.count()).select_from(TaskRow).where(*_conditions(filters, False, day_window()))
        async with self.sessionmaker() as session:
            res = await session.execute(stmt)
            return int(res.scalar_one())

    async def create(self, task: Task) -> Task:
        row = TaskRow.from_domain(task)
        async with self.sessionmaker() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise RepositoryError(f"task {task.id} already exists") from exc
            return row.to_domain()

    async def update(self, task_id: str, task: Task) -> Task:
        async with self.sessionmaker() as session:
            row = await session.get(TaskRow, task_id)
            if row is None:
                raise NotFoundError("Task", task_id)
            row.apply(task)
            await session.commit()
            return row.to_domain()

    async def delete(self, task_id: str) -> None:
        async with self.sessionmaker() as session:
            row = await session.get(TaskRow, task_id)
            if row is None or row.deleted_at is not None:
                raise NotFoundError("Task", task_id)
            task = row.to_domain()
            task.soft_delete()
            row.apply(task)
            await session.commit()

    async def find_deleted(self, filters: TaskFilters) -> List[Task]:
        if needs_app_side(filters):
            tasks = sort_by_deleted(await self._candidates(filters, deleted=True))
            return paginate(tasks, filters.page, filters.limit)

        stmt = (
            select(TaskRow)
            .where(*_conditions(filters, True, day_window()))
            .order_by(TaskRow.deleted_at.desc(), TaskRow.id.desc())
            .offset(filters.skip)
            .limit(filters.limit)
        )
        async with self.sessionmaker() as session:
            res = await session.execute(stmt)
            return [r.to_domain() for r in res.scalars().all()]

    async def restore(self, task_id: str) -> Task:
        async with self.sessionmaker() as session:
            row = await session.get(TaskRow, task_id)
            if row is None or row.deleted_at is None:
                raise NotFoundError("Deleted task", task_id)
            task = row.to_domain()
            task.restore()
            row.apply(task)
            await session.commit()
            return row.to_domain()
