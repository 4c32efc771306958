import asyncio
import logging
from typing import Any, Dict, List, Optional

from tasktracker.domain.errors import ConflictError, NotFoundError
from tasktracker.domain.task_models import Priority, Task, new_task_id, utcnow
from tasktracker.domain.task_repository import PaginatedResult, Pagination, TaskRepository
from tasktracker.domain.task_schemas import TaskCreate, TaskFilters, TaskUpdate, normalize_due_date

logger = logging.getLogger("tasktracker.tasks")

CONFLICT_MESSAGE = "Task has been modified by another user. Please refresh and try again."

# fields a PATCH may set to null
_CLEARABLE = frozenset({"description", "due_date"})


class TaskService:
    def __init__(self, repo: TaskRepository):
        self.repo = repo

    def _check_version(self, task: Task, version: Optional[int]) -> None:
        if version is not None and version != task.version:
            logger.info(
                "task.conflict",
                extra={
                    "category": "tasks",
                    "event": "task.conflict",
                    "task_id": task.id,
                    "expected_version": version,
                    "actual_version": task.version,
                },
            )
            raise ConflictError(CONFLICT_MESSAGE)

    async def get_tasks(self, filters: TaskFilters) -> PaginatedResult[Task]:
        tasks, total = await asyncio.gather(self.repo.find_many(filters), self.repo.count(filters))
        return PaginatedResult(data=tasks, pagination=Pagination.of(filters.page, filters.limit, total))

    async def get_task_by_id(self, task_id: str) -> Task:
        task = await self.repo.find_by_id(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    async def create_task(self, data: TaskCreate) -> Task:
        now = utcnow()
        task = Task(
            id=new_task_id(),
            title=data.title,
            description=data.description or None,
            priority=data.priority or Priority.MEDIUM,
            completed=False,
            due_date=normalize_due_date(data.due_date),
            tags=list(data.tags or []),
            created_at=now,
            updated_at=now,
        )
        created = await self.repo.create(task)
        logger.info(
            "task.create",
            extra={"category": "tasks", "event": "task.create", "task_id": created.id, "title": created.title},
        )
        return created

    async def update_task(self, task_id: str, data: TaskUpdate) -> Task:
        task = await self.get_task_by_id(task_id)
        self._check_version(task, data.version)

        changes: Dict[str, Any] = {}
        for name in data.model_fields_set - {"version"}:
            value = getattr(data, name)
            if value is not None or name in _CLEARABLE:
                changes[name] = value
        if "due_date" in changes:
            changes["due_date"] = normalize_due_date(changes["due_date"])

        task.update(**changes)
        updated = await self.repo.update(task_id, task)
        logger.info(
            "task.update",
            extra={
                "category": "tasks",
                "event": "task.update",
                "task_id": task_id,
                "fields": sorted(changes),
                "version": updated.version,
            },
        )
        return updated

    async def toggle_task_complete(self, task_id: str, version: Optional[int] = None) -> Task:
        task = await self.get_task_by_id(task_id)
        self._check_version(task, version)

        task.toggle_complete()
        updated = await self.repo.update(task_id, task)
        logger.info(
            "task.toggle",
            extra={
                "category": "tasks",
                "event": "task.toggle",
                "task_id": task_id,
                "completed": updated.completed,
                "version": updated.version,
            },
        )
        return updated

    async def delete_task(self, task_id: str) -> None:
        task = await self.get_task_by_id(task_id)
        task.soft_delete()
        await self.repo.update(task_id, task)
        logger.info("task.delete", extra={"category": "tasks", "event": "task.delete", "task_id": task_id})

    async def restore_task(self, task_id: str) -> Task:
        task = await self.repo.find_by_id(task_id, include_deleted=True)
        if task is None or not task.is_deleted:
            raise NotFoundError("Deleted task", task_id)

        task.restore()
        restored = await self.repo.update(task_id, task)
        logger.info("task.restore", extra={"category": "tasks", "event": "task.restore", "task_id": task_id})
        return restored

    async def get_deleted_tasks(self, filters: TaskFilters) -> List[Task]:
        return await self.repo.find_deleted(filters.model_copy(update={"status": None}))
