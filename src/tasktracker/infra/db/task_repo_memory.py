from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Optional

from tasktracker.domain.errors import NotFoundError, RepositoryError
from tasktracker.domain.task_models import Task
from tasktracker.domain.task_repository import TaskRepository
from tasktracker.domain.task_schemas import TaskFilters
from tasktracker.infra.db.task_query import (
    apply_text_filters,
    day_window,
    matches_predicates,
    paginate,
    sort_by_deleted,
    sort_tasks,
)


def _copy(task: Task) -> Task:
    return replace(task, tags=list(task.tags))


class InMemoryTaskRepo(TaskRepository):
    """
    Dict-backed store with the same contract as the SQLite repo.
    Entities are copied on the way in and out so callers never share state
    with the store.
    """

    def __init__(self) -> None:
        self._tasks: Dict[str, Task] = {}

    def _matching(self, filters: TaskFilters, deleted: bool) -> List[Task]:
        if deleted:
            filters = filters.model_copy(update={"status": None})
        window = day_window()
        candidates = [
            t for t in self._tasks.values()
            if t.is_deleted == deleted and matches_predicates(t, filters, window)
        ]
        return apply_text_filters(candidates, filters)

    async def find_by_id(self, task_id: str, include_deleted: bool = False) -> Optional[Task]:
        task = self._tasks.get(task_id)
        if task is None or (task.is_deleted and not include_deleted):
            return None
        return _copy(task)

    async def find_many(self, filters: TaskFilters) -> List[Task]:
        tasks = sort_tasks(self._matching(filters, deleted=False), filters.sort_by, filters.sort_order)
        return [_copy(t) for t in paginate(tasks, filters.page, filters.limit)]

    async def count(self, filters: TaskFilters) -> int:
        return len(self._matching(filters, deleted=False))

    async def create(self, task: Task) -> Task:
        if task.id in self._tasks:
            raise RepositoryError(f"task {task.id} already exists")
        self._tasks[task.id] = _copy(task)
        return _copy(task)

    async def update(self, task_id: str, task: Task) -> Task:
        if task_id not in self._tasks:
            raise NotFoundError("Task", task_id)
        self._tasks[task_id] = _copy(task)
        return _copy(task)

    async def delete(self, task_id: str) -> None:
        task = self._tasks.get(task_id)
        if task is None or task.is_deleted:
            raise NotFoundError("Task", task_id)
        task.soft_delete()

    async def find_deleted(self, filters: TaskFilters) -> List[Task]:
        tasks = sort_by_deleted(self._matching(filters, deleted=True))
        return [_copy(t) for t in paginate(tasks, filters.page, filters.limit)]

    async def restore(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None or not task.is_deleted:
            raise NotFoundError("Deleted task", task_id)
        task.restore()
        return _copy(task)
