from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Generic, List, Optional, TypeVar

from tasktracker.domain.task_models import Task
from tasktracker.domain.task_schemas import TaskFilters

T = TypeVar("T")


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def of(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit))


@dataclass(frozen=True)
class PaginatedResult(Generic[T]):
    data: List[T] = field(default_factory=list)
    pagination: Optional[Pagination] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": [item.to_dict() for item in self.data],
            "pagination": None if self.pagination is None else {
                "page": self.pagination.page,
                "limit": self.pagination.limit,
                "total": self.pagination.total,
                "pages": self.pagination.pages,
            },
        }


class TaskRepository(ABC):
    """
    Persistence gateway for Task entities.

    Adapters translate between entities and their storage form and apply the
    filter/sort/paginate rules from ``tasktracker.infra.db.task_query``. They
    hold no business rules of their own: soft delete and restore go through
    the entity so both paths bump version the same way.
    """

    @abstractmethod
    async def find_by_id(self, task_id: str, include_deleted: bool = False) -> Optional[Task]:
        """Return the task, or None if missing or (unless include_deleted) soft-deleted."""

    @abstractmethod
    async def find_many(self, filters: TaskFilters) -> List[Task]:
        """Non-deleted tasks matching filters, sorted and paginated."""

    @abstractmethod
    async def count(self, filters: TaskFilters) -> int:
        """Number of rows find_many would match without pagination."""

    @abstractmethod
    async def create(self, task: Task) -> Task:
        """Insert a new row. Raises RepositoryError if the id already exists."""

    @abstractmethod
    async def update(self, task_id: str, task: Task) -> Task:
        """Persist the full state of task. Raises NotFoundError if no row exists."""

    @abstractmethod
    async def delete(self, task_id: str) -> None:
        """Soft-delete a live row. Raises NotFoundError if missing or already deleted."""

    @abstractmethod
    async def find_deleted(self, filters: TaskFilters) -> List[Task]:
        """Soft-deleted tasks, newest deletion first; the status filter is ignored."""

    @abstractmethod
    async def restore(self, task_id: str) -> Task:
        """Clear deleted_at on a deleted row. Raises NotFoundError if missing or not deleted."""
