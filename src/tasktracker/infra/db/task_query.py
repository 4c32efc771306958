"""
Filter, sort and paginate rules shared by every TaskRepository adapter.

The relational adapter pushes what it can into SQL (deleted flag, priority,
status, due-date buckets, ordering, LIMIT/OFFSET) and falls back to these
functions for the rest; the in-memory adapter uses them for everything. Both
must end up with the same rows in the same order.

Order of application: predicates, then search and tag matching, then sort,
then the page slice.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

from tasktracker.domain.task_models import Priority, Task
from tasktracker.domain.task_schemas import TaskFilters

T = TypeVar("T")

PRIORITY_RANK: Dict[Priority, int] = {Priority.HIGH: 2, Priority.MEDIUM: 1, Priority.LOW: 0}

_MIN_UTC = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class DayWindow:
    """Local-midnight boundaries used by the due-date buckets."""

    today: datetime
    tomorrow: datetime
    week_end: datetime


def day_window(now: Optional[datetime] = None) -> DayWindow:
    local = (now or datetime.now(timezone.utc)).astimezone()
    today = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return DayWindow(
        today=today,
        tomorrow=today + timedelta(days=1),
        week_end=today + timedelta(days=7),
    )


def matches_due_bucket(task: Task, bucket: Optional[str], window: DayWindow) -> bool:
    if bucket is None:
        return True
    due = task.due_date
    if bucket == "none":
        return due is None
    if due is None:
        return False
    if bucket == "overdue":
        return due < window.today and not task.completed
    if bucket == "today":
        return window.today <= due < window.tomorrow
    if bucket == "week":
        return window.today <= due < window.week_end
    raise ValueError(f"unknown due date bucket: {bucket}")


def matches_predicates(task: Task, filters: TaskFilters, window: DayWindow) -> bool:
    """The part of the filter set a relational store evaluates natively."""
    if filters.priority is not None and task.priority != filters.priority:
        return False
    if filters.status == "completed" and not task.completed:
        return False
    if filters.status == "incomplete" and task.completed:
        return False
    return matches_due_bucket(task, filters.due_date, window)


def matches_search(task: Task, search: Optional[str]) -> bool:
    if not search:
        return True
    q = search.lower()
    return (
        q in (task.title or "").lower()
        or q in (task.description or "").lower()
        or q in ",".join(task.tags).lower()
    )


def matches_tags(task: Task, tags: Optional[Sequence[str]]) -> bool:
    if not tags:
        return True
    return all(tag in task.tags for tag in tags)


def needs_app_side(filters: TaskFilters) -> bool:
    """True when search or tag matching has to run in Python after the fetch."""
    return bool(filters.search) or bool(filters.tags)


def apply_text_filters(tasks: Iterable[Task], filters: TaskFilters) -> List[Task]:
    return [t for t in tasks if matches_search(t, filters.search) and matches_tags(t, filters.tags)]


def _due_key(task: Task):
    # tasks without a due date come first in ascending order
    return (task.due_date is not None, task.due_date or _MIN_UTC)


SORT_KEYS: Dict[str, Callable[[Task], object]] = {
    "createdAt": lambda t: t.created_at,
    "dueDate": _due_key,
    "priority": lambda t: PRIORITY_RANK[t.priority],
    "title": lambda t: t.title,
    "completed": lambda t: t.completed,
}


def sort_tasks(tasks: Iterable[Task], sort_by: str, sort_order: str) -> List[Task]:
    # id breaks ties in the same direction as the primary key, matching the SQL ORDER BY
    key = SORT_KEYS[sort_by]
    return sorted(tasks, key=lambda t: (key(t), t.id), reverse=sort_order == "desc")


def sort_by_deleted(tasks: Iterable[Task]) -> List[Task]:
    return sorted(tasks, key=lambda t: (t.deleted_at or _MIN_UTC, t.id), reverse=True)


def paginate(items: Sequence[T], page: int, limit: int) -> List[T]:
    start = (page - 1) * limit
    return list(items[start:start + limit])
